"""
Goal parsing.

A goal is an ordered tuple of integer targets, one per controllable dimension
(for instance the desired illuminance rank of each zone). The parsed tuple is
hashable and is used directly as the key of the Q-table store, so ``(2, 13)``
and ``(21, 3)`` never share a table.
"""

import numbers
from typing import Any, Iterable, Optional, Tuple

from .errors import InvalidParameter

Goal = Tuple[int, ...]


def _parse_component(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidParameter(f"Goal component {value!r} must be an integer, not a bool")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real) and float(value).is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise InvalidParameter(f"Goal component {value!r} is not an integer")


def parse_goal(goal: Iterable[Any], dimensions: Optional[int] = None) -> Goal:
    """
    Convert a loosely typed goal description into a goal key.

    :param goal: Sequence of target values, e.g. ``[2, 3]`` or ``("2", "3")``
    :param dimensions: Expected number of components, if the environment declares one
    :return: Tuple of ints usable as a Q-table store key
    """
    if isinstance(goal, (str, bytes)):
        raise InvalidParameter(f"Goal must be a sequence of values, got {goal!r}")
    try:
        parsed = tuple(_parse_component(value) for value in goal)
    except TypeError as exc:
        raise InvalidParameter(f"Goal must be a sequence of values, got {goal!r}") from exc

    if not parsed:
        raise InvalidParameter("Goal must contain at least one component")
    if dimensions is not None and len(parsed) != dimensions:
        raise InvalidParameter(
            f"Goal {parsed} has {len(parsed)} components, expected {dimensions}"
        )
    return parsed


def goal_label(goal: Goal) -> str:
    """Delimited string form of a goal, safe for logs and file names."""
    return "-".join(str(component) for component in goal)
