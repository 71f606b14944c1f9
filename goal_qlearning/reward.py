from typing import Sequence

from .errors import InvalidState
from .goal import Goal

GOAL_REWARD = 1.0
DEFAULT_REWARD = 0.0


def reward(
    goal: Goal,
    description: Sequence,
    goal_reward: float = GOAL_REWARD,
    default_reward: float = DEFAULT_REWARD,
) -> float:
    """
    Sparse goal reward.

    The first ``len(goal)`` fields of the state description are compared with
    the goal element-wise. An exact match on every field yields `goal_reward`,
    anything else yields `default_reward`.

    :param goal: Parsed goal tuple
    :param description: Full semantic description of the state, e.g. ``(2, 2, True, False, 2)``
    :param goal_reward: Value returned when the goal is reached
    :param default_reward: Value returned otherwise
    :return: The reward for being in the described state
    """
    if len(description) < len(goal):
        raise InvalidState(
            f"State description {tuple(description)} has fewer than {len(goal)} fields"
        )

    for target, observed in zip(goal, description):
        if target != observed:
            return default_reward
    return goal_reward
