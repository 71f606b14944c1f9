"""
Shared fixtures: small deterministic environments implementing EnvironmentPort.
"""
from typing import List, Optional, Sequence, Tuple

import matplotlib
import pytest

from goal_qlearning import EnvironmentPort, QLearner

matplotlib.use("Agg")


class LineWorld(EnvironmentPort):
    """
    1-D line of `size` states. Action 0 decrements, action 1 increments,
    both clipped to [0, size - 1].

    With `restart_at` set, acting from that state moves back to `start`,
    which turns the goal state into the end of an episode.
    """

    def __init__(self, size: int = 4, start: int = 0, restart_at: Optional[int] = None):
        self.size = size
        self.start = start
        self.restart_at = restart_at
        self.state = start
        self.performed: List[int] = []

    @property
    def state_count(self) -> int:
        return self.size

    @property
    def action_count(self) -> int:
        return 2

    def applicable_actions(self, state: int) -> Sequence[int]:
        return [0, 1]

    def perform_action(self, action: int) -> None:
        self.performed.append(action)
        if self.restart_at is not None and self.state == self.restart_at:
            self.state = self.start
            return
        step = 1 if action == 1 else -1
        self.state = min(max(self.state + step, 0), self.size - 1)

    def current_state(self) -> int:
        return self.state

    def current_description(self) -> Tuple:
        return (self.state, self.state % 2 == 0)

    def describe_action(self, action: int):
        if action == 1:
            return "increment", ["step"], [1]
        return "decrement", ["step"], [-1]


class DeadEndWorld(LineWorld):
    """Line world whose last state has no applicable action."""

    def applicable_actions(self, state: int) -> Sequence[int]:
        return [] if state == self.size - 1 else [1]


class BrokenWorld(LineWorld):
    """Line world whose actuator always fails."""

    def perform_action(self, action: int) -> None:
        raise RuntimeError("actuator offline")


class TwoZoneWorld(LineWorld):
    """Line world that expects two-component goals."""

    @property
    def goal_dimensions(self) -> Optional[int]:
        return 2


@pytest.fixture
def line_world():
    return LineWorld()


@pytest.fixture
def episodic_line_world():
    return LineWorld(restart_at=3)


@pytest.fixture
def learner(line_world):
    return QLearner(line_world, random_seed=7)
