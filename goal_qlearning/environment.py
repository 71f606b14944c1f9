from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence, Tuple

import gymnasium as gym

from .errors import InvalidParameter

ActionDescription = Tuple[str, List[Any], List[Any]]


class EnvironmentPort(ABC):
    """
    Interface the learner needs from the environment it trains against.

    The environment is stateful: `perform_action` advances it and
    `current_state` / `current_description` read the resulting snapshot.
    Implementations are driven by a single learner at a time.
    """

    @property
    @abstractmethod
    def state_count(self) -> int:
        """Number of discrete states."""

    @property
    @abstractmethod
    def action_count(self) -> int:
        """Number of discrete actions."""

    @property
    def goal_dimensions(self) -> Optional[int]:
        """Number of goal components the environment expects, None if unconstrained."""
        return None

    @abstractmethod
    def applicable_actions(self, state: int) -> Sequence[int]:
        """Actions that can be executed in `state`, in a stable order."""

    @abstractmethod
    def perform_action(self, action: int) -> None:
        """Execute `action`, advancing the environment."""

    @abstractmethod
    def current_state(self) -> int:
        """Index of the current state."""

    @abstractmethod
    def current_description(self) -> Tuple:
        """Full semantic description of the current state."""

    def describe_action(self, action: int) -> ActionDescription:
        """
        Map an action index to what an agent needs to invoke it.

        :param action: Action index
        :return: Tuple of (action tag, payload tags, payload values)
        """
        return str(action), [], []


class GymnasiumEnvironment(EnvironmentPort):
    """
    Environment port over a Gymnasium environment with discrete spaces.

    Every action is applicable in every state. A step that terminates the
    Gymnasium episode leaves the final observation readable through
    `current_state`; the next `perform_action` call only resets the wrapped
    environment, so terminal states lead back to the start state.

    Truncation (e.g. a `TimeLimit` wrapper) is not an end of episode here:
    the state is not terminal, so stepping continues from it. Bounding
    episode length is the learner's `max_steps`.
    """

    def __init__(
        self,
        env: gym.Env,
        describe: Optional[Callable[[int], Tuple]] = None,
        action_tags: Optional[Sequence[str]] = None,
        seed: Optional[int] = None,
    ):
        """
        :param env: Gymnasium environment with `Discrete` observation and action spaces
        :param describe: Maps a state index to its full description, defaults to ``(state,)``
        :param action_tags: Optional semantic tag per action index
        :param seed: Seed used for the first reset
        """
        if not isinstance(env.observation_space, gym.spaces.Discrete):
            raise InvalidParameter(
                f"Observation space must be Discrete, got {env.observation_space}"
            )
        if not isinstance(env.action_space, gym.spaces.Discrete):
            raise InvalidParameter(f"Action space must be Discrete, got {env.action_space}")
        if action_tags is not None and len(action_tags) != env.action_space.n:
            raise InvalidParameter(
                f"Expected {env.action_space.n} action tags, got {len(action_tags)}"
            )

        self.env = env
        self.describe = describe
        self.action_tags = list(action_tags) if action_tags is not None else None
        self.n_resets = 0
        self._needs_reset = False

        observation, info = self.env.reset(seed=seed)
        self._state = int(observation)

    @property
    def state_count(self) -> int:
        return int(self.env.observation_space.n)

    @property
    def action_count(self) -> int:
        return int(self.env.action_space.n)

    def applicable_actions(self, state: int) -> Sequence[int]:
        return list(range(self.action_count))

    def perform_action(self, action: int) -> None:
        if self._needs_reset:
            self.reset()
            return

        observation, reward, terminated, truncated, info = self.env.step(action)
        self._state = int(observation)
        self._needs_reset = bool(terminated)

    @property
    def episode_over(self) -> bool:
        """Whether the last step reached a terminal state."""
        return self._needs_reset

    def reset(self) -> int:
        """Reset the wrapped environment and return the new state."""
        observation, info = self.env.reset()
        self._state = int(observation)
        self._needs_reset = False
        self.n_resets += 1
        return self._state

    def current_state(self) -> int:
        return self._state

    def current_description(self) -> Tuple:
        if self.describe is not None:
            return tuple(self.describe(self._state))
        return (self._state,)

    def describe_action(self, action: int) -> ActionDescription:
        tag = self.action_tags[action] if self.action_tags is not None else str(action)
        return tag, ["action"], [int(action)]

    def close(self) -> None:
        self.env.close()
