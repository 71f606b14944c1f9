import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Sequence

import numpy as np
from tqdm import tqdm

from .environment import EnvironmentPort
from .errors import (
    EnvironmentFailure,
    EnvironmentNotBound,
    EpisodeTimeout,
    IndexOutOfRange,
    InvalidParameter,
    InvalidState,
    NoApplicableAction,
    QLearningError,
)
from .goal import Goal, goal_label, parse_goal
from .q_table import QTableStore
from .reward import DEFAULT_REWARD, GOAL_REWARD, reward

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionRecommendation:
    """
    Next best action for a goal, in the form an agent needs to invoke it.

    Unpacks as ``(action_tag, payload_tags, payload_values)``.
    """

    action: int
    action_tag: str
    payload_tags: List[Any] = field(default_factory=list)
    payload_values: List[Any] = field(default_factory=list)

    def __iter__(self) -> Iterator:
        yield self.action_tag
        yield self.payload_tags
        yield self.payload_values


def _parse_real(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidParameter(f"{name} must be a number, got {value!r}")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            raise InvalidParameter(f"{name} must be a number, got {value!r}") from None
    if not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise InvalidParameter(f"{name} must be a finite number, got {value!r}")
    return float(value)


def _parse_probability(name: str, value: Any) -> float:
    value = _parse_real(name, value)
    if not 0.0 <= value <= 1.0:
        raise InvalidParameter(f"{name} must be in [0, 1], got {value}")
    return value


def _parse_count(name: str, value: Any, minimum: int) -> int:
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise InvalidParameter(f"{name} must be an integer, got {value!r}") from None
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidParameter(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidParameter(f"{name} must be >= {minimum}, got {value}")
    return int(value)


class QLearner:
    """
    Goal-conditioned tabular Q-learning against a stateful environment.

    One Q-table is kept per goal. `calculate_q` trains the goal's table with
    epsilon-greedy episodes that run until the reward function reports the
    goal as reached, and `get_action_from_state` serves the greedy action of
    a trained table without touching the environment.

    The learner drives its environment synchronously; callers sharing one
    environment between several learners or goals must serialize training.
    """

    def __init__(
        self,
        environment: Optional[EnvironmentPort] = None,
        random_seed: Optional[int] = None,
        verbose: bool = False,
    ):
        """
        :param environment: Environment to bind immediately (see `initialize`)
        :param random_seed: Seed for the exploration random generator
        :param verbose: Whether to show a progress bar during training
        """
        self.environment: Optional[EnvironmentPort] = None
        self.store: Optional[QTableStore] = None
        self.rng = np.random.default_rng(random_seed)
        self.verbose = verbose
        self.episode_lengths = np.zeros(0, dtype=int)

        if environment is not None:
            self.initialize(environment)

    @property
    def state_count(self) -> int:
        return self._require_store().state_count

    @property
    def action_count(self) -> int:
        return self._require_store().action_count

    def initialize(self, environment: EnvironmentPort) -> None:
        """
        Bind the learner to an environment and drop every learned table.

        :param environment: Environment whose state and action spaces size the tables
        """
        state_count = environment.state_count
        logger.info("Initialized with a state space of n=%d", state_count)
        action_count = environment.action_count
        logger.info("Initialized with an action space of m=%d", action_count)

        self.store = QTableStore(state_count, action_count)
        self.environment = environment
        self.episode_lengths = np.zeros(0, dtype=int)

    def _require_environment(self) -> EnvironmentPort:
        if self.environment is None:
            raise EnvironmentNotBound("Call initialize() with an environment first")
        return self.environment

    def _require_store(self) -> QTableStore:
        if self.store is None:
            raise EnvironmentNotBound("Call initialize() with an environment first")
        return self.store

    def _check_state_index(self, state: Any) -> int:
        if isinstance(state, str):
            try:
                state = int(state.strip())
            except ValueError:
                raise InvalidState(f"State index {state!r} is not an integer") from None
        if isinstance(state, bool) or not isinstance(state, numbers.Integral):
            raise InvalidState(f"State index {state!r} is not an integer")
        if not 0 <= state < self.state_count:
            raise IndexOutOfRange(
                f"State {state} is outside [0, {self.state_count})"
            )
        return int(state)

    def _applicable_actions(self, state: int) -> Sequence[int]:
        actions = self._require_environment().applicable_actions(state)
        if len(actions) == 0:
            raise NoApplicableAction(state)
        for action in actions:
            if not 0 <= action < self.action_count:
                raise IndexOutOfRange(
                    f"Action {action} applicable in state {state} is outside [0, {self.action_count})"
                )
        return actions

    @staticmethod
    def _greedy_action(q_table: np.ndarray, state: int, actions: Sequence[int]) -> int:
        """
        Highest valued action among `actions`; the first one wins ties.

        :param q_table: Goal's Q-table
        :param state: Current state
        :param actions: Candidate actions, in the environment's order
        :return: Selected action
        """
        best_action = actions[0]
        for action in actions:
            if q_table[state, action] > q_table[state, best_action]:
                best_action = action
        return int(best_action)

    def select_action_epsilon_greedy(
        self, q_table: np.ndarray, state: int, epsilon: float
    ) -> int:
        """
        Select an applicable action using the epsilon-greedy policy.

        :param q_table: Goal's Q-table
        :param state: Current state
        :param epsilon: Exploration probability
        :return: Selected action
        """
        actions = self._applicable_actions(state)
        if self.rng.random() < epsilon:
            return int(actions[self.rng.integers(len(actions))])
        return self._greedy_action(q_table, state, actions)

    @staticmethod
    def update_q_value(
        q_table: np.ndarray,
        state: int,
        action: int,
        received_reward: float,
        next_state: int,
        alpha: float,
        gamma: float,
    ) -> float:
        """
        Apply the Q-learning update to one cell, in place.

        Q(s,a) := (1-α)·Q(s,a) + α[r + γ·max(Q(s',·))]

        The max runs over the whole action dimension of the next state, not
        only the actions applicable there.

        :return: The new value of Q(s,a)
        """
        old_value = q_table[state, action]
        new_value = (1 - alpha) * old_value + alpha * (
            received_reward + gamma * np.max(q_table[next_state])
        )
        q_table[state, action] = new_value
        return float(new_value)

    def _perform_action(self, action: int) -> None:
        try:
            self._require_environment().perform_action(action)
        except QLearningError:
            raise
        except Exception as exc:
            raise EnvironmentFailure(f"Performing action {action} failed: {exc}") from exc

    def _read_state(self) -> int:
        return self._check_state_index(self._require_environment().current_state())

    def _train_episode(
        self,
        episode: int,
        goal_key: Goal,
        q_table: np.ndarray,
        alpha: float,
        gamma: float,
        epsilon: float,
        reward_on_goal: float,
        max_steps: Optional[int],
    ) -> int:
        """
        Run one episode from the environment's current state until the goal is reached.

        :return: Number of steps taken
        """
        environment = self._require_environment()
        state = self._read_state()
        steps = 0

        while True:
            if max_steps is not None and steps >= max_steps:
                logger.warning(
                    "Episode %d for goal %s timed out after %d steps",
                    episode,
                    goal_label(goal_key),
                    max_steps,
                )
                raise EpisodeTimeout(episode, max_steps)

            action = self.select_action_epsilon_greedy(q_table, state, epsilon)
            self._perform_action(action)
            next_state = self._read_state()
            received_reward = reward(
                goal_key, environment.current_description(), goal_reward=reward_on_goal
            )

            self.update_q_value(
                q_table, state, action, received_reward, next_state, alpha, gamma
            )
            steps += 1

            if received_reward == reward_on_goal:
                return steps

            state = next_state

    def calculate_q(
        self,
        goal: Sequence[Any],
        episodes: int,
        alpha: float,
        gamma: float,
        epsilon: float,
        reward_on_goal: float = GOAL_REWARD,
        max_steps: Optional[int] = None,
    ) -> None:
        """
        Train the Q-table of a goal against the bound environment.

        The table is created (all zeros) the first time the goal is seen and
        is updated in place by every call. ``episodes=0`` only creates it.

        :param goal: Goal description, e.g. ``[2, 3]`` for the target levels of two zones
        :param episodes: Number of training episodes, >= 0
        :param alpha: Learning rate in [0, 1]
        :param gamma: Discount factor in [0, 1]
        :param epsilon: Exploration probability in [0, 1]
        :param reward_on_goal: Reward given, and episode ended, when the goal is reached
        :param max_steps: Optional step budget per episode; exceeding it raises `EpisodeTimeout`
        """
        environment = self._require_environment()
        goal_key = parse_goal(goal, environment.goal_dimensions)
        episodes = _parse_count("episodes", episodes, minimum=0)
        alpha = _parse_probability("alpha", alpha)
        gamma = _parse_probability("gamma", gamma)
        epsilon = _parse_probability("epsilon", epsilon)
        reward_on_goal = _parse_real("reward_on_goal", reward_on_goal)
        if reward_on_goal == DEFAULT_REWARD:
            raise InvalidParameter(
                f"reward_on_goal must differ from the default reward {DEFAULT_REWARD}"
            )
        if max_steps is not None:
            max_steps = _parse_count("max_steps", max_steps, minimum=1)

        q_table = self._require_store().get_or_create(goal_key)
        self.episode_lengths = np.zeros(episodes, dtype=int)

        logger.info(
            "Training goal %s for %d episodes (alpha=%s, gamma=%s, epsilon=%s)",
            goal_label(goal_key),
            episodes,
            alpha,
            gamma,
            epsilon,
        )

        iterator = (
            tqdm(range(episodes), desc=f"Training goal {goal_label(goal_key)}")
            if self.verbose
            else range(episodes)
        )

        for episode in iterator:
            self.episode_lengths[episode] = self._train_episode(
                episode,
                goal_key,
                q_table,
                alpha,
                gamma,
                epsilon,
                reward_on_goal,
                max_steps,
            )

            if self.verbose and episode > 0 and episode % 100 == 0:
                recent_avg = np.mean(self.episode_lengths[episode - 100 : episode])
                iterator.set_postfix({"avg_steps_100": f"{recent_avg:.1f}"})

        logger.info(
            "Finished training goal %s, mean episode length %.2f",
            goal_label(goal_key),
            float(np.mean(self.episode_lengths)) if episodes else 0.0,
        )

    def get_best_action(
        self, goal: Sequence[Any], state: Any, actions: Optional[Sequence[int]] = None
    ) -> int:
        """
        Greedy action of a trained goal's table in `state`.

        :param goal: Trained goal
        :param state: State index
        :param actions: Restrict the choice to these actions, in this order
        :return: Action with the highest value; the first one wins ties
        """
        q_table = self._require_store().get(parse_goal(goal))
        state = self._check_state_index(state)
        if actions is None:
            return int(np.argmax(q_table[state]))
        if len(actions) == 0:
            raise NoApplicableAction(state)
        return self._greedy_action(q_table, state, actions)

    def get_action_from_state(
        self, goal: Sequence[Any], current_description: Sequence[Any]
    ) -> ActionRecommendation:
        """
        Next best action for reaching `goal` from the described state.

        The first field of the description is the state index. Neither the
        table nor the environment is modified.

        :param goal: Trained goal, e.g. ``[2, 3]``
        :param current_description: Full state description, e.g. ``[2, 2, True, False, 2]``
        :return: The recommended action with its tag and payload
        """
        environment = self._require_environment()
        q_table = self._require_store().get(parse_goal(goal))

        if len(current_description) == 0:
            raise InvalidState("State description is empty")
        state = self._check_state_index(current_description[0])

        action = int(np.argmax(q_table[state]))
        action_tag, payload_tags, payload_values = environment.describe_action(action)
        return ActionRecommendation(
            action=action,
            action_tag=action_tag,
            payload_tags=list(payload_tags),
            payload_values=list(payload_values),
        )

    def dump_table(self, goal: Sequence[Any]) -> np.ndarray:
        """Copy of a goal's Q-table."""
        return self._require_store().get(parse_goal(goal)).copy()

    def format_table(self, goal: Sequence[Any]) -> str:
        """Render a goal's Q-table one state per line."""
        q_table = self._require_store().get(parse_goal(goal))
        lines = ["Q matrix"]
        for state, row in enumerate(q_table):
            values = " ".join(f"{value:6.2f}" for value in row)
            lines.append(f"From state {state}:  {values}")
        return "\n".join(lines)

    def print_statistics(self, goal: Sequence[Any]) -> None:
        """Print statistics about a goal's Q-table."""
        goal_key = parse_goal(goal)
        q_table = self._require_store().get(goal_key)
        print("\n" + "=" * 50)
        print(f"Q-TABLE STATISTICS - GOAL {goal_label(goal_key)}")
        print("=" * 50)
        print(f"State space size: {self.state_count}")
        print(f"Action space size: {self.action_count}")
        print(f"Q-table shape: {q_table.shape}")
        print(f"Q-table mean: {np.mean(q_table):.4f}")
        print(f"Q-table std: {np.std(q_table):.4f}")
        print(f"Q-table min: {np.min(q_table):.4f}")
        print(f"Q-table max: {np.max(q_table):.4f}")
        print(f"Non-zero entries: {np.count_nonzero(q_table)} / {q_table.size}")
        print("=" * 50 + "\n")
