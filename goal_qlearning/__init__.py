"""
Goal-conditioned tabular Q-learning

One Q-table is learned per goal over a discretized environment state space:
- QTableStore keeps the goal -> table mapping, each table created lazily and filled with zeros.
- QLearner.calculate_q trains a goal's table with epsilon-greedy episodes against an EnvironmentPort.
    Updates Q-values using: Q(s,a) := (1-α)·Q(s,a) + α[r + γ·max(Q(s',a'))]
- QLearner.get_action_from_state serves the greedy action of a trained table as an ActionRecommendation.

The environment itself stays outside the package; implement EnvironmentPort,
or wrap a discrete Gymnasium environment with GymnasiumEnvironment.
"""

from .environment import EnvironmentPort, GymnasiumEnvironment
from .errors import (
    EnvironmentFailure,
    EnvironmentNotBound,
    EpisodeTimeout,
    IndexOutOfRange,
    InvalidParameter,
    InvalidState,
    NoApplicableAction,
    QLearningError,
    UntrainedGoal,
)
from .goal import Goal, goal_label, parse_goal
from .learner import ActionRecommendation, QLearner
from .q_table import QTableStore
from .reward import DEFAULT_REWARD, GOAL_REWARD, reward

__all__ = [
    "ActionRecommendation",
    "DEFAULT_REWARD",
    "EnvironmentFailure",
    "EnvironmentNotBound",
    "EnvironmentPort",
    "EpisodeTimeout",
    "GOAL_REWARD",
    "Goal",
    "GymnasiumEnvironment",
    "IndexOutOfRange",
    "InvalidParameter",
    "InvalidState",
    "NoApplicableAction",
    "QLearner",
    "QLearningError",
    "QTableStore",
    "UntrainedGoal",
    "goal_label",
    "parse_goal",
    "reward",
]
