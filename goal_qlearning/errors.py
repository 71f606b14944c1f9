"""Exceptions raised by the goal-conditioned Q-learning engine."""


class QLearningError(Exception):
    """Base class for every error raised by this package."""


class InvalidParameter(QLearningError, ValueError):
    """A hyperparameter, goal or configuration value is malformed or out of range."""


class UntrainedGoal(QLearningError, LookupError):
    """No Q-table exists for the requested goal."""

    def __init__(self, goal):
        super().__init__(f"No Q-table has been trained for goal {goal}")
        self.goal = goal


class NoApplicableAction(QLearningError, RuntimeError):
    """The environment reported a state without applicable actions."""

    def __init__(self, state: int):
        super().__init__(f"No applicable action in state {state}")
        self.state = state


class EnvironmentFailure(QLearningError, RuntimeError):
    """Executing an action on the environment failed."""


class IndexOutOfRange(QLearningError, IndexError):
    """A state index falls outside the Q-table bounds."""


class InvalidState(QLearningError, ValueError):
    """A state description is too short or empty."""


class EpisodeTimeout(QLearningError, RuntimeError):
    """An episode used up its step budget without reaching the goal."""

    def __init__(self, episode: int, max_steps: int):
        super().__init__(
            f"Episode {episode} did not reach the goal within {max_steps} steps"
        )
        self.episode = episode
        self.max_steps = max_steps


class EnvironmentNotBound(QLearningError, RuntimeError):
    """The learner was used before `initialize` bound an environment."""
