import logging
from typing import Dict, List

import numpy as np

from .errors import InvalidParameter, UntrainedGoal
from .goal import Goal

logger = logging.getLogger(__name__)


class QTableStore:
    """
    Goal-indexed collection of Q-tables.

    Each table is a dense array of shape (state_count, action_count) created
    lazily, filled with zeros, the first time a goal is trained. Tables are
    never removed individually; `clear` drops all of them.
    """

    def __init__(self, state_count: int, action_count: int):
        """
        :param state_count: Number of discrete states in the environment
        :param action_count: Number of discrete actions in the environment
        """
        for name, value in (("state_count", state_count), ("action_count", action_count)):
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
                raise InvalidParameter(f"{name} must be a positive integer, got {value!r}")

        self.state_count = int(state_count)
        self.action_count = int(action_count)
        self._tables: Dict[Goal, np.ndarray] = {}

    def _initialize_q_table(self) -> np.ndarray:
        """
        Initialize a Q-table with zeros.

        :return: Initialized Q-table of shape (state_space, action_space)
        """
        return np.zeros((self.state_count, self.action_count))

    def get_or_create(self, goal_key: Goal) -> np.ndarray:
        """
        Return the table for `goal_key`, allocating it on first use.

        :param goal_key: Parsed goal tuple
        :return: The goal's Q-table (the stored instance, not a copy)
        """
        table = self._tables.get(goal_key)
        if table is None:
            table = self._initialize_q_table()
            self._tables[goal_key] = table
            logger.debug("Created Q-table %s for goal %s", table.shape, goal_key)
        return table

    def get(self, goal_key: Goal) -> np.ndarray:
        """
        Return the existing table for `goal_key`.

        :raises UntrainedGoal: if no table was created for the goal
        """
        try:
            return self._tables[goal_key]
        except KeyError:
            raise UntrainedGoal(goal_key) from None

    def goals(self) -> List[Goal]:
        return list(self._tables.keys())

    def clear(self) -> None:
        self._tables.clear()

    def __contains__(self, goal_key: Goal) -> bool:
        return goal_key in self._tables

    def __len__(self) -> int:
        return len(self._tables)
