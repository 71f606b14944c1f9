import numpy as np
import pytest

from conftest import BrokenWorld, DeadEndWorld, LineWorld, TwoZoneWorld
from goal_qlearning import (
    EnvironmentFailure,
    EnvironmentNotBound,
    EpisodeTimeout,
    IndexOutOfRange,
    InvalidParameter,
    NoApplicableAction,
    QLearner,
    UntrainedGoal,
)

TRAINING = dict(alpha=0.5, gamma=0.9, epsilon=0.1, reward_on_goal=1)


class TestInitialize:

    def test_sizes_come_from_the_environment(self, learner):
        assert learner.state_count == 4
        assert learner.action_count == 2

    def test_rebinding_clears_the_store(self, learner):
        learner.calculate_q([0], 1, **TRAINING)
        assert len(learner.store) == 1

        learner.initialize(LineWorld(size=6))
        assert len(learner.store) == 0
        assert learner.state_count == 6

    def test_unbound_learner(self):
        learner = QLearner()
        with pytest.raises(EnvironmentNotBound):
            learner.calculate_q([0], 1, **TRAINING)
        with pytest.raises(EnvironmentNotBound):
            learner.dump_table([0])


class TestUpdateRule:

    def test_alpha_zero_keeps_the_old_value(self):
        q_table = np.array([[0.3, 0.7], [0.2, 0.9]])
        new_value = QLearner.update_q_value(q_table, 0, 1, 1.0, 1, alpha=0.0, gamma=0.9)
        assert new_value == 0.7
        assert q_table[0, 1] == 0.7

    def test_alpha_one_replaces_the_value(self):
        q_table = np.array([[0.3, 0.7], [0.2, 0.9]])
        new_value = QLearner.update_q_value(q_table, 0, 1, 1.0, 1, alpha=1.0, gamma=0.5)
        assert new_value == pytest.approx(1.0 + 0.5 * 0.9)
        assert q_table[0, 1] == pytest.approx(1.45)

    def test_next_state_max_spans_every_action(self):
        q_table = np.array([[0.0, 0.0], [0.0, 2.0]])
        QLearner.update_q_value(q_table, 0, 0, 0.0, 1, alpha=0.5, gamma=1.0)
        assert q_table[0, 0] == pytest.approx(1.0)

    def test_new_value_lies_between_old_value_and_target(self):
        q_table = np.zeros((2, 2))
        for _ in range(20):
            old_value = q_table[0, 1]
            new_value = QLearner.update_q_value(q_table, 0, 1, 1.0, 1, alpha=0.3, gamma=0.0)
            assert old_value <= new_value <= 1.0


class TestGreedySelection:

    def test_ties_go_to_the_first_applicable_action(self, learner):
        learner.calculate_q([3], 0, **TRAINING)
        learner.store.get((3,))[0] = [0.5, 0.5]

        for _ in range(5):
            assert learner.get_best_action([3], 0) == 0
            assert learner.get_best_action([3], 0, actions=[0, 1]) == 0
            assert learner.get_best_action([3], 0, actions=[1, 0]) == 1

    def test_highest_value_wins(self, learner):
        learner.calculate_q([3], 0, **TRAINING)
        learner.store.get((3,))[2] = [0.1, 0.4]
        assert learner.get_best_action([3], 2) == 1

    def test_exploitation_is_deterministic(self, line_world):
        learner = QLearner(line_world, random_seed=1)
        learner.calculate_q([0], 5, alpha=0.5, gamma=0.9, epsilon=0.0, reward_on_goal=1)
        # Zero table, no exploration: action 0 every time, and it keeps state 0.
        assert line_world.performed == [0] * 5
        assert list(learner.episode_lengths) == [1] * 5


class TestCalculateQ:

    def test_zero_episodes_creates_an_empty_table(self, learner, line_world):
        learner.calculate_q([3], 0, **TRAINING)
        table = learner.dump_table([3])
        assert table.shape == (4, 2)
        assert not np.any(table)
        assert line_world.performed == []

    def test_training_learns_to_move_towards_the_goal(self, episodic_line_world):
        learner = QLearner(episodic_line_world, random_seed=7)
        learner.calculate_q([3], 200, alpha=0.5, gamma=0.9, epsilon=0.1, reward_on_goal=1)

        for state in (0, 1, 2):
            assert learner.get_best_action([3], state) == 1
        recommendation = learner.get_action_from_state([3], [0, True])
        assert recommendation.action == 1

    def test_plain_line_trains_only_around_the_goal(self, line_world):
        # Episodes begin wherever the line is, so after the first one they
        # start on the goal state and never come back to states 0 and 1.
        learner = QLearner(line_world, random_seed=7)
        learner.calculate_q([3], 200, alpha=0.5, gamma=0.9, epsilon=0.1, reward_on_goal=1)

        assert learner.get_best_action([3], 2) == 1
        assert np.median(learner.episode_lengths[1:]) <= 2
        assert learner.episode_lengths[0] > np.median(learner.episode_lengths[1:])

    def test_table_shape_and_values_after_training(self, episodic_line_world):
        learner = QLearner(episodic_line_world, random_seed=3)
        learner.calculate_q([3], 50, **TRAINING)
        learner.calculate_q([1], 50, **TRAINING)

        for goal in ([3], [1]):
            table = learner.dump_table(goal)
            assert table.shape == (4, 2)
            assert np.all(np.isfinite(table))
            assert np.all(table >= 0.0)
        assert len(learner.episode_lengths) == 50

    def test_loosely_typed_goals_share_a_table(self, learner):
        learner.calculate_q(["0"], 1, **TRAINING)
        learner.calculate_q([0], 1, **TRAINING)
        assert learner.store.goals() == [(0,)]

    def test_unreachable_goal_times_out(self, learner):
        with pytest.raises(EpisodeTimeout) as excinfo:
            learner.calculate_q([9], 3, max_steps=10, **TRAINING)
        assert excinfo.value.episode == 0
        assert excinfo.value.max_steps == 10
        assert (9,) in learner.store

    def test_dead_end_state(self):
        learner = QLearner(DeadEndWorld(), random_seed=0)
        with pytest.raises(NoApplicableAction) as excinfo:
            learner.calculate_q([9], 1, **TRAINING)
        assert excinfo.value.state == 3

    def test_environment_failure_is_wrapped(self):
        learner = QLearner(BrokenWorld(), random_seed=0)
        with pytest.raises(EnvironmentFailure) as excinfo:
            learner.calculate_q([3], 1, **TRAINING)
        assert isinstance(excinfo.value.__cause__, RuntimeError)

    def test_goal_dimensions_are_enforced(self):
        learner = QLearner(TwoZoneWorld(), random_seed=0)
        with pytest.raises(InvalidParameter):
            learner.calculate_q([3], 1, **TRAINING)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"alpha": 1.5},
            {"alpha": -0.1},
            {"gamma": 1.01},
            {"epsilon": 2},
            {"epsilon": float("nan")},
            {"epsilon": True},
            {"reward_on_goal": 0},
            {"reward_on_goal": "high"},
        ],
    )
    def test_invalid_hyperparameters(self, learner, overrides):
        params = dict(TRAINING, **overrides)
        with pytest.raises(InvalidParameter):
            learner.calculate_q([3], 1, **params)
        assert len(learner.store) == 0

    @pytest.mark.parametrize("episodes", [-1, 2.5, "many"])
    def test_invalid_episode_counts(self, learner, episodes):
        with pytest.raises(InvalidParameter):
            learner.calculate_q([3], episodes, **TRAINING)

    def test_invalid_max_steps(self, learner):
        with pytest.raises(InvalidParameter):
            learner.calculate_q([3], 1, max_steps=0, **TRAINING)

    def test_numeric_strings_are_accepted(self, learner):
        learner.calculate_q(["0"], "2", alpha="0.5", gamma="0.9", epsilon="0", reward_on_goal="1")
        assert len(learner.episode_lengths) == 2

    def test_out_of_range_state_from_environment(self):
        world = LineWorld()
        world.state = 10
        learner = QLearner(world, random_seed=0)
        with pytest.raises(IndexOutOfRange):
            learner.calculate_q([3], 1, **TRAINING)


class TestTableInspection:

    def test_dump_table_returns_a_copy(self, learner):
        learner.calculate_q([3], 0, **TRAINING)
        learner.dump_table([3])[0, 0] = 5.0
        assert learner.dump_table([3])[0, 0] == 0.0

    def test_dump_untrained_goal(self, learner):
        with pytest.raises(UntrainedGoal):
            learner.dump_table([3])

    def test_format_table(self, learner):
        learner.calculate_q([3], 0, **TRAINING)
        learner.store.get((3,))[1] = [0.25, 1.0]
        lines = learner.format_table([3]).splitlines()
        assert lines[0] == "Q matrix"
        assert len(lines) == 5
        assert lines[2] == "From state 1:    0.25   1.00"

    def test_print_statistics(self, learner, capsys):
        learner.calculate_q([3], 0, **TRAINING)
        learner.print_statistics([3])
        output = capsys.readouterr().out
        assert "Q-table shape: (4, 2)" in output
        assert "Non-zero entries: 0 / 8" in output
