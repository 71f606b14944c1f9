import pickle
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union

import gymnasium as gym
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import ExperimentConfig
from .environment import GymnasiumEnvironment
from .goal import goal_label, parse_goal
from .learner import QLearner
from .reward import reward

DEFAULT_EVAL_STEPS = 100


def save_q_table(q_table: np.ndarray, filepath: Union[str, Path]) -> None:
    """
    Save a Q-table to a file.

    :param q_table: Q-table to save
    :param filepath: Path to save the Q-table
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, "wb") as f:
        pickle.dump(q_table, f)

    print(f"Q-table saved to {filepath}")


def load_q_table(
    filepath: Union[str, Path], expected_shape: Optional[Tuple[int, int]] = None
) -> np.ndarray:
    """
    Load a Q-table saved with `save_q_table`.

    :param filepath: Path to the pickled Q-table
    :param expected_shape: Shape the table must have, if known
    :return: The loaded Q-table
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Q-table file not found: {filepath}")

    with open(filepath, "rb") as f:
        q_table = pickle.load(f)

    if expected_shape is not None and getattr(q_table, "shape", None) != tuple(
        expected_shape
    ):
        raise ValueError(
            f"Loaded Q-table shape {getattr(q_table, 'shape', None)} does not match expected {tuple(expected_shape)}"
        )
    return q_table


class GoalQLearningExperiment:
    """Trains one goal's Q-table on a Gymnasium environment and records the results."""

    def __init__(self, config: ExperimentConfig):
        """
        Initializes the experiment.

        :param config: Experiment configuration object containing all settings for the experiment
        """
        self.config = config
        self.goal = parse_goal(config.goal)
        self.env = gym.make(self.config.environment_name, **self.config.env_kwargs)
        self.environment = GymnasiumEnvironment(
            self.env, seed=self.config.algorithm.random_seed
        )
        self.learner = QLearner(
            self.environment,
            random_seed=self.config.algorithm.random_seed,
            verbose=True,
        )
        self.exp_dir = None

    def _setup_experiment_dir(self) -> Path:
        """Creates and returns the experiment directory."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        exp_dir = (
            self.config.experiments_dir
            / f"{self.config.environment_name}"
            / f"goal_{goal_label(self.goal)}_{timestamp}"
        )
        exp_dir.mkdir(parents=True, exist_ok=True)
        return exp_dir

    def _save_experiment_config(self) -> None:
        """Saves the experiment configuration."""
        self.config.save_json(self.exp_dir / "config.json")
        self.config.save_yaml(self.exp_dir / "config.yaml")

    def evaluate(self, n_episodes: int, max_steps: int) -> Tuple[float, np.ndarray]:
        """
        Follow the greedy policy from the environment's start state.

        An episode fails when it runs out of steps or ends in a terminal state
        other than the goal.

        :param n_episodes: Number of evaluation episodes
        :param max_steps: Steps allowed to reach the goal
        :return: Tuple of (success_rate, steps per successful episode)
        """
        successes = 0
        steps_to_goal = []

        for episode in tqdm(range(n_episodes), desc="Evaluating"):
            state = self.environment.reset()

            for step in range(1, max_steps + 1):
                action = self.learner.get_best_action(self.goal, state)
                self.environment.perform_action(action)
                state = self.environment.current_state()

                if reward(self.goal, self.environment.current_description()) > 0:
                    successes += 1
                    steps_to_goal.append(step)
                    break

                # Terminal without the goal, e.g. a hole
                if self.environment.episode_over:
                    break

        success_rate = successes / n_episodes if n_episodes else 0.0
        return success_rate, np.array(steps_to_goal, dtype=int)

    def plot_training_results(
        self, episode_lengths: np.ndarray, window_size: int = 100
    ) -> None:
        """
        Plot training results with moving average.

        :param episode_lengths: Array of steps per episode
        :param window_size: Window size for moving average
        """
        plt.figure(figsize=(12, 5))

        plt.subplot(1, 2, 1)
        plt.plot(episode_lengths, alpha=0.3, label="Steps to goal")

        if len(episode_lengths) >= window_size:
            moving_avg = np.convolve(
                episode_lengths, np.ones(window_size) / window_size, mode="valid"
            )
            plt.plot(
                range(window_size - 1, len(episode_lengths)),
                moving_avg,
                label=f"{window_size}-Episode Moving Average",
                linewidth=2,
            )

        plt.xlabel("Episode")
        plt.ylabel("Steps")
        plt.title("Training Progress")
        plt.legend()
        plt.grid(True, alpha=0.3)

        plt.subplot(1, 2, 2)
        plt.hist(episode_lengths, bins=50, edgecolor="black", alpha=0.7)
        plt.xlabel("Steps")
        plt.ylabel("Frequency")
        plt.title("Episode Length Distribution")
        plt.grid(True, alpha=0.3)

        plt.tight_layout()
        plt.savefig(
            f"{self.exp_dir}/training_results.png", dpi=150, bbox_inches="tight"
        )
        plt.close()

    def save_training_logs(
        self, episode_lengths: np.ndarray, window_size: int = 100
    ) -> None:
        """
        Saves training logs every `window_size` episodes to a CSV file.

        For each block of `window_size` episodes, it stores the mean, the median, and the standard deviation
        of the episode lengths.

        :param episode_lengths: Array of steps per episode
        :param window_size: Number of episodes per logging block
        """
        lengths = np.asarray(episode_lengths, dtype=float)
        metrics_data = []

        for end_episode in range(window_size, len(lengths) + 1, window_size):
            start_episode = end_episode - window_size
            block = lengths[start_episode:end_episode]
            metrics_data.append(
                {
                    "iteration": end_episode,
                    "window_start": start_episode + 1,
                    "window_end": end_episode,
                    "mean": float(np.mean(block)),
                    "median": float(np.median(block)),
                    "std": float(np.std(block)),
                }
            )

        df_metrics = pd.DataFrame(
            metrics_data,
            columns=["iteration", "window_start", "window_end", "mean", "median", "std"],
        )
        df_metrics.to_csv(self.exp_dir / "training_logs.csv", index=False)

    def run(self, window_size: int = 100) -> dict:
        """
        Runs the experiment.

        :param window_size: Episodes per block in the training logs and plot
        :return: Dictionary containing results and metrics from the experiment
        """
        self.exp_dir = self._setup_experiment_dir()
        algorithm = self.config.algorithm

        print("=" * 80)
        print(f"EXPERIMENT: {self.exp_dir.name}")
        print("=" * 80)

        if algorithm.random_seed is not None:
            print(f"Seed: {algorithm.random_seed}")

        self._save_experiment_config()

        print(f"STARTING TRAINING - {self.config.environment_name}")
        print("-" * 70)
        print(f"Goal: {self.goal}")
        print(f"Environment kwargs: {self.config.env_kwargs}")
        print(f"Training episodes: {algorithm.n_training_episodes}")
        print(f"Learning rate: {algorithm.learning_rate}")
        print(f"Gamma: {algorithm.gamma}")
        print(f"Epsilon: {algorithm.epsilon}")
        print(f"Number of states: {self.learner.state_count}")
        print(f"Number of actions: {self.learner.action_count}")
        print("=" * 70 + "\n")

        start = time.time()
        self.learner.calculate_q(self.goal, **algorithm.get_training_params())
        training_time = time.time() - start
        episode_lengths = self.learner.episode_lengths

        self.learner.print_statistics(self.goal)

        print("Starting evaluation...\n")
        success_rate, steps_to_goal = self.evaluate(
            n_episodes=self.config.n_eval_episodes,
            max_steps=algorithm.max_steps or DEFAULT_EVAL_STEPS,
        )
        mean_steps = float(np.mean(steps_to_goal)) if len(steps_to_goal) else float("nan")

        print("\n" + "=" * 70)
        print("EVALUATION RESULTS")
        print("=" * 70)
        print(f"Success rate: {success_rate * 100:.1f}%")
        print(f"Mean steps to goal: {mean_steps:.2f}")
        print(f"Training time: {training_time:.2f}s")
        print("=" * 70 + "\n")

        self.environment.reset()
        recommendation = self.learner.get_action_from_state(
            self.goal, self.environment.current_description()
        )

        print("Generating training visualization...")
        self.plot_training_results(episode_lengths, window_size=window_size)
        self.save_training_logs(episode_lengths, window_size=window_size)
        save_q_table(self.learner.dump_table(self.goal), self.exp_dir / "q_table.pkl")
        self.environment.close()

        return {
            "exp_dir": self.exp_dir,
            "goal": self.goal,
            "episodes": algorithm.n_training_episodes,
            "training_time": training_time,
            "success_rate": success_rate,
            "mean_steps": mean_steps,
            "recommendation": recommendation,
        }
