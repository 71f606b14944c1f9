import logging
import sys
from pathlib import Path

from goal_qlearning.config import ExperimentConfig, LearningConfig
from goal_qlearning.experiment import GoalQLearningExperiment


def main(config: ExperimentConfig) -> dict:
    """
    Train the Q-table of one goal and report the learned policy.

    :param config: Experiment configuration
    :return: Results of the experiment
    """
    print("=" * 70)
    print("CONFIGURATION")
    print("-" * 70)
    print(f"Environment: {config.environment_name}")
    print(f"Environment kwargs: {config.env_kwargs}")
    print(f"Goal: {config.goal}")
    print(f"Training episodes: {config.algorithm.n_training_episodes}")
    print(f"Learning rate: {config.algorithm.learning_rate}")
    print(f"Gamma: {config.algorithm.gamma}")
    print(f"Epsilon: {config.algorithm.epsilon}")
    print("=" * 70)

    experiment = GoalQLearningExperiment(config)
    results = experiment.run()

    recommendation = results["recommendation"]
    print("\nRecommended first action from the start state:")
    print("-" * 70)
    print(f"Action: {recommendation.action} ({recommendation.action_tag})")
    print(f"Payload: {dict(zip(recommendation.payload_tags, recommendation.payload_values))}")
    print("-" * 70)
    return results


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    if len(sys.argv) > 1:
        config = ExperimentConfig.load(Path(sys.argv[1]))
    else:
        ENV_NAME = "FrozenLake-v1"  # Environment ID, must have Discrete spaces
        ENV_KWARGS = {"is_slippery": False}  # Environment-specific kwargs
        GOAL = [15]  # Bottom-right tile of the 4x4 map

        config = ExperimentConfig(
            environment_name=ENV_NAME,
            goal=GOAL,
            env_kwargs=ENV_KWARGS,
            algorithm=LearningConfig(
                n_training_episodes=500,  # Number of training episodes
                learning_rate=0.5,  # Learning rate (alpha)
                gamma=0.9,  # Discount factor
                epsilon=0.5,  # Probability of choosing a random action
                reward_on_goal=1.0,  # Reward that marks the goal as reached
                max_steps=None,  # Step budget per episode, None for unbounded
                random_seed=42,
            ),
            n_eval_episodes=10,
        )

    main(config)
