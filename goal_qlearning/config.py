import json
from copy import deepcopy
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .errors import InvalidParameter


@dataclass
class AlgorithmConfig:
    """Base configuration for algorithms classes"""

    def to_dict(self) -> Dict[str, Any]:
        """Converts the algorithm configuration to a dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "AlgorithmConfig":
        """Creates an instance of the algorithm configuration from a dictionary."""
        normalized_config = deepcopy(config_dict)
        try:
            return cls(**normalized_config)
        except TypeError as exc:
            raise InvalidParameter(f"Invalid {cls.__name__}: {exc}") from exc

    def save_json(self, filepath: Path | str) -> None:
        """Saves the configuration to a JSON file."""
        filepath = Path(filepath)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    def save_yaml(self, filepath: Path | str) -> None:
        """Saves the configuration to a YAML file."""
        filepath = Path(filepath)
        with open(filepath, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

    @classmethod
    def load_json(cls, filepath: Path | str) -> "AlgorithmConfig":
        """Loads the configuration from a JSON file."""
        filepath = Path(filepath)
        with open(filepath, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def load_yaml(cls, filepath: Path | str) -> "AlgorithmConfig":
        """Loads the configuration from a YAML file."""
        filepath = Path(filepath)
        with open(filepath, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)


@dataclass
class LearningConfig(AlgorithmConfig):
    """Hyperparameters of a goal-conditioned Q-learning run."""

    n_training_episodes: int = 200
    learning_rate: float = 0.5
    gamma: float = 0.9
    epsilon: float = 0.1
    reward_on_goal: float = 1.0
    max_steps: Optional[int] = None  # None keeps episodes unbounded
    random_seed: Optional[int] = None

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raises `InvalidParameter` if a value is out of range."""
        if isinstance(self.n_training_episodes, bool) or not isinstance(
            self.n_training_episodes, int
        ):
            raise InvalidParameter("n_training_episodes must be an integer")
        if self.n_training_episodes < 0:
            raise InvalidParameter("n_training_episodes must be >= 0")

        for name in ("learning_rate", "gamma", "epsilon"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidParameter(f"{name} must be a number, got {value!r}")
            if not 0.0 <= value <= 1.0:
                raise InvalidParameter(f"{name} must be in [0, 1], got {value}")

        if self.reward_on_goal == 0:
            raise InvalidParameter("reward_on_goal must be non-zero")

        if self.max_steps is not None and (
            isinstance(self.max_steps, bool)
            or not isinstance(self.max_steps, int)
            or self.max_steps < 1
        ):
            raise InvalidParameter(f"max_steps must be a positive integer, got {self.max_steps!r}")

    def get_training_params(self) -> Dict[str, Any]:
        """Returns the keyword arguments of `QLearner.calculate_q` except the goal."""
        return {
            "episodes": self.n_training_episodes,
            "alpha": self.learning_rate,
            "gamma": self.gamma,
            "epsilon": self.epsilon,
            "reward_on_goal": self.reward_on_goal,
            "max_steps": self.max_steps,
        }


@dataclass
class ExperimentConfig:
    """Full configuration for a training experiment: environment, goal and hyperparameters."""

    environment_name: str
    goal: List[int]
    env_kwargs: Dict[str, Any] = field(default_factory=dict)
    algorithm: LearningConfig = field(default_factory=LearningConfig)
    n_eval_episodes: int = 10
    experiments_dir: Path = Path("results")

    def to_dict(self) -> Dict[str, Any]:
        """Converts the full configuration to a dictionary."""
        return {
            "environment_name": self.environment_name,
            "goal": list(self.goal),
            "env_kwargs": self.env_kwargs,
            "algorithm": self.algorithm.to_dict(),
            "n_eval_episodes": self.n_eval_episodes,
            "experiments_dir": str(self.experiments_dir),
        }

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> "ExperimentConfig":
        """
        Creates an instance from a dictionary.

        :param config_dict: A dictionary with the same structure as the one produced by `to_dict()`.
        :return: An instance of `ExperimentConfig` with the parameters set according to the provided dictionary.
        """
        if not isinstance(config_dict, dict):
            raise InvalidParameter("Experiment configuration must be a dictionary")
        config_dict = dict(config_dict)

        if "goal" not in config_dict:
            raise InvalidParameter("'goal' is required in the experiment configuration")

        if "algorithm" in config_dict:
            algorithm_config = config_dict["algorithm"]
            if not isinstance(algorithm_config, dict):
                raise InvalidParameter("'algorithm' configuration must be a dictionary")
            config_dict["algorithm"] = LearningConfig.from_dict(algorithm_config)

        if "experiments_dir" in config_dict:
            config_dict["experiments_dir"] = Path(config_dict["experiments_dir"])

        try:
            return cls(**config_dict)
        except TypeError as exc:
            raise InvalidParameter(f"Invalid experiment configuration: {exc}") from exc

    def save_json(self, filepath: Path | str) -> None:
        """Saves the configuration in JSON format."""
        filepath = Path(filepath)
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    def save_yaml(self, filepath: Path | str) -> None:
        """Saves the configuration in YAML format."""
        filepath = Path(filepath)
        with open(filepath, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)

    @classmethod
    def load_json(cls, filepath: Path | str) -> "ExperimentConfig":
        """Loads the configuration from JSON."""
        filepath = Path(filepath)
        with open(filepath, "r", encoding="utf-8") as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def load_yaml(cls, filepath: Path | str) -> "ExperimentConfig":
        """Loads the configuration from YAML."""
        filepath = Path(filepath)
        with open(filepath, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
        return cls.from_dict(config_dict)

    @classmethod
    def load(cls, filepath: Path | str) -> "ExperimentConfig":
        """Loads the configuration from a YAML or JSON file, chosen by suffix."""
        filepath = Path(filepath)
        if filepath.suffix in (".yaml", ".yml"):
            return cls.load_yaml(filepath)
        elif filepath.suffix == ".json":
            return cls.load_json(filepath)
        raise InvalidParameter(f"File format '{filepath.suffix}' not supported")
