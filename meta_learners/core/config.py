"""
Centralized configuration management for meta-learners.

Process-wide defaults come from environment variables (optionally from a
``.env`` file). Per-algorithm parameters live in ``contracts.py``.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


# Load environment variables
load_dotenv()


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = field(default_factory=lambda: os.getenv("META_LEARNERS_LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: os.getenv("META_LEARNERS_LOG_DIR", "./logs"))
    enable_console: bool = field(
        default_factory=lambda: os.getenv("META_LEARNERS_LOG_CONSOLE", "true").lower() == "true"
    )
    enable_file: bool = field(
        default_factory=lambda: os.getenv("META_LEARNERS_LOG_FILE", "false").lower() == "true"
    )
    max_file_size_mb: int = 10  # Max size per log file
    backup_count: int = 5  # Number of backup files to keep


@dataclass
class BoostingDefaults:
    """Defaults shared by the iterative ensemble learners."""

    iterations: int = field(default_factory=lambda: int(os.getenv("META_LEARNERS_ITERATIONS", "10")))
    # Joint and coverage probabilities closer than this make a rule deterministic
    equality_tolerance: float = 1e-10
    # Clamp for log lift ratios when flattening a Bayesian boosting model
    max_model_weight: float = field(
        default_factory=lambda: float(os.getenv("META_LEARNERS_MAX_MODEL_WEIGHT", "10"))
    )


@dataclass
class MetaLearnersConfig:
    """Main configuration aggregating all sub-configs."""

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    boosting: BoostingDefaults = field(default_factory=BoostingDefaults)

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of issues.

        Returns:
            List of validation error messages (empty if valid)
        """
        issues = []

        if self.logging.log_level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            issues.append(f"Unknown log level '{self.logging.log_level}'")

        if self.boosting.iterations < 1:
            issues.append(f"Default iterations {self.boosting.iterations} must be at least 1")

        if not 0 <= self.boosting.equality_tolerance < 1e-3:
            issues.append(f"Equality tolerance {self.boosting.equality_tolerance} must be in [0, 1e-3)")

        if self.boosting.max_model_weight <= 0:
            issues.append(f"Max model weight {self.boosting.max_model_weight} must be positive")

        return issues

    @classmethod
    def from_env(cls, overrides: Optional[dict] = None) -> "MetaLearnersConfig":
        """
        Create configuration from environment variables with optional overrides.

        Args:
            overrides: Dictionary of config overrides

        Returns:
            MetaLearnersConfig instance
        """
        config = cls()

        if overrides:
            for key, value in overrides.items():
                if hasattr(config, key):
                    setattr(config, key, value)

        return config


# ==================== Global Config Instance ====================

_global_config: Optional[MetaLearnersConfig] = None


def get_config() -> MetaLearnersConfig:
    """
    Get the global configuration instance.

    Returns:
        Global MetaLearnersConfig instance
    """
    global _global_config

    if _global_config is None:
        _global_config = MetaLearnersConfig.from_env()

        issues = _global_config.validate()
        if issues:
            from .logger import get_logger

            logger = get_logger("config")
            logger.warning("Configuration issues:")
            for issue in issues:
                logger.warning(f"  - {issue}")

    return _global_config


def set_config(config: MetaLearnersConfig) -> None:
    """Set the global configuration instance."""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Reset the global configuration to None."""
    global _global_config
    _global_config = None
