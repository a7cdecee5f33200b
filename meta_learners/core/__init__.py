"""
Core modules shared by every meta-learner.

This package contains configuration, logging and the parameter contracts
with the exception taxonomy.
"""

from .config import (
    BoostingDefaults,
    LoggingConfig,
    MetaLearnersConfig,
    get_config,
    reset_config,
    set_config,
)
from .contracts import (
    AdaBoostParams,
    BaggingParams,
    BayesianBoostingParams,
    ConfigurationError,
    DataError,
    MetaLearnerError,
    MultiClassParams,
    SDRulesetParams,
    resolve_params,
)
from .logger import LogContext, get_logger, log_metric, setup_logging


__all__ = [
    # Config
    "BoostingDefaults",
    "LoggingConfig",
    "MetaLearnersConfig",
    "get_config",
    "reset_config",
    "set_config",
    # Contracts
    "AdaBoostParams",
    "BaggingParams",
    "BayesianBoostingParams",
    "MultiClassParams",
    "SDRulesetParams",
    "resolve_params",
    # Errors
    "ConfigurationError",
    "DataError",
    "MetaLearnerError",
    # Logging
    "LogContext",
    "get_logger",
    "log_metric",
    "setup_logging",
]
