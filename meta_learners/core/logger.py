"""
Centralized logging system for meta-learners.

Rich console output, optional rotating log files, and a stage context
manager used around every training call.
"""

import logging
from dataclasses import replace
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from rich.logging import RichHandler

if TYPE_CHECKING:
    from .config import LoggingConfig


class MetaLearnersLogger:
    """
    Centralized logger for meta-learners.

    Features:
    - Console output with Rich formatting
    - File output with rotation
    - Configurable log levels
    """

    _instance: Optional["MetaLearnersLogger"] = None
    _initialized: bool = False

    def __new__(cls):
        """Singleton pattern to ensure one logger instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize logger (only once)."""
        if self._initialized:
            return

        self.logger = logging.getLogger("meta_learners")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

        self.logger.handlers.clear()

        self._initialized = True

    def setup(self, config: "LoggingConfig"):
        """
        Replace the handlers of the package logger.

        Args:
            config: Level, console/file switches and file rotation settings
        """
        self.logger.handlers.clear()

        level = getattr(logging, config.log_level.upper(), logging.INFO)
        self.logger.setLevel(level)

        if config.enable_console:
            console_handler = RichHandler(
                rich_tracebacks=True,
                markup=True,
                show_time=True,
                show_path=False,
            )
            console_handler.setLevel(level)
            console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
            self.logger.addHandler(console_handler)

        if config.enable_file:
            log_path = Path(config.log_dir)
            log_path.mkdir(parents=True, exist_ok=True)

            log_file = log_path / f"meta_learners_{datetime.now().strftime('%Y%m%d')}.log"

            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=config.max_file_size_mb * 1024 * 1024,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            self.logger.addHandler(file_handler)

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a child logger for a specific module.

        Args:
            name: Module name (e.g., "meta_learners.ensemble.adaboost")

        Returns:
            Logger instance
        """
        if name == "meta_learners" or name.startswith("meta_learners."):
            name = name[len("meta_learners."):] or "main"
        return self.logger.getChild(name)


# Global logger instance
_logger_instance = MetaLearnersLogger()


def setup_logging(
    log_dir: Optional[str] = None,
    log_level: Optional[str] = None,
    enable_console: Optional[bool] = None,
    enable_file: Optional[bool] = None,
):
    """
    Setup global logging configuration.

    Unset arguments fall back to the values of ``LoggingConfig``.
    """
    from .config import get_config

    overrides = {
        "log_dir": log_dir,
        "log_level": log_level,
        "enable_console": enable_console,
        "enable_file": enable_file,
    }
    config = replace(
        get_config().logging, **{k: v for k, v in overrides.items() if v is not None}
    )
    _logger_instance.setup(config)


def get_logger(name: str = "main") -> logging.Logger:
    """
    Get a logger instance.

    Example:
        logger = get_logger(__name__)
        logger.info("Iteration %d: total weight %.4f", 3, 0.42)
    """
    return _logger_instance.get_logger(name)


class LogContext:
    """
    Context manager for logging training stages.

    Example:
        with LogContext("bayesian_boosting", "Bayesian boosting (10 iterations)"):
            ...
    """

    def __init__(self, logger_name: str, stage_name: str):
        self.logger = get_logger(logger_name)
        self.stage_name = stage_name
        self.start_time = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.info(f"[bold blue]→ {self.stage_name}[/bold blue]")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()

        if exc_type is None:
            self.logger.info(
                f"[bold green]✓ {self.stage_name} completed[/bold green] ({duration:.2f}s)"
            )
        else:
            self.logger.error(
                f"[bold red]✗ {self.stage_name} failed[/bold red] ({duration:.2f}s): {exc_val}"
            )

        return False  # Re-raise exception


def log_metric(logger: logging.Logger, name: str, value: object):
    """Log a metric in a consistent format."""
    logger.info(f"  {name}: {value}")
