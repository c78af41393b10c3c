"""
Utility functions for DemoTables.

This module provides:
- Safe type conversion for decoder output (NaN-aware)
- Performance timing context manager
- Logging setup from verboseness level and config
"""

import logging
import math
import time
from logging.handlers import RotatingFileHandler
from typing import Any

import pandas as pd

from demotables.core.config import LoggingConfig
from demotables.core.constants import (
    VERBOSENESS_LIFECYCLE,
    VERBOSENESS_RECORDS,
    VERBOSENESS_SILENT,
)
from demotables.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


# ============================================================================
# Safe type conversion
# ============================================================================


def is_missing(value: Any) -> bool:
    """True for None and NaN-like scalars."""
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert a value to int."""
    if is_missing(value):
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def safe_optional_int(value: Any) -> int | None:
    """Convert to int, keeping missing values as None."""
    if is_missing(value):
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert a value to float."""
    if is_missing(value):
        return default
    try:
        result = float(value)
    except (ValueError, TypeError):
        return default
    return default if math.isinf(result) else result


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert a value to string."""
    if is_missing(value):
        return default
    return str(value)


# ============================================================================
# Performance
# ============================================================================


class PerformanceMonitor:
    """
    Context manager for monitoring performance of code blocks.

    Usage:
        with PerformanceMonitor("parsing demo"):
            convert_demo(...)
    """

    def __init__(self, operation_name: str, log_level: int = logging.INFO):
        self.operation_name = operation_name
        self.log_level = log_level
        self.start_time: float | None = None
        self.elapsed: float = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - (self.start_time or 0)
        if exc_type is not None:
            logger.error(f"{self.operation_name} failed after {self.elapsed:.3f}s: {exc_val}")
        else:
            logger.log(self.log_level, f"{self.operation_name} completed in {self.elapsed:.3f}s")
        return False


# ============================================================================
# Logging
# ============================================================================

_VERBOSENESS_LEVELS = {
    VERBOSENESS_SILENT: logging.WARNING,
    VERBOSENESS_LIFECYCLE: logging.INFO,
    VERBOSENESS_RECORDS: logging.DEBUG,
}


def verboseness_to_level(verboseness: int) -> int:
    """Map the CLI verboseness (0, 1, 2) to a logging level."""
    try:
        return _VERBOSENESS_LEVELS[verboseness]
    except KeyError:
        raise ConfigError(
            f"Verboseness must be one of {sorted(_VERBOSENESS_LEVELS)}, got {verboseness}"
        ) from None


def configure_logging(verboseness: int | None = None, config: LoggingConfig | None = None) -> None:
    """
    Configure the root logger.

    Args:
        verboseness: CLI verboseness; overrides ``config.level`` when given
        config: Logging section of the configuration
    """
    config = config or LoggingConfig()
    if verboseness is not None:
        level = verboseness_to_level(verboseness)
    else:
        level = logging.getLevelName(config.level.upper())
        if not isinstance(level, int):
            raise ConfigError(f"Unknown log level: {config.level}")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.file:
        handlers.append(
            RotatingFileHandler(
                config.file,
                maxBytes=config.file_max_bytes,
                backupCount=config.file_backup_count,
            )
        )

    logging.basicConfig(level=level, format=config.format, handlers=handlers, force=True)
