# backend/fincatch/utils/logging.py
"""
Logging configuration for the valuation engine.

This module provides centralized logging setup with:
- Environment-based log levels (DEBUG in dev, INFO in prod)
- Calculation ID on every record (see fincatch.utils.context)
- JSON format option for production environments
- Suppression of noisy third-party library logs

Usage:
    from fincatch.utils import setup_logging

    # Once, by the host application
    setup_logging()

Log Levels:
    DEBUG   - Individual price/FX lookups, cache hits/misses
    INFO    - Calculation started/finished
    WARNING - Skipped entries or points (missing data, unsupported source)
    ERROR   - Top-level calculation failures (returned as None)
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from fincatch.config import settings
from fincatch.utils.context import get_calculation_id

# =============================================================================
# CONSTANTS
# =============================================================================

# Default text format: timestamp | level | calculation_id | logger_name | message
DEFAULT_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(calculation_id)s | %(name)s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Placeholder when no calculation is running
NO_CALCULATION_ID = "-"

# Third-party loggers to suppress (set to WARNING to reduce noise)
NOISY_LOGGERS = [
    "yfinance",
    "urllib3",
    "urllib3.connectionpool",
    "peewee",
    "httpx",
    "httpcore",
    "asyncio",
]

# Standard LogRecord attributes that are not "extra" fields
_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "calculation_id", "message", "taskName",
}


# =============================================================================
# CALCULATION ID FILTER
# =============================================================================

class CalculationIdFilter(logging.Filter):
    """
    Logging filter that adds the calculation ID to log records.

    Usage:
        # Automatically applied by setup_logging()
        # Access in format string: %(calculation_id)s
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.calculation_id = get_calculation_id() or NO_CALCULATION_ID
        return True


# =============================================================================
# JSON FORMATTER
# =============================================================================

class JsonFormatter(logging.Formatter):
    """
    JSON formatter for structured logging in production.

    Output format:
    {
        "timestamp": "2024-01-15T10:30:00.123Z",
        "level": "WARNING",
        "logger": "fincatch.services.valuation.calculators",
        "calculation_id": "3f9c2a1b",
        "message": "Skipping entry abc: ...",
        "extra": { ... }  // Any extra fields passed to logger
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        calculation_id = getattr(record, "calculation_id", NO_CALCULATION_ID)

        log_entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "calculation_id": calculation_id,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra = {}
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                try:
                    json.dumps(value)
                    extra[key] = value
                except (TypeError, ValueError):
                    extra[key] = str(value)

        if extra:
            log_entry["extra"] = extra

        return json.dumps(log_entry)


# =============================================================================
# SETUP FUNCTION
# =============================================================================

def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Configure process-wide logging with calculation ID support.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to settings.log_level.
        log_format: Output format ('text' or 'json').
                    Defaults to settings.log_format.
        suppress_noisy_loggers: If True, set third-party loggers to WARNING.

    Example:
        setup_logging(level="DEBUG", log_format="text")
    """
    log_level_str = level or settings.log_level
    log_level = _get_log_level(log_level_str)

    format_type = log_format or settings.log_format

    if format_type.lower() == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt=DEFAULT_TEXT_FORMAT,
            datefmt=DEFAULT_DATE_FORMAT,
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CalculationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy_loggers:
        _suppress_noisy_loggers()

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured: level={log_level_str}, format={format_type}",
        extra={"config": {"level": log_level_str, "format": format_type}},
    )


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def _get_log_level(level_str: str) -> int:
    """
    Convert string log level to logging constant.

    Raises:
        ValueError: If level_str is not a valid log level
    """
    level_str = level_str.upper().strip()

    level_mapping = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    if level_str not in level_mapping:
        valid_levels = ", ".join(level_mapping.keys())
        raise ValueError(
            f"Invalid log level: '{level_str}'. "
            f"Valid levels are: {valid_levels}"
        )

    return level_mapping[level_str]


def _suppress_noisy_loggers() -> None:
    """Set third-party library loggers to WARNING level."""
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    The calculation ID is added to every message by the filter configured
    in setup_logging().
    """
    return logging.getLogger(name)
