# backend/fincatch/utils/__init__.py
"""
Utility modules for the valuation engine.

This package contains cross-cutting utilities used throughout the engine:
- logging: Logging configuration and setup with calculation ID support
- context: Calculation context management (calculation IDs)
- date_utils: Unix-timestamp helpers (trading-day snap, series generation)

Usage:
    from fincatch.utils import setup_logging, get_logger
    from fincatch.utils import calculation_scope, get_calculation_id
    from fincatch.utils.date_utils import generate_timestamps
"""

from fincatch.utils.context import (
    calculation_scope,
    get_calculation_id,
    set_calculation_id,
    clear_calculation_id,
)
from fincatch.utils.logging import setup_logging, get_logger

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    # Context
    "calculation_scope",
    "get_calculation_id",
    "set_calculation_id",
    "clear_calculation_id",
]
