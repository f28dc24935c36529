# backend/fincatch/utils/context.py
"""
Calculation context management for the valuation engine.

Every public engine operation runs under a calculation ID so that log lines
emitted by concurrently running calculations (e.g. a stale one still
finishing after the user switched display currency) can be told apart.

Uses Python's contextvars for async-safe storage that automatically
propagates through async/await calls and into tasks created with
asyncio.gather().

Usage:
    from fincatch.utils.context import calculation_scope, get_calculation_id

    with calculation_scope():
        ...
        get_calculation_id()  # e.g. "3f9c2a1b"
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

# =============================================================================
# CONTEXT VARIABLES
# =============================================================================

_calculation_id_var: ContextVar[str | None] = ContextVar("calculation_id", default=None)


# =============================================================================
# CALCULATION ID
# =============================================================================

def get_calculation_id() -> str | None:
    """
    Get the current calculation ID.

    Returns:
        The calculation ID of the running engine call, or None if not set.
    """
    return _calculation_id_var.get()


def set_calculation_id(calculation_id: str) -> None:
    """
    Set the calculation ID for the current context.

    Args:
        calculation_id: Unique identifier for this calculation
    """
    _calculation_id_var.set(calculation_id)


def clear_calculation_id() -> None:
    """Clear the calculation ID."""
    _calculation_id_var.set(None)


def new_calculation_id() -> str:
    """Generate a short random calculation ID."""
    return uuid.uuid4().hex[:8]


@contextmanager
def calculation_scope(calculation_id: str | None = None) -> Iterator[str]:
    """
    Run a block under a calculation ID, restoring the previous one on exit.

    Args:
        calculation_id: ID to use (a fresh one is generated when omitted)

    Yields:
        The active calculation ID
    """
    active_id = calculation_id or new_calculation_id()
    token = _calculation_id_var.set(active_id)
    try:
        yield active_id
    finally:
        _calculation_id_var.reset(token)
