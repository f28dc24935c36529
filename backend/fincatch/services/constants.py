# backend/fincatch/services/constants.py
"""
Centralized constants for the valuation engine.

This module provides a single source of truth for the business constants
used across the engine: unit conversion factors, bond calendar conventions,
provider quirks, and chart styling.

Usage:
    from fincatch.services.constants import (
        GRAMS_PER_UNIT,
        DAYS_PER_YEAR,
        CHART_COLORS,
    )
"""

from decimal import Decimal


# =============================================================================
# GOLD WEIGHT UNITS
# =============================================================================

# Grams in one unit of each supported gold weight unit.
# 1 tael (lượng) = 10 mace (chỉ) = 37.5 grams.
GRAMS_PER_UNIT: dict[str, Decimal] = {
    "gram": Decimal("1"),
    "mace": Decimal("3.75"),
    "tael": Decimal("37.5"),
    "ounce": Decimal("31.1035"),  # troy ounce
    "kg": Decimal("1000"),
}

# Canonical unit for gold quantities and per-unit gold prices
CANONICAL_GOLD_UNIT: str = "tael"

# Unit assumed when a gold entry does not state one
DEFAULT_GOLD_UNIT: str = "tael"


# =============================================================================
# BOND CONVENTIONS
# =============================================================================

# Day-count basis for time-to-maturity and the stub-period ratio
DAYS_PER_YEAR: int = 365

# Coupon payments per year by frequency
PERIODS_PER_YEAR: dict[str, int] = {
    "annual": 1,
    "semiannual": 2,
    "quarterly": 4,
    "monthly": 12,
}

# Decimal places the stub-period ratio is rounded to
STUB_RATIO_PLACES: Decimal = Decimal("0.001")


# =============================================================================
# MARKET DATA
# =============================================================================

# Gold sources the engine can price. Any other source is skipped.
SUPPORTED_GOLD_SOURCES: frozenset[str] = frozenset({"sjc"})

# Currency the SJC gold source quotes in
GOLD_QUOTE_CURRENCY: str = "VND"

# Candle resolution requested for stock prices
DAILY_RESOLUTION: str = "1D"

# Length of the lookback window for "price as of" lookups
PRICE_WINDOW_SECONDS: int = 86400

# Pivot currency for all FX conversions (the FX source quotes X -> VND)
FX_PIVOT_CURRENCY: str = "VND"

# Currencies the engine accepts as display currencies
SUPPORTED_CURRENCIES: frozenset[str] = frozenset({
    "USD", "VND", "EUR", "GBP", "JPY", "CNY", "KRW", "THB", "SGD",
})


# =============================================================================
# NORMALIZATION & PRECISION
# =============================================================================

# Base value of every normalized performance series
PERFORMANCE_BASE: Decimal = Decimal("100")

# Quantization for money amounts in results
MONEY_PLACES: Decimal = Decimal("0.01")

# Quantization for percentages and index values
PERCENT_PLACES: Decimal = Decimal("0.0001")


# =============================================================================
# CHARTING
# =============================================================================

# Line colors assigned to holdings in input order (cycled)
CHART_COLORS: tuple[str, ...] = (
    "#ec4899",  # pink
    "#06B6D4",  # cyan
    "#10b981",  # green
    "#f59e0b",  # amber
    "#8b5cf6",  # violet
    "#ef4444",  # red
    "#3b82f6",  # blue
    "#14b8a6",  # teal
    "#f97316",  # orange
    "#a855f7",  # purple
)
