# backend/fincatch/services/valuation/types.py
"""
Data types for the valuation engine.

These dataclasses are derived and ephemeral: they are created fresh on every
engine call and handed to the caller (typically a UI layer). They hold no
identity and are never persisted.

Design Principles:
- Immutable where possible (frozen=True for value objects)
- Use Decimal for ALL financial values (never float)
- Timestamps are unix seconds (int)
- Warnings accumulate for data quality tracking

Type Hierarchy:
    ResolvedPrice                - Current price of one entry in its quote currency
    EntryPerformance             - Valuation of one entry in display currency
    PortfolioPerformance         - Totals over all valued entries
    PerformancePoint             - One base-100 point of a series
    HoldingPerformance           - Base-100 series of one entry, for charting
    PortfolioHoldingsPerformance - All holding series of a portfolio
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fincatch.models import BondEntry, GoldEntry, StockEntry

    Entry = StockEntry | GoldEntry | BondEntry


# =============================================================================
# PRICE RESOLUTION
# =============================================================================

@dataclass(frozen=True)
class ResolvedPrice:
    """
    Current price of one entry before currency conversion.

    Attributes:
        price: Price per share / per tael / per bond (0 when unavailable)
        currency: Currency the price is quoted in
        source: Price source tag (provider name, "calculated", "manual", ...)
        warning: Why the price is missing or degraded (None if clean)
    """

    price: Decimal
    currency: str
    source: str
    warning: str | None = None

    @property
    def is_available(self) -> bool:
        return self.price > 0


# =============================================================================
# POINT-IN-TIME VALUATION
# =============================================================================

@dataclass
class EntryPerformance:
    """
    Valuation of one portfolio entry in the display currency.

    Attributes:
        entry: The entry that was valued
        current_price: Current price per canonical unit, display currency
        purchase_price: Purchase price per canonical unit, display currency
        current_value: current_price × quantity (canonical units)
        total_cost: purchase_price × quantity + fees
        gain_loss: current_value - total_cost + coupon_income
        gain_loss_percentage: gain_loss / total_cost × 100 (0 if no cost)
        currency: Display currency
        exchange_rate: Converted / raw current price (1 if same currency)
        price_source: How current_price was obtained
        coupon_income: Sum of received coupons, display currency (bonds)
        warnings: Data quality warnings collected while valuing

    Note:
        Coupon income counts toward gain_loss but NOT current_value; it is
        realized cash, tracked separately from mark-to-market value.
    """

    entry: Entry
    current_price: Decimal
    purchase_price: Decimal
    current_value: Decimal
    total_cost: Decimal
    gain_loss: Decimal
    gain_loss_percentage: Decimal
    currency: str
    exchange_rate: Decimal
    price_source: str
    coupon_income: Decimal = Decimal("0")
    warnings: list[str] = field(default_factory=list)

    @property
    def is_finite(self) -> bool:
        """True if every aggregated amount is a finite number."""
        return all(
            value.is_finite()
            for value in (self.current_value, self.total_cost, self.gain_loss)
        )


@dataclass
class PortfolioPerformance:
    """
    Portfolio totals in the display currency.

    Percentages are derived from the sums, never summed themselves.

    Attributes:
        total_value: Sum of current_value
        total_cost: Sum of total_cost
        total_gain_loss: total_value - total_cost
        total_gain_loss_percentage: total_gain_loss / total_cost × 100
        currency: Display currency
        entries_performance: Per-entry valuations, in input order
    """

    total_value: Decimal
    total_cost: Decimal
    total_gain_loss: Decimal
    total_gain_loss_percentage: Decimal
    currency: str
    entries_performance: list[EntryPerformance] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        """All entry warnings, prefixed with the entry symbol."""
        return [
            f"{ep.entry.symbol}: {warning}"
            for ep in self.entries_performance
            for warning in ep.warnings
        ]


# =============================================================================
# HISTORICAL PERFORMANCE
# =============================================================================

@dataclass(frozen=True)
class PerformancePoint:
    """
    One point of a normalized series.

    Attributes:
        timestamp: Unix seconds
        value: Index value, 100 = purchase price (or series start)
    """

    timestamp: int
    value: Decimal


@dataclass
class HoldingPerformance:
    """
    Base-100 performance series of one holding, for charting.

    Attributes:
        entry: The entry the series belongs to
        performance_data: Points in timestamp order
        current_return: Last value - 100 (percent)
        color: Chart line color (cyclic palette, input order)
    """

    entry: Entry
    performance_data: list[PerformancePoint]
    current_return: Decimal
    color: str


@dataclass
class PortfolioHoldingsPerformance:
    """
    Performance series of every holding that produced data.

    Holdings without a single priced point are left out entirely.
    """

    holdings: list[HoldingPerformance]
    start_date: int
    end_date: int
    currency: str

