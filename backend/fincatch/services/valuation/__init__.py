# backend/fincatch/services/valuation/__init__.py
"""
Valuation Service Package.

This package provides portfolio performance capabilities:
- Point-in-time valuation (calculate_portfolio_performance)
- Per-holding base-100 series (calculate_holding_performance)
- All holding series for charts (calculate_all_holdings_performance)

Usage:
    from fincatch.services.valuation import PerformanceService

    service = PerformanceService()

    # Point-in-time valuation
    result = await service.calculate_portfolio_performance(entries, "USD")

    # Time series for charts
    holdings = await service.calculate_all_holdings_performance(
        entries,
        start_ts=1704067200,
        end_ts=1735603200,
        display_currency="USD",
        interval_days=7,
    )

Architecture:
    valuation/
    ├── __init__.py              # This file - package exports
    ├── types.py                 # Result data classes
    ├── units.py                 # Gold weight units (UnitConverter)
    ├── bond_pricer.py           # Bond present value (BondPricer)
    ├── price_resolver.py        # Current / historical prices (PriceResolver)
    ├── calculators.py           # EntryValuator, PortfolioAggregator
    ├── history_calculator.py    # Base-100 series (HistoricalNormalizer)
    └── service.py               # PerformanceService (orchestrator)

Data Flow:
    Entry → PriceResolver → ResolvedPrice
    ResolvedPrice + FX + Units → EntryValuator → EntryPerformance
    EntryPerformance[] → PortfolioAggregator → PortfolioPerformance
    Entry + date range → HistoricalNormalizer → PerformancePoint[]
"""

# Calculators (for testing / direct usage)
from fincatch.services.valuation.bond_pricer import BondPricer
from fincatch.services.valuation.calculators import (
    EntryValuator,
    PortfolioAggregator,
    gain_loss_percentage,
)
from fincatch.services.valuation.history_calculator import HistoricalNormalizer
from fincatch.services.valuation.price_resolver import PriceResolver
# Main service
from fincatch.services.valuation.service import PerformanceService
# Result types
from fincatch.services.valuation.types import (
    ResolvedPrice,
    EntryPerformance,
    PortfolioPerformance,
    PerformancePoint,
    HoldingPerformance,
    PortfolioHoldingsPerformance,
)
from fincatch.services.valuation.units import UnitConverter

__all__ = [
    # Main service
    "PerformanceService",

    # Data types
    "ResolvedPrice",
    "EntryPerformance",
    "PortfolioPerformance",
    "PerformancePoint",
    "HoldingPerformance",
    "PortfolioHoldingsPerformance",

    # Calculators (for testing)
    "UnitConverter",
    "BondPricer",
    "PriceResolver",
    "EntryValuator",
    "PortfolioAggregator",
    "HistoricalNormalizer",
    "gain_loss_percentage",
]
