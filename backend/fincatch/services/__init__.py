# backend/fincatch/services/__init__.py
"""
Service layer of the valuation engine.

Services:
- Have NO knowledge of the UI (no widgets, no formatting)
- Raise domain-specific exceptions
- Receive their collaborators through the constructor
- Are easily testable via dependency injection

Usage:
    from fincatch.services import PerformanceService
    from fincatch.services import FXRateService
    from fincatch.services import CancellationToken
    from fincatch.services import (
        MarketDataError,
        FXRateNotFoundError,
        OperationCancelledError,
    )

Architecture:
    services/
    ├── __init__.py                  # This file - main exports
    ├── exceptions.py                # Domain exceptions
    ├── constants.py                 # Units, bond conventions, palette
    ├── protocols.py                 # Collaborator interfaces (Protocol classes)
    ├── concurrency.py               # Cancellation token, bounded fan-out
    ├── cache.py                     # Opt-in TTL caches
    ├── fx_rate_service.py           # FX conversion pivoted through VND
    ├── analytics/                   # Portfolio vs. benchmark
    │   └── benchmark.py
    ├── market_data/                 # Market data package
    │   ├── base.py                  # Abstract provider interface
    │   ├── yahoo.py                 # Yahoo Finance (stocks, FX quotes)
    │   ├── sjc.py                   # SJC (Vietnamese gold)
    │   └── gateway.py               # Source-based routing
    └── valuation/                   # Valuation engine
        ├── service.py               # PerformanceService (orchestrator)
        ├── types.py                 # Result data types
        ├── units.py                 # Gold units
        ├── bond_pricer.py           # Bond present value
        ├── price_resolver.py        # Price lookups per asset class
        ├── calculators.py           # Entry valuation, aggregation
        └── history_calculator.py    # Base-100 series
"""

# Concurrency
from fincatch.services.concurrency import CalculationContext, CancellationToken
# Exceptions
from fincatch.services.exceptions import (
    ServiceError,
    ValidationError,
    InvalidIntervalError,
    InvalidDateRangeError,
    UnsupportedCurrencyError,
    MarketDataError,
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
    UnsupportedSourceError,
    FXRateError,
    FXRateNotFoundError,
    FXProviderError,
    FXConversionError,
    OperationCancelledError,
)
# FX
from fincatch.services.fx_rate_service import FXRateService, FXRateResult
# Valuation
from fincatch.services.valuation import (
    PerformanceService,
    EntryPerformance,
    PortfolioPerformance,
    PerformancePoint,
    HoldingPerformance,
    PortfolioHoldingsPerformance,
)
# Analytics
from fincatch.services.analytics import (
    BENCHMARK_OPTIONS,
    BenchmarkComparison,
    BenchmarkOption,
    get_benchmark_option,
)

__all__ = [
    # Services
    "PerformanceService",
    "FXRateService",
    "FXRateResult",

    # Concurrency
    "CancellationToken",
    "CalculationContext",

    # Result types
    "EntryPerformance",
    "PortfolioPerformance",
    "PerformancePoint",
    "HoldingPerformance",
    "PortfolioHoldingsPerformance",
    "BenchmarkComparison",
    "BenchmarkOption",
    "BENCHMARK_OPTIONS",
    "get_benchmark_option",

    # Exceptions
    "ServiceError",
    "ValidationError",
    "InvalidIntervalError",
    "InvalidDateRangeError",
    "UnsupportedCurrencyError",
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    "UnsupportedSourceError",
    "FXRateError",
    "FXRateNotFoundError",
    "FXProviderError",
    "FXConversionError",
    "OperationCancelledError",
]
