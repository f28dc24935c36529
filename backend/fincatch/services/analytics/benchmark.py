# backend/fincatch/services/analytics/benchmark.py
"""
Portfolio vs. benchmark comparison.

Compares the whole portfolio against a market index over a date range. Both
curves are base-100 series so they share one chart axis:

    portfolio(t) = total_value(t) / first_nonzero_total_value × 100
    benchmark(t) = close(t) / first_close × 100

    portfolio_return = last portfolio value - 100
    benchmark_return = last benchmark value - 100
    outperformance   = portfolio_return - benchmark_return

The portfolio value at t only counts entries already purchased at t. Bonds
have no price history and contribute 0. Until the portfolio holds anything
with a price the curve sits at 100.

Usage:
    analyzer = BenchmarkAnalyzer(gateway, price_resolver, fx_service)
    comparison = await analyzer.calculate_benchmark_comparison(
        entries, get_benchmark_option("SPY"), start_ts, end_ts, "USD"
    )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from fincatch.models import GoldEntry
from fincatch.services.concurrency import CalculationContext, gather_isolated
from fincatch.services.constants import (
    DAILY_RESOLUTION,
    PERCENT_PLACES,
    PERFORMANCE_BASE,
)
from fincatch.services.exceptions import (
    InvalidDateRangeError,
    InvalidIntervalError,
    OperationCancelledError,
)
from fincatch.services.market_data.base import StockHistoryRequest
from fincatch.services.valuation.types import PerformancePoint
from fincatch.services.valuation.units import UnitConverter
from fincatch.utils.date_utils import generate_timestamps

if TYPE_CHECKING:
    from fincatch.models import BondEntry, StockEntry
    from fincatch.services.protocols import CurrencyConverter, MarketDataSource
    from fincatch.services.valuation.price_resolver import PriceResolver

    Entry = StockEntry | GoldEntry | BondEntry

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")

BENCHMARK_SOURCE = "yahoo_finance"


# =============================================================================
# BENCHMARK CATALOG
# =============================================================================

@dataclass(frozen=True)
class BenchmarkOption:
    """A market index the portfolio can be compared against."""

    id: str
    name: str
    symbol: str
    description: str
    source: str = BENCHMARK_SOURCE


BENCHMARK_OPTIONS: tuple[BenchmarkOption, ...] = (
    BenchmarkOption("SPY", "S&P 500", "SPY", "U.S. Large Cap Stocks"),
    BenchmarkOption("QQQ", "NASDAQ-100", "QQQ", "U.S. Tech & Growth Stocks"),
    BenchmarkOption("VTI", "Total Market", "VTI", "Total U.S. Stock Market"),
    BenchmarkOption("VNM", "Vietnam Market", "VNM", "Vietnam Stock Market"),
    BenchmarkOption("GOLD", "Gold", "GC=F", "Gold Futures"),
)


def get_benchmark_option(benchmark_id: str) -> BenchmarkOption:
    """
    Look up a built-in benchmark by id (case-insensitive).

    Raises:
        KeyError: Unknown benchmark id
    """
    for option in BENCHMARK_OPTIONS:
        if option.id == benchmark_id.upper():
            return option
    raise KeyError(f"Unknown benchmark: '{benchmark_id}'")


@dataclass
class BenchmarkComparison:
    """
    Portfolio and benchmark curves over the same range.

    Attributes:
        portfolio_data: Base-100 portfolio value series
        benchmark_data: Base-100 benchmark close series
        benchmark_name: Display name of the benchmark
        start_date / end_date: Requested range, unix seconds
        currency: Display currency of the portfolio curve
        portfolio_return: Last portfolio value - 100 (percent)
        benchmark_return: Last benchmark value - 100 (percent)
        outperformance: portfolio_return - benchmark_return
    """

    portfolio_data: list[PerformancePoint]
    benchmark_data: list[PerformancePoint]
    benchmark_name: str
    start_date: int
    end_date: int
    currency: str
    portfolio_return: Decimal
    benchmark_return: Decimal
    outperformance: Decimal


# =============================================================================
# ANALYZER
# =============================================================================

class BenchmarkAnalyzer:
    """
    Builds portfolio and benchmark curves and compares them.

    Attributes:
        _market_data: Candle source for the benchmark symbol
        _price_resolver: Price lookups for portfolio entries as of a timestamp
        _converter: Currency conversion to the display currency
        _units: Gold quantities in taels
    """

    def __init__(
            self,
            market_data: MarketDataSource,
            price_resolver: PriceResolver,
            currency_converter: CurrencyConverter,
            unit_converter: UnitConverter | None = None,
    ) -> None:
        self._market_data = market_data
        self._price_resolver = price_resolver
        self._converter = currency_converter
        self._units = unit_converter or UnitConverter()

    async def calculate_portfolio_historical_performance(
            self,
            entries: list[Entry],
            start_ts: int,
            end_ts: int,
            display_currency: str,
            interval_days: int = 1,
            context: CalculationContext | None = None,
    ) -> list[PerformancePoint]:
        """
        Normalized total value of the portfolio over time.

        Raises:
            InvalidIntervalError: interval_days < 1
            InvalidDateRangeError: start_ts > end_ts
            OperationCancelledError: Calculation cancelled
        """
        if interval_days < 1:
            raise InvalidIntervalError(interval_days)
        if start_ts > end_ts:
            raise InvalidDateRangeError(start_ts, end_ts)

        context = context or CalculationContext.create()
        display_currency = display_currency.upper()
        timestamps = generate_timestamps(start_ts, end_ts, interval_days)

        totals = await gather_isolated(
            self._total_value_at(entries, ts, display_currency, context)
            for ts in timestamps
        )

        points: list[PerformancePoint] = []
        initial_value = _ZERO
        for ts, total in zip(timestamps, totals):
            if isinstance(total, Exception):
                logger.warning(f"Failed to value portfolio at {ts}: {total}")
                total = _ZERO

            if initial_value == _ZERO and total > _ZERO:
                initial_value = total

            if initial_value > _ZERO:
                value = (total / initial_value * PERFORMANCE_BASE).quantize(PERCENT_PLACES)
            else:
                value = PERFORMANCE_BASE
            points.append(PerformancePoint(timestamp=ts, value=value))

        return points

    async def fetch_benchmark_data(
            self,
            benchmark: BenchmarkOption,
            start_ts: int,
            end_ts: int,
            context: CalculationContext | None = None,
    ) -> list[PerformancePoint]:
        """
        Benchmark closes normalized to the first close of the range.

        Returns [] when the benchmark has no data or the lookup fails.

        Raises:
            OperationCancelledError: Calculation cancelled
        """
        context = context or CalculationContext.create()

        try:
            response = await context.call(
                self._market_data.fetch_stock_history,
                StockHistoryRequest(
                    symbol=benchmark.symbol,
                    from_ts=start_ts,
                    to_ts=end_ts,
                    source=benchmark.source,
                    resolution=DAILY_RESOLUTION,
                ),
            )
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.error(f"Failed to fetch benchmark data for {benchmark.symbol}: {e}")
            return []

        if not response.is_ok or not response.data:
            return []

        scale = response.price_scale
        first_price = response.data[0].close * scale
        if first_price <= _ZERO:
            logger.warning(f"Benchmark {benchmark.symbol} has no usable first close")
            return []

        return [
            PerformancePoint(
                timestamp=candle.timestamp,
                value=(candle.close * scale / first_price * PERFORMANCE_BASE).quantize(
                    PERCENT_PLACES
                ),
            )
            for candle in response.data
        ]

    async def calculate_benchmark_comparison(
            self,
            entries: list[Entry],
            benchmark: BenchmarkOption,
            start_ts: int,
            end_ts: int,
            display_currency: str,
            context: CalculationContext | None = None,
    ) -> BenchmarkComparison | None:
        """
        Compare the portfolio's daily curve with a benchmark.

        Returns:
            BenchmarkComparison, or None when either curve is empty or the
            calculation fails

        Raises:
            OperationCancelledError: Calculation cancelled
        """
        context = context or CalculationContext.create()
        display_currency = display_currency.upper()

        try:
            portfolio_data = await self.calculate_portfolio_historical_performance(
                entries, start_ts, end_ts, display_currency, 1, context
            )
            benchmark_data = await self.fetch_benchmark_data(
                benchmark, start_ts, end_ts, context
            )
        except OperationCancelledError:
            raise
        except Exception as e:
            logger.exception(f"Failed to calculate benchmark comparison: {e}")
            return None

        if not portfolio_data or not benchmark_data:
            return None

        portfolio_return = portfolio_data[-1].value - PERFORMANCE_BASE
        benchmark_return = benchmark_data[-1].value - PERFORMANCE_BASE

        return BenchmarkComparison(
            portfolio_data=portfolio_data,
            benchmark_data=benchmark_data,
            benchmark_name=benchmark.name,
            start_date=start_ts,
            end_date=end_ts,
            currency=display_currency,
            portfolio_return=portfolio_return,
            benchmark_return=benchmark_return,
            outperformance=portfolio_return - benchmark_return,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _total_value_at(
            self,
            entries: list[Entry],
            timestamp: int,
            display_currency: str,
            context: CalculationContext,
    ) -> Decimal:
        held = [entry for entry in entries if entry.purchase_date <= timestamp]
        values = await gather_isolated(
            self._entry_value_at(entry, timestamp, display_currency, context)
            for entry in held
        )

        total = _ZERO
        for entry, value in zip(held, values):
            if isinstance(value, Exception):
                logger.warning(f"Failed to fetch price for {entry.symbol} at {timestamp}: {value}")
                continue
            total += value
        return total

    async def _entry_value_at(
            self,
            entry: Entry,
            timestamp: int,
            display_currency: str,
            context: CalculationContext,
    ) -> Decimal:
        resolved = await self._price_resolver.resolve_price_at(entry, timestamp, context)
        if resolved is None or resolved.price <= _ZERO:
            return _ZERO

        price = resolved.price
        if resolved.currency != display_currency:
            price = await context.call(
                self._converter.convert_currency, price, resolved.currency, display_currency
            )

        quantity = entry.quantity
        if isinstance(entry, GoldEntry):
            quantity = self._units.to_canonical(entry.quantity, entry.unit)

        return price * quantity
