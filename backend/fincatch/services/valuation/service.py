# backend/fincatch/services/valuation/service.py
"""
Performance Service - Main orchestrator for portfolio performance.

This is the single entry point for all engine operations:
- calculate_portfolio_performance(): Current value, cost and gain of a portfolio
- calculate_holding_performance(): Base-100 series of one holding
- calculate_all_holdings_performance(): Base-100 series of every holding
- calculate_benchmark_comparison(): Portfolio curve vs. a market index

Design Principles:
- Dependency Injection: market data, FX and coupons injected via constructor
- Single Entry Point: All calculations go through this service
- No UI Knowledge: returns result objects or None, never raises for data problems
- Composable: Uses specialized calculators for each task
- Cancellable: every operation accepts a CancellationToken

Error Handling:
    Data problems (missing quote, failed provider call) skip the affected
    entry or point with a warning. Invalid arguments (unsupported display
    currency, bad range or interval) are logged and turned into None, and
    anything else is caught once here, logged with its traceback, and turned
    into None. Only cancellation propagates to the caller.

Usage:
    from fincatch.services.valuation import PerformanceService

    service = PerformanceService()

    # Point-in-time valuation
    performance = await service.calculate_portfolio_performance(entries, "USD")

    # Chart series
    holdings = await service.calculate_all_holdings_performance(
        entries, start_ts, end_ts, "USD"
    )

    # Stale calculation (user switched display currency)
    token = CancellationToken()
    task = asyncio.create_task(
        service.calculate_portfolio_performance(entries, "EUR", token=token)
    )
    token.cancel("display currency changed")
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable

from fincatch.config import Settings, settings as default_settings
from fincatch.services.cache import CachedCurrencyConverter, CachedMarketData, TTLCache
from fincatch.services.concurrency import (
    CalculationContext,
    CancellationToken,
    gather_isolated,
)
from fincatch.services.constants import CHART_COLORS, PERFORMANCE_BASE, SUPPORTED_CURRENCIES
from fincatch.services.exceptions import (
    OperationCancelledError,
    UnsupportedCurrencyError,
    ValidationError,
)
from fincatch.services.valuation.bond_pricer import BondPricer
from fincatch.services.valuation.calculators import EntryValuator, PortfolioAggregator
from fincatch.services.valuation.history_calculator import HistoricalNormalizer
from fincatch.services.valuation.price_resolver import PriceResolver
from fincatch.services.valuation.types import (
    HoldingPerformance,
    PerformancePoint,
    PortfolioHoldingsPerformance,
    PortfolioPerformance,
)
from fincatch.services.valuation.units import UnitConverter
from fincatch.utils.context import calculation_scope
from fincatch.utils.date_utils import now_timestamp

if TYPE_CHECKING:
    from fincatch.models import BondEntry, GoldEntry, StockEntry
    from fincatch.services.analytics.benchmark import BenchmarkComparison, BenchmarkOption
    from fincatch.services.protocols import (
        CouponPaymentSource,
        CurrencyConverter,
        MarketDataSource,
    )

    Entry = StockEntry | GoldEntry | BondEntry

logger = logging.getLogger(__name__)


class PerformanceService:
    """
    Main service for portfolio performance operations.

    Orchestrates all calculations by composing specialized calculators.
    Every public operation runs under a fresh calculation ID (see
    fincatch.utils.context) and a fresh CalculationContext, so nothing is
    shared between two calls except the optional caches.

    Attributes:
        _settings: Engine settings (concurrency cap, caching)
        _market_data: Stock/gold price source (possibly cache-wrapped)
        _converter: Currency converter (possibly cache-wrapped)
        _price_resolver: Current and historical price lookups
        _valuator: Per-entry valuation
        _aggregator: Portfolio totals
        _normalizer: Per-holding base-100 series
        _benchmark: Portfolio vs. benchmark curves
    """

    def __init__(
            self,
            market_data: MarketDataSource | None = None,
            currency_converter: CurrencyConverter | None = None,
            coupon_source: CouponPaymentSource | None = None,
            config: Settings | None = None,
            clock: Callable[[], int] = now_timestamp,
    ) -> None:
        """
        Initialize the performance service.

        Args:
            market_data: Stock/gold price source.
                         If None, a gateway over Yahoo Finance and SJC is built.
            currency_converter: Currency converter.
                                If None, an FXRateService over Yahoo Finance is built.
            coupon_source: Received bond coupons (None: no coupon income)
            config: Settings override (default: module settings)
            clock: Source of "now" in unix seconds
        """
        self._settings = config or default_settings

        # Lazy import to avoid circular dependencies
        if market_data is None or currency_converter is None:
            from fincatch.services.fx_rate_service import FXRateService
            from fincatch.services.market_data import (
                MarketDataGateway,
                SjcGoldProvider,
                YahooFinanceProvider,
            )

            yahoo = YahooFinanceProvider(
                timeout=self._settings.provider_timeout_seconds,
                max_retries=self._settings.provider_max_retries,
            )
            if market_data is None:
                market_data = MarketDataGateway(
                    stock_providers=[yahoo],
                    gold_providers=[
                        SjcGoldProvider(
                            base_url=self._settings.sjc_base_url,
                            timeout=self._settings.provider_timeout_seconds,
                            max_retries=self._settings.provider_max_retries,
                        )
                    ],
                )
            if currency_converter is None:
                currency_converter = FXRateService(
                    provider=yahoo,
                    cache_ttl_seconds=self._settings.fx_cache_ttl_seconds,
                )

        if self._settings.cache_enabled:
            market_data = CachedMarketData(
                market_data,
                TTLCache(
                    maxsize=self._settings.cache_max_size,
                    ttl_seconds=self._settings.price_cache_ttl_seconds,
                ),
            )
            currency_converter = CachedCurrencyConverter(
                currency_converter,
                TTLCache(
                    maxsize=self._settings.cache_max_size,
                    ttl_seconds=self._settings.fx_cache_ttl_seconds,
                ),
                now=clock,
            )
            logger.info("Price and FX caching enabled")

        self._market_data = market_data
        self._converter = currency_converter

        units = UnitConverter()
        self._price_resolver = PriceResolver(market_data, BondPricer(), clock=clock)
        self._valuator = EntryValuator(
            self._price_resolver, currency_converter, coupon_source, units
        )
        self._aggregator = PortfolioAggregator()
        self._normalizer = HistoricalNormalizer(
            self._price_resolver, currency_converter, units
        )

        from fincatch.services.analytics.benchmark import BenchmarkAnalyzer

        self._benchmark = BenchmarkAnalyzer(
            market_data, self._price_resolver, currency_converter, units
        )

    def _new_context(self, token: CancellationToken | None) -> CalculationContext:
        return CalculationContext.create(token, self._settings.max_concurrent_requests)

    @staticmethod
    def _check_display_currency(display_currency: str) -> None:
        if display_currency.strip().upper() not in SUPPORTED_CURRENCIES:
            raise UnsupportedCurrencyError(display_currency)

    # =========================================================================
    # POINT-IN-TIME VALUATION
    # =========================================================================

    async def calculate_portfolio_performance(
            self,
            entries: list[Entry],
            display_currency: str,
            token: CancellationToken | None = None,
    ) -> PortfolioPerformance | None:
        """
        Value every entry and aggregate the portfolio totals.

        Entries that cannot be priced (unsupported gold source, provider
        failure) are skipped with a warning.

        Args:
            entries: Portfolio entries
            display_currency: Currency of every amount in the result
            token: Cancellation token

        Returns:
            PortfolioPerformance, or None if there is nothing to value, the
            display currency is unsupported, every entry was skipped, or the
            calculation failed

        Raises:
            OperationCancelledError: Token tripped
        """
        if not entries:
            return None

        with calculation_scope() as calculation_id:
            logger.info(
                f"Calculating portfolio performance: {len(entries)} entries "
                f"in {display_currency} (calculation {calculation_id})"
            )
            context = self._new_context(token)

            try:
                self._check_display_currency(display_currency)
                results = await gather_isolated(
                    self._valuator.valuate(entry, display_currency, context)
                    for entry in entries
                )

                valued = []
                for entry, result in zip(entries, results):
                    if isinstance(result, BaseException):
                        logger.warning(
                            f"Skipping entry {entry.id} ({entry.symbol}): {result}"
                        )
                        continue
                    if result is None:
                        logger.warning(f"Skipping entry {entry.id} ({entry.symbol}): not priceable")
                        continue
                    valued.append(result)

                performance = self._aggregator.aggregate(valued, display_currency)
            except (OperationCancelledError, asyncio.CancelledError):
                raise
            except ValidationError as e:
                logger.error(f"Invalid portfolio performance request: {e}")
                return None
            except Exception as e:
                logger.exception(f"Failed to calculate portfolio performance: {e}")
                return None

            if performance is not None:
                logger.info(
                    f"Portfolio value {performance.total_value} {performance.currency}, "
                    f"{len(performance.entries_performance)}/{len(entries)} entries valued"
                )
            return performance

    # =========================================================================
    # HISTORICAL PERFORMANCE
    # =========================================================================

    async def calculate_holding_performance(
            self,
            entry: Entry,
            start_ts: int,
            end_ts: int,
            display_currency: str,
            interval_days: int = 1,
            token: CancellationToken | None = None,
    ) -> list[PerformancePoint]:
        """
        Base-100 series of one holding.

        Returns:
            Points in timestamp order; [] for bonds, holdings purchased
            after end_ts, invalid arguments, or when the calculation failed

        Raises:
            OperationCancelledError: Token tripped
        """
        with calculation_scope():
            context = self._new_context(token)
            try:
                self._check_display_currency(display_currency)
                return await self._normalizer.build_series(
                    entry, start_ts, end_ts, display_currency, interval_days, context
                )
            except (OperationCancelledError, asyncio.CancelledError):
                raise
            except ValidationError as e:
                logger.error(f"Invalid performance request for {entry.symbol}: {e}")
                return []
            except Exception as e:
                logger.exception(f"Failed to calculate performance of {entry.symbol}: {e}")
                return []

    async def calculate_all_holdings_performance(
            self,
            entries: list[Entry],
            start_ts: int,
            end_ts: int,
            display_currency: str,
            interval_days: int = 1,
            token: CancellationToken | None = None,
    ) -> PortfolioHoldingsPerformance | None:
        """
        Base-100 series of every holding, for a multi-line chart.

        Holdings without a single priced point are left out. Colors cycle
        through CHART_COLORS by position in `entries`, so a holding keeps
        its color when a sibling drops out.

        Returns:
            PortfolioHoldingsPerformance, or None if no holding has data,
            the arguments are invalid, or the calculation failed

        Raises:
            OperationCancelledError: Token tripped
        """
        if not entries:
            return None

        with calculation_scope() as calculation_id:
            logger.info(
                f"Calculating holdings performance: {len(entries)} entries, "
                f"{start_ts}..{end_ts} every {interval_days}d (calculation {calculation_id})"
            )
            context = self._new_context(token)

            try:
                self._check_display_currency(display_currency)
                series = await gather_isolated(
                    self._normalizer.build_series(
                        entry, start_ts, end_ts, display_currency, interval_days, context
                    )
                    for entry in entries
                )

                holdings: list[HoldingPerformance] = []
                for index, (entry, points) in enumerate(zip(entries, series)):
                    if isinstance(points, ValidationError):
                        raise points
                    if isinstance(points, BaseException):
                        logger.warning(f"Skipping holding {entry.symbol}: {points}")
                        continue
                    if not points:
                        continue
                    holdings.append(
                        HoldingPerformance(
                            entry=entry,
                            performance_data=points,
                            current_return=points[-1].value - PERFORMANCE_BASE,
                            color=CHART_COLORS[index % len(CHART_COLORS)],
                        )
                    )
            except (OperationCancelledError, asyncio.CancelledError):
                raise
            except ValidationError as e:
                logger.error(f"Invalid holdings performance request: {e}")
                return None
            except Exception as e:
                logger.exception(f"Failed to calculate holdings performance: {e}")
                return None

            if not holdings:
                logger.info("No holding produced performance data")
                return None

            return PortfolioHoldingsPerformance(
                holdings=holdings,
                start_date=start_ts,
                end_date=end_ts,
                currency=display_currency.upper(),
            )

    # =========================================================================
    # BENCHMARK
    # =========================================================================

    async def calculate_portfolio_historical_performance(
            self,
            entries: list[Entry],
            start_ts: int,
            end_ts: int,
            display_currency: str,
            interval_days: int = 1,
            token: CancellationToken | None = None,
    ) -> list[PerformancePoint]:
        """Normalized total portfolio value over time (100 at the first non-zero total)."""
        with calculation_scope():
            return await self._benchmark.calculate_portfolio_historical_performance(
                entries,
                start_ts,
                end_ts,
                display_currency,
                interval_days,
                self._new_context(token),
            )

    async def fetch_benchmark_data(
            self,
            benchmark: BenchmarkOption,
            start_ts: int,
            end_ts: int,
            token: CancellationToken | None = None,
    ) -> list[PerformancePoint]:
        """Benchmark closes normalized to 100 at the first close ([] on failure)."""
        with calculation_scope():
            return await self._benchmark.fetch_benchmark_data(
                benchmark, start_ts, end_ts, self._new_context(token)
            )

    async def calculate_benchmark_comparison(
            self,
            entries: list[Entry],
            benchmark: BenchmarkOption,
            start_ts: int,
            end_ts: int,
            display_currency: str,
            token: CancellationToken | None = None,
    ) -> BenchmarkComparison | None:
        """
        Compare the portfolio's daily curve with a benchmark.

        Returns:
            BenchmarkComparison, or None when either curve is empty or the
            calculation fails

        Raises:
            OperationCancelledError: Token tripped
        """
        with calculation_scope() as calculation_id:
            logger.info(
                f"Comparing {len(entries)} entries with {benchmark.name} "
                f"(calculation {calculation_id})"
            )
            return await self._benchmark.calculate_benchmark_comparison(
                entries,
                benchmark,
                start_ts,
                end_ts,
                display_currency,
                self._new_context(token),
            )
