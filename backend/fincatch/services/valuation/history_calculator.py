# backend/fincatch/services/valuation/history_calculator.py
"""
Historical Normalizer for per-holding performance charts.

Builds a base-100 index series for one holding so holdings of very different
absolute prices can be compared on one chart:

    value(t) = price_in_display_currency(t) / purchase_price_in_display_currency × 100

A holding cannot perform before it existed, so the series starts at
max(start, purchase_date). Timestamps are spaced by `interval_days` and the
end timestamp is always included.

Points are fetched concurrently (bounded by the CalculationContext) and each
point fails in isolation: a missing or failed price drops that point only.

Design Principles:
- Pure function of its inputs (restartable, nothing memoized here)
- Finite: bounded by the date range
- Graceful handling of missing data
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from fincatch.models import BondEntry, GoldEntry
from fincatch.services.concurrency import CalculationContext, gather_isolated
from fincatch.services.constants import PERCENT_PLACES, PERFORMANCE_BASE
from fincatch.services.exceptions import InvalidDateRangeError, InvalidIntervalError
from fincatch.services.valuation.types import PerformancePoint
from fincatch.services.valuation.units import UnitConverter
from fincatch.utils.date_utils import generate_timestamps

if TYPE_CHECKING:
    from fincatch.models import StockEntry
    from fincatch.services.protocols import CurrencyConverter
    from fincatch.services.valuation.price_resolver import PriceResolver

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


class HistoricalNormalizer:
    """
    Calculates the base-100 performance series of a single holding.

    Attributes:
        _price_resolver: Price lookups as of a timestamp
        _converter: Currency conversion to the display currency
        _units: Gold unit scaling of the purchase price
    """

    def __init__(
            self,
            price_resolver: PriceResolver,
            currency_converter: CurrencyConverter,
            unit_converter: UnitConverter | None = None,
    ) -> None:
        self._price_resolver = price_resolver
        self._converter = currency_converter
        self._units = unit_converter or UnitConverter()

    async def build_series(
            self,
            entry: StockEntry | GoldEntry | BondEntry,
            start_ts: int,
            end_ts: int,
            display_currency: str,
            interval_days: int = 1,
            context: CalculationContext | None = None,
    ) -> list[PerformancePoint]:
        """
        Build the normalized series of one holding.

        Args:
            entry: Holding to chart
            start_ts: Requested range start, unix seconds
            end_ts: Range end, unix seconds (always the last point)
            display_currency: Currency prices are compared in
            interval_days: Spacing between points (>= 1)
            context: Calculation context (cancellation + in-flight cap)

        Returns:
            Points in timestamp order; empty if nothing could be priced

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

        if isinstance(entry, BondEntry):
            logger.debug(f"Skipping history for bond {entry.symbol}: not supported")
            return []

        effective_start = max(start_ts, entry.purchase_date)
        timestamps = generate_timestamps(effective_start, end_ts, interval_days)
        if not timestamps:
            return []

        purchase_price = await self._purchase_price(entry, display_currency, context)

        logger.debug(
            f"Building series for {entry.symbol}: {len(timestamps)} points, "
            f"purchase price {purchase_price} {display_currency}"
        )

        results = await gather_isolated(
            self._point(entry, ts, purchase_price, display_currency, context)
            for ts in timestamps
        )

        points: list[PerformancePoint] = []
        for ts, result in zip(timestamps, results):
            if isinstance(result, Exception):
                logger.warning(
                    f"Failed to fetch price for {entry.symbol} at {ts}: {result}"
                )
                continue
            if result is not None:
                points.append(result)

        return points

    async def _purchase_price(
            self,
            entry: StockEntry | GoldEntry,
            display_currency: str,
            context: CalculationContext,
    ) -> Decimal:
        """Purchase price per canonical unit in the display currency."""
        price = entry.purchase_price
        if isinstance(entry, GoldEntry):
            price = self._units.price_to_canonical(price, entry.unit)
        return await self._convert(context, price, entry.currency, display_currency)

    async def _point(
            self,
            entry: StockEntry | GoldEntry,
            timestamp: int,
            purchase_price: Decimal,
            display_currency: str,
            context: CalculationContext,
    ) -> PerformancePoint | None:
        resolved = await self._price_resolver.resolve_price_at(entry, timestamp, context)
        if resolved is None or resolved.price <= _ZERO:
            return None

        price = await self._convert(context, resolved.price, resolved.currency, display_currency)

        if purchase_price > _ZERO:
            value = price / purchase_price * PERFORMANCE_BASE
        else:
            value = PERFORMANCE_BASE

        return PerformancePoint(timestamp=timestamp, value=value.quantize(PERCENT_PLACES))

    async def _convert(
            self,
            context: CalculationContext,
            amount: Decimal,
            from_currency: str,
            to_currency: str,
    ) -> Decimal:
        if from_currency.upper() == to_currency.upper():
            return amount
        return await context.call(
            self._converter.convert_currency, amount, from_currency, to_currency
        )
