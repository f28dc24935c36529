# backend/fincatch/services/valuation/price_resolver.py
"""
Price resolution per asset class.

Resolves the price of a portfolio entry and the currency it is quoted in.
Gold prices are always per tael (the canonical unit).

Current price:
    Stock: latest daily close in [last_trading - 1 day - 1s, last_trading],
           × price_scale, in the entry's currency
    Gold:  latest SJC sell in [now - 1 day, now], × price_scale, in VND;
           any other source is not priceable (entry skipped)
    Bond:  fallback chain, no market data lookup
           calculated (present value) → manual → face value → purchase price

Price at a past timestamp (history charts):
    Stock/gold: same lookups with the window [ts - 1 day, ts]
    Bond:       not supported

Empty upstream data is a soft failure: the current price becomes 0 with a
warning and the point-in-time price becomes None. Provider exceptions
propagate; the caller decides to skip the entry or point.
"""

import logging
from decimal import Decimal
from typing import Callable

from fincatch.models import BondEntry, GoldEntry, PriceSource, StockEntry
from fincatch.services.concurrency import CalculationContext
from fincatch.services.constants import (
    DAILY_RESOLUTION,
    GOLD_QUOTE_CURRENCY,
    PRICE_WINDOW_SECONDS,
    SUPPORTED_GOLD_SOURCES,
)
from fincatch.services.market_data.base import (
    GoldPriceRequest,
    PriceHistoryResponse,
    StockHistoryRequest,
)
from fincatch.services.protocols import MarketDataSource
from fincatch.services.valuation.bond_pricer import BondPricer
from fincatch.services.valuation.types import ResolvedPrice
from fincatch.utils.date_utils import get_last_trading_timestamp, now_timestamp

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")


class PriceResolver:
    """
    Resolves current and historical prices for portfolio entries.

    Attributes:
        _market_data: Gateway for stock candles and gold quotes
        _bond_pricer: Present-value pricer for bonds
        _clock: Source of "now" in unix seconds
    """

    def __init__(
            self,
            market_data: MarketDataSource,
            bond_pricer: BondPricer | None = None,
            clock: Callable[[], int] = now_timestamp,
    ) -> None:
        self._market_data = market_data
        self._bond_pricer = bond_pricer or BondPricer()
        self._clock = clock

    # =========================================================================
    # CURRENT PRICE
    # =========================================================================

    async def resolve_current_price(
            self,
            entry: StockEntry | GoldEntry | BondEntry,
            context: CalculationContext | None = None,
    ) -> ResolvedPrice | None:
        """
        Resolve the current price of an entry.

        Returns:
            ResolvedPrice (price 0 plus a warning if upstream had no data),
            or None if the entry cannot be priced at all (unsupported gold source)

        Raises:
            MarketDataError: Provider failure
            OperationCancelledError: Calculation cancelled
        """
        context = context or CalculationContext.create()

        if isinstance(entry, StockEntry):
            return await self._resolve_stock(entry, context)
        if isinstance(entry, GoldEntry):
            return await self._resolve_gold(entry, context)
        if isinstance(entry, BondEntry):
            return self.resolve_bond_price(entry)
        raise TypeError(f"Unsupported entry type: {type(entry).__name__}")

    async def _resolve_stock(
            self,
            entry: StockEntry,
            context: CalculationContext,
    ) -> ResolvedPrice:
        trading_ts = get_last_trading_timestamp(self._clock())
        response = await context.call(
            self._market_data.fetch_stock_history,
            StockHistoryRequest(
                symbol=entry.symbol,
                from_ts=trading_ts - PRICE_WINDOW_SECONDS - 1,
                to_ts=trading_ts,
                source=entry.source,
                resolution=DAILY_RESOLUTION,
            ),
        )
        source = entry.source or PriceSource.UNKNOWN.value

        price = self._latest_stock_price(response)
        if price is None:
            warning = f"No recent price data for {entry.symbol}"
            logger.warning(f"{warning} (source={source})")
            return ResolvedPrice(_ZERO, entry.currency, source, warning=warning)

        return ResolvedPrice(price, entry.currency, source)

    async def _resolve_gold(
            self,
            entry: GoldEntry,
            context: CalculationContext,
    ) -> ResolvedPrice | None:
        if entry.source not in SUPPORTED_GOLD_SOURCES:
            logger.warning(f"Invalid gold source for entry {entry.id}: {entry.source}")
            return None

        now = self._clock()
        response = await context.call(
            self._market_data.fetch_gold_price,
            GoldPriceRequest(
                gold_price_id=entry.symbol,
                from_ts=now - PRICE_WINDOW_SECONDS,
                to_ts=now,
                source=entry.source,
            ),
        )

        price = self._latest_gold_price(response)
        if price is None:
            warning = f"No recent gold price for type {entry.symbol}"
            logger.warning(f"{warning} (source={entry.source})")
            return ResolvedPrice(_ZERO, GOLD_QUOTE_CURRENCY, entry.source, warning=warning)

        return ResolvedPrice(price, GOLD_QUOTE_CURRENCY, entry.source)

    def resolve_bond_price(self, entry: BondEntry) -> ResolvedPrice:
        """
        Price a bond through the fallback chain.

        1. calculated: all present-value inputs present
        2. manual: current_market_price > 0
        3. face_value: face value present
        4. purchase price: last resort, also tagged face_value
        """
        warning = None

        if entry.has_pricing_inputs:
            try:
                value = self._bond_pricer.present_value(
                    face_value=entry.face_value,
                    coupon_rate=entry.coupon_rate,
                    ytm=entry.ytm,
                    maturity_date=entry.maturity_date,
                    coupon_frequency=entry.coupon_frequency,
                    now_ts=self._clock(),
                )
            except ArithmeticError as e:
                value = None
                warning = f"Bond present value undefined ({e}); using fallback price"
                logger.warning(f"Entry {entry.id}: {warning}")

            if value is not None and value.is_finite():
                return ResolvedPrice(value, entry.currency, PriceSource.CALCULATED.value)

        if entry.current_market_price is not None and entry.current_market_price > 0:
            return ResolvedPrice(
                entry.current_market_price,
                entry.currency,
                PriceSource.MANUAL.value,
                warning=warning,
            )

        if entry.face_value:
            return ResolvedPrice(
                entry.face_value,
                entry.currency,
                PriceSource.FACE_VALUE.value,
                warning=warning,
            )

        return ResolvedPrice(
            entry.purchase_price,
            entry.currency,
            PriceSource.FACE_VALUE.value,
            warning=warning,
        )

    # =========================================================================
    # PRICE AT A TIMESTAMP
    # =========================================================================

    async def resolve_price_at(
            self,
            entry: StockEntry | GoldEntry | BondEntry,
            timestamp: int,
            context: CalculationContext | None = None,
    ) -> ResolvedPrice | None:
        """
        Resolve the latest price within the day ending at `timestamp`.

        Returns:
            ResolvedPrice, or None when no price exists for the window,
            the gold source is unsupported, or the entry is a bond

        Raises:
            MarketDataError: Provider failure
            OperationCancelledError: Calculation cancelled
        """
        context = context or CalculationContext.create()
        window_start = timestamp - PRICE_WINDOW_SECONDS

        if isinstance(entry, StockEntry):
            response = await context.call(
                self._market_data.fetch_stock_history,
                StockHistoryRequest(
                    symbol=entry.symbol,
                    from_ts=window_start,
                    to_ts=timestamp,
                    source=entry.source,
                    resolution=DAILY_RESOLUTION,
                ),
            )
            price = self._latest_stock_price(response)
            if price is None:
                return None
            return ResolvedPrice(price, entry.currency, entry.source or PriceSource.UNKNOWN.value)

        if isinstance(entry, GoldEntry):
            if entry.source not in SUPPORTED_GOLD_SOURCES:
                return None
            response = await context.call(
                self._market_data.fetch_gold_price,
                GoldPriceRequest(
                    gold_price_id=entry.symbol,
                    from_ts=window_start,
                    to_ts=timestamp,
                    source=entry.source,
                ),
            )
            price = self._latest_gold_price(response)
            if price is None:
                return None
            return ResolvedPrice(price, GOLD_QUOTE_CURRENCY, entry.source)

        if isinstance(entry, BondEntry):
            return None
        raise TypeError(f"Unsupported entry type: {type(entry).__name__}")

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _latest_stock_price(response: PriceHistoryResponse) -> Decimal | None:
        if not response.is_ok or response.latest is None:
            return None
        return response.latest.close * response.price_scale

    @staticmethod
    def _latest_gold_price(response: PriceHistoryResponse) -> Decimal | None:
        if not response.is_ok or response.latest is None:
            return None
        return response.latest.sell * response.price_scale
