# backend/fincatch/services/fx_rate_service.py
"""
FX Rate Service: currency conversion for the valuation engine.

=============================================================================
FX RATE CONVENTION (IMPORTANT!)
=============================================================================

The quote provider only knows one thing: the price of one unit of a
currency in VND.

    rate_to_vnd(USD) = 25,400   →  1 USD = 25,400 VND

Every other pair is pivoted through VND:

    X → VND:  amount × rate(X)
    VND → X:  amount ÷ rate(X)
    X → Y:    amount × rate(X) ÷ rate(Y)

Example (EUR → USD, rate(EUR) = 27,500, rate(USD) = 25,400):
    100 EUR = 100 × 27,500 ÷ 25,400 = 108.27 USD

=============================================================================

Rates are "current" rates; every conversion uses the latest quote regardless
of the date of the amount being converted. Quotes are memoized for a short
TTL (5 minutes by default) so a portfolio of 50 USD entries costs one lookup.

Design Principles:
- Single Responsibility: Only handles FX rate operations
- Financial Precision: Uses Decimal for all rates; amounts are NOT rounded
  here, rounding is the caller's presentation concern
- Domain Exceptions: FXRateNotFoundError / FXProviderError, never None

Usage:
    from fincatch.services.fx_rate_service import FXRateService
    from fincatch.services.market_data import YahooFinanceProvider

    service = FXRateService(provider=YahooFinanceProvider())
    usd = await service.convert_currency(Decimal("2540000"), "VND", "USD")
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from fincatch.services.cache import TTLCache
from fincatch.services.constants import FX_PIVOT_CURRENCY
from fincatch.services.exceptions import (
    FXConversionError,
    FXProviderError,
    FXRateNotFoundError,
    MarketDataError,
)

if TYPE_CHECKING:
    from fincatch.services.protocols import FXQuoteProvider

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class FXRateResult:
    """
    Result of an FX rate lookup.

    Attributes:
        base_currency: Currency being converted from
        quote_currency: Currency being converted to
        rate: 1 base_currency = rate quote_currency
    """

    base_currency: str
    quote_currency: str
    rate: Decimal


class FXRateService:
    """
    Converts amounts between currencies by pivoting through VND.

    Implements the CurrencyConverter protocol.

    Example:
        service = FXRateService(provider=YahooFinanceProvider())
        result = await service.get_rate("USD", "EUR")
        print(f"1 USD = {result.rate} EUR")
    """

    CACHE_TTL_SECONDS: int = 300

    def __init__(
            self,
            provider: FXQuoteProvider,
            cache_ttl_seconds: int | None = None,
            cache: TTLCache | None = None,
    ) -> None:
        """
        Initialize the FX Rate Service.

        Args:
            provider: Source of "<currency> in VND" quotes
            cache_ttl_seconds: Lifetime of a memoized quote (default 300)
            cache: Pre-built cache (overrides cache_ttl_seconds; for tests)
        """
        self._provider = provider
        ttl = cache_ttl_seconds or self.CACHE_TTL_SECONDS
        self._cache = cache if cache is not None else TTLCache(maxsize=256, ttl_seconds=ttl)
        # Per event loop; an asyncio.Lock is bound to the loop it first waits on.
        self._locks: weakref.WeakKeyDictionary[
            asyncio.AbstractEventLoop, dict[str, asyncio.Lock]
        ] = weakref.WeakKeyDictionary()
        logger.info(
            f"FXRateService initialized (provider={provider.name}, ttl={ttl}s)"
        )

    # =========================================================================
    # PUBLIC METHODS
    # =========================================================================

    async def convert_currency(
            self,
            amount: Decimal,
            from_currency: str,
            to_currency: str,
    ) -> Decimal:
        """
        Convert an amount between currencies at the current rate.

        Same currency returns the amount unchanged without any lookup.

        Raises:
            FXRateNotFoundError: No usable quote for one of the currencies
            FXProviderError: Quote provider failed
            FXConversionError: Amount is not a finite number
        """
        from_curr = from_currency.upper().strip()
        to_curr = to_currency.upper().strip()

        if from_curr == to_curr:
            return amount

        if not amount.is_finite():
            raise FXConversionError(f"cannot convert {amount}", from_curr, to_curr)

        result = await self.get_rate(from_curr, to_curr)
        return amount * result.rate

    async def get_rate(self, base_currency: str, quote_currency: str) -> FXRateResult:
        """
        Get the current rate: 1 base_currency = rate quote_currency.

        Raises:
            FXRateNotFoundError: No usable quote for one of the currencies
            FXProviderError: Quote provider failed
        """
        base = base_currency.upper().strip()
        quote = quote_currency.upper().strip()

        if base == quote:
            return FXRateResult(base, quote, Decimal("1"))

        base_in_vnd = await self.get_rate_to_vnd(base)
        quote_in_vnd = await self.get_rate_to_vnd(quote)

        return FXRateResult(base, quote, base_in_vnd / quote_in_vnd)

    async def get_rate_to_vnd(self, currency: str) -> Decimal:
        """
        Price of one unit of `currency` in VND (memoized).

        Concurrent callers asking for the same currency share one lookup.

        Raises:
            FXRateNotFoundError: Provider has no positive quote
            FXProviderError: Provider failed
        """
        currency = currency.upper().strip()
        if currency == FX_PIVOT_CURRENCY:
            return Decimal("1")

        cached = self._cache.get(currency)
        if cached is not None:
            return cached

        async with self._lock_for(currency):
            cached = self._cache.get(currency)
            if cached is not None:
                return cached

            rate = await self._fetch_rate_to_vnd(currency)
            self._cache.set(currency, rate)
            logger.debug(f"FX quote {currency}/{FX_PIVOT_CURRENCY} = {rate}")
            return rate

    def clear_cache(self) -> None:
        """Drop all memoized quotes."""
        self._cache.clear()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _lock_for(self, currency: str) -> asyncio.Lock:
        loop_locks = self._locks.setdefault(asyncio.get_running_loop(), {})
        return loop_locks.setdefault(currency, asyncio.Lock())

    async def _fetch_rate_to_vnd(self, currency: str) -> Decimal:
        try:
            rate = await self._provider.get_rate_to_vnd(currency)
        except MarketDataError as e:
            logger.warning(f"FX provider failed for {currency}/{FX_PIVOT_CURRENCY}: {e}")
            raise FXProviderError(self._provider.name, str(e)) from e

        if rate is None or not rate.is_finite() or rate <= 0:
            raise FXRateNotFoundError(currency, FX_PIVOT_CURRENCY)

        return rate

