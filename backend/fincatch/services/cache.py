# backend/fincatch/services/cache.py
"""
Opt-in caching for market data and currency lookups.

Nothing in the engine depends on these caches for correctness. They only
bound redundant network calls when the same (symbol, day, source) price or
(from, to, day) rate is requested repeatedly, e.g. several entries of the
same ticker or a history chart re-rendered within a few minutes.

Keys always include the day, so a cached value never crosses a day boundary,
and entries expire after a short TTL.

Components:
    TTLCache                - Bounded LRU cache with per-entry expiry
    CachedMarketData        - Wraps a MarketDataSource
    CachedCurrencyConverter - Wraps a CurrencyConverter
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Callable, Hashable, TYPE_CHECKING

from fincatch.utils.date_utils import now_timestamp, timestamp_to_date

if TYPE_CHECKING:
    from fincatch.services.market_data.base import (
        GoldPriceRequest,
        PriceHistoryResponse,
        StockHistoryRequest,
    )
    from fincatch.services.protocols import CurrencyConverter, MarketDataSource

logger = logging.getLogger(__name__)


class TTLCache:
    """
    Thread-safe bounded LRU cache with time-to-live expiry.

    Evicts least-recently-used entries when capacity is reached.
    Uses OrderedDict for O(1) access and eviction. Expired entries are
    dropped lazily on access.
    """

    def __init__(
            self,
            maxsize: int = 10000,
            ttl_seconds: float = 300,
            clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the cache.

        Args:
            maxsize: Maximum number of entries to store
            ttl_seconds: Lifetime of an entry
            clock: Time source in seconds (injectable for tests)
        """
        self._maxsize = maxsize
        self._ttl = ttl_seconds
        self._clock = clock
        self._cache: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Any | None:
        """Get a live item, moving it to end (most recently used)."""
        with self._lock:
            item = self._cache.get(key)
            if item is None:
                return None
            expires_at, value = item
            if self._clock() >= expires_at:
                del self._cache[key]
                return None
            self._cache.move_to_end(key)
            return value

    def set(self, key: Hashable, value: Any) -> None:
        """Set item in cache, evicting oldest if at capacity."""
        expires_at = self._clock() + self._ttl
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            elif len(self._cache) >= self._maxsize:
                self._cache.popitem(last=False)  # Remove oldest
            self._cache[key] = (expires_at, value)

    def clear(self) -> None:
        """Clear all entries from the cache."""
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        """Return number of stored entries (including not yet purged expired ones)."""
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None


class CachedMarketData:
    """
    MarketDataSource wrapper that memoizes successful responses.

    Key: (kind, symbol, source, resolution, day(from), day(to)).
    Error responses and exceptions are never cached.
    """

    def __init__(self, inner: MarketDataSource, cache: TTLCache) -> None:
        self._inner = inner
        self._cache = cache

    async def fetch_stock_history(
            self,
            request: StockHistoryRequest,
    ) -> PriceHistoryResponse:
        key = (
            "stock",
            request.symbol.upper(),
            request.source,
            request.resolution,
            timestamp_to_date(request.from_ts),
            timestamp_to_date(request.to_ts),
        )
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Price cache hit: {key}")
            return cached

        response = await self._inner.fetch_stock_history(request)
        if response.is_ok:
            self._cache.set(key, response)
        return response

    async def fetch_gold_price(
            self,
            request: GoldPriceRequest,
    ) -> PriceHistoryResponse:
        key = (
            "gold",
            request.gold_price_id,
            request.source,
            None,
            timestamp_to_date(request.from_ts),
            timestamp_to_date(request.to_ts),
        )
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Price cache hit: {key}")
            return cached

        response = await self._inner.fetch_gold_price(request)
        if response.is_ok:
            self._cache.set(key, response)
        return response


class CachedCurrencyConverter:
    """
    CurrencyConverter wrapper that memoizes the unit rate per day.

    Conversion is linear, so the wrapped converter is asked for the value of
    one unit and the result is scaled by the amount.

    Key: (from_currency, to_currency, day of "now").
    """

    def __init__(
            self,
            inner: CurrencyConverter,
            cache: TTLCache,
            now: Callable[[], int] = now_timestamp,
    ) -> None:
        self._inner = inner
        self._cache = cache
        self._now = now

    async def convert_currency(
            self,
            amount: Decimal,
            from_currency: str,
            to_currency: str,
    ) -> Decimal:
        from_curr = from_currency.upper()
        to_curr = to_currency.upper()
        if from_curr == to_curr:
            return amount

        key = (from_curr, to_curr, timestamp_to_date(self._now()))
        rate = self._cache.get(key)
        if rate is None:
            rate = await self._inner.convert_currency(Decimal("1"), from_curr, to_curr)
            self._cache.set(key, rate)
        return amount * rate
