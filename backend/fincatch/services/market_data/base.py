# backend/fincatch/services/market_data/base.py
"""
Abstract interface for market data providers.

This module defines the contract that all market data providers must follow.
Using an abstract base class allows for:
- Easy addition of new providers (VNDirect, SSI, other gold dealers, etc.)
- Mock implementations for testing
- Consistent retry behavior across all providers

Providers are async: every fetch is a network round-trip and the engine
awaits many of them concurrently. Blocking client libraries (yfinance) are
pushed off the event loop by the concrete provider.

Design Principles:
- Interface Segregation: stock and gold providers expose one fetch each
- Dependency Inversion: the engine depends on MarketDataGateway, not providers
- DRY: Common retry logic implemented once in base class
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log,
)

from fincatch.services.constants import DAILY_RESOLUTION
from fincatch.services.exceptions import (
    ProviderUnavailableError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

# Type variable for generic return type in retry method
T = TypeVar('T')


# =============================================================================
# DATA CLASSES - REQUESTS
# =============================================================================

@dataclass(frozen=True)
class StockHistoryRequest:
    """
    Request for stock candles in a time window.

    Attributes:
        symbol: Ticker as understood by the source (e.g., "AAPL", "GC=F")
        from_ts: Window start, unix seconds
        to_ts: Window end, unix seconds
        source: Provider identifier (e.g., "yahoo_finance")
        resolution: Candle resolution ("1D" for daily)
    """

    symbol: str
    from_ts: int
    to_ts: int
    source: str | None = None
    resolution: str = DAILY_RESOLUTION


@dataclass(frozen=True)
class GoldPriceRequest:
    """
    Request for gold price points in a time window.

    Attributes:
        gold_price_id: Gold type identifier at the source (e.g., "1" for SJC bars)
        from_ts: Window start, unix seconds
        to_ts: Window end, unix seconds
        source: Provider identifier (e.g., "sjc")
    """

    gold_price_id: str
    from_ts: int
    to_ts: int
    source: str | None = None


# =============================================================================
# DATA CLASSES - PRICE DATA
# =============================================================================

@dataclass(frozen=True)
class Candle:
    """
    Single OHLCV candle.

    Attributes:
        timestamp: Candle start, unix seconds
        open: Opening price
        high: Highest price in the period
        low: Lowest price in the period
        close: Closing price (primary valuation price)
        volume: Traded volume (None if not reported)
    """

    timestamp: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int | None = None


@dataclass(frozen=True)
class GoldPricePoint:
    """
    Dealer buy/sell quote for one gold type.

    Attributes:
        timestamp: Quote time, unix seconds
        type_name: Dealer's name for the gold type
        buy: Dealer buy price (what the dealer pays)
        sell: Dealer sell price (what a customer pays; used for valuation)
        branch_name: Dealer branch (optional)
        buy_differ: Change of buy price vs previous quote (optional)
        sell_differ: Change of sell price vs previous quote (optional)
    """

    timestamp: int
    type_name: str
    buy: Decimal
    sell: Decimal
    branch_name: str | None = None
    buy_differ: Decimal | None = None
    sell_differ: Decimal | None = None


@dataclass
class PriceHistoryResponse:
    """
    Result of a stock or gold history fetch.

    Attributes:
        symbol: Symbol or gold type requested
        source: Provider that served the request
        data: Candles or gold points, sorted by timestamp (empty if none)
        status: "ok" or "error"
        error: Error message when status is "error"
        metadata: Provider metadata; `price_scale` corrects quoted prices
    """

    symbol: str
    source: str
    data: list[Any] = field(default_factory=list)
    status: str = "ok"
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return self.status == "ok"

    @property
    def latest(self) -> Any | None:
        """Most recent data point, or None if the window was empty."""
        if not self.data:
            return None
        return self.data[-1]

    @property
    def price_scale(self) -> Decimal:
        """
        Multiplier that corrects quoted prices to their true magnitude.

        Some sources quote in thousands (e.g., VND stocks quoted as 25.3 for
        25,300). Missing or unparseable scale means 1.
        """
        raw = self.metadata.get("price_scale")
        if raw is None:
            return Decimal("1")
        try:
            return Decimal(str(raw))
        except InvalidOperation:
            logger.warning(f"Ignoring invalid price_scale from {self.source}: {raw!r}")
            return Decimal("1")


# =============================================================================
# ABSTRACT BASE CLASSES
# =============================================================================

class MarketDataProvider(ABC):
    """
    Abstract base class for market data providers.

    Retry Behavior:
        The base class provides an `_execute_with_retry` coroutine that
        implements exponential backoff retry logic. Subclasses can override
        the retry configuration by setting class attributes:

        - MAX_RETRY_ATTEMPTS: Total attempts (default: 3)
        - RETRY_MIN_WAIT: Minimum wait in seconds (default: 1)
        - RETRY_MAX_WAIT: Maximum wait in seconds (default: 10)
        - RETRY_MULTIPLIER: Exponential multiplier (default: 1)

    Retryable Exceptions:
        - ProviderUnavailableError: Network issues, timeouts, server errors
        - RateLimitError: API rate limit exceeded

    Non-Retryable Exceptions:
        - TickerNotFoundError: Permanent failure (symbol doesn't exist)
    """

    # =========================================================================
    # RETRY CONFIGURATION (can be overridden by subclasses)
    # =========================================================================

    MAX_RETRY_ATTEMPTS: int = 3
    RETRY_MIN_WAIT: int = 1
    RETRY_MAX_WAIT: int = 10
    RETRY_MULTIPLIER: int = 1

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this provider.

        Matches the `source` field of portfolio entries.

        Returns:
            Provider name (e.g., "yahoo_finance", "sjc")
        """
        pass

    # =========================================================================
    # RETRY HELPER METHOD
    # =========================================================================

    async def _execute_with_retry(
            self,
            func: Callable[..., Awaitable[T]],
            *args: Any,
            **kwargs: Any,
    ) -> T:
        """
        Await a coroutine function with retry logic for transient failures.

        Uses exponential backoff for retryable exceptions:
        - ProviderUnavailableError
        - RateLimitError

        Does NOT retry on:
        - TickerNotFoundError (permanent failure)
        - Other exceptions

        Returns:
            Return value of func

        Raises:
            The last exception if all retries fail
        """

        @retry(
            stop=stop_after_attempt(self.MAX_RETRY_ATTEMPTS),
            wait=wait_exponential(
                multiplier=self.RETRY_MULTIPLIER,
                min=self.RETRY_MIN_WAIT,
                max=self.RETRY_MAX_WAIT,
            ),
            retry=retry_if_exception_type((ProviderUnavailableError, RateLimitError)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async def _inner() -> T:
            return await func(*args, **kwargs)

        return await _inner()

    async def is_available(self) -> bool:
        """
        Check if the provider is currently available.

        Default implementation returns True. Subclasses can override
        to implement health checks.
        """
        return True


class StockDataProvider(MarketDataProvider):
    """Provider of stock/ETF/futures candles."""

    @abstractmethod
    async def get_stock_history(
            self,
            request: StockHistoryRequest,
    ) -> PriceHistoryResponse:
        """
        Fetch candles for a symbol in a time window.

        Returns:
            PriceHistoryResponse with Candle data (may be empty)

        Raises:
            TickerNotFoundError: Symbol not found
            ProviderUnavailableError: Network or API error (retryable)
            RateLimitError: Rate limit exceeded (retryable)
        """
        pass


class GoldDataProvider(MarketDataProvider):
    """Provider of physical gold dealer quotes."""

    @abstractmethod
    async def get_gold_prices(
            self,
            request: GoldPriceRequest,
    ) -> PriceHistoryResponse:
        """
        Fetch gold price points for a gold type in a time window.

        Returns:
            PriceHistoryResponse with GoldPricePoint data (may be empty)

        Raises:
            ProviderUnavailableError: Network or API error (retryable)
        """
        pass
