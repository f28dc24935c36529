# backend/fincatch/services/market_data/yahoo.py
"""
Yahoo Finance market data provider implementation.

This module implements the StockDataProvider interface using the yfinance
library, and also serves the FX quotes the currency converter pivots through.

Key features:
- Resolution mapping (our codes -> yfinance intervals)
- Comprehensive error handling
- Retry mechanism inherited from base class
- Blocking yfinance calls moved off the event loop with asyncio.to_thread
- FX quotes for any currency against VND via "<CUR>VND=X" pairs

Limitations:
- Rate limits (not officially documented, but exist)
- Data may be delayed (15-20 minutes for some markets)
- Daily candles only carry a date; the candle timestamp is the session start
"""

import asyncio
import logging
import math
from datetime import timedelta
from decimal import Decimal
from typing import Any

import yfinance as yf

from fincatch.services.constants import FX_PIVOT_CURRENCY
from fincatch.services.exceptions import (
    ProviderUnavailableError,
    TickerNotFoundError,
    RateLimitError,
)
from fincatch.services.market_data.base import (
    Candle,
    PriceHistoryResponse,
    StockDataProvider,
    StockHistoryRequest,
)
from fincatch.utils.date_utils import timestamp_to_date

logger = logging.getLogger(__name__)


class YahooFinanceProvider(StockDataProvider):
    """
    Yahoo Finance implementation of StockDataProvider.

    Configuration:
        timeout: API request timeout in seconds (default: 10)
        max_retries: Total attempts for transient failures (default: class value)

    Retry Behavior (inherited from MarketDataProvider):
        - Retries on ProviderUnavailableError and RateLimitError
        - Does NOT retry on TickerNotFoundError (permanent failure)
        - Uses exponential backoff: 1s -> 2s -> 4s

    Example:
        provider = YahooFinanceProvider(timeout=15)

        response = await provider.get_stock_history(
            StockHistoryRequest("AAPL", from_ts, to_ts, "yahoo_finance")
        )
        price = response.latest.close * response.price_scale
    """

    # =========================================================================
    # RESOLUTION MAPPING
    # =========================================================================
    # Maps our resolution codes to yfinance interval strings.

    RESOLUTION_INTERVALS: dict[str, str] = {
        "1": "1m",
        "5": "5m",
        "15": "15m",
        "30": "30m",
        "60": "60m",
        "1D": "1d",
        "1W": "1wk",
        "1M": "1mo",
    }

    # Lookback used when quoting the latest FX rate
    FX_LOOKBACK_PERIOD: str = "5d"

    def __init__(self, timeout: int = 10, max_retries: int | None = None) -> None:
        """
        Initialize the Yahoo Finance provider.

        Args:
            timeout: Request timeout in seconds
            max_retries: Override for MAX_RETRY_ATTEMPTS
        """
        self._timeout = timeout
        if max_retries is not None:
            self.MAX_RETRY_ATTEMPTS = max_retries
        logger.info(f"YahooFinanceProvider initialized (timeout={timeout}s)")

    @property
    def name(self) -> str:
        return "yahoo_finance"

    # =========================================================================
    # STOCK HISTORY
    # =========================================================================

    async def get_stock_history(
            self,
            request: StockHistoryRequest,
    ) -> PriceHistoryResponse:
        """
        Fetch candles from Yahoo Finance.

        The window is widened to whole UTC days: a daily candle is returned
        if its trading date falls between the dates of from_ts and to_ts.

        Raises:
            TickerNotFoundError: If ticker not found
            ProviderUnavailableError: If Yahoo Finance unavailable
        """
        return await self._execute_with_retry(self._fetch_stock_history, request)

    async def _fetch_stock_history(
            self,
            request: StockHistoryRequest,
    ) -> PriceHistoryResponse:
        """Internal method to fetch candles (called by retry wrapper)."""
        symbol = request.symbol.strip().upper()
        interval = self.RESOLUTION_INTERVALS.get(request.resolution, "1d")

        start_date = timestamp_to_date(request.from_ts)
        # Yahoo Finance end date is exclusive, so add 1 day
        end_date = timestamp_to_date(request.to_ts) + timedelta(days=1)

        logger.debug(
            f"Fetching {interval} candles for {symbol}: {start_date} to {end_date}"
        )

        try:
            yf_ticker = yf.Ticker(symbol)
            df = await asyncio.to_thread(
                yf_ticker.history,
                start=start_date.isoformat(),
                end=end_date.isoformat(),
                interval=interval,
                auto_adjust=False,
                timeout=self._timeout,
            )
        except Exception as e:
            raise self._map_error(e, symbol) from e

        response = PriceHistoryResponse(
            symbol=symbol,
            source=self.name,
            metadata={"price_scale": 1, "interval": interval},
        )

        if df is None or df.empty:
            logger.warning(
                f"No price data for {symbol} between {start_date} and {end_date}"
            )
            return response

        response.data = self._dataframe_to_candles(df)
        logger.debug(f"Fetched {len(response.data)} candles for {symbol}")
        return response

    def _dataframe_to_candles(self, df) -> list[Candle]:
        """
        Convert a pandas DataFrame from yfinance to a sorted list of Candle.

        Args:
            df: DataFrame indexed by Timestamp with Open/High/Low/Close/Volume

        Returns:
            List of Candle objects, oldest first
        """
        candles = []

        for idx, row in df.iterrows():
            close_price = self._to_decimal(row.get('Close'))

            # Skip rows with missing close price
            if close_price is None:
                logger.warning(f"Skipping {idx}: missing close price")
                continue

            open_price = self._to_decimal(row.get('Open'))
            high_price = self._to_decimal(row.get('High'))
            low_price = self._to_decimal(row.get('Low'))

            candles.append(Candle(
                timestamp=int(idx.timestamp()),
                open=open_price if open_price is not None else close_price,
                high=high_price if high_price is not None else close_price,
                low=low_price if low_price is not None else close_price,
                close=close_price,
                volume=self._to_int(row.get('Volume')),
            ))

        candles.sort(key=lambda c: c.timestamp)
        return candles

    # =========================================================================
    # FX QUOTES
    # =========================================================================

    async def get_rate_to_vnd(self, currency: str) -> Decimal | None:
        """
        Latest price of one unit of `currency` in VND.

        Args:
            currency: ISO 4217 code (e.g., "USD")

        Returns:
            Rate as Decimal, or None if Yahoo has no quote for the pair
        """
        currency = currency.strip().upper()
        if currency == FX_PIVOT_CURRENCY:
            return Decimal("1")
        return await self._execute_with_retry(self._fetch_rate_to_vnd, currency)

    async def _fetch_rate_to_vnd(self, currency: str) -> Decimal | None:
        """Internal method to fetch an FX quote (called by retry wrapper)."""
        symbol = f"{currency}{FX_PIVOT_CURRENCY}=X"
        logger.debug(f"Fetching FX quote {symbol}")

        try:
            yf_ticker = yf.Ticker(symbol)
            df = await asyncio.to_thread(
                yf_ticker.history,
                period=self.FX_LOOKBACK_PERIOD,
                interval="1d",
                timeout=self._timeout,
            )
        except Exception as e:
            raise self._map_error(e, symbol) from e

        if df is None or df.empty:
            logger.warning(f"No FX quote for {symbol}")
            return None

        closes = [self._to_decimal(value) for value in df["Close"].tolist()]
        closes = [value for value in closes if value is not None and value > 0]
        if not closes:
            return None
        return closes[-1]

    # =========================================================================
    # HELPER METHODS
    # =========================================================================

    def _map_error(self, error: Exception, symbol: str) -> Exception:
        """Translate a yfinance/network exception into a service exception."""
        error_str = str(error).lower()

        if "not found" in error_str or "delisted" in error_str:
            return TickerNotFoundError(symbol=symbol, provider=self.name)

        if "rate limit" in error_str or "too many requests" in error_str:
            return RateLimitError(provider=self.name)

        logger.error(f"Yahoo Finance error for {symbol}: {error}")
        return ProviderUnavailableError(provider=self.name, reason=str(error))

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        """Convert a value to Decimal, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return Decimal(str(value)).quantize(Decimal("0.00000001"))
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _to_int(value: Any) -> int | None:
        """Convert a value to int, returning None for NaN/None."""
        if value is None:
            return None
        try:
            if math.isnan(float(value)):
                return None
            return int(value)
        except (TypeError, ValueError):
            return None
