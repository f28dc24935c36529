# backend/fincatch/services/market_data/sjc.py
"""
SJC (Saigon Jewelry Company) gold price provider.

SJC publishes dealer buy/sell quotes for its gold types through a form-POST
endpoint used by its own price chart page:

    POST {base_url}/GoldPrice/Services/PriceService.ashx
    method=GetGoldPriceHistory&fromDate=DD/MM/YYYY&toDate=DD/MM/YYYY&goldPriceId=1

Response body:
    {"success": true, "data": [{"Id": 1, "TypeName": "...", "BranchName": "...",
      "BuyValue": 84500000.0, "SellValue": 86500000.0,
      "BuyDifferValue": 0.0, "SellDifferValue": 500000.0,
      "GroupDate": "/Date(1704067200000)/"}, ...]}

Quirks handled here:
- The endpoint rejects ranges of 90 days or more, so long ranges are split
  into chunks with a short pause between requests.
- Timestamps are .NET JSON dates in milliseconds.
- Chunk boundaries can overlap; points are sorted and de-duplicated.
- Prices are VND per tael.

Known gold types: "1" SJC bars 1L/10L/1KG, "2" jewelry 99.99,
"3" jewelry 99%, "4" jewelry 75%, "5" jewelry 58.3%.
"""

import asyncio
import logging
import re
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from fincatch.services.exceptions import ProviderUnavailableError
from fincatch.services.market_data.base import (
    GoldDataProvider,
    GoldPricePoint,
    GoldPriceRequest,
    PriceHistoryResponse,
)
from fincatch.utils.date_utils import timestamp_to_datetime

logger = logging.getLogger(__name__)

DOTNET_DATE_PATTERN = re.compile(r'/Date\((-?\d+)[^)]*\)/')


class SjcGoldProvider(GoldDataProvider):
    """
    SJC implementation of GoldDataProvider.

    Retries apply per chunk, so one flaky chunk does not refetch the others.

    Example:
        async with httpx.AsyncClient() as client:
            provider = SjcGoldProvider(client=client)
            response = await provider.get_gold_prices(
                GoldPriceRequest("1", from_ts, to_ts, "sjc")
            )
    """

    PRICE_SERVICE_PATH: str = "/GoldPrice/Services/PriceService.ashx"
    MAX_DAYS_PER_REQUEST: int = 90
    CHUNK_DELAY_SECONDS: float = 0.5

    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "*/*",
        "Accept-Language": "vi,en-US;q=0.9,en;q=0.8",
        "Origin": "https://sjc.com.vn",
        "Referer": "https://sjc.com.vn/bieu-do-gia-vang",
        "User-Agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/139.0.0.0 Safari/537.36"
        ),
        "X-Requested-With": "XMLHttpRequest",
    }

    def __init__(
            self,
            base_url: str = "https://sjc.com.vn",
            timeout: float = 30.0,
            client: httpx.AsyncClient | None = None,
            max_retries: int | None = None,
            chunk_delay: float | None = None,
    ) -> None:
        """
        Initialize the SJC provider.

        Args:
            base_url: SJC site root
            timeout: Request timeout in seconds (used when no client is given)
            client: Shared httpx client; if None, one is opened per fetch
            max_retries: Override for MAX_RETRY_ATTEMPTS
            chunk_delay: Override for the pause between chunk requests
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client
        if max_retries is not None:
            self.MAX_RETRY_ATTEMPTS = max_retries
        if chunk_delay is not None:
            self.CHUNK_DELAY_SECONDS = chunk_delay
        logger.info(f"SjcGoldProvider initialized (base_url={self._base_url})")

    @property
    def name(self) -> str:
        return "sjc"

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def get_gold_prices(
            self,
            request: GoldPriceRequest,
    ) -> PriceHistoryResponse:
        """
        Fetch SJC quotes for one gold type, splitting long ranges.

        Raises:
            ProviderUnavailableError: Network error, bad status, bad body,
                or success=false (after retries)
        """
        chunks = self.split_date_range(request.from_ts, request.to_ts)
        logger.info(
            f"SJC request for gold type {request.gold_price_id} split into "
            f"{len(chunks)} chunk(s)"
        )

        if self._client is not None:
            points = await self._fetch_chunks(self._client, request, chunks)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                points = await self._fetch_chunks(client, request, chunks)

        points.sort(key=lambda p: p.timestamp)
        unique: list[GoldPricePoint] = []
        for point in points:
            if unique and unique[-1].timestamp == point.timestamp:
                continue
            unique.append(point)

        logger.info(
            f"SJC request completed: {len(unique)} points for gold type "
            f"{request.gold_price_id}"
        )

        return PriceHistoryResponse(
            symbol=request.gold_price_id,
            source=self.name,
            data=unique,
            metadata={"price_scale": 1, "currency": "VND", "unit": "tael"},
        )

    def split_date_range(self, from_ts: int, to_ts: int) -> list[tuple[int, int]]:
        """
        Split a range into chunks the endpoint accepts.

        Ranges shorter than MAX_DAYS_PER_REQUEST are returned as-is; longer
        ones become consecutive chunks of MAX_DAYS_PER_REQUEST - 1 days, each
        starting the day after the previous chunk ends.
        """
        start = timestamp_to_datetime(from_ts)
        end = timestamp_to_datetime(to_ts)

        if (end - start).days < self.MAX_DAYS_PER_REQUEST:
            return [(from_ts, to_ts)]

        chunks = []
        current = start
        while current < end:
            chunk_end = min(current + timedelta(days=self.MAX_DAYS_PER_REQUEST - 1), end)
            chunks.append((int(current.timestamp()), int(chunk_end.timestamp())))
            if chunk_end >= end:
                break
            current = chunk_end + timedelta(days=1)

        return chunks

    # =========================================================================
    # INTERNALS
    # =========================================================================

    async def _fetch_chunks(
            self,
            client: httpx.AsyncClient,
            request: GoldPriceRequest,
            chunks: list[tuple[int, int]],
    ) -> list[GoldPricePoint]:
        points: list[GoldPricePoint] = []
        for i, (chunk_from, chunk_to) in enumerate(chunks):
            points.extend(await self._execute_with_retry(
                self._fetch_chunk, client, request.gold_price_id, chunk_from, chunk_to
            ))
            if i < len(chunks) - 1 and self.CHUNK_DELAY_SECONDS > 0:
                await asyncio.sleep(self.CHUNK_DELAY_SECONDS)
        return points

    async def _fetch_chunk(
            self,
            client: httpx.AsyncClient,
            gold_price_id: str,
            from_ts: int,
            to_ts: int,
    ) -> list[GoldPricePoint]:
        """Fetch one chunk (called by retry wrapper)."""
        form = {
            "method": "GetGoldPriceHistory",
            "fromDate": self._format_date(from_ts),
            "toDate": self._format_date(to_ts),
            "goldPriceId": gold_price_id,
        }
        logger.debug(f"SJC chunk request: {form}")

        try:
            response = await client.post(
                f"{self._base_url}{self.PRICE_SERVICE_PATH}",
                data=form,
                headers=self.DEFAULT_HEADERS,
            )
        except httpx.TimeoutException as e:
            raise ProviderUnavailableError(self.name, f"request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailableError(self.name, f"request failed: {e}") from e

        if response.status_code != 200:
            raise ProviderUnavailableError(
                self.name,
                f"HTTP {response.status_code}: {response.text[:200]}",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderUnavailableError(
                self.name,
                f"malformed response body: {response.text[:200]}",
            ) from e

        if not isinstance(body, dict) or not body.get("success"):
            raise ProviderUnavailableError(self.name, "API returned success=false")

        return [self._parse_item(item) for item in body.get("data") or []]

    def _parse_item(self, item: dict[str, Any]) -> GoldPricePoint:
        buy_differ = self._to_decimal(item.get("BuyDifferValue"))
        sell_differ = self._to_decimal(item.get("SellDifferValue"))
        return GoldPricePoint(
            timestamp=self.parse_dotnet_date(item.get("GroupDate", "")),
            type_name=item.get("TypeName", ""),
            branch_name=item.get("BranchName"),
            buy=self._to_decimal(item.get("BuyValue")) or Decimal("0"),
            sell=self._to_decimal(item.get("SellValue")) or Decimal("0"),
            buy_differ=buy_differ or None,
            sell_differ=sell_differ or None,
        )

    @staticmethod
    def parse_dotnet_date(value: str) -> int:
        """Parse "/Date(1704067200000)/" to unix seconds (0 if malformed)."""
        match = DOTNET_DATE_PATTERN.search(value or "")
        if not match:
            return 0
        return int(match.group(1)) // 1000

    @staticmethod
    def _format_date(timestamp: int) -> str:
        return timestamp_to_datetime(timestamp).strftime("%d/%m/%Y")

    @staticmethod
    def _to_decimal(value: Any) -> Decimal | None:
        if value is None:
            return None
        try:
            return Decimal(str(value))
        except InvalidOperation:
            return None
