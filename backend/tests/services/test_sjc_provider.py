# backend/tests/services/test_sjc_provider.py
"""
Tests for the SjcGoldProvider.

This module tests:
- .NET JSON date parsing
- Splitting of long ranges into accepted chunks
- Form request and response parsing
- Error handling and retries

Note: HTTP traffic goes through httpx.MockTransport, no network access.
"""

import json
from decimal import Decimal
from urllib.parse import parse_qs

import httpx
import pytest

from fincatch.services.exceptions import ProviderUnavailableError
from fincatch.services.market_data.base import GoldPriceRequest
from fincatch.services.market_data.sjc import SjcGoldProvider
from tests.conftest import DAY, WEDNESDAY

# 2024-01-01 00:00 UTC
JAN_1 = 1704067200


def _item(ts: int, sell: float, buy: float = 84500000.0, sell_differ: float = 0.0) -> dict:
    return {
        "Id": 1,
        "TypeName": "Vàng SJC 1L, 10L, 1KG",
        "BranchName": "Hồ Chí Minh",
        "BuyValue": buy,
        "SellValue": sell,
        "BuyDifferValue": 0.0,
        "SellDifferValue": sell_differ,
        "GroupDate": f"/Date({ts * 1000})/",
    }


class SjcStub:
    """Request handler for httpx.MockTransport that replays canned bodies."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.forms: list[dict[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        self.forms.append({key: values[0] for key, values in form.items()})
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


def _json(body, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(body).encode())


def _provider(handler) -> SjcGoldProvider:
    provider = SjcGoldProvider(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        max_retries=2,
        chunk_delay=0,
    )
    provider.RETRY_MIN_WAIT = 0
    provider.RETRY_MAX_WAIT = 0
    return provider


# =============================================================================
# PARSING HELPERS
# =============================================================================

class TestDotnetDate:
    """Tests for parse_dotnet_date."""

    @pytest.mark.parametrize("value,expected", [
        ("/Date(1704067200000)/", JAN_1),
        ("/Date(1704067200000+0700)/", JAN_1),
        ("/Date(-86400000)/", -86400),
        ("", 0),
        ("2024-01-01", 0),
        (None, 0),
    ])
    def test_parse(self, value, expected):
        assert SjcGoldProvider.parse_dotnet_date(value) == expected


class TestSplitDateRange:
    """Tests for split_date_range."""

    def test_short_range_single_chunk(self):
        provider = SjcGoldProvider()

        assert provider.split_date_range(JAN_1, JAN_1 + 89 * DAY) == [(JAN_1, JAN_1 + 89 * DAY)]

    def test_long_range_chunked(self):
        provider = SjcGoldProvider()

        chunks = provider.split_date_range(JAN_1, JAN_1 + 200 * DAY)

        assert chunks == [
            (JAN_1, JAN_1 + 89 * DAY),
            (JAN_1 + 90 * DAY, JAN_1 + 179 * DAY),
            (JAN_1 + 180 * DAY, JAN_1 + 200 * DAY),
        ]


# =============================================================================
# FETCHING
# =============================================================================

class TestGetGoldPrices:
    """Tests for get_gold_prices."""

    @pytest.mark.asyncio
    async def test_form_and_parsing(self):
        stub = SjcStub(_json({
            "success": True,
            "data": [
                _item(WEDNESDAY, 86500000.0, sell_differ=500000.0),
                _item(WEDNESDAY - DAY, 86000000.0),
            ],
        }))
        provider = _provider(stub)

        response = await provider.get_gold_prices(
            GoldPriceRequest("1", WEDNESDAY - DAY, WEDNESDAY, "sjc")
        )

        assert stub.forms == [{
            "method": "GetGoldPriceHistory",
            "fromDate": "11/06/2024",
            "toDate": "12/06/2024",
            "goldPriceId": "1",
        }]
        assert response.source == "sjc"
        assert response.symbol == "1"
        assert response.metadata["currency"] == "VND"
        assert [p.timestamp for p in response.data] == [WEDNESDAY - DAY, WEDNESDAY]

        latest = response.latest
        assert latest.sell == Decimal("86500000")
        assert latest.buy == Decimal("84500000")
        assert latest.sell_differ == Decimal("500000")
        assert latest.buy_differ is None
        assert latest.branch_name == "Hồ Chí Minh"

    @pytest.mark.asyncio
    async def test_chunks_merged_and_deduplicated(self):
        stub = SjcStub(
            _json({"success": True, "data": [_item(JAN_1, 1.0), _item(JAN_1 + 89 * DAY, 2.0)]}),
            _json({"success": True, "data": [_item(JAN_1 + 89 * DAY, 2.0), _item(JAN_1 + 100 * DAY, 3.0)]}),
        )
        provider = _provider(stub)

        response = await provider.get_gold_prices(
            GoldPriceRequest("1", JAN_1, JAN_1 + 100 * DAY, "sjc")
        )

        assert len(stub.forms) == 2
        assert [p.timestamp for p in response.data] == [
            JAN_1, JAN_1 + 89 * DAY, JAN_1 + 100 * DAY,
        ]

    @pytest.mark.asyncio
    async def test_empty_data(self):
        provider = _provider(SjcStub(_json({"success": True, "data": None})))

        response = await provider.get_gold_prices(GoldPriceRequest("2", JAN_1, JAN_1 + DAY))

        assert response.is_ok
        assert response.data == []


# =============================================================================
# ERROR HANDLING
# =============================================================================

class TestErrorHandling:
    """Tests for failures and retries."""

    REQUEST = GoldPriceRequest("1", JAN_1, JAN_1 + DAY, "sjc")

    @pytest.mark.asyncio
    async def test_http_error_retried_then_raised(self):
        stub = SjcStub(httpx.Response(503, text="Service Unavailable"))

        with pytest.raises(ProviderUnavailableError, match="HTTP 503"):
            await _provider(stub).get_gold_prices(self.REQUEST)

        assert len(stub.forms) == 2

    @pytest.mark.asyncio
    async def test_transient_error_recovers(self):
        stub = SjcStub(
            httpx.Response(502, text="Bad Gateway"),
            _json({"success": True, "data": [_item(JAN_1, 86500000.0)]}),
        )

        response = await _provider(stub).get_gold_prices(self.REQUEST)

        assert len(response.data) == 1

    @pytest.mark.asyncio
    async def test_success_false(self):
        stub = SjcStub(_json({"success": False, "data": []}))

        with pytest.raises(ProviderUnavailableError, match="success=false"):
            await _provider(stub).get_gold_prices(self.REQUEST)

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        stub = SjcStub(httpx.Response(200, text="<html>maintenance</html>"))

        with pytest.raises(ProviderUnavailableError, match="malformed"):
            await _provider(stub).get_gold_prices(self.REQUEST)

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderUnavailableError, match="request failed"):
            await _provider(handler).get_gold_prices(self.REQUEST)
