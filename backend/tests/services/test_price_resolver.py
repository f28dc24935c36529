# backend/tests/services/test_price_resolver.py
"""
Tests for PriceResolver.

This module tests:
- Stock current price window and trading-day snap
- Price scale correction
- Gold source restriction and VND quoting
- Bond fallback chain (calculated -> manual -> face value -> purchase price)
- Point-in-time lookups for history charts
"""

from decimal import Decimal

import pytest

from fincatch.models import PriceSource
from fincatch.services.concurrency import CalculationContext, CancellationToken
from fincatch.services.exceptions import OperationCancelledError, TickerNotFoundError
from fincatch.services.valuation.price_resolver import PriceResolver
from tests.conftest import DAY, NOW, WEDNESDAY, make_bond, make_gold, make_stock


@pytest.fixture
def resolver(market_data, clock) -> PriceResolver:
    return PriceResolver(market_data, clock=clock)


# =============================================================================
# STOCK
# =============================================================================

class TestStockCurrentPrice:
    """Tests for current stock prices."""

    @pytest.mark.asyncio
    async def test_latest_close(self, resolver, market_data):
        market_data.add_stock("AAPL", [(NOW - DAY, "140"), (NOW - 3600, "150")])

        resolved = await resolver.resolve_current_price(make_stock())

        assert resolved.price == Decimal("150")
        assert resolved.currency == "USD"
        assert resolved.source == "yahoo_finance"
        assert resolved.warning is None

    @pytest.mark.asyncio
    async def test_request_window(self, resolver, market_data):
        """One day and one second ending at the trading timestamp."""
        await resolver.resolve_current_price(make_stock())

        request = market_data.stock_requests[0]
        assert request.to_ts == NOW
        assert request.from_ts == NOW - DAY - 1
        assert request.resolution == "1D"
        assert request.source == "yahoo_finance"

    @pytest.mark.asyncio
    async def test_weekend_snaps_to_saturday(self, market_data):
        sunday = WEDNESDAY + 4 * DAY + 10 * 3600
        saturday_0200 = WEDNESDAY + 3 * DAY + 2 * 3600
        resolver = PriceResolver(market_data, clock=lambda: sunday)

        await resolver.resolve_current_price(make_stock())

        assert market_data.stock_requests[0].to_ts == saturday_0200

    @pytest.mark.asyncio
    async def test_price_scale_applied(self, resolver, market_data):
        market_data.add_stock("VNM", [(NOW - 3600, "25.3")], price_scale=1000)

        resolved = await resolver.resolve_current_price(
            make_stock(symbol="VNM", currency="VND", source="vndirect")
        )

        assert resolved.price == Decimal("25300")
        assert resolved.currency == "VND"

    @pytest.mark.asyncio
    async def test_no_data_is_zero_with_warning(self, resolver):
        resolved = await resolver.resolve_current_price(make_stock())

        assert resolved.price == Decimal("0")
        assert resolved.is_available is False
        assert "No recent price data for AAPL" in resolved.warning

    @pytest.mark.asyncio
    async def test_missing_source_tagged_unknown(self, resolver, market_data):
        market_data.add_stock("AAPL", [(NOW - 3600, "150")])

        resolved = await resolver.resolve_current_price(make_stock(source=None))

        assert resolved.source == PriceSource.UNKNOWN.value

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, resolver, market_data):
        market_data.fail("AAPL", TickerNotFoundError("AAPL", "yahoo_finance"))

        with pytest.raises(TickerNotFoundError):
            await resolver.resolve_current_price(make_stock())

    @pytest.mark.asyncio
    async def test_cancelled_context(self, resolver, market_data):
        token = CancellationToken()
        token.cancel("display currency changed")
        context = CalculationContext.create(token)

        with pytest.raises(OperationCancelledError):
            await resolver.resolve_current_price(make_stock(), context)
        assert market_data.stock_requests == []


# =============================================================================
# GOLD
# =============================================================================

class TestGoldCurrentPrice:
    """Tests for current gold prices."""

    @pytest.mark.asyncio
    async def test_sjc_sell_price_in_vnd(self, resolver, market_data):
        market_data.add_gold("1", [(NOW - 7200, "20500000"), (NOW - 60, "21000000")])

        resolved = await resolver.resolve_current_price(make_gold())

        assert resolved.price == Decimal("21000000")
        assert resolved.currency == "VND"
        assert resolved.source == "sjc"

        request = market_data.gold_requests[0]
        assert request.from_ts == NOW - DAY
        assert request.to_ts == NOW
        assert request.gold_price_id == "1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", [None, "pnj", "doji"])
    async def test_unsupported_source_not_priced(self, resolver, market_data, source):
        resolved = await resolver.resolve_current_price(make_gold(source=source))

        assert resolved is None
        assert market_data.gold_requests == []

    @pytest.mark.asyncio
    async def test_no_data_is_zero_with_warning(self, resolver):
        resolved = await resolver.resolve_current_price(make_gold())

        assert resolved.price == Decimal("0")
        assert resolved.currency == "VND"
        assert resolved.warning is not None


# =============================================================================
# BOND
# =============================================================================

class TestBondFallbackChain:
    """Tests for bond price resolution."""

    PRICING_FIELDS = {
        "face_value": Decimal("1000"),
        "coupon_rate": Decimal("5"),
        "ytm": Decimal("5"),
        "maturity_date": NOW + 730 * DAY,
        "coupon_frequency": "annual",
    }

    @pytest.mark.asyncio
    async def test_calculated_when_all_inputs_present(self, resolver, market_data):
        resolved = await resolver.resolve_current_price(make_bond(**self.PRICING_FIELDS))

        assert resolved.source == PriceSource.CALCULATED.value
        assert Decimal("990") < resolved.price < Decimal("1000")
        assert market_data.stock_requests == []

    def test_manual_price(self, resolver):
        entry = make_bond(current_market_price=Decimal("1012.5"), face_value=Decimal("1000"))

        resolved = resolver.resolve_bond_price(entry)

        assert resolved.price == Decimal("1012.5")
        assert resolved.source == PriceSource.MANUAL.value

    def test_zero_manual_price_ignored(self, resolver):
        entry = make_bond(current_market_price=Decimal("0"), face_value=Decimal("1000"))

        resolved = resolver.resolve_bond_price(entry)

        assert resolved.price == Decimal("1000")
        assert resolved.source == PriceSource.FACE_VALUE.value

    def test_purchase_price_last_resort(self, resolver):
        """Purchase price fallback shares the face_value tag."""
        resolved = resolver.resolve_bond_price(make_bond(purchase_price="980"))

        assert resolved.price == Decimal("980")
        assert resolved.source == PriceSource.FACE_VALUE.value
        assert resolved.source in {"calculated", "manual", "face_value"}
        assert resolved.currency == "USD"

    def test_matured_bond_priced_at_face(self, resolver):
        fields = {**self.PRICING_FIELDS, "maturity_date": NOW - DAY}

        resolved = resolver.resolve_bond_price(make_bond(**fields))

        assert resolved.price == Decimal("1000")
        assert resolved.source == PriceSource.CALCULATED.value

    def test_degenerate_yield_falls_back_with_warning(self, resolver):
        fields = {**self.PRICING_FIELDS, "ytm": Decimal("-100")}
        entry = make_bond(current_market_price=Decimal("995"), **fields)

        resolved = resolver.resolve_bond_price(entry)

        assert resolved.price == Decimal("995")
        assert resolved.source == PriceSource.MANUAL.value
        assert "present value undefined" in resolved.warning


# =============================================================================
# PRICE AT A TIMESTAMP
# =============================================================================

class TestPriceAt:
    """Tests for resolve_price_at."""

    @pytest.mark.asyncio
    async def test_stock_window_ends_at_timestamp(self, resolver, market_data):
        ts = NOW - 5 * DAY
        market_data.add_stock("AAPL", [(ts - DAY, "120"), (ts, "125"), (ts + DAY, "130")])

        resolved = await resolver.resolve_price_at(make_stock(), ts)

        assert resolved.price == Decimal("125")
        request = market_data.stock_requests[0]
        assert (request.from_ts, request.to_ts) == (ts - DAY, ts)

    @pytest.mark.asyncio
    async def test_stock_no_data_is_none(self, resolver):
        assert await resolver.resolve_price_at(make_stock(), NOW - 5 * DAY) is None

    @pytest.mark.asyncio
    async def test_gold(self, resolver, market_data):
        ts = NOW - 5 * DAY
        market_data.add_gold("1", [(ts - 3600, "20000000")])

        resolved = await resolver.resolve_price_at(make_gold(), ts)

        assert resolved.price == Decimal("20000000")
        assert resolved.currency == "VND"

    @pytest.mark.asyncio
    async def test_unsupported_gold_source(self, resolver):
        assert await resolver.resolve_price_at(make_gold(source="pnj"), NOW) is None

    @pytest.mark.asyncio
    async def test_bond_not_supported(self, resolver):
        assert await resolver.resolve_price_at(make_bond(), NOW) is None
