# backend/tests/services/test_calculators.py
"""
Tests for point-in-time calculators.

This module tests:
- EntryValuator: stock, gold, bond valuation in a display currency
- PortfolioAggregator: totals and derived percentages
- gain_loss_percentage: zero-cost guard
"""

from decimal import Decimal

import pytest

from fincatch.services.exceptions import TickerNotFoundError
from fincatch.services.valuation.calculators import (
    EntryValuator,
    PortfolioAggregator,
    gain_loss_percentage,
)
from fincatch.services.valuation.price_resolver import PriceResolver
from fincatch.services.valuation.types import EntryPerformance
from tests.conftest import DAY, NOW, make_bond, make_gold, make_stock


@pytest.fixture
def valuator(market_data, converter, coupon_source, clock) -> EntryValuator:
    return EntryValuator(
        PriceResolver(market_data, clock=clock),
        converter,
        coupon_source,
    )


def _performance(entry_id="e1", value="100", cost="80", currency="USD") -> EntryPerformance:
    value, cost = Decimal(value), Decimal(cost)
    return EntryPerformance(
        entry=make_stock(entry_id=entry_id),
        current_price=value,
        purchase_price=cost,
        current_value=value,
        total_cost=cost,
        gain_loss=value - cost,
        gain_loss_percentage=gain_loss_percentage(value - cost, cost),
        currency=currency,
        exchange_rate=Decimal("1"),
        price_source="yahoo_finance",
    )


# =============================================================================
# GAIN/LOSS PERCENTAGE
# =============================================================================

class TestGainLossPercentage:
    """Tests for gain_loss_percentage."""

    def test_regular(self):
        assert gain_loss_percentage(Decimal("500"), Decimal("1000")) == Decimal("50.0000")

    def test_rounded_to_four_places(self):
        assert gain_loss_percentage(Decimal("1"), Decimal("3")) == Decimal("33.3333")

    @pytest.mark.parametrize("cost", ["0", "-5"])
    def test_no_positive_cost_is_zero(self, cost):
        assert gain_loss_percentage(Decimal("10"), Decimal(cost)) == Decimal("0")


# =============================================================================
# ENTRY VALUATOR - STOCK
# =============================================================================

class TestStockValuation:
    """Tests for stock entries."""

    @pytest.mark.asyncio
    async def test_same_currency(self, valuator, market_data, converter):
        """10 shares bought at 100 USD, now 150 USD."""
        market_data.add_stock("AAPL", [(NOW - 3600, "150")])

        result = await valuator.valuate(make_stock(), "USD")

        assert result.current_price == Decimal("150")
        assert result.purchase_price == Decimal("100")
        assert result.current_value == Decimal("1500")
        assert result.total_cost == Decimal("1000")
        assert result.gain_loss == Decimal("500")
        assert result.gain_loss_percentage == Decimal("50")
        assert result.exchange_rate == Decimal("1")
        assert result.currency == "USD"
        assert result.price_source == "yahoo_finance"
        assert result.warnings == []
        assert converter.calls == []

    @pytest.mark.asyncio
    async def test_fractional_holding_keeps_precision(self, valuator, market_data):
        """0.004 shares bought at 1 USD, now 1.5 USD."""
        market_data.add_stock("AAPL", [(NOW - 3600, "1.5")])

        result = await valuator.valuate(
            make_stock(quantity="0.004", purchase_price="1"), "USD"
        )

        assert result.current_value == Decimal("0.006")
        assert result.total_cost == Decimal("0.004")
        assert result.gain_loss == Decimal("0.002")
        assert result.gain_loss_percentage == Decimal("50")

    @pytest.mark.asyncio
    async def test_converted_to_display_currency(self, valuator, market_data):
        """1 EUR = 1.25 USD, so 150 USD = 120 EUR."""
        market_data.add_stock("AAPL", [(NOW - 3600, "150")])

        result = await valuator.valuate(make_stock(), "eur")

        assert result.currency == "EUR"
        assert result.current_price == Decimal("120")
        assert result.purchase_price == Decimal("80")
        assert result.current_value == Decimal("1200")
        assert result.total_cost == Decimal("800")
        assert result.exchange_rate == Decimal("0.8")

    @pytest.mark.asyncio
    async def test_fees_added_to_cost(self, valuator, market_data):
        market_data.add_stock("AAPL", [(NOW - 3600, "150")])

        result = await valuator.valuate(make_stock(transaction_fees=Decimal("10")), "USD")

        assert result.total_cost == Decimal("1010")
        assert result.gain_loss == Decimal("490")

    @pytest.mark.asyncio
    async def test_missing_price_keeps_entry_with_warning(self, valuator):
        result = await valuator.valuate(make_stock(), "EUR")

        assert result.current_price == Decimal("0")
        assert result.current_value == Decimal("0")
        assert result.exchange_rate == Decimal("1")
        assert result.gain_loss == -result.total_cost
        assert len(result.warnings) == 1

    @pytest.mark.asyncio
    async def test_zero_cost_percentage(self, valuator, market_data):
        market_data.add_stock("AAPL", [(NOW - 3600, "150")])

        result = await valuator.valuate(make_stock(purchase_price="0"), "USD")

        assert result.total_cost == Decimal("0")
        assert result.gain_loss_percentage == Decimal("0")

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, valuator, market_data):
        market_data.fail("AAPL", TickerNotFoundError("AAPL", "yahoo_finance"))

        with pytest.raises(TickerNotFoundError):
            await valuator.valuate(make_stock(), "USD")


# =============================================================================
# ENTRY VALUATOR - GOLD
# =============================================================================

class TestGoldValuation:
    """Tests for gold entries."""

    @pytest.mark.asyncio
    async def test_mace_entry_valued_in_taels(self, valuator, market_data):
        """
        5 mace bought at 2,000,000 VND/mace = 0.5 tael at 20,000,000 VND/tael.
        SJC sells at 21,000,000 VND/tael.
        """
        market_data.add_gold("1", [(NOW - 60, "21000000")])

        result = await valuator.valuate(make_gold(), "VND")

        assert result.purchase_price == Decimal("20000000")
        assert result.current_price == Decimal("21000000")
        assert result.current_value == Decimal("10500000")
        assert result.total_cost == Decimal("10000000")
        assert result.gain_loss == Decimal("500000")
        assert result.gain_loss_percentage == Decimal("5")
        assert result.price_source == "sjc"

    @pytest.mark.asyncio
    async def test_vnd_quote_converted(self, valuator, market_data):
        """1 USD = 25,000 VND."""
        market_data.add_gold("1", [(NOW - 60, "21000000")])

        result = await valuator.valuate(make_gold(), "USD")

        assert result.current_price == Decimal("840")
        assert result.purchase_price == Decimal("800")
        assert result.current_value == Decimal("420")
        assert result.exchange_rate == Decimal("0.00004")

    @pytest.mark.asyncio
    async def test_unsupported_source_skipped(self, valuator):
        assert await valuator.valuate(make_gold(source="pnj"), "VND") is None


# =============================================================================
# ENTRY VALUATOR - BOND
# =============================================================================

class TestBondValuation:
    """Tests for bond entries and coupon income."""

    @pytest.mark.asyncio
    async def test_coupons_added_to_gain_only(self, valuator, coupon_source):
        entry = make_bond(face_value=Decimal("1000"), purchase_price="980")
        coupon_source.add(entry.id, "25")
        coupon_source.add(entry.id, "25")

        result = await valuator.valuate(entry, "USD")

        assert result.price_source == "face_value"
        assert result.current_value == Decimal("2000")
        assert result.total_cost == Decimal("1960")
        assert result.coupon_income == Decimal("50")
        assert result.gain_loss == Decimal("90")

    @pytest.mark.asyncio
    async def test_coupons_converted(self, valuator, coupon_source):
        entry = make_bond(face_value=Decimal("1000"))
        coupon_source.add(entry.id, "250000", currency="VND")

        result = await valuator.valuate(entry, "USD")

        assert result.coupon_income == Decimal("10")

    @pytest.mark.asyncio
    async def test_coupon_failure_is_warning(self, valuator, coupon_source):
        coupon_source.error = RuntimeError("coupon store offline")

        result = await valuator.valuate(make_bond(face_value=Decimal("1000")), "USD")

        assert result is not None
        assert result.coupon_income == Decimal("0")
        assert any("coupon store offline" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_without_coupon_source(self, market_data, converter, clock):
        valuator = EntryValuator(PriceResolver(market_data, clock=clock), converter)

        result = await valuator.valuate(make_bond(face_value=Decimal("1000")), "USD")

        assert result.coupon_income == Decimal("0")

    @pytest.mark.asyncio
    async def test_calculated_bond(self, valuator):
        entry = make_bond(
            quantity="1",
            purchase_price="1000",
            face_value=Decimal("1000"),
            coupon_rate=Decimal("5"),
            ytm=Decimal("5"),
            maturity_date=NOW + 730 * DAY,
            coupon_frequency="annual",
        )

        result = await valuator.valuate(entry, "USD")

        assert result.price_source == "calculated"
        assert result.current_value.quantize(Decimal("0.01")) == Decimal("997.84")


# =============================================================================
# PORTFOLIO AGGREGATOR
# =============================================================================

class TestPortfolioAggregator:
    """Tests for PortfolioAggregator."""

    def test_empty_is_none(self):
        assert PortfolioAggregator().aggregate([], "USD") is None

    def test_sums_and_derives_percentage(self):
        result = PortfolioAggregator().aggregate(
            [_performance("a", "1500", "1000"), _performance("b", "500", "1000")],
            "usd",
        )

        assert result.total_value == Decimal("2000")
        assert result.total_cost == Decimal("2000")
        assert result.total_gain_loss == Decimal("0")
        assert result.total_gain_loss_percentage == Decimal("0")
        assert result.currency == "USD"
        assert [ep.entry.id for ep in result.entries_performance] == ["a", "b"]

    def test_percentage_not_summed(self):
        """+50% on 1000 and +100% on 100 is +54.5455% overall."""
        result = PortfolioAggregator().aggregate(
            [_performance("a", "1500", "1000"), _performance("b", "200", "100")],
            "USD",
        )

        assert result.total_gain_loss == Decimal("600")
        assert result.total_gain_loss_percentage == Decimal("54.5455")

    def test_totals_rounded_after_summing(self):
        result = PortfolioAggregator().aggregate(
            [_performance("a", "0.006", "0.004"), _performance("b", "0.006", "0.004")],
            "USD",
        )

        assert str(result.total_value) == "0.01"
        assert str(result.total_cost) == "0.01"
        assert str(result.total_gain_loss) == "0.00"
        assert result.total_gain_loss_percentage == Decimal("50")

    def test_zero_total_cost(self):
        result = PortfolioAggregator().aggregate([_performance("a", "100", "0")], "USD")

        assert result.total_gain_loss_percentage == Decimal("0")

    def test_non_finite_entry_excluded(self):
        broken = _performance("bad", "100", "80")
        broken.current_value = Decimal("NaN")

        result = PortfolioAggregator().aggregate(
            [_performance("a", "100", "80"), broken],
            "USD",
        )

        assert result.total_value == Decimal("100")
        assert [ep.entry.id for ep in result.entries_performance] == ["a"]

    def test_all_non_finite_is_none(self):
        broken = _performance("bad")
        broken.total_cost = Decimal("Infinity")

        assert PortfolioAggregator().aggregate([broken], "USD") is None

    def test_warnings_prefixed_with_symbol(self):
        performance = _performance("a")
        performance.warnings.append("No recent price data")

        result = PortfolioAggregator().aggregate([performance], "USD")

        assert result.warnings == ["AAPL: No recent price data"]
