# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- In-memory fake collaborators (market data, currency converter, coupons)
- Sample entry factories
- A fixed "now" (Wednesday 2024-06-12 12:00 UTC)
"""

from decimal import Decimal
from typing import Any, Callable

import pytest

from fincatch.config import Settings
from fincatch.models import BondEntry, CouponPayment, GoldEntry, StockEntry
from fincatch.services.market_data.base import (
    Candle,
    GoldPricePoint,
    GoldPriceRequest,
    PriceHistoryResponse,
    StockHistoryRequest,
)

DAY = 86400

# Wednesday 2024-06-12 00:00 UTC
WEDNESDAY = 1718150400
NOW = WEDNESDAY + 12 * 3600

# Saturday 2024-06-01 00:00 UTC, start of the sample price series
SERIES_START = WEDNESDAY - 11 * DAY


# =============================================================================
# FAKE MARKET DATA
# =============================================================================

class FakeMarketData:
    """
    In-memory MarketDataSource.

    Prices are registered per symbol as (timestamp, price) pairs; a request
    returns every point inside [from_ts, to_ts]. Requests are recorded for
    assertions, and failures can be injected per symbol or per window end.
    """

    def __init__(self):
        self.stock_prices: dict[str, list[tuple[int, Decimal]]] = {}
        self.gold_prices: dict[str, list[tuple[int, Decimal]]] = {}
        self.price_scales: dict[str, Any] = {}
        self.errors: dict[str, Exception] = {}
        self.window_errors: dict[tuple[str, int], Exception] = {}
        self.stock_requests: list[StockHistoryRequest] = []
        self.gold_requests: list[GoldPriceRequest] = []

    def add_stock(self, symbol: str, points: list[tuple[int, Any]], price_scale: Any = None):
        self.stock_prices[symbol] = [(ts, Decimal(str(p))) for ts, p in points]
        if price_scale is not None:
            self.price_scales[symbol] = price_scale

    def add_gold(self, gold_id: str, points: list[tuple[int, Any]]):
        self.gold_prices[gold_id] = [(ts, Decimal(str(p))) for ts, p in points]

    def fail(self, symbol: str, error: Exception):
        self.errors[symbol] = error

    def fail_window(self, symbol: str, to_ts: int, error: Exception):
        self.window_errors[(symbol, to_ts)] = error

    def _check_errors(self, symbol: str, to_ts: int):
        if symbol in self.errors:
            raise self.errors[symbol]
        if (symbol, to_ts) in self.window_errors:
            raise self.window_errors[(symbol, to_ts)]

    def _metadata(self, symbol: str) -> dict:
        if symbol in self.price_scales:
            return {"price_scale": self.price_scales[symbol]}
        return {}

    async def fetch_stock_history(self, request: StockHistoryRequest) -> PriceHistoryResponse:
        self.stock_requests.append(request)
        self._check_errors(request.symbol, request.to_ts)
        candles = [
            Candle(timestamp=ts, open=price, high=price, low=price, close=price)
            for ts, price in self.stock_prices.get(request.symbol, [])
            if request.from_ts <= ts <= request.to_ts
        ]
        return PriceHistoryResponse(
            symbol=request.symbol,
            source=request.source or "yahoo_finance",
            data=candles,
            metadata=self._metadata(request.symbol),
        )

    async def fetch_gold_price(self, request: GoldPriceRequest) -> PriceHistoryResponse:
        self.gold_requests.append(request)
        self._check_errors(request.gold_price_id, request.to_ts)
        points = [
            GoldPricePoint(
                timestamp=ts,
                type_name="SJC 1L",
                buy=price - Decimal("2000000"),
                sell=price,
            )
            for ts, price in self.gold_prices.get(request.gold_price_id, [])
            if request.from_ts <= ts <= request.to_ts
        ]
        return PriceHistoryResponse(
            symbol=request.gold_price_id,
            source=request.source or "sjc",
            data=points,
            metadata=self._metadata(request.gold_price_id),
        )


# =============================================================================
# FAKE CURRENCY CONVERTER
# =============================================================================

class FakeCurrencyConverter:
    """
    CurrencyConverter with fixed rates expressed in USD.

    convert(amount, X, Y) = amount × usd[X] / usd[Y]
    """

    def __init__(self, usd_rates: dict[str, Decimal] | None = None):
        self.usd_rates = usd_rates or {
            "USD": Decimal("1"),
            "EUR": Decimal("1.25"),
            "VND": Decimal("0.00004"),
        }
        self.calls: list[tuple[Decimal, str, str]] = []
        self.failing: set[str] = set()

    async def convert_currency(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal:
        self.calls.append((amount, from_currency, to_currency))
        if from_currency in self.failing or to_currency in self.failing:
            raise RuntimeError(f"no rate for {from_currency}/{to_currency}")
        if from_currency == to_currency:
            return amount
        return amount * self.usd_rates[from_currency] / self.usd_rates[to_currency]


# =============================================================================
# FAKE COUPON SOURCE
# =============================================================================

class FakeCouponSource:
    """CouponPaymentSource backed by a dict of entry id -> payments."""

    def __init__(self):
        self.payments: dict[str, list[CouponPayment]] = {}
        self.error: Exception | None = None

    def add(self, entry_id: str, amount: Any, currency: str = "USD", payment_date: int = NOW - 30 * DAY):
        self.payments.setdefault(entry_id, []).append(
            CouponPayment(
                entry_id=entry_id,
                amount=Decimal(str(amount)),
                currency=currency,
                payment_date=payment_date,
            )
        )

    async def list_coupon_payments(self, entry_id: str) -> list[CouponPayment]:
        if self.error is not None:
            raise self.error
        return self.payments.get(entry_id, [])


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================

@pytest.fixture
def market_data() -> FakeMarketData:
    """Empty fake market data source."""
    return FakeMarketData()


@pytest.fixture
def converter() -> FakeCurrencyConverter:
    """Fake converter: 1 EUR = 1.25 USD, 1 USD = 25,000 VND."""
    return FakeCurrencyConverter()


@pytest.fixture
def coupon_source() -> FakeCouponSource:
    """Fake coupon store without payments."""
    return FakeCouponSource()


@pytest.fixture
def clock() -> Callable[[], int]:
    """Clock frozen at NOW."""
    return lambda: NOW


@pytest.fixture
def test_settings() -> Settings:
    """Settings with caching off and a small concurrency cap."""
    return Settings(
        cache_enabled=False,
        max_concurrent_requests=4,
    )


# =============================================================================
# ENTRY FACTORIES
# =============================================================================

def make_stock(
        entry_id: str = "stock-1",
        symbol: str = "AAPL",
        quantity: Any = "10",
        purchase_price: Any = "100",
        purchase_date: int = SERIES_START,
        currency: str = "USD",
        source: str | None = "yahoo_finance",
        **kwargs,
) -> StockEntry:
    return StockEntry(
        id=entry_id,
        portfolio_id="portfolio-1",
        symbol=symbol,
        quantity=Decimal(str(quantity)),
        purchase_price=Decimal(str(purchase_price)),
        purchase_date=purchase_date,
        currency=currency,
        source=source,
        **kwargs,
    )


def make_gold(
        entry_id: str = "gold-1",
        symbol: str = "1",
        quantity: Any = "5",
        purchase_price: Any = "2000000",
        unit: str = "mace",
        purchase_date: int = SERIES_START,
        source: str | None = "sjc",
        **kwargs,
) -> GoldEntry:
    return GoldEntry(
        id=entry_id,
        portfolio_id="portfolio-1",
        symbol=symbol,
        quantity=Decimal(str(quantity)),
        purchase_price=Decimal(str(purchase_price)),
        purchase_date=purchase_date,
        currency="VND",
        unit=unit,
        source=source,
        **kwargs,
    )


def make_bond(
        entry_id: str = "bond-1",
        symbol: str = "US912828XG55",
        quantity: Any = "2",
        purchase_price: Any = "980",
        purchase_date: int = SERIES_START,
        **kwargs,
) -> BondEntry:
    return BondEntry(
        id=entry_id,
        portfolio_id="portfolio-1",
        symbol=symbol,
        quantity=Decimal(str(quantity)),
        purchase_price=Decimal(str(purchase_price)),
        purchase_date=purchase_date,
        currency="USD",
        **kwargs,
    )


@pytest.fixture
def stock_factory() -> Callable[..., StockEntry]:
    return make_stock


@pytest.fixture
def gold_factory() -> Callable[..., GoldEntry]:
    return make_gold


@pytest.fixture
def bond_factory() -> Callable[..., BondEntry]:
    return make_bond
