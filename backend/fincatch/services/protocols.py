# backend/fincatch/services/protocols.py
"""
Protocol interfaces for service dependency injection.

Using typing.Protocol enables structural subtyping:
- Existing classes satisfy protocols without modification
- Test fakes work without explicit inheritance
- Clear documentation of required interfaces

These are the collaborators the valuation engine consumes but does not own:
market data, currency conversion, and coupon payment storage.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, TYPE_CHECKING

if TYPE_CHECKING:
    from fincatch.models import CouponPayment
    from fincatch.services.market_data.base import (
        GoldPriceRequest,
        PriceHistoryResponse,
        StockHistoryRequest,
    )


class MarketDataSource(Protocol):
    """Interface required by PriceResolver and the benchmark calculator."""

    async def fetch_stock_history(
        self,
        request: StockHistoryRequest,
    ) -> PriceHistoryResponse:
        ...

    async def fetch_gold_price(
        self,
        request: GoldPriceRequest,
    ) -> PriceHistoryResponse:
        ...


class CurrencyConverter(Protocol):
    """Interface required by EntryValuator and HistoricalNormalizer."""

    async def convert_currency(
        self,
        amount: Decimal,
        from_currency: str,
        to_currency: str,
    ) -> Decimal:
        ...


class CouponPaymentSource(Protocol):
    """Interface required by EntryValuator for bond income."""

    async def list_coupon_payments(self, entry_id: str) -> list[CouponPayment]:
        ...


class FXQuoteProvider(Protocol):
    """Interface required by FXRateService: one currency quoted in VND."""

    @property
    def name(self) -> str:
        ...

    async def get_rate_to_vnd(self, currency: str) -> Decimal | None:
        ...
