# backend/fincatch/services/valuation/calculators.py
"""
Point-in-time valuation calculators.

Each calculator follows the Single Responsibility Principle:
- EntryValuator: Values one entry in the display currency
- PortfolioAggregator: Folds entry valuations into portfolio totals

Design Principles:
- Receives all dependencies explicitly
- Returns structured result objects
- Uses Decimal for ALL financial calculations
- Every collaborator await goes through the CalculationContext

Usage:
    valuator = EntryValuator(price_resolver, fx_service, coupon_source)
    performance = await valuator.valuate(entry, "USD", context)

    aggregator = PortfolioAggregator()
    portfolio = aggregator.aggregate([performance], "USD")
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from fincatch.models import BondEntry, GoldEntry
from fincatch.services.concurrency import CalculationContext
from fincatch.services.constants import MONEY_PLACES, PERCENT_PLACES
from fincatch.services.exceptions import OperationCancelledError
from fincatch.services.valuation.types import EntryPerformance, PortfolioPerformance
from fincatch.services.valuation.units import UnitConverter

if TYPE_CHECKING:
    from fincatch.models import StockEntry
    from fincatch.services.protocols import CouponPaymentSource, CurrencyConverter
    from fincatch.services.valuation.price_resolver import PriceResolver

logger = logging.getLogger(__name__)

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")


def gain_loss_percentage(gain_loss: Decimal, total_cost: Decimal) -> Decimal:
    """gain_loss / total_cost × 100, or 0 when there is no positive cost."""
    if total_cost <= _ZERO:
        return _ZERO
    return (gain_loss / total_cost * _HUNDRED).quantize(PERCENT_PLACES)


# =============================================================================
# ENTRY VALUATOR
# =============================================================================

class EntryValuator:
    """
    Produces the EntryPerformance of one entry.

    Steps:
        1. Resolve the current price (per share / tael / bond)
        2. Convert it to the display currency
        3. Scale the purchase price to the canonical unit (gold) and convert
        4. Convert transaction fees
        5. Derive the exchange rate: converted / raw (1 if same currency)
        6. Convert the quantity to canonical units (gold)
        7. current_value = price × quantity; total_cost = purchase × quantity + fees
        8. Bonds: add received coupons (converted) to gain_loss only

    Returns None for entries that cannot be priced (skipped, not an error).
    """

    def __init__(
            self,
            price_resolver: PriceResolver,
            currency_converter: CurrencyConverter,
            coupon_source: CouponPaymentSource | None = None,
            unit_converter: UnitConverter | None = None,
    ) -> None:
        self._price_resolver = price_resolver
        self._converter = currency_converter
        self._coupon_source = coupon_source
        self._units = unit_converter or UnitConverter()

    async def valuate(
            self,
            entry: StockEntry | GoldEntry | BondEntry,
            display_currency: str,
            context: CalculationContext | None = None,
    ) -> EntryPerformance | None:
        """
        Value one entry in the display currency.

        Raises:
            MarketDataError / FXRateError: Upstream failure (caller skips the entry)
            OperationCancelledError: Calculation cancelled
        """
        context = context or CalculationContext.create()
        display_currency = display_currency.upper()
        warnings: list[str] = []

        resolved = await self._price_resolver.resolve_current_price(entry, context)
        if resolved is None:
            return None
        if resolved.warning:
            warnings.append(resolved.warning)

        current_price = await self._convert(
            context, resolved.price, resolved.currency, display_currency
        )

        purchase_price_raw = entry.purchase_price
        if isinstance(entry, GoldEntry):
            purchase_price_raw = self._units.price_to_canonical(entry.purchase_price, entry.unit)
        purchase_price = await self._convert(
            context, purchase_price_raw, entry.currency, display_currency
        )

        fees = _ZERO
        if entry.transaction_fees:
            fees = await self._convert(
                context, entry.transaction_fees, entry.currency, display_currency
            )

        exchange_rate = _ONE
        if resolved.currency != display_currency and resolved.price != _ZERO:
            exchange_rate = current_price / resolved.price

        quantity = entry.quantity
        if isinstance(entry, GoldEntry):
            quantity = self._units.to_canonical(entry.quantity, entry.unit)

        current_value = current_price * quantity
        total_cost = purchase_price * quantity + fees

        coupon_income = _ZERO
        if isinstance(entry, BondEntry):
            coupon_income = await self._coupon_income(entry, display_currency, context, warnings)

        gain_loss = current_value - total_cost + coupon_income

        return EntryPerformance(
            entry=entry,
            current_price=current_price,
            purchase_price=purchase_price,
            current_value=current_value,
            total_cost=total_cost,
            gain_loss=gain_loss,
            gain_loss_percentage=gain_loss_percentage(gain_loss, total_cost),
            currency=display_currency,
            exchange_rate=exchange_rate,
            price_source=resolved.source,
            coupon_income=coupon_income,
            warnings=warnings,
        )

    async def _coupon_income(
            self,
            entry: BondEntry,
            display_currency: str,
            context: CalculationContext,
            warnings: list[str],
    ) -> Decimal:
        """
        Sum of received coupons in the display currency.

        A failed lookup or conversion is a data quality warning, not an
        entry failure: income counts as 0.
        """
        if self._coupon_source is None:
            return _ZERO

        try:
            payments = await context.call(self._coupon_source.list_coupon_payments, entry.id)
            total = _ZERO
            for payment in payments:
                total += await self._convert(
                    context, payment.amount, payment.currency, display_currency
                )
        except OperationCancelledError:
            raise
        except Exception as e:
            warning = f"Coupon payments unavailable: {e}"
            logger.warning(f"Failed to fetch coupon payments for entry {entry.id}: {e}")
            warnings.append(warning)
            return _ZERO

        return total.quantize(MONEY_PLACES)

    async def _convert(
            self,
            context: CalculationContext,
            amount: Decimal,
            from_currency: str,
            to_currency: str,
    ) -> Decimal:
        if from_currency.upper() == to_currency.upper():
            return amount
        return await context.call(
            self._converter.convert_currency, amount, from_currency, to_currency
        )


# =============================================================================
# PORTFOLIO AGGREGATOR
# =============================================================================

class PortfolioAggregator:
    """
    Folds entry valuations into portfolio totals.

    Pure and synchronous. Percentages are derived from the summed values,
    never summed themselves. Entries with non-finite amounts are left out of
    the totals (and the entry list) with a warning.
    """

    def aggregate(
            self,
            entries_performance: list[EntryPerformance],
            display_currency: str,
    ) -> PortfolioPerformance | None:
        """
        Sum values and costs.

        Returns:
            PortfolioPerformance, or None when there is nothing to aggregate
        """
        valid: list[EntryPerformance] = []
        for performance in entries_performance:
            if not performance.is_finite:
                logger.warning(
                    f"Excluding entry {performance.entry.id} from totals: "
                    f"non-finite valuation"
                )
                continue
            valid.append(performance)

        if not valid:
            return None

        total_value = sum((ep.current_value for ep in valid), _ZERO)
        total_cost = sum((ep.total_cost for ep in valid), _ZERO)
        total_gain_loss = total_value - total_cost

        return PortfolioPerformance(
            total_value=total_value.quantize(MONEY_PLACES),
            total_cost=total_cost.quantize(MONEY_PLACES),
            total_gain_loss=total_gain_loss.quantize(MONEY_PLACES),
            total_gain_loss_percentage=gain_loss_percentage(total_gain_loss, total_cost),
            currency=display_currency.upper(),
            entries_performance=valid,
        )
