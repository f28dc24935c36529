# backend/fincatch/services/valuation/units.py
"""
Gold weight unit conversion.

Gold quantities and per-unit prices are normalized to the tael (lượng), the
unit SJC quotes in. Every unit is expressed through its weight in grams:

    gram 1 | mace 3.75 | tael 37.5 | ounce 31.1035 (troy) | kg 1000

    quantity_in_tael = quantity × grams_per_unit / 37.5
    price_per_tael   = price_per_unit × 37.5 / grams_per_unit

Quantity and price convert in opposite directions, so the value
(price × quantity) of a holding is the same in every unit.
"""

from decimal import Decimal

from fincatch.models import GoldUnit
from fincatch.services.constants import (
    CANONICAL_GOLD_UNIT,
    DEFAULT_GOLD_UNIT,
    GRAMS_PER_UNIT,
)


class UnitConverter:
    """
    Converts gold quantities and prices between weight units.

    Stateless; a single instance can be shared.

    Example:
        converter = UnitConverter()
        converter.to_canonical(Decimal("10"), "mace")           # Decimal("1")
        converter.price_to_canonical(Decimal("2000000"), "mace") # 20,000,000 per tael
    """

    def __init__(self, canonical_unit: str = CANONICAL_GOLD_UNIT) -> None:
        self._canonical_grams = self.grams_per_unit(canonical_unit)

    @staticmethod
    def grams_per_unit(unit: GoldUnit | str | None) -> Decimal:
        """
        Weight of one unit in grams.

        Raises:
            ValueError: Unknown unit
        """
        key = (unit.value if isinstance(unit, GoldUnit) else unit) or DEFAULT_GOLD_UNIT
        try:
            return GRAMS_PER_UNIT[key.lower()]
        except KeyError:
            raise ValueError(f"Unknown gold unit: '{unit}'") from None

    def to_canonical(self, quantity: Decimal, unit: GoldUnit | str | None = None) -> Decimal:
        """Convert a quantity in `unit` to taels."""
        return quantity * self.grams_per_unit(unit) / self._canonical_grams

    def price_to_canonical(self, price: Decimal, unit: GoldUnit | str | None = None) -> Decimal:
        """Convert a price per `unit` to a price per tael."""
        return price * self._canonical_grams / self.grams_per_unit(unit)

    def convert(
            self,
            quantity: Decimal,
            from_unit: GoldUnit | str,
            to_unit: GoldUnit | str,
    ) -> Decimal:
        """Convert a quantity between two arbitrary units."""
        return quantity * self.grams_per_unit(from_unit) / self.grams_per_unit(to_unit)
