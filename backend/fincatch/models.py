# backend/fincatch/models.py
"""
Domain models for portfolio entries.

Portfolio entries are owned by the persistence collaborator; the engine only
reads them. Each asset class is its own model, and the three are combined
into a tagged union discriminated on ``asset_type`` so that every code path
can match exhaustively on the variant instead of probing optional fields.

    PortfolioEntry = StockEntry | GoldEntry | BondEntry

Entries are frozen: the engine never mutates its inputs.

Usage:
    from fincatch.models import parse_entry

    entry = parse_entry({
        "id": "e1", "portfolio_id": "p1", "asset_type": "stock",
        "symbol": "AAPL", "quantity": "10", "purchase_price": "100",
        "purchase_date": 1704067200, "currency": "USD",
        "source": "yahoo_finance",
    })
"""

import enum
import re
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from fincatch.config import settings

# ISO 4217 format (3 uppercase letters)
CURRENCY_PATTERN = re.compile(r'^[A-Z]{3}$')


# =============================================================================
# ENUMS
# =============================================================================

class AssetType(str, enum.Enum):
    STOCK = "stock"
    GOLD = "gold"
    BOND = "bond"


class GoldUnit(str, enum.Enum):
    GRAM = "gram"
    MACE = "mace"
    TAEL = "tael"
    OUNCE = "ounce"
    KG = "kg"


class CouponFrequency(str, enum.Enum):
    ANNUAL = "annual"
    SEMIANNUAL = "semiannual"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"


class PriceSource(str, enum.Enum):
    """
    How an entry's current price was obtained.

    Stock and gold entries are tagged with their provider name instead
    (e.g. "yahoo_finance", "sjc"), or UNKNOWN when the entry has no source.
    """
    CALCULATED = "calculated"
    MANUAL = "manual"
    FACE_VALUE = "face_value"
    UNKNOWN = "unknown"


def _normalize_currency(value: str) -> str:
    normalized = value.strip().upper()
    if not CURRENCY_PATTERN.match(normalized):
        raise ValueError(
            f"Invalid currency code: '{value}'. Must be 3 letters (ISO 4217)"
        )
    return normalized


# =============================================================================
# PORTFOLIO ENTRIES
# =============================================================================

class EntryBase(BaseModel):
    """Fields shared by every portfolio entry."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: str = Field(..., min_length=1, description="Entry identifier")
    portfolio_id: str = Field(..., description="Owning portfolio")
    symbol: str = Field(
        ...,
        min_length=1,
        description="Ticker, gold type identifier, or bond identifier/ISIN"
    )
    quantity: Decimal = Field(
        ...,
        ge=0,
        description="Shares, gold weight in `unit`, or number of bonds"
    )
    purchase_price: Decimal = Field(
        ...,
        ge=0,
        description="Price per share / per weight unit / per bond"
    )
    purchase_date: int = Field(..., ge=0, description="Unix seconds")
    currency: str = Field(
        default="USD",
        description="Currency of purchase_price and transaction_fees"
    )
    transaction_fees: Decimal | None = Field(default=None, ge=0)
    source: str | None = Field(
        default=None,
        description="Market data provider identifier (e.g. 'yahoo_finance', 'sjc')"
    )

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_currency(v)

    @field_validator('symbol')
    @classmethod
    def strip_symbol(cls, v: str) -> str:
        return v.strip()


class StockEntry(EntryBase):
    """A holding of publicly traded shares."""

    asset_type: Literal[AssetType.STOCK] = AssetType.STOCK


class GoldEntry(EntryBase):
    """A holding of physical gold; `symbol` is the provider's gold type ID."""

    asset_type: Literal[AssetType.GOLD] = AssetType.GOLD
    unit: GoldUnit = Field(
        default=GoldUnit.TAEL,
        description="Weight unit of quantity and purchase_price"
    )


class BondEntry(EntryBase):
    """
    A fixed-income holding.

    Pricing fields are optional; when any of face_value, coupon_rate, ytm,
    maturity_date or coupon_frequency is missing the engine falls back to
    the manual price, then face value, then purchase price.
    """

    asset_type: Literal[AssetType.BOND] = AssetType.BOND
    face_value: Decimal | None = Field(default=None, ge=0)
    coupon_rate: Decimal | None = Field(
        default=None,
        description="Annual coupon rate as a percentage (5.0 = 5%)"
    )
    ytm: Decimal | None = Field(
        default=None,
        description="Yield to maturity as a percentage (5.0 = 5%)"
    )
    maturity_date: int | None = Field(default=None, ge=0, description="Unix seconds")
    coupon_frequency: CouponFrequency | None = None
    current_market_price: Decimal | None = Field(
        default=None,
        description="User-entered current price per bond"
    )
    last_price_update: int | None = None

    @property
    def has_pricing_inputs(self) -> bool:
        """True if every input of the present-value formula is available."""
        return (
            bool(self.face_value)
            and self.coupon_rate is not None
            and self.ytm is not None
            and bool(self.maturity_date)
            and self.coupon_frequency is not None
        )


PortfolioEntry = Annotated[
    Union[StockEntry, GoldEntry, BondEntry],
    Field(discriminator="asset_type"),
]

_entry_adapter: TypeAdapter[PortfolioEntry] = TypeAdapter(PortfolioEntry)
_entries_adapter: TypeAdapter[list[PortfolioEntry]] = TypeAdapter(list[PortfolioEntry])


def _with_default_currency(data: dict, default_currency: str | None) -> dict:
    if data.get("currency"):
        return data
    return {**data, "currency": default_currency or settings.default_currency}


def parse_entry(
        data: dict,
        default_currency: str | None = None,
) -> StockEntry | GoldEntry | BondEntry:
    """
    Build a typed entry from a raw mapping.

    A mapping without a currency gets `default_currency`, or
    settings.default_currency when that is not given.

    Raises:
        pydantic.ValidationError: If the mapping is not a valid entry
    """
    return _entry_adapter.validate_python(_with_default_currency(data, default_currency))


def parse_entries(
        data: list[dict],
        default_currency: str | None = None,
) -> list[StockEntry | GoldEntry | BondEntry]:
    """Build typed entries from a list of raw mappings."""
    return _entries_adapter.validate_python(
        [_with_default_currency(item, default_currency) for item in data]
    )


# =============================================================================
# COUPON PAYMENTS
# =============================================================================

class CouponPayment(BaseModel):
    """A coupon received for a bond entry (fetched, never computed)."""

    model_config = ConfigDict(frozen=True)

    entry_id: str
    amount: Decimal
    currency: str
    payment_date: int

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_currency(v)
