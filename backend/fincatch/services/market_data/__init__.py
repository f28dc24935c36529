# backend/fincatch/services/market_data/__init__.py
"""
Market data services package.

This package contains:
- Abstract interface for market data providers (base.py)
- Yahoo Finance implementation for stocks and FX quotes (yahoo.py)
- SJC implementation for Vietnamese gold quotes (sjc.py)
- Source-based request routing (gateway.py)

Usage:
    from fincatch.services.market_data import (
        MarketDataGateway,
        StockHistoryRequest,
        GoldPriceRequest,
        YahooFinanceProvider,
        SjcGoldProvider,
    )

Architecture:
    MarketDataProvider (ABC)
    ├── StockDataProvider (ABC)
    │   └── YahooFinanceProvider
    └── GoldDataProvider (ABC)
        └── SjcGoldProvider

    MarketDataGateway
    └── Dispatches requests by `source` to registered providers
"""

from fincatch.services.market_data.base import (
    MarketDataProvider,
    StockDataProvider,
    GoldDataProvider,
    StockHistoryRequest,
    GoldPriceRequest,
    Candle,
    GoldPricePoint,
    PriceHistoryResponse,
)
from fincatch.services.market_data.gateway import MarketDataGateway
from fincatch.services.market_data.sjc import SjcGoldProvider
from fincatch.services.market_data.yahoo import YahooFinanceProvider

__all__ = [
    # Abstract interfaces
    "MarketDataProvider",
    "StockDataProvider",
    "GoldDataProvider",
    # Data classes
    "StockHistoryRequest",
    "GoldPriceRequest",
    "Candle",
    "GoldPricePoint",
    "PriceHistoryResponse",
    # Routing
    "MarketDataGateway",
    # Concrete implementations
    "YahooFinanceProvider",
    "SjcGoldProvider",
]
