# backend/fincatch/services/market_data/gateway.py
"""
Market data gateway.

Single entry point for the engine's two market data operations. Requests are
dispatched by their `source` to a registered provider:

    fetch_stock_history(request) -> stock provider[request.source]
    fetch_gold_price(request)    -> gold provider[request.source]

A request without a source goes to the default provider of its kind.
"""

import logging

from fincatch.services.exceptions import UnsupportedSourceError
from fincatch.services.market_data.base import (
    GoldDataProvider,
    GoldPriceRequest,
    PriceHistoryResponse,
    StockDataProvider,
    StockHistoryRequest,
)

logger = logging.getLogger(__name__)


class MarketDataGateway:
    """
    Routes market data requests to providers by source name.

    Example:
        gateway = MarketDataGateway(
            stock_providers=[YahooFinanceProvider()],
            gold_providers=[SjcGoldProvider()],
        )
        response = await gateway.fetch_stock_history(request)
    """

    def __init__(
            self,
            stock_providers: list[StockDataProvider] | None = None,
            gold_providers: list[GoldDataProvider] | None = None,
            default_stock_source: str | None = None,
            default_gold_source: str | None = None,
    ) -> None:
        self._stock_providers: dict[str, StockDataProvider] = {}
        self._gold_providers: dict[str, GoldDataProvider] = {}

        for provider in stock_providers or []:
            self.register_stock_provider(provider)
        for provider in gold_providers or []:
            self.register_gold_provider(provider)

        self._default_stock_source = default_stock_source or next(
            iter(self._stock_providers), None
        )
        self._default_gold_source = default_gold_source or next(
            iter(self._gold_providers), None
        )

    def register_stock_provider(self, provider: StockDataProvider) -> None:
        self._stock_providers[provider.name] = provider
        logger.debug(f"Registered stock provider '{provider.name}'")

    def register_gold_provider(self, provider: GoldDataProvider) -> None:
        self._gold_providers[provider.name] = provider
        logger.debug(f"Registered gold provider '{provider.name}'")

    @property
    def stock_sources(self) -> list[str]:
        return list(self._stock_providers)

    @property
    def gold_sources(self) -> list[str]:
        return list(self._gold_providers)

    async def fetch_stock_history(
            self,
            request: StockHistoryRequest,
    ) -> PriceHistoryResponse:
        """
        Fetch candles from the provider registered for request.source.

        Raises:
            UnsupportedSourceError: No provider for the source
            MarketDataError: Provider failure
        """
        source = request.source or self._default_stock_source
        provider = self._stock_providers.get(source) if source else None
        if provider is None:
            raise UnsupportedSourceError(source, kind="stock")
        return await provider.get_stock_history(request)

    async def fetch_gold_price(
            self,
            request: GoldPriceRequest,
    ) -> PriceHistoryResponse:
        """
        Fetch gold quotes from the provider registered for request.source.

        Raises:
            UnsupportedSourceError: No provider for the source
            MarketDataError: Provider failure
        """
        source = request.source or self._default_gold_source
        provider = self._gold_providers.get(source) if source else None
        if provider is None:
            raise UnsupportedSourceError(source, kind="gold")
        return await provider.get_gold_prices(request)
