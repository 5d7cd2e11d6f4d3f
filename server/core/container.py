"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.cache import TTLCache
from services.http_client import create_http_client
from services.token_provider import TokenProvider
from services.marketplace.service import MarketplaceService
from services.currency import ExchangeRateService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Process-wide caches
    response_cache = providers.Singleton(TTLCache, name="responses")
    token_cache = providers.Singleton(TTLCache, name="token")
    rates_cache = providers.Singleton(TTLCache, name="rates")

    # One pooled client for every downstream call
    http_client = providers.Singleton(
        create_http_client,
        settings=settings
    )

    # Services
    token_provider = providers.Singleton(
        TokenProvider,
        settings=settings,
        cache=token_cache,
        client=http_client
    )

    marketplace_service = providers.Singleton(
        MarketplaceService,
        settings=settings,
        cache=response_cache,
        tokens=token_provider,
        client=http_client
    )

    exchange_rate_service = providers.Singleton(
        ExchangeRateService,
        settings=settings,
        cache=rates_cache,
        client=http_client
    )


# Global container instance
container = Container()
