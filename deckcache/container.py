"""
Container d'injection de dependances via dependency-injector.

Fournit une gestion centralisee des dependances pour la CLI : engine SQLite
partage, stores, rate limiter, client TMDB et services.
"""

from datetime import timedelta

import httpx
from dependency_injector import containers, providers

from .adapters.api.rate_limiter import TokenBucketRateLimiter
from .adapters.api.tmdb_client import TMDBClient
from .config import Settings
from .core.value_objects import ImageUrlBuilder
from .infrastructure.persistence.database import create_sqlite_engine, init_db
from .infrastructure.persistence.image_cache import SQLModelImageCache
from .infrastructure.persistence.maintenance import MaintenanceGate
from .infrastructure.persistence.metadata_store import SQLModelMetadataStore
from .infrastructure.persistence.response_cache import TwoTierResponseCache
from .services.deck import SwipeDeckService
from .services.details_backfill import DetailsBackfillService
from .services.prewarm import DiscoverPrewarmService


def _minutes(value: int) -> timedelta:
    return timedelta(minutes=value)


class Container(containers.DeclarativeContainer):
    """Container DI de l'application.

    Utilisation :
        container = Container()
        container.database.init()  # Cree les tables une fois
        deck = container.deck_service()
        cards = await deck.get_deck("alice", UserPreferences())
    """

    # Configuration - singleton charge une seule fois
    config = providers.Singleton(Settings)

    # Engine SQLite partage par les trois stores
    engine = providers.Singleton(create_sqlite_engine, database_path=config.provided.database_path)

    # Database - Resource pour initialisation unique
    database = providers.Resource(init_db, engine=engine)

    maintenance_interval = providers.Factory(
        _minutes, value=config.provided.maintenance_interval_minutes
    )

    # Stores - une porte de maintenance par store
    response_cache = providers.Singleton(
        TwoTierResponseCache,
        engine=engine,
        max_rows=config.provided.response_cache_max_rows,
        memory_max_entries=config.provided.memory_cache_max_entries,
        gate=providers.Factory(MaintenanceGate, interval=maintenance_interval, name="cache de reponses"),
    )

    metadata_store = providers.Singleton(
        SQLModelMetadataStore,
        engine=engine,
        gate=providers.Factory(MaintenanceGate, interval=maintenance_interval, name="store de metadonnees"),
    )

    image_http_client = providers.Singleton(
        httpx.AsyncClient,
        timeout=config.provided.http_timeout_seconds,
        follow_redirects=True,
    )

    image_cache = providers.Singleton(
        SQLModelImageCache,
        engine=engine,
        directory=config.provided.images_dir,
        http_client=image_http_client,
        image_base_url=config.provided.tmdb_image_base_url,
    )

    # Pipeline HTTP
    rate_limiter = providers.Singleton(
        TokenBucketRateLimiter,
        requests_per_second=config.provided.requests_per_second,
    )

    image_urls = providers.Singleton(
        ImageUrlBuilder,
        tmdb_image_base_url=config.provided.tmdb_image_base_url,
        proxy_base_url=config.provided.image_proxy_base_url,
    )

    tmdb_client = providers.Singleton(
        TMDBClient,
        api_key=config.provided.tmdb_api_key,
        read_access_token=config.provided.tmdb_read_access_token,
        cache=response_cache,
        rate_limiter=rate_limiter,
        base_url=config.provided.tmdb_base_url,
        image_urls=image_urls,
        poster_size=config.provided.poster_size,
        backdrop_size=config.provided.backdrop_size,
        discover_ttl=config.provided.discover_cache_seconds,
        details_ttl=config.provided.details_cache_seconds,
        max_retries=config.provided.max_retries,
        timeout=config.provided.http_timeout_seconds,
    )

    # Services
    deck_service = providers.Factory(
        SwipeDeckService,
        metadata_store=metadata_store,
        tmdb_client=tmdb_client,
        image_urls=image_urls,
        poster_size=config.provided.poster_size,
        backdrop_size=config.provided.backdrop_size,
    )

    prewarm_service = providers.Factory(
        DiscoverPrewarmService,
        metadata_store=metadata_store,
        tmdb_client=tmdb_client,
        image_cache=image_cache,
        poster_size=config.provided.poster_size,
        backdrop_size=config.provided.backdrop_size,
    )

    backfill_service = providers.Factory(
        DetailsBackfillService,
        metadata_store=metadata_store,
        tmdb_client=tmdb_client,
    )
