"""
Service de prechauffage des pools utilisateurs.

Pour chaque utilisateur : premiere page discover selon ses preferences,
ajout au pool, puis (en mode LOCAL_PROXY avec un budget images non nul)
pre-telechargement des posters/backdrops des premiers films et eviction
du cache d'images jusqu'au budget.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from deckcache.core.entities import DiscoveredMovie, UserPreferences
from deckcache.core.ports.api_clients import IMovieMetadataClient
from deckcache.core.ports.caching import IImageCache
from deckcache.core.ports.repositories import IMetadataStore
from deckcache.core.value_objects import MetadataSettings, PosterMode

PREWARM_LIMIT = 50
IMAGE_PREFETCH_COUNT = 8


@dataclass
class PrewarmStats:
    """Statistiques d'une passe de prechauffage."""

    users: int = 0
    movies_pooled: int = 0
    images_cached: int = 0
    images_evicted: int = 0
    failed_users: int = 0


class DiscoverPrewarmService:
    """
    Service de prechauffage : remplit les pools avant que les decks soient demandes.
    """

    def __init__(
        self,
        metadata_store: IMetadataStore,
        tmdb_client: IMovieMetadataClient,
        image_cache: Optional[IImageCache] = None,
        poster_size: str = "w500",
        backdrop_size: str = "w780",
    ) -> None:
        self._store = metadata_store
        self._tmdb_client = tmdb_client
        self._image_cache = image_cache
        self._poster_size = poster_size
        self._backdrop_size = backdrop_size

    async def run_once(self, users: Sequence[tuple[str, UserPreferences]]) -> PrewarmStats:
        """
        Execute une passe de prechauffage.

        Args:
            users: Couples (identifiant utilisateur, preferences)

        Returns:
            Statistiques de la passe
        """
        stats = PrewarmStats()
        if not self._tmdb_client.is_configured:
            logger.debug("Prechauffage ignore: TMDB non configure")
            return stats

        settings = await self._store.get_settings()
        for user_id, preferences in users:
            stats.users += 1
            movies = await self._tmdb_client.discover_movies(preferences, page=1, limit=PREWARM_LIMIT)
            if not movies:
                continue
            if not await self._store.add_to_pool(user_id, movies):
                stats.failed_users += 1
                continue
            stats.movies_pooled += len(movies)
            stats.images_cached += await self._prefetch_images(movies, settings)

        if self._images_enabled(settings) and self._image_cache is not None:
            stats.images_evicted = await self._image_cache.prune(settings.image_cache_max_bytes)

        logger.info(
            f"Prechauffage: {stats.users} utilisateur(s), {stats.movies_pooled} film(s) en pool, "
            f"{stats.images_cached} image(s) en cache, {stats.images_evicted} evincee(s)"
        )
        return stats

    @staticmethod
    def _images_enabled(settings: MetadataSettings) -> bool:
        return settings.poster_mode is PosterMode.LOCAL_PROXY and settings.image_cache_max_mb > 0

    async def _prefetch_images(self, movies: Sequence[DiscoveredMovie], settings: MetadataSettings) -> int:
        if self._image_cache is None or not self._images_enabled(settings):
            return 0
        cached = 0
        for movie in movies[:IMAGE_PREFETCH_COUNT]:
            for size, path in ((self._poster_size, movie.poster_path), (self._backdrop_size, movie.backdrop_path)):
                if not path:
                    continue
                try:
                    if await self._image_cache.get_or_fetch(size, path) is not None:
                        cached += 1
                except (SQLAlchemyError, OSError) as e:
                    logger.warning(f"Pre-telechargement de {size}{path} impossible: {e}")
        return cached
