"""
Service de deck de swipe.

Un deck est servi directement depuis le pool persistant de l'utilisateur,
sans appel amont. Seul un pool trop court declenche un remplissage via la
decouverte TMDB (qui passe par le cache de reponses et le rate limiter).
"""

from typing import Iterable

from loguru import logger

from deckcache.core.entities import StoredMovie, SwipeCard, UserPreferences
from deckcache.core.ports.api_clients import IMovieMetadataClient
from deckcache.core.ports.repositories import IMetadataStore
from deckcache.core.value_objects import ImageUrlBuilder, MetadataSettings, PosterMode
from deckcache.utils.helpers import clamp

MAX_DECK_SIZE = 100
REFILL_LIMIT = 50


class SwipeDeckService:
    """
    Service de construction des decks.

    Example:
        service = SwipeDeckService(store, tmdb_client, ImageUrlBuilder())
        cards = await service.get_deck("alice", preferences, limit=20)
    """

    def __init__(
        self,
        metadata_store: IMetadataStore,
        tmdb_client: IMovieMetadataClient,
        image_urls: ImageUrlBuilder,
        poster_size: str = "w500",
        backdrop_size: str = "w780",
    ) -> None:
        self._store = metadata_store
        self._tmdb_client = tmdb_client
        self._image_urls = image_urls
        self._poster_size = poster_size
        self._backdrop_size = backdrop_size

    async def get_deck(
        self,
        user_id: str,
        preferences: UserPreferences,
        limit: int = 20,
        exclude_ids: Iterable[int] = (),
    ) -> list[SwipeCard]:
        """
        Retourne jusqu'a `limit` cartes pour l'utilisateur.

        Args:
            user_id: Identifiant de l'utilisateur
            preferences: Preferences utilisees si le pool doit etre rempli
            limit: Taille du deck (bornee a [1, 100])
            exclude_ids: Films deja vus/swipes a ne pas reproposer
        """
        if not user_id or not user_id.strip():
            return []

        limit = clamp(limit, 1, MAX_DECK_SIZE)
        excluded = set(exclude_ids)

        movies = await self._available(user_id, limit, excluded)
        if len(movies) < limit:
            discovered = await self._tmdb_client.discover_movies(preferences, page=1, limit=REFILL_LIMIT)
            if discovered and await self._store.add_to_pool(user_id, discovered):
                logger.debug(f"Pool de {user_id} rempli avec {len(discovered)} film(s)")
                movies = await self._available(user_id, limit, excluded)

        settings = await self._store.get_settings()
        mode = self.effective_poster_mode(settings)
        return [self._to_card(movie, mode) for movie in movies[:limit]]

    @staticmethod
    def effective_poster_mode(settings: MetadataSettings) -> PosterMode:
        """Le proxy local n'est utilise que si le cache d'images a un budget."""
        if settings.poster_mode is PosterMode.LOCAL_PROXY and settings.image_cache_max_mb > 0:
            return PosterMode.LOCAL_PROXY
        return PosterMode.DIRECT

    async def _available(self, user_id: str, limit: int, excluded: set[int]) -> list[StoredMovie]:
        pool = await self._store.get_pool(user_id, limit + len(excluded))
        return [movie for movie in pool if movie.tmdb_id not in excluded]

    def _to_card(self, movie: StoredMovie, mode: PosterMode) -> SwipeCard:
        return SwipeCard(
            tmdb_id=movie.tmdb_id,
            title=movie.title,
            overview=movie.overview,
            poster_url=self._image_urls.build(movie.poster_path, self._poster_size, mode),
            backdrop_url=self._image_urls.build(movie.backdrop_path, self._backdrop_size, mode),
            release_year=movie.release_year,
            rating=movie.rating,
        )
