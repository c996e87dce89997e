"""
Client TMDB pour la decouverte et les details de films.

Implemente l'interface IMovieMetadataClient pour TMDB (The Movie Database).
Chaque appel traverse le pipeline compose par build_tmdb_pipeline :
rate limiter -> cache de reponses -> retry -> transport httpx.

Usage:
    client = TMDBClient(api_key="your_key", cache=cache, rate_limiter=limiter)
    cards = await client.discover(preferences, page=1, limit=50)
    details = await client.get_movie_details(27205)
    await client.close()
"""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from deckcache.adapters.api.caching import (
    DEFAULT_DETAILS_TTL,
    DEFAULT_DISCOVER_TTL,
    CachingMiddleware,
)
from deckcache.adapters.api.pipeline import (
    Handler,
    HttpxTransport,
    RateLimitMiddleware,
    compose,
)
from deckcache.adapters.api.retry import DelayProvider, RetryMiddleware, is_transient_status
from deckcache.adapters.api.tmdb_models import (
    TmdbDiscoverPage,
    TmdbDiscoverResult,
    TmdbMovieDetails,
)
from deckcache.core.entities import DiscoveredMovie, MovieDetails, SwipeCard, UserPreferences
from deckcache.core.entities.movie import parse_release_year
from deckcache.core.ports.api_clients import IMovieMetadataClient
from deckcache.core.ports.caching import IRateLimiter, IResponseCache
from deckcache.core.value_objects import (
    Found,
    ImageUrlBuilder,
    LookupOutcome,
    Malformed,
    NotFound,
    Rejected,
    TransientError,
)
from deckcache.utils.constants import (
    DISCOVER_PAGE_WINDOW,
    MAX_DISCOVER_LIMIT,
    MAX_DISCOVER_PAGE,
    MAX_LOGGED_BODY_CHARS,
)
from deckcache.utils.helpers import clamp, redact_secret_params

M = TypeVar("M", bound=BaseModel)

# Au-dela, la cle est un Read Access Token v4 (JWT) et non une cle v3
V4_TOKEN_MIN_LENGTH = 40


def build_tmdb_pipeline(
    client: httpx.AsyncClient,
    rate_limiter: IRateLimiter,
    cache: IResponseCache,
    discover_ttl: int = DEFAULT_DISCOVER_TTL,
    details_ttl: int = DEFAULT_DETAILS_TTL,
    max_retries: int = 3,
    retry_delay: Optional[DelayProvider] = None,
    retry_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Handler:
    """
    Compose le pipeline TMDB dans son ordre fixe.

    Returns:
        Handler async Request -> Response
    """
    base_path = client.base_url.path or "/"
    return compose(
        [
            RateLimitMiddleware(rate_limiter),
            CachingMiddleware(cache, discover_ttl=discover_ttl, details_ttl=details_ttl, base_path=base_path),
            RetryMiddleware(max_retries=max_retries, delay_provider=retry_delay, sleep=retry_sleep),
        ],
        HttpxTransport(client),
    )


class TMDBClient(IMovieMetadataClient):
    """
    Client API TMDB pour la decouverte de films.

    Implemente IMovieMetadataClient avec:
    - Decouverte paginee (jusqu'a 5 pages par appel) selon les preferences
    - Recuperation des details d'un film
    - Cache de reponses (60s discover, 600s details) et rate limiting
    - Retry automatique sur panne transitoire (408, 429, 5xx, transport)

    Sans identifiants, les methodes retournent des resultats vides sans
    aucun appel reseau.

    Example:
        client = TMDBClient(api_key="xxx", cache=cache, rate_limiter=limiter)
        cards = await client.discover(UserPreferences(preferred_genres=(28,)))
        await client.close()
    """

    TMDB_BASE_URL = "https://api.themoviedb.org/3/"

    def __init__(
        self,
        api_key: Optional[str],
        cache: IResponseCache,
        rate_limiter: IRateLimiter,
        read_access_token: Optional[str] = None,
        base_url: str = TMDB_BASE_URL,
        image_urls: Optional[ImageUrlBuilder] = None,
        poster_size: str = "w500",
        backdrop_size: str = "w780",
        language: Optional[str] = None,
        discover_ttl: int = DEFAULT_DISCOVER_TTL,
        details_ttl: int = DEFAULT_DETAILS_TTL,
        max_retries: int = 3,
        timeout: float = 12.0,
        retry_delay: Optional[DelayProvider] = None,
        retry_sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialise le client TMDB.

        Args:
            api_key: Cle API v3 (ou token v4 si plus long que 40 caracteres)
            cache: Cache de reponses (niveau memoire + SQLite)
            rate_limiter: Rate limiter partage des appels sortants
            read_access_token: Read Access Token v4 (header Bearer)
            retry_delay: Politique de delai des retries (defaut: backoff + jitter)
        """
        self._api_key = (api_key or "").strip() or None
        self._read_access_token = (read_access_token or "").strip() or None
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._image_urls = image_urls or ImageUrlBuilder()
        self._poster_size = poster_size
        self._backdrop_size = backdrop_size
        self._language = language
        self._discover_ttl = discover_ttl
        self._details_ttl = details_ttl
        self._max_retries = max_retries
        self._timeout = timeout
        self._retry_delay = retry_delay
        self._retry_sleep = retry_sleep
        self._client: Optional[httpx.AsyncClient] = None
        self._handler: Optional[Handler] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key or self._read_access_token)

    def _get_client(self) -> httpx.AsyncClient:
        """
        Retourne le client HTTP, le cree si necessaire (lazy init).

        Supporte les deux modes d'authentification TMDB:
        - API Key v3 (32 caracteres hex) : passe en parametre api_key
        - Read Access Token v4 (long JWT) : passe en header Bearer
        """
        if self._client is None or self._client.is_closed:
            headers = {"Accept": "application/json"}
            params = {}

            token = self._read_access_token
            if token is None and self._api_key and len(self._api_key) > V4_TOKEN_MIN_LENGTH:
                token = self._api_key
            if token is not None:
                headers["Authorization"] = f"Bearer {token}"
            elif self._api_key:
                params["api_key"] = self._api_key

            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                params=params,
                timeout=self._timeout,
            )
            self._handler = None
        return self._client

    def _get_handler(self) -> Handler:
        client = self._get_client()
        if self._handler is None:
            self._handler = build_tmdb_pipeline(
                client,
                self._rate_limiter,
                self._cache,
                discover_ttl=self._discover_ttl,
                details_ttl=self._details_ttl,
                max_retries=self._max_retries,
                retry_delay=self._retry_delay,
                retry_sleep=self._retry_sleep,
            )
        return self._handler

    @property
    def source(self) -> str:
        """Retourne l'identifiant de la source API."""
        return "tmdb"

    async def discover(
        self,
        preferences: UserPreferences,
        page: int = 1,
        limit: int = 50,
    ) -> list[SwipeCard]:
        movies = await self.discover_movies(preferences, page=page, limit=limit)
        return [self._to_card(movie) for movie in movies]

    async def discover_movies(
        self,
        preferences: UserPreferences,
        page: int = 1,
        limit: int = 50,
    ) -> list[DiscoveredMovie]:
        """
        Parcourt les pages discover a partir de `page`.

        S'arrete des que `limit` films sont reunis, que la derniere page
        TMDB est atteinte, apres 5 pages, ou au premier echec (les films
        deja reunis sont retournes).
        """
        if not self.is_configured:
            return []

        page = clamp(page, 1, MAX_DISCOVER_PAGE)
        limit = clamp(limit, 1, MAX_DISCOVER_LIMIT)
        last_page = page + DISCOVER_PAGE_WINDOW - 1

        movies: list[DiscoveredMovie] = []
        current = page
        while len(movies) < limit and current <= last_page:
            outcome = await self._fetch(
                "discover/movie",
                self._with_language(preferences.to_discover_params(current)),
                TmdbDiscoverPage,
            )
            if not isinstance(outcome, Found):
                break

            body: TmdbDiscoverPage = outcome.value
            for result in body.results:
                if len(movies) >= limit:
                    break
                movies.append(self._to_discovered(result))

            if current >= body.total_pages:
                break
            current += 1

        return movies

    async def get_movie_details(self, tmdb_id: int) -> Optional[MovieDetails]:
        outcome = await self.lookup_movie_details(tmdb_id)
        return outcome.value if isinstance(outcome, Found) else None

    async def lookup_movie_details(self, tmdb_id: int) -> LookupOutcome[MovieDetails]:
        """
        Recupere les details complets d'un film.

        Returns:
            Found(MovieDetails), NotFound, Rejected, Malformed ou TransientError
        """
        if not self.is_configured or tmdb_id <= 0:
            return NotFound()

        outcome = await self._fetch(f"movie/{tmdb_id}", self._with_language({}), TmdbMovieDetails)
        if isinstance(outcome, Found):
            return Found(self._to_details(outcome.value))
        return outcome

    async def close(self) -> None:
        """Ferme le client HTTP."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
        self._handler = None

    async def _fetch(self, path: str, params: dict[str, str], model: type[M]) -> LookupOutcome[M]:
        """Execute un GET via le pipeline et decode la reponse en `model`."""
        client = self._get_client()
        request = client.build_request("GET", path, params=params)
        target = redact_secret_params(request.url)

        try:
            response = await self._get_handler()(request)
        except httpx.HTTPError as e:
            logger.warning(f"TMDB injoignable ({target}): {type(e).__name__}: {e}")
            return TransientError(f"{type(e).__name__}: {e}")

        if response.status_code == 404:
            logger.debug(f"TMDB 404 sur {target}")
            return NotFound()

        if not response.is_success:
            await response.aread()
            body = response.text[:MAX_LOGGED_BODY_CHARS]
            logger.warning(f"Echec TMDB {response.status_code} sur {target}: {body}")
            if is_transient_status(response.status_code):
                return TransientError(f"HTTP {response.status_code}")
            return Rejected(response.status_code)

        try:
            return Found(model.model_validate_json(response.content))
        except ValidationError as e:
            logger.warning(f"Reponse TMDB illisible sur {target}: {e.error_count()} erreur(s)")
            return Malformed(str(e))

    def _with_language(self, params: dict[str, str]) -> dict[str, str]:
        if self._language:
            return {**params, "language": self._language}
        return params

    @staticmethod
    def _to_discovered(result: TmdbDiscoverResult) -> DiscoveredMovie:
        return DiscoveredMovie(
            id=result.id,
            title=result.title,
            original_title=result.original_title,
            overview=result.overview,
            poster_path=result.poster_path,
            backdrop_path=result.backdrop_path,
            release_date=result.release_date,
            original_language=result.original_language,
            vote_average=result.vote_average,
            genre_ids=tuple(result.genre_ids),
        )

    def _to_card(self, movie: DiscoveredMovie) -> SwipeCard:
        return SwipeCard(
            tmdb_id=movie.id,
            title=movie.display_title,
            overview=movie.overview,
            poster_url=self._image_urls.build(movie.poster_path, self._poster_size),
            backdrop_url=self._image_urls.build(movie.backdrop_path, self._backdrop_size),
            release_year=movie.release_year,
            rating=movie.vote_average,
        )

    def _to_details(self, data: TmdbMovieDetails) -> MovieDetails:
        title = (data.title or "").strip() or (data.original_title or "").strip() or f"TMDB:{data.id}"
        return MovieDetails(
            tmdb_id=data.id,
            title=title,
            overview=data.overview,
            poster_path=data.poster_path,
            backdrop_path=data.backdrop_path,
            poster_url=self._image_urls.build(data.poster_path, self._poster_size),
            backdrop_url=self._image_urls.build(data.backdrop_path, self._backdrop_size),
            release_date=data.release_date,
            release_year=parse_release_year(data.release_date),
            rating=data.vote_average,
            vote_count=data.vote_count,
            genres=tuple(genre.name for genre in data.genres if genre.name),
            original_language=data.original_language,
            runtime_minutes=data.runtime if data.runtime and data.runtime > 0 else None,
        )
