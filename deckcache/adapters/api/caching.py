"""
Middleware de cache des reponses TMDB.

Seules les requetes GET sont mises en cache, et seulement sur 200. La cle
est "tmdb:http:" + chemin + requete, sans les parametres secrets (api_key,
token...) : deux utilisateurs avec des cles differentes partagent la meme
entree, et aucun secret n'est jamais persiste.

TTL par defaut:
- discover/ : 60 secondes - les listes evoluent vite
- movie/ et autres chemins : 600 secondes - les details changent rarement
"""

from dataclasses import dataclass
from typing import Optional

import httpx

from deckcache.adapters.api.pipeline import Handler
from deckcache.core.ports.caching import IResponseCache
from deckcache.utils.constants import HTTP_CACHE_KEY_PREFIX
from deckcache.utils.helpers import strip_secret_params

DEFAULT_DISCOVER_TTL = 60
DEFAULT_DETAILS_TTL = 600


@dataclass(frozen=True)
class CachedResponse:
    """
    Reponse HTTP mise en cache.

    Attributes:
        status_code: Statut HTTP (toujours 200 a l'ecriture)
        content_type: En-tete Content-Type d'origine
        body: Corps texte (JSON TMDB)
    """

    status_code: int
    content_type: Optional[str]
    body: str

    @classmethod
    def from_response(cls, response: httpx.Response) -> "CachedResponse":
        return cls(
            status_code=response.status_code,
            content_type=response.headers.get("Content-Type"),
            body=response.text,
        )

    def to_response(self, request: httpx.Request) -> httpx.Response:
        headers = {"Content-Type": self.content_type} if self.content_type else {}
        return httpx.Response(
            self.status_code,
            headers=headers,
            content=self.body.encode("utf-8"),
            request=request,
        )


def build_cache_key(url: httpx.URL) -> str:
    """Cle de cache d'une URL : chemin + requete, sans parametres secrets."""
    cleaned = strip_secret_params(url)
    query = cleaned.query.decode("ascii")
    return f"{HTTP_CACHE_KEY_PREFIX}{cleaned.path}" + (f"?{query}" if query else "")


class CachingMiddleware:
    """
    Middleware cache-first.

    Example:
        caching = CachingMiddleware(cache, discover_ttl=60, details_ttl=600)
        handler = compose([caching], transport)
    """

    def __init__(
        self,
        cache: IResponseCache,
        discover_ttl: int = DEFAULT_DISCOVER_TTL,
        details_ttl: int = DEFAULT_DETAILS_TTL,
        base_path: str = "/3/",
    ) -> None:
        self._cache = cache
        self._discover_ttl = discover_ttl
        self._details_ttl = details_ttl
        self._base_path = "/" + base_path.strip("/") + "/" if base_path.strip("/") else "/"

    def resolve_ttl(self, url: httpx.URL) -> int:
        """TTL selon le chemin relatif a la racine de l'API."""
        path = url.path
        if path.startswith(self._base_path):
            path = path[len(self._base_path):]
        path = path.lstrip("/")
        if path.startswith("discover/"):
            return self._discover_ttl
        return self._details_ttl

    async def __call__(self, request: httpx.Request, call_next: Handler) -> httpx.Response:
        if request.method.upper() != "GET":
            return await call_next(request)

        key = build_cache_key(request.url)
        cached = await self._cache.get(key, CachedResponse)
        if cached is not None:
            return cached.to_response(request)

        response = await call_next(request)
        if response.status_code != 200:
            return response

        await response.aread()
        await self._cache.set(key, CachedResponse.from_response(response), self.resolve_ttl(request.url))
        return response
