"""
Pipeline d'appels HTTP : une liste ordonnee de middlewares autour d'un transport.

Un middleware recoit la requete et le handler suivant :

    async def middleware(request: httpx.Request, call_next: Handler) -> httpx.Response

L'ordre est fixe a la composition (voir build_tmdb_pipeline) :
rate limiter -> cache -> retry -> transport. Le limiteur etant le plus
externe, chaque appel consomme un jeton, qu'il soit servi par le cache ou
non ; les retries, eux, sont sous le cache et ne repassent pas par le
limiteur.
"""

from typing import Awaitable, Callable, Sequence

import httpx
from loguru import logger

from deckcache.core.ports.caching import IRateLimiter
from deckcache.utils.helpers import redact_secret_params

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]
Middleware = Callable[[httpx.Request, Handler], Awaitable[httpx.Response]]


def compose(middlewares: Sequence[Middleware], transport: Handler) -> Handler:
    """
    Compose les middlewares autour du transport.

    Le premier middleware de la liste est le plus externe.
    """
    handler = transport
    for middleware in reversed(middlewares):
        handler = _bind(middleware, handler)
    return handler


def _bind(middleware: Middleware, call_next: Handler) -> Handler:
    async def handler(request: httpx.Request) -> httpx.Response:
        return await middleware(request, call_next)

    return handler


class HttpxTransport:
    """Dernier maillon : envoie la requete via le client httpx partage."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        response = await self._client.send(request)
        logger.debug(
            f"TMDB {request.method} {redact_secret_params(request.url)} -> {response.status_code}"
        )
        return response


class RateLimitMiddleware:
    """Obtient un jeton du rate limiter avant de deleguer."""

    def __init__(self, limiter: IRateLimiter) -> None:
        self._limiter = limiter

    async def __call__(self, request: httpx.Request, call_next: Handler) -> httpx.Response:
        await self._limiter.acquire()
        return await call_next(request)
