"""
Client et pipeline HTTP TMDB.

Ce module fournit:
- TMDBClient: decouverte paginee et details de films
- build_tmdb_pipeline: composition rate limiter -> cache -> retry -> transport
- TokenBucketRateLimiter: seau de jetons FIFO (1 a 50 requetes/seconde)
- CachingMiddleware: cache des GET 200, cles sans secrets
- RetryMiddleware: backoff exponentiel avec jitter sur panne transitoire (tenacity)

Le client implemente IMovieMetadataClient defini dans core/ports/api_clients.py.
"""

from deckcache.adapters.api.caching import CachedResponse, CachingMiddleware, build_cache_key
from deckcache.adapters.api.pipeline import HttpxTransport, RateLimitMiddleware, compose
from deckcache.adapters.api.rate_limiter import TokenBucketRateLimiter
from deckcache.adapters.api.retry import RetryMiddleware, compute_delay
from deckcache.adapters.api.tmdb_client import TMDBClient, build_tmdb_pipeline

__all__ = [
    "CachedResponse",
    "CachingMiddleware",
    "HttpxTransport",
    "RateLimitMiddleware",
    "RetryMiddleware",
    "TMDBClient",
    "TokenBucketRateLimiter",
    "build_cache_key",
    "build_tmdb_pipeline",
    "compose",
    "compute_delay",
]
