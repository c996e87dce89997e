"""
Ports (interfaces abstraites) definissant les contrats pour les adaptateurs.

Ports cache : IResponseCache, IRateLimiter, IImageCache (+ ImageCacheResult)
Port client API : IMovieMetadataClient
Port repository : IMetadataStore (+ MetadataStats)
"""

from deckcache.core.ports.api_clients import IMovieMetadataClient
from deckcache.core.ports.caching import (
    IImageCache,
    IRateLimiter,
    IResponseCache,
    ImageCacheResult,
)
from deckcache.core.ports.repositories import IMetadataStore, MetadataStats

__all__ = [
    "IMovieMetadataClient",
    "IImageCache",
    "IRateLimiter",
    "IResponseCache",
    "ImageCacheResult",
    "IMetadataStore",
    "MetadataStats",
]
