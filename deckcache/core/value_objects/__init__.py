"""
Objets valeur du domaine.

Exports:
- Found, NotFound, Rejected, Malformed, TransientError, LookupOutcome : issues de lookup
- MetadataSettings, PosterMode : reglages bornes du store
- ImageUrlBuilder : URLs d'images directes ou via le proxy local
"""

from deckcache.core.value_objects.lookup import (
    Found,
    LookupOutcome,
    Malformed,
    NotFound,
    Rejected,
    TransientError,
)
from deckcache.core.value_objects.image_urls import ImageUrlBuilder
from deckcache.core.value_objects.metadata_settings import MetadataSettings, PosterMode

__all__ = [
    "Found",
    "LookupOutcome",
    "Malformed",
    "NotFound",
    "Rejected",
    "TransientError",
    "ImageUrlBuilder",
    "MetadataSettings",
    "PosterMode",
]
