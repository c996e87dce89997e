"""
Couche application (cas d'utilisation).

- SwipeDeckService : decks servis depuis le pool, rempli a la demande
- DiscoverPrewarmService : prechauffage des pools et des images
- DetailsBackfillService : complement des details du catalogue
"""

from deckcache.services.deck import SwipeDeckService
from deckcache.services.details_backfill import BackfillStats, DetailsBackfillService
from deckcache.services.prewarm import DiscoverPrewarmService, PrewarmStats

__all__ = [
    "BackfillStats",
    "DetailsBackfillService",
    "DiscoverPrewarmService",
    "PrewarmStats",
    "SwipeDeckService",
]
