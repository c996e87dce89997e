"""
Business entities representing core domain concepts.

Exports:
- DiscoveredMovie: Movie summary from a discovery page
- MovieDetails: Full details from the movie endpoint
- StoredMovie: Catalog row of the metadata store
- SwipeCard: Card rendered in a swipe deck
- UserPreferences: Discovery preferences of a user
- merge_movie_fields: Merge rule for catalog writes
"""

from deckcache.core.entities.movie import (
    DiscoveredMovie,
    MovieDetails,
    StoredMovie,
    SwipeCard,
    merge_movie_fields,
)
from deckcache.core.entities.preferences import UserPreferences

__all__ = [
    "DiscoveredMovie",
    "MovieDetails",
    "StoredMovie",
    "SwipeCard",
    "UserPreferences",
    "merge_movie_fields",
]
