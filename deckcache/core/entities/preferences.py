"""
User preferences entity.

Preferences are owned by an external provider; the cache only reads them
to shape TMDB discovery queries.
"""

from dataclasses import dataclass
from typing import Optional

DEFAULT_SORT_BY = "popularity.desc"


@dataclass(frozen=True)
class UserPreferences:
    """
    Discovery preferences of a user.

    Attributes:
        include_adult: Include adult titles
        min_release_year / max_release_year: Primary release year window
        min_rating / max_rating: TMDB vote average window
        preferred_genres / excluded_genres: TMDB genre IDs
        preferred_original_languages: ISO 639-1 codes, first one is queried
        excluded_original_languages: Informational, not expressible upstream
        preferred_regions: ISO 3166-1 codes, first one is queried
        excluded_regions: Informational, not expressible upstream
        sort_by: TMDB sort order
    """

    include_adult: bool = False
    min_release_year: Optional[int] = None
    max_release_year: Optional[int] = None
    min_rating: Optional[float] = None
    max_rating: Optional[float] = None
    preferred_genres: tuple[int, ...] = ()
    excluded_genres: tuple[int, ...] = ()
    preferred_original_languages: tuple[str, ...] = ()
    excluded_original_languages: tuple[str, ...] = ()
    preferred_regions: tuple[str, ...] = ()
    excluded_regions: tuple[str, ...] = ()
    sort_by: str = DEFAULT_SORT_BY

    def to_discover_params(self, page: int) -> dict[str, str]:
        """Build the query parameters of a TMDB /discover/movie request."""
        params = {
            "include_adult": "true" if self.include_adult else "false",
            "sort_by": self.sort_by.strip() or DEFAULT_SORT_BY,
            "page": str(page),
        }
        if self.min_release_year is not None:
            params["primary_release_date.gte"] = f"{self.min_release_year:04d}-01-01"
        if self.max_release_year is not None:
            params["primary_release_date.lte"] = f"{self.max_release_year:04d}-12-31"
        if self.min_rating is not None:
            params["vote_average.gte"] = f"{self.min_rating:g}"
        if self.max_rating is not None:
            params["vote_average.lte"] = f"{self.max_rating:g}"
        if self.preferred_genres:
            params["with_genres"] = "|".join(str(g) for g in self.preferred_genres)
        if self.excluded_genres:
            params["without_genres"] = "|".join(str(g) for g in self.excluded_genres)

        language = _first_code(self.preferred_original_languages)
        if language:
            params["with_original_language"] = language
        region = _first_code(self.preferred_regions)
        if region:
            params["region"] = region
        return params


def _first_code(codes: tuple[str, ...]) -> Optional[str]:
    for code in codes:
        if code and code.strip():
            return code.strip()
    return None
