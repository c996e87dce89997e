"""
Movie entities.

Entities representing movies at the three levels of knowledge the cache
deals with: a discovery summary, a catalog row (summary, optionally enriched
with details), and a ready-to-render swipe card.
"""

from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class DiscoveredMovie:
    """
    Movie summary as returned by a TMDB discovery page.

    Attributes:
        id: The Movie Database ID
        title: Localized title
        original_title: Original language title
        overview: Plot summary
        poster_path: Poster path on the TMDB CDN (e.g. "/abc.jpg")
        backdrop_path: Backdrop path on the TMDB CDN
        release_date: Release date as returned upstream ("YYYY-MM-DD")
        original_language: ISO 639-1 code
        vote_average: TMDB rating (0-10)
        genre_ids: TMDB genre identifiers
    """

    id: int
    title: Optional[str] = None
    original_title: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    original_language: Optional[str] = None
    vote_average: Optional[float] = None
    genre_ids: tuple[int, ...] = ()

    @property
    def display_title(self) -> str:
        """Title fallback chain: title, original title, then a synthetic label."""
        return _first_text(self.title, self.original_title) or f"TMDB:{self.id}"

    @property
    def release_year(self) -> Optional[int]:
        return parse_release_year(self.release_date)

    def to_stored(self) -> "StoredMovie":
        """Summary-only catalog view (detail fields left missing)."""
        return StoredMovie(
            tmdb_id=self.id,
            title=self.display_title,
            original_title=self.original_title,
            overview=self.overview,
            poster_path=self.poster_path,
            backdrop_path=self.backdrop_path,
            release_date=self.release_date,
            release_year=self.release_year,
            original_language=self.original_language,
            rating=self.vote_average,
            genre_ids=self.genre_ids,
        )


@dataclass(frozen=True)
class MovieDetails:
    """
    Full movie details from the TMDB movie endpoint.

    Attributes:
        tmdb_id: The Movie Database ID
        title: Localized title
        overview: Plot summary
        poster_path: Poster path on the TMDB CDN
        backdrop_path: Backdrop path on the TMDB CDN
        poster_url: Direct poster URL (configured poster size)
        backdrop_url: Direct backdrop URL (configured backdrop size)
        release_date: Release date ("YYYY-MM-DD")
        release_year: Release year
        rating: TMDB rating (0-10)
        vote_count: Number of TMDB votes
        genres: Genre names
        original_language: ISO 639-1 code
        runtime_minutes: Runtime in minutes
    """

    tmdb_id: int
    title: str
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    release_date: Optional[str] = None
    release_year: Optional[int] = None
    rating: Optional[float] = None
    vote_count: Optional[int] = None
    genres: tuple[str, ...] = ()
    original_language: Optional[str] = None
    runtime_minutes: Optional[int] = None

    def to_stored(self) -> "StoredMovie":
        return StoredMovie(
            tmdb_id=self.tmdb_id,
            title=self.title,
            overview=self.overview,
            poster_path=self.poster_path,
            backdrop_path=self.backdrop_path,
            release_date=self.release_date,
            release_year=self.release_year,
            original_language=self.original_language,
            rating=self.rating,
            vote_count=self.vote_count,
            runtime_minutes=self.runtime_minutes,
            genres=self.genres,
        )


@dataclass(frozen=True)
class StoredMovie:
    """
    Catalog row of the metadata store.

    A row with details_fetched_at = None only carries the discovery summary.

    Attributes:
        tmdb_id: The Movie Database ID (catalog key)
        title: Title (never empty, see DiscoveredMovie.display_title)
        details_fetched_at: When details were last merged, None if never
        updated_at: Last write of the row
    """

    tmdb_id: int
    title: str
    original_title: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    release_year: Optional[int] = None
    original_language: Optional[str] = None
    rating: Optional[float] = None
    vote_count: Optional[int] = None
    runtime_minutes: Optional[int] = None
    genre_ids: tuple[int, ...] = ()
    genres: tuple[str, ...] = ()
    details_fetched_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def has_details(self) -> bool:
        return self.details_fetched_at is not None


@dataclass(frozen=True)
class SwipeCard:
    """
    Card shown in a swipe deck.

    Attributes:
        tmdb_id: The Movie Database ID
        title: Display title
        overview: Plot summary
        poster_url: Poster URL (direct TMDB or local proxy)
        backdrop_url: Backdrop URL (direct TMDB or local proxy)
        release_year: Release year
        rating: TMDB rating (0-10)
    """

    tmdb_id: int
    title: str
    overview: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    release_year: Optional[int] = None
    rating: Optional[float] = None


def _first_text(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


def parse_release_year(release_date: Optional[str]) -> Optional[int]:
    """Extract the year of a "YYYY-MM-DD" date, None if absent or unparsable."""
    if not release_date or len(release_date) < 4:
        return None
    head = release_date[:4]
    return int(head) if head.isdigit() else None


def is_missing(value: object) -> bool:
    """A field value is missing when it is None, an empty tuple or a blank string."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (tuple, list)):
        return len(value) == 0
    return False


def merge_movie_fields(existing: StoredMovie, incoming: StoredMovie) -> StoredMovie:
    """
    Merge an incoming catalog view into the existing row.

    For every field the incoming value wins unless it is missing, in which
    case the existing value is kept. A summary write therefore never clears
    detail fields fetched earlier. The catalog key always comes from
    `existing`.
    """
    merged = {}
    for field in fields(StoredMovie):
        if field.name == "tmdb_id":
            continue
        value = getattr(incoming, field.name)
        merged[field.name] = getattr(existing, field.name) if is_missing(value) else value
    return replace(existing, **merged)
