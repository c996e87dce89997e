"""
Modeles pydantic des reponses TMDB.

Seuls les champs utilises sont declares ; les autres sont ignores. Une
reponse qui ne valide pas ces modeles est une reponse illisible (Malformed).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TmdbDiscoverResult(BaseModel):
    """Element de /discover/movie."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: Optional[str] = None
    original_title: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    original_language: Optional[str] = None
    vote_average: Optional[float] = None
    genre_ids: list[int] = Field(default_factory=list)


class TmdbDiscoverPage(BaseModel):
    """Page de /discover/movie."""

    model_config = ConfigDict(extra="ignore")

    page: int = 1
    total_pages: int = 1
    total_results: int = 0
    results: list[TmdbDiscoverResult] = Field(default_factory=list)


class TmdbGenre(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    name: str


class TmdbMovieDetails(BaseModel):
    """Reponse de /movie/{id}."""

    model_config = ConfigDict(extra="ignore")

    id: int
    title: Optional[str] = None
    original_title: Optional[str] = None
    overview: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    release_date: Optional[str] = None
    original_language: Optional[str] = None
    vote_average: Optional[float] = None
    vote_count: Optional[int] = None
    runtime: Optional[int] = None
    genres: list[TmdbGenre] = Field(default_factory=list)
