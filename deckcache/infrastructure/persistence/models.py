"""
Modeles SQLModel pour la base de donnees deckcache.

Ces modeles representent les tables de la base de donnees SQLite.
Ils sont distincts des entites de domaine (dataclass dans core/entities/)
selon l'architecture hexagonale.

Tables:
- response_cache: Niveau persistant du cache de reponses HTTP
- movies: Catalogue de films (resume discover, enrichi par les details)
- user_pool: Pool classe de films candidats par utilisateur
- cache_settings: Reglages cle/valeur des stores
- image_cache: Index des fichiers images en cache

Les champs JSON (*_json) stockent des listes serialisees en JSON.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, Index, SQLModel

from deckcache.utils.helpers import utc_now


class UTCDateTime(TypeDecorator):
    """
    Horodatage UTC.

    SQLite ne conserve pas le fuseau : la valeur est convertie en UTC puis
    stockee sans tzinfo (tri textuel coherent), et relue avec tzinfo=UTC.
    Une valeur naive est consideree comme deja en UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class ResponseCacheEntryModel(SQLModel, table=True):
    """
    Entree persistante du cache de reponses.

    La cle primaire est (cache_key, payload_type) : une meme cle peut porter
    des valeurs de types differents sans collision.
    """

    __tablename__ = "response_cache"

    cache_key: str = Field(primary_key=True)
    payload_type: str = Field(primary_key=True)
    payload_json: bytes
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    expires_at: datetime = Field(sa_type=UTCDateTime, index=True)


class MovieModel(SQLModel, table=True):
    """
    Modele representant un film du catalogue.

    details_fetched_at est NULL tant que seul le resume discover est connu.
    """

    __tablename__ = "movies"

    tmdb_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    title: str
    original_title: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str | None = None
    release_year: int | None = None
    original_language: str | None = None
    rating: float | None = None  # Note moyenne TMDB (0-10)
    vote_count: int | None = None
    runtime_minutes: int | None = None
    genre_ids_json: str | None = None  # JSON: [28, 12]
    genres_json: str | None = None  # JSON: ["Action", "Aventure"]
    details_fetched_at: datetime | None = Field(default=None, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)

    @property
    def genre_ids(self) -> list[int]:
        return _load_list(self.genre_ids_json)

    @genre_ids.setter
    def genre_ids(self, value: Optional[list[Any]]) -> None:
        self.genre_ids_json = _dump_list(value)

    @property
    def genres(self) -> list[str]:
        return _load_list(self.genres_json)

    @genres.setter
    def genres(self, value: Optional[list[Any]]) -> None:
        self.genres_json = _dump_list(value)


class UserPoolEntryModel(SQLModel, table=True):
    """
    Film candidat du pool d'un utilisateur.

    La suppression d'un film du catalogue supprime ses entrees de pool (CASCADE).
    """

    __tablename__ = "user_pool"
    __table_args__ = (Index("ix_user_pool_user_rank", "user_id", "rank"),)

    user_id: str = Field(primary_key=True)
    tmdb_id: int = Field(
        primary_key=True,
        foreign_key="movies.tmdb_id",
        ondelete="CASCADE",
    )
    rank: int = Field(default=0)
    added_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class CacheSettingModel(SQLModel, table=True):
    """Reglage cle/valeur (bornes appliquees a la lecture)."""

    __tablename__ = "cache_settings"

    settings_key: str = Field(primary_key=True)
    settings_value: str
    updated_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)


class ImageCacheEntryModel(SQLModel, table=True):
    """
    Fichier image en cache.

    cache_key vaut "{size}:{path}" ; file_name est le sha256 de la cle
    suivi de l'extension du chemin TMDB.
    """

    __tablename__ = "image_cache"

    cache_key: str = Field(primary_key=True)
    tmdb_path: str
    size: str
    file_name: str
    file_bytes: int = Field(default=0)
    created_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime)
    last_access_at: datetime = Field(default_factory=utc_now, sa_type=UTCDateTime, index=True)


def _load_list(raw: Optional[str]) -> list[Any]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except ValueError:
        return []
    return value if isinstance(value, list) else []


def _dump_list(value: Optional[list[Any]]) -> Optional[str]:
    if not value:
        return None
    return json.dumps(list(value), ensure_ascii=False)
