"""
Fixtures pytest partagees pour les tests deckcache.

Ce module contient les fixtures communes utilisees dans les tests:
- Engine SQLite sur fichier temporaire
- Horloge controlable pour les TTL et la maintenance
- Settings de test avec chemins temporaires
- Mocks des ports (client TMDB, store de metadonnees)
"""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import Engine

from deckcache.config import Settings
from deckcache.core.entities import DiscoveredMovie
from deckcache.core.ports.api_clients import IMovieMetadataClient
from deckcache.core.ports.caching import IResponseCache
from deckcache.core.ports.repositories import IMetadataStore
from deckcache.core.value_objects import MetadataSettings
from deckcache.infrastructure.persistence.database import create_sqlite_engine, init_db


class FakeClock:
    """Horloge manuelle : avance uniquement via advance()."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class InMemoryResponseCache(IResponseCache):
    """Cache de reponses en dictionnaire, sans expiration ; garde les TTL demandes."""

    def __init__(self) -> None:
        self.entries: dict[str, object] = {}
        self.ttls: dict[str, float] = {}

    async def get(self, key, payload_type):
        return self.entries.get(key)

    async def set(self, key, value, ttl_seconds):
        if ttl_seconds <= 0:
            return
        self.entries[key] = value
        self.ttls[key] = ttl_seconds


class FakeSleep:
    """Sommeil async instantane qui enregistre les delais demandes."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def response_cache() -> InMemoryResponseCache:
    return InMemoryResponseCache()


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def clock() -> FakeClock:
    """Horloge controlable, partagee entre store et porte de maintenance."""
    return FakeClock()


@pytest.fixture
def engine(tmp_path: Path) -> Iterator[Engine]:
    """Engine SQLite sur un fichier temporaire, tables creees."""
    engine = create_sqlite_engine(tmp_path / "deckcache.db")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """
    Settings de test avec chemins temporaires.

    Aucun identifiant TMDB : les tests qui en ont besoin les fournissent.
    """
    return Settings(
        database_path=tmp_path / "data" / "deckcache.db",
        tmdb_api_key=None,
        tmdb_read_access_token=None,
        log_file=tmp_path / "test.log",
    )


@pytest.fixture
def discovered_movies() -> list[DiscoveredMovie]:
    """Trois resumes discover types."""
    return [
        DiscoveredMovie(
            id=27205,
            title="Inception",
            original_title="Inception",
            overview="Dom Cobb est un voleur experimente...",
            poster_path="/inception.jpg",
            backdrop_path="/inception_bg.jpg",
            release_date="2010-07-15",
            original_language="en",
            vote_average=8.4,
            genre_ids=(28, 878),
        ),
        DiscoveredMovie(
            id=157336,
            title="Interstellar",
            original_title="Interstellar",
            poster_path="/interstellar.jpg",
            release_date="2014-11-05",
            vote_average=8.4,
            genre_ids=(12, 18, 878),
        ),
        DiscoveredMovie(
            id=155,
            title="The Dark Knight",
            poster_path="/dark_knight.jpg",
            release_date="2008-07-16",
            vote_average=8.5,
            genre_ids=(18, 28),
        ),
    ]


@pytest.fixture
def mock_tmdb_client() -> MagicMock:
    """
    Mock de IMovieMetadataClient.

    Configure par defaut : identifiants presents, decouverte vide.
    """
    mock = MagicMock(spec=IMovieMetadataClient)
    mock.is_configured = True
    mock.discover_movies = AsyncMock(return_value=[])
    mock.discover = AsyncMock(return_value=[])
    mock.get_movie_details = AsyncMock(return_value=None)
    mock.lookup_movie_details = AsyncMock()
    return mock


@pytest.fixture
def mock_metadata_store() -> MagicMock:
    """
    Mock de IMetadataStore.

    Pool vide, ecritures reussies et reglages par defaut.
    """
    mock = MagicMock(spec=IMetadataStore)
    mock.add_to_pool = AsyncMock(return_value=True)
    mock.get_pool = AsyncMock(return_value=[])
    mock.clear_pool = AsyncMock(return_value=True)
    mock.list_movies_needing_details = AsyncMock(return_value=[])
    mock.update_details = AsyncMock(return_value=True)
    mock.get_settings = AsyncMock(return_value=MetadataSettings())
    return mock
