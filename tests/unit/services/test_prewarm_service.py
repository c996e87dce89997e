"""
Tests unitaires pour DiscoverPrewarmService.
"""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from deckcache.core.entities import DiscoveredMovie, UserPreferences
from deckcache.core.ports.caching import IImageCache, ImageCacheResult
from deckcache.core.value_objects import MetadataSettings, PosterMode
from deckcache.services.prewarm import DiscoverPrewarmService

LOCAL_PROXY = MetadataSettings(poster_mode=PosterMode.LOCAL_PROXY, image_cache_max_mb=1)


@pytest.fixture
def mock_image_cache() -> MagicMock:
    mock = MagicMock(spec=IImageCache)
    mock.get_or_fetch = AsyncMock(
        return_value=ImageCacheResult(file_path=Path("/tmp/x.jpg"), content_type="image/jpeg")
    )
    mock.prune = AsyncMock(return_value=0)
    return mock


@pytest.fixture
def service(mock_metadata_store, mock_tmdb_client, mock_image_cache) -> DiscoverPrewarmService:
    return DiscoverPrewarmService(mock_metadata_store, mock_tmdb_client, mock_image_cache)


class TestRunOnce:
    """Tests pour run_once."""

    @pytest.mark.asyncio
    async def test_pools_each_user(self, service, mock_metadata_store, mock_tmdb_client, discovered_movies):
        mock_tmdb_client.discover_movies.return_value = discovered_movies
        users = [("alice", UserPreferences()), ("bob", UserPreferences(min_rating=7.0))]

        stats = await service.run_once(users)

        assert stats.users == 2
        assert stats.movies_pooled == 6
        assert stats.failed_users == 0
        assert mock_tmdb_client.discover_movies.await_count == 2
        mock_tmdb_client.discover_movies.assert_any_await(UserPreferences(min_rating=7.0), page=1, limit=50)
        mock_metadata_store.add_to_pool.assert_any_await("bob", discovered_movies)
        mock_metadata_store.get_settings.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_configured_does_nothing(self, service, mock_tmdb_client, mock_metadata_store):
        mock_tmdb_client.is_configured = False

        stats = await service.run_once([("alice", UserPreferences())])

        assert stats.users == 0
        mock_tmdb_client.discover_movies.assert_not_awaited()
        mock_metadata_store.get_settings.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_store_failure_counts_user(self, service, mock_metadata_store, mock_tmdb_client, discovered_movies):
        mock_tmdb_client.discover_movies.return_value = discovered_movies
        mock_metadata_store.add_to_pool.side_effect = [False, True]

        stats = await service.run_once([("alice", UserPreferences()), ("bob", UserPreferences())])

        assert stats.failed_users == 1
        assert stats.movies_pooled == 3

    @pytest.mark.asyncio
    async def test_empty_discovery_skips_user(self, service, mock_metadata_store):
        stats = await service.run_once([("alice", UserPreferences())])

        assert stats.users == 1
        assert stats.movies_pooled == 0
        mock_metadata_store.add_to_pool.assert_not_awaited()


class TestImagePrefetch:
    """Tests pour le pre-telechargement des images."""

    @pytest.mark.asyncio
    async def test_direct_mode_skips_images(
        self, service, mock_tmdb_client, mock_image_cache, discovered_movies
    ):
        mock_tmdb_client.discover_movies.return_value = discovered_movies

        stats = await service.run_once([("alice", UserPreferences())])

        assert stats.images_cached == 0
        mock_image_cache.get_or_fetch.assert_not_awaited()
        mock_image_cache.prune.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_local_proxy_prefetches_and_prunes(
        self, service, mock_metadata_store, mock_tmdb_client, mock_image_cache, discovered_movies
    ):
        mock_metadata_store.get_settings.return_value = LOCAL_PROXY
        mock_tmdb_client.discover_movies.return_value = discovered_movies
        mock_image_cache.prune.return_value = 2

        stats = await service.run_once([("alice", UserPreferences())])

        # Inception a poster + backdrop, les deux autres seulement un poster
        assert stats.images_cached == 4
        mock_image_cache.get_or_fetch.assert_any_await("w500", "/inception.jpg")
        mock_image_cache.get_or_fetch.assert_any_await("w780", "/inception_bg.jpg")
        mock_image_cache.prune.assert_awaited_once_with(1024 * 1024)
        assert stats.images_evicted == 2

    @pytest.mark.asyncio
    async def test_prefetch_limited_to_first_movies(
        self, service, mock_metadata_store, mock_tmdb_client, mock_image_cache
    ):
        mock_metadata_store.get_settings.return_value = LOCAL_PROXY
        mock_tmdb_client.discover_movies.return_value = [
            DiscoveredMovie(id=i, title=f"Film {i}", poster_path=f"/p{i}.jpg") for i in range(1, 21)
        ]

        stats = await service.run_once([("alice", UserPreferences())])

        assert stats.images_cached == 8
        assert mock_image_cache.get_or_fetch.await_count == 8

    @pytest.mark.asyncio
    async def test_zero_budget_disables_images(
        self, service, mock_metadata_store, mock_tmdb_client, mock_image_cache, discovered_movies
    ):
        mock_metadata_store.get_settings.return_value = MetadataSettings(
            poster_mode=PosterMode.LOCAL_PROXY, image_cache_max_mb=0
        )
        mock_tmdb_client.discover_movies.return_value = discovered_movies

        await service.run_once([("alice", UserPreferences())])

        mock_image_cache.get_or_fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_download_not_counted(
        self, service, mock_metadata_store, mock_tmdb_client, mock_image_cache, discovered_movies
    ):
        mock_metadata_store.get_settings.return_value = LOCAL_PROXY
        mock_tmdb_client.discover_movies.return_value = discovered_movies[:1]
        mock_image_cache.get_or_fetch.side_effect = [None, OSError("disque plein")]

        stats = await service.run_once([("alice", UserPreferences())])

        assert stats.images_cached == 0
        assert stats.movies_pooled == 1
