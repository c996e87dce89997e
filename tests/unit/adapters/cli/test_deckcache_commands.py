"""
Tests unitaires pour les commandes CLI de deckcache.

Les implementations async (_x_async) sont appelees directement avec un
Container mocke ; la console Rich est patchee pour inspecter l'affichage.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import typer
from typer.testing import CliRunner

from deckcache import __version__
from deckcache.adapters.cli.commands import (
    _backfill_async,
    _cache_stats_async,
    _deck_async,
    _details_async,
    _discover_async,
    _prewarm_async,
    _prune_images_async,
    _settings_set_async,
)
from deckcache.adapters.cli.helpers import parse_preferences
from deckcache.core.entities import MovieDetails, SwipeCard, UserPreferences
from deckcache.core.ports.repositories import MetadataStats
from deckcache.core.value_objects import (
    Found,
    MetadataSettings,
    NotFound,
    PosterMode,
    Rejected,
    TransientError,
)
from deckcache.main import app
from deckcache.services.details_backfill import BackfillStats
from deckcache.services.prewarm import PrewarmStats

_MODULE = "deckcache.adapters.cli.commands"

runner = CliRunner()


def printed(mock_console: MagicMock) -> str:
    return " ".join(str(call.args[0]) for call in mock_console.print.call_args_list if call.args)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def mock_container():
    """Mock le Container pour les tests.

    Patche Container dans helpers.py car c'est la que le decorateur
    @with_container() l'importe et l'instancie.
    """
    with patch("deckcache.adapters.cli.helpers.Container") as mock_cls:
        container_instance = MagicMock()
        mock_cls.return_value = container_instance
        container_instance.database.init = MagicMock()
        container_instance.tmdb_client.return_value.close = AsyncMock()
        container_instance.image_http_client.return_value.aclose = AsyncMock()
        yield container_instance


@pytest.fixture
def mock_console():
    with patch(f"{_MODULE}.console") as console:
        yield console


# ============================================================================
# Tests
# ============================================================================


class TestParsePreferences:
    """Tests pour la conversion des options en preferences."""

    def test_options_are_mapped(self):
        preferences = parse_preferences(
            genres=[28, 878], without_genres=[27], min_year=2000, language="fr", region="FR"
        )

        assert preferences == UserPreferences(
            min_release_year=2000,
            preferred_genres=(28, 878),
            excluded_genres=(27,),
            preferred_original_languages=("fr",),
            preferred_regions=("FR",),
        )

    def test_no_options(self):
        assert parse_preferences() == UserPreferences()


class TestDiscoverCommand:
    """Tests pour la commande discover."""

    @pytest.mark.asyncio
    async def test_prints_cards(self, mock_container, mock_console):
        client = mock_container.tmdb_client.return_value
        client.is_configured = True
        client.discover = AsyncMock(return_value=[SwipeCard(tmdb_id=27205, title="Inception", rating=8.4)])

        await _discover_async(UserPreferences(), 1, 20)

        client.discover.assert_awaited_once_with(UserPreferences(), page=1, limit=20)
        mock_console.print.assert_called_once()
        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_not_configured_exits(self, mock_container, mock_console):
        mock_container.tmdb_client.return_value.is_configured = False

        with pytest.raises(typer.Exit):
            await _discover_async(UserPreferences(), 1, 20)

        assert "non configure" in printed(mock_console)
        mock_container.image_http_client.return_value.aclose.assert_awaited_once()


class TestDetailsCommand:
    """Tests pour la commande details."""

    @pytest.mark.asyncio
    async def test_found(self, mock_container, mock_console):
        mock_container.tmdb_client.return_value.lookup_movie_details = AsyncMock(
            return_value=Found(
                MovieDetails(
                    tmdb_id=27205,
                    title="Inception",
                    release_year=2010,
                    genres=("Action", "Science-Fiction"),
                    runtime_minutes=148,
                )
            )
        )

        await _details_async(27205)

        output = printed(mock_console)
        assert "Inception" in output
        assert "148 min" in output
        assert "Action, Science-Fiction" in output

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "outcome,message",
        [
            (NotFound(), "introuvable"),
            (Rejected(status_code=401), "HTTP 401"),
            (TransientError(reason="ReadTimeout"), "ReadTimeout"),
        ],
    )
    async def test_failures_exit(self, mock_container, mock_console, outcome, message):
        mock_container.tmdb_client.return_value.lookup_movie_details = AsyncMock(return_value=outcome)

        with pytest.raises(typer.Exit):
            await _details_async(1)

        assert message in printed(mock_console)


class TestDeckCommand:
    """Tests pour la commande deck."""

    @pytest.mark.asyncio
    async def test_serves_deck(self, mock_container, mock_console):
        deck_service = mock_container.deck_service.return_value
        deck_service.get_deck = AsyncMock(return_value=[SwipeCard(tmdb_id=155, title="The Dark Knight")])
        store = mock_container.metadata_store.return_value
        store.clear_pool = AsyncMock()

        await _deck_async("alice", UserPreferences(), 10, False)

        deck_service.get_deck.assert_awaited_once_with("alice", UserPreferences(), limit=10)
        store.clear_pool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clear_before_serving(self, mock_container, mock_console):
        mock_container.deck_service.return_value.get_deck = AsyncMock(return_value=[])
        store = mock_container.metadata_store.return_value
        store.clear_pool = AsyncMock(return_value=True)

        await _deck_async("alice", UserPreferences(), 10, True)

        store.clear_pool.assert_awaited_once_with("alice")
        assert "Deck vide" in printed(mock_console)


class TestBatchCommands:
    """Tests pour prewarm, backfill et prune-images."""

    @pytest.mark.asyncio
    async def test_prewarm_summary(self, mock_container, mock_console):
        service = mock_container.prewarm_service.return_value
        service.run_once = AsyncMock(return_value=PrewarmStats(users=1, movies_pooled=40, failed_users=0))
        users = [("alice", UserPreferences())]

        await _prewarm_async(users)

        service.run_once.assert_awaited_once_with(users)
        assert "40" in printed(mock_console)

    @pytest.mark.asyncio
    async def test_backfill_summary(self, mock_container, mock_console):
        service = mock_container.backfill_service.return_value
        service.run_once = AsyncMock(return_value=BackfillStats(total=3, enriched=2, not_found=1))

        await _backfill_async(5)

        service.run_once.assert_awaited_once_with(limit=5)
        output = printed(mock_console)
        assert "enrichi" in output
        assert "introuvable" in output

    @pytest.mark.asyncio
    async def test_backfill_nothing_to_do(self, mock_container, mock_console):
        mock_container.backfill_service.return_value.run_once = AsyncMock(return_value=BackfillStats())

        await _backfill_async(5)

        assert "Aucun film" in printed(mock_console)

    @pytest.mark.asyncio
    async def test_prune_images_uses_setting_by_default(self, mock_container, mock_console):
        mock_container.metadata_store.return_value.get_settings = AsyncMock(
            return_value=MetadataSettings(image_cache_max_mb=2)
        )
        image_cache = mock_container.image_cache.return_value
        image_cache.prune = AsyncMock(return_value=3)
        image_cache.get_total_bytes = AsyncMock(return_value=1024 * 1024)

        await _prune_images_async(None)

        image_cache.prune.assert_awaited_once_with(2 * 1024 * 1024)

    @pytest.mark.asyncio
    async def test_prune_images_explicit_budget(self, mock_container, mock_console):
        image_cache = mock_container.image_cache.return_value
        image_cache.prune = AsyncMock(return_value=0)
        image_cache.get_total_bytes = AsyncMock(return_value=0)

        await _prune_images_async(0)

        image_cache.prune.assert_awaited_once_with(0)


class TestSettingsCommands:
    """Tests pour cache-stats et settings set."""

    @pytest.mark.asyncio
    async def test_cache_stats(self, mock_container, mock_console):
        mock_container.metadata_store.return_value.get_stats = AsyncMock(
            return_value=MetadataStats(movie_count=12, pool_entry_count=30)
        )
        response_cache = mock_container.response_cache.return_value
        response_cache.get_row_count = AsyncMock(return_value=42)
        response_cache.get_max_rows = AsyncMock(return_value=5000)
        mock_container.image_cache.return_value.get_total_bytes = AsyncMock(return_value=0)

        await _cache_stats_async()

        mock_console.print.assert_called_once()

    @pytest.mark.asyncio
    async def test_settings_set_keeps_unspecified_values(self, mock_container, mock_console):
        store = mock_container.metadata_store.return_value
        current = MetadataSettings(max_movies=1000, image_cache_max_mb=64)
        store.get_settings = AsyncMock(return_value=current)
        store.set_settings = AsyncMock(side_effect=lambda s: s.normalized())
        response_cache = mock_container.response_cache.return_value
        response_cache.set_max_rows = AsyncMock(return_value=300)
        response_cache.get_max_rows = AsyncMock(return_value=300)

        await _settings_set_async(None, 100, None, "local_proxy", 300)

        store.set_settings.assert_awaited_once_with(
            MetadataSettings(
                max_movies=1000,
                max_pool_per_user=100,
                image_cache_max_mb=64,
                poster_mode=PosterMode.LOCAL_PROXY,
            )
        )
        response_cache.set_max_rows.assert_awaited_once_with(300)

    @pytest.mark.asyncio
    async def test_settings_set_without_rows(self, mock_container, mock_console):
        store = mock_container.metadata_store.return_value
        store.get_settings = AsyncMock(return_value=MetadataSettings())
        store.set_settings = AsyncMock(return_value=MetadataSettings())
        response_cache = mock_container.response_cache.return_value
        response_cache.set_max_rows = AsyncMock()
        response_cache.get_max_rows = AsyncMock(return_value=5000)

        await _settings_set_async(None, None, None, None, None)

        response_cache.set_max_rows.assert_not_awaited()


class TestApp:
    """Tests de l'application Typer."""

    @pytest.fixture(autouse=True)
    def mock_configure_logging(self):
        with patch("deckcache.main.configure_logging") as configure:
            yield configure

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    @pytest.mark.parametrize(
        "args,level",
        [
            (["-q"], "ERROR"),
            (["-q", "-v"], "ERROR"),
            (["-v"], "DEBUG"),
            (["-vv"], "TRACE"),
        ],
    )
    def test_verbosity_sets_console_level(self, mock_configure_logging, args, level):
        result = runner.invoke(app, [*args, "version"])

        assert result.exit_code == 0
        mock_configure_logging.assert_called_once()
        assert mock_configure_logging.call_args.kwargs["log_level"] == level

    def test_default_level_comes_from_settings(self, mock_configure_logging):
        with patch("deckcache.main.get_config") as get_config:
            get_config.return_value.log_level = "warning"
            result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert mock_configure_logging.call_args.kwargs["log_level"] == "WARNING"

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("discover", "deck", "prewarm", "backfill", "prune-images", "cache-stats", "settings"):
            assert command in result.stdout
