"""
Commandes CLI de deckcache : decouverte, deck, prechauffage, complement,
eviction d'images, statistiques et reglages.

Chaque commande sync lance son implementation async via asyncio.run().
"""

import asyncio
from typing import Annotated, Optional

import typer
from rich.table import Table

from deckcache.adapters.cli.helpers import (
    console,
    parse_preferences,
    suppress_loguru,
    with_container,
)
from deckcache.core.entities import SwipeCard
from deckcache.core.value_objects import (
    Found,
    MetadataSettings,
    NotFound,
    PosterMode,
    Rejected,
)

GenresOption = Annotated[
    Optional[list[int]],
    typer.Option("--genre", "-g", help="Genre TMDB prefere (repetable)"),
]
WithoutGenresOption = Annotated[
    Optional[list[int]],
    typer.Option("--without-genre", help="Genre TMDB exclu (repetable)"),
]
MinYearOption = Annotated[Optional[int], typer.Option("--min-year", help="Annee de sortie minimale")]
MaxYearOption = Annotated[Optional[int], typer.Option("--max-year", help="Annee de sortie maximale")]
MinRatingOption = Annotated[Optional[float], typer.Option("--min-rating", help="Note TMDB minimale")]
LanguageOption = Annotated[Optional[str], typer.Option("--language", help="Langue originale (ISO 639-1)")]
RegionOption = Annotated[Optional[str], typer.Option("--region", help="Region (ISO 3166-1)")]


def _print_cards(cards: list[SwipeCard], title: str) -> None:
    table = Table(title=title)
    table.add_column("TMDB", justify="right", style="cyan")
    table.add_column("Titre")
    table.add_column("Annee", justify="right")
    table.add_column("Note", justify="right")
    table.add_column("Poster", style="dim")
    for card in cards:
        table.add_row(
            str(card.tmdb_id),
            card.title,
            str(card.release_year or ""),
            f"{card.rating:.1f}" if card.rating is not None else "",
            card.poster_url or "",
        )
    console.print(table)


# ----------------------------------------------------------------------
# discover
# ----------------------------------------------------------------------


def discover(
    genres: GenresOption = None,
    without_genres: WithoutGenresOption = None,
    min_year: MinYearOption = None,
    max_year: MaxYearOption = None,
    min_rating: MinRatingOption = None,
    language: LanguageOption = None,
    region: RegionOption = None,
    page: Annotated[int, typer.Option("--page", "-p", help="Premiere page TMDB")] = 1,
    limit: Annotated[int, typer.Option("--limit", "-l", help="Nombre maximum de films")] = 20,
) -> None:
    """Decouvre des films via le pipeline TMDB (cache + rate limiting)."""
    preferences = parse_preferences(genres, without_genres, min_year, max_year, min_rating, language, region)
    asyncio.run(_discover_async(preferences, page, limit))


@with_container()
async def _discover_async(container, preferences, page: int, limit: int) -> None:
    """Implementation async de la commande discover."""
    client = container.tmdb_client()
    if not client.is_configured:
        console.print("[red]TMDB non configure[/red] (DECKCACHE_TMDB_API_KEY ou DECKCACHE_TMDB_READ_ACCESS_TOKEN)")
        raise typer.Exit(code=1)

    cards = await client.discover(preferences, page=page, limit=limit)
    if not cards:
        console.print("[yellow]Aucun film decouvert.[/yellow]")
        return
    _print_cards(cards, f"Decouverte TMDB ({len(cards)} film(s))")


# ----------------------------------------------------------------------
# details
# ----------------------------------------------------------------------


def details(
    tmdb_id: Annotated[int, typer.Argument(help="ID TMDB du film")],
) -> None:
    """Affiche les details d'un film (via le cache de reponses)."""
    asyncio.run(_details_async(tmdb_id))


@with_container()
async def _details_async(container, tmdb_id: int) -> None:
    """Implementation async de la commande details."""
    outcome = await container.tmdb_client().lookup_movie_details(tmdb_id)
    if isinstance(outcome, NotFound):
        console.print(f"[yellow]Film {tmdb_id} introuvable.[/yellow]")
        raise typer.Exit(code=1)
    if isinstance(outcome, Rejected):
        console.print(f"[red]Requete refusee par TMDB (HTTP {outcome.status_code}).[/red]")
        raise typer.Exit(code=1)
    if not isinstance(outcome, Found):
        console.print(f"[red]TMDB indisponible:[/red] {outcome.reason}")
        raise typer.Exit(code=1)

    movie = outcome.value
    console.print(f"[bold]{movie.title}[/bold] ({movie.release_year or '?'})")
    if movie.genres:
        console.print(f"  Genres : {', '.join(movie.genres)}")
    if movie.runtime_minutes:
        console.print(f"  Duree : {movie.runtime_minutes} min")
    if movie.rating is not None:
        console.print(f"  Note : {movie.rating:.1f} ({movie.vote_count or 0} votes)")
    if movie.poster_url:
        console.print(f"  Poster : {movie.poster_url}")
    if movie.overview:
        console.print(f"\n{movie.overview}")


# ----------------------------------------------------------------------
# deck
# ----------------------------------------------------------------------


def deck(
    user_id: Annotated[str, typer.Argument(help="Identifiant de l'utilisateur")],
    genres: GenresOption = None,
    without_genres: WithoutGenresOption = None,
    min_year: MinYearOption = None,
    max_year: MaxYearOption = None,
    min_rating: MinRatingOption = None,
    language: LanguageOption = None,
    region: RegionOption = None,
    limit: Annotated[int, typer.Option("--limit", "-l", help="Taille du deck")] = 20,
    clear: Annotated[bool, typer.Option("--clear", help="Vider le pool avant de servir")] = False,
) -> None:
    """Sert un deck depuis le pool de l'utilisateur (rempli si trop court)."""
    preferences = parse_preferences(genres, without_genres, min_year, max_year, min_rating, language, region)
    asyncio.run(_deck_async(user_id, preferences, limit, clear))


@with_container()
async def _deck_async(container, user_id: str, preferences, limit: int, clear: bool) -> None:
    """Implementation async de la commande deck."""
    if clear:
        await container.metadata_store().clear_pool(user_id)
    cards = await container.deck_service().get_deck(user_id, preferences, limit=limit)
    if not cards:
        console.print(f"[yellow]Deck vide pour {user_id}.[/yellow]")
        return
    _print_cards(cards, f"Deck de {user_id} ({len(cards)} carte(s))")


# ----------------------------------------------------------------------
# prewarm / backfill / prune-images
# ----------------------------------------------------------------------


def prewarm(
    users: Annotated[list[str], typer.Option("--user", "-u", help="Utilisateur a prechauffer (repetable)")],
    genres: GenresOption = None,
    without_genres: WithoutGenresOption = None,
    min_year: MinYearOption = None,
    max_year: MaxYearOption = None,
    min_rating: MinRatingOption = None,
    language: LanguageOption = None,
    region: RegionOption = None,
) -> None:
    """Remplit les pools des utilisateurs (et les images en mode proxy local)."""
    preferences = parse_preferences(genres, without_genres, min_year, max_year, min_rating, language, region)
    asyncio.run(_prewarm_async([(user, preferences) for user in users]))


@with_container()
async def _prewarm_async(container, users) -> None:
    """Implementation async de la commande prewarm."""
    console.print(f"[bold cyan]Prechauffage[/bold cyan]: {len(users)} utilisateur(s)")
    with suppress_loguru():
        with console.status("[cyan]Decouverte TMDB..."):
            stats = await container.prewarm_service().run_once(users)

    console.print("\n[bold]Resume:[/bold]")
    console.print(f"  [green]{stats.movies_pooled}[/green] film(s) ajoute(s) aux pools")
    if stats.images_cached:
        console.print(f"  [green]{stats.images_cached}[/green] image(s) en cache")
    if stats.images_evicted:
        console.print(f"  [yellow]{stats.images_evicted}[/yellow] image(s) evincee(s)")
    if stats.failed_users:
        console.print(f"  [red]{stats.failed_users}[/red] pool(s) non ecrit(s)")


def backfill(
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Nombre maximum de films a completer"),
    ] = 10,
) -> None:
    """Complete les details TMDB des films du catalogue qui n'en ont pas."""
    asyncio.run(_backfill_async(limit))


@with_container()
async def _backfill_async(container, limit: int) -> None:
    """Implementation async de la commande backfill."""
    with suppress_loguru():
        with console.status("[cyan]Complement des details..."):
            stats = await container.backfill_service().run_once(limit=limit)

    if stats.total == 0:
        console.print("[yellow]Aucun film a completer.[/yellow]")
        return
    console.print("\n[bold]Resume:[/bold]")
    console.print(f"  [green]{stats.enriched}[/green] enrichi(s)")
    if stats.not_found:
        console.print(f"  [yellow]{stats.not_found}[/yellow] introuvable(s)")
    if stats.failed:
        console.print(f"  [red]{stats.failed}[/red] echec(s)")


def prune_images(
    max_mb: Annotated[
        Optional[int],
        typer.Option("--max-mb", help="Budget en Mo (defaut: reglage image_cache_max_mb)"),
    ] = None,
) -> None:
    """Evince les images les moins recemment utilisees jusqu'au budget."""
    asyncio.run(_prune_images_async(max_mb))


@with_container()
async def _prune_images_async(container, max_mb: Optional[int]) -> None:
    """Implementation async de la commande prune-images."""
    if max_mb is None:
        max_mb = (await container.metadata_store().get_settings()).image_cache_max_mb
    image_cache = container.image_cache()
    removed = await image_cache.prune(max_mb * 1024 * 1024)
    total = await image_cache.get_total_bytes()
    console.print(
        f"[green]{removed}[/green] image(s) evincee(s), "
        f"{total / (1024 * 1024):.1f} Mo restants (budget {max_mb} Mo)"
    )


def cache_stats() -> None:
    """Affiche les volumes des caches (reponses, catalogue, images)."""
    asyncio.run(_cache_stats_async())


@with_container()
async def _cache_stats_async(container) -> None:
    """Implementation async de la commande cache-stats."""
    response_cache = container.response_cache()
    stats = await container.metadata_store().get_stats()
    row_count = await response_cache.get_row_count()
    max_rows = await response_cache.get_max_rows()
    image_bytes = await container.image_cache().get_total_bytes()

    table = Table(title="Caches deckcache")
    table.add_column("Cache")
    table.add_column("Volume", justify="right")
    table.add_row("Reponses HTTP", f"{row_count} / {max_rows} lignes")
    table.add_row("Catalogue", f"{stats.movie_count} film(s)")
    table.add_row("Pools", f"{stats.pool_entry_count} entree(s)")
    table.add_row("Images", f"{image_bytes / (1024 * 1024):.1f} Mo")
    console.print(table)


# ----------------------------------------------------------------------
# settings
# ----------------------------------------------------------------------

settings_app = typer.Typer(help="Reglages des caches")


@settings_app.command("show")
def settings_show() -> None:
    """Affiche les reglages bornes du store."""
    asyncio.run(_settings_show_async())


@with_container()
async def _settings_show_async(container) -> None:
    settings = await container.metadata_store().get_settings()
    max_rows = await container.response_cache().get_max_rows()
    _print_settings(settings, max_rows)


@settings_app.command("set")
def settings_set(
    max_movies: Annotated[Optional[int], typer.Option("--max-movies", help="Films max au catalogue")] = None,
    max_pool_per_user: Annotated[
        Optional[int], typer.Option("--max-pool-per-user", help="Taille max d'un pool")
    ] = None,
    image_cache_max_mb: Annotated[
        Optional[int], typer.Option("--image-cache-max-mb", help="Budget images en Mo (0 = desactive)")
    ] = None,
    poster_mode: Annotated[
        Optional[str], typer.Option("--poster-mode", help="direct ou local_proxy")
    ] = None,
    response_cache_max_rows: Annotated[
        Optional[int], typer.Option("--response-cache-max-rows", help="Lignes max du cache de reponses")
    ] = None,
) -> None:
    """Modifie les reglages (les valeurs sont bornees) et lance une maintenance."""
    asyncio.run(
        _settings_set_async(max_movies, max_pool_per_user, image_cache_max_mb, poster_mode, response_cache_max_rows)
    )


@with_container()
async def _settings_set_async(
    container,
    max_movies: Optional[int],
    max_pool_per_user: Optional[int],
    image_cache_max_mb: Optional[int],
    poster_mode: Optional[str],
    response_cache_max_rows: Optional[int],
) -> None:
    store = container.metadata_store()
    response_cache = container.response_cache()
    current = await store.get_settings()
    updated = await store.set_settings(
        MetadataSettings(
            max_movies=max_movies if max_movies is not None else current.max_movies,
            max_pool_per_user=max_pool_per_user if max_pool_per_user is not None else current.max_pool_per_user,
            image_cache_max_mb=image_cache_max_mb if image_cache_max_mb is not None else current.image_cache_max_mb,
            poster_mode=PosterMode.parse(poster_mode) if poster_mode is not None else current.poster_mode,
        )
    )
    if response_cache_max_rows is not None:
        await response_cache.set_max_rows(response_cache_max_rows)
    _print_settings(updated, await response_cache.get_max_rows())


def _print_settings(settings: MetadataSettings, response_cache_max_rows: int) -> None:
    table = Table(title="Reglages")
    table.add_column("Cle")
    table.add_column("Valeur", justify="right")
    table.add_row("max_movies", str(settings.max_movies))
    table.add_row("max_pool_per_user", str(settings.max_pool_per_user))
    table.add_row("image_cache_max_mb", str(settings.image_cache_max_mb))
    table.add_row("poster_mode", settings.poster_mode.value)
    table.add_row("response_cache_max_rows", str(response_cache_max_rows))
    console.print(table)
