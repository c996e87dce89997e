"""
Point d'entree CLI de deckcache.

Initialise le container DI, configure le logging et fournit les commandes CLI.
"""

from typing import Annotated

import typer
from loguru import logger

from . import __version__
from .adapters.cli.commands import (
    backfill,
    cache_stats,
    deck,
    details,
    discover,
    prewarm,
    prune_images,
    settings_app,
)
from .config import Settings
from .container import Container
from .logging_config import configure_logging, level_for_verbosity

app = typer.Typer(
    name="deckcache",
    help="Cache de metadonnees TMDB pour decks de swipe",
)
container = Container()


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Augmenter la verbosite (-v, -vv, -vvv)"
        ),
    ] = 0,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Mode silencieux (erreurs uniquement)"),
    ] = False,
) -> None:
    """deckcache - Decouverte TMDB, pools et caches."""
    settings = get_config()
    configure_logging(
        log_level=level_for_verbosity(verbose, quiet, settings.log_level),
        log_file=settings.log_file,
        rotation_size=settings.log_rotation_size,
        retention_count=settings.log_retention_count,
    )
    logger.debug(f"Demarrage de deckcache v{__version__}")


# Monter les commandes depuis commands.py
app.command()(discover)
app.command()(details)
app.command()(deck)
app.command()(prewarm)
app.command()(backfill)
app.command(name="prune-images")(prune_images)
app.command(name="cache-stats")(cache_stats)

# Monter settings_app comme sous-commande
app.add_typer(settings_app, name="settings")


def get_config() -> Settings:
    """Recupere les parametres de l'application depuis le container DI."""
    return container.config()


@app.command()
def info() -> None:
    """Affiche la configuration actuelle."""
    config = get_config()
    logger.info("Configuration deckcache")
    typer.echo(f"Base de donnees : {config.database_path}")
    typer.echo(f"Images : {config.images_dir}")
    typer.echo(f"API TMDB : {'activee' if config.tmdb_enabled else 'desactivee'}")
    typer.echo(f"Requetes/s : {config.requests_per_second}")
    typer.echo(f"Retries : {config.max_retries}")
    typer.echo(f"TTL decouverte / details : {config.discover_cache_seconds}s / {config.details_cache_seconds}s")
    typer.echo(f"Niveau de log : {config.log_level}")


@app.command()
def version() -> None:
    """Affiche les informations de version."""
    typer.echo(f"deckcache v{__version__}")


def main() -> None:
    """Point d'entree de l'application."""
    # Initialise la base de donnees (cree les tables si necessaire)
    container.database.init()

    # Lance la CLI
    app()


if __name__ == "__main__":
    main()
