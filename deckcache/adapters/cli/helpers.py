"""
Utilitaires partages pour les commandes CLI de deckcache.

Ce module fournit :
- suppress_loguru : context manager pour desactiver/reactiver les logs loguru
- with_container : decorateur injectant un container initialise
- parse_preferences : construction des preferences depuis les options CLI
- console : instance Rich Console partagee
"""

from contextlib import contextmanager
from functools import wraps
from typing import Optional

from loguru import logger as loguru_logger
from rich.console import Console

from deckcache.container import Container
from deckcache.core.entities import UserPreferences

console = Console()


@contextmanager
def suppress_loguru():
    """
    Context manager pour desactiver les logs loguru pendant l'affichage Rich.

    Usage:
        with suppress_loguru():
            console.print(...)
    """
    loguru_logger.disable("deckcache")
    try:
        yield
    finally:
        loguru_logger.enable("deckcache")


def with_container(requires_db: bool = True):
    """
    Decorateur qui injecte un container initialise en premier argument.

    Les clients HTTP du container sont fermes a la fin de la commande.

    Args:
        requires_db: Si True (defaut), initialise la base de donnees.

    Usage:
        @with_container()
        async def my_command(container, ...):
            config = container.config()
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            container = Container()
            if requires_db:
                container.database.init()
            try:
                return await func(container, *args, **kwargs)
            finally:
                await container.tmdb_client().close()
                await container.image_http_client().aclose()
        return wrapper
    return decorator


def parse_preferences(
    genres: Optional[list[int]] = None,
    without_genres: Optional[list[int]] = None,
    min_year: Optional[int] = None,
    max_year: Optional[int] = None,
    min_rating: Optional[float] = None,
    language: Optional[str] = None,
    region: Optional[str] = None,
    include_adult: bool = False,
) -> UserPreferences:
    """Construit des UserPreferences a partir des options de commande."""
    return UserPreferences(
        include_adult=include_adult,
        min_release_year=min_year,
        max_release_year=max_year,
        min_rating=min_rating,
        preferred_genres=tuple(genres or ()),
        excluded_genres=tuple(without_genres or ()),
        preferred_original_languages=(language,) if language else (),
        preferred_regions=(region,) if region else (),
    )
