"""
Configuration de la base de donnees SQLite pour deckcache.

Ce module fournit :
- Engine SQLite configure pour l'acces concurrent (WAL, busy timeout, cles etrangeres)
- Retry des ecritures sur verrou SQLite ("database is locked" / "busy") via tenacity
- Execution des operations bloquantes dans l'executor de la boucle asyncio
- Fonction d'initialisation des tables

La base de donnees est configuree via DECKCACHE_DATABASE_PATH (defaut: data/deckcache.db).
"""

import asyncio
import time
from functools import partial
from pathlib import Path
from typing import Any, Callable, TypeVar

from loguru import logger
from sqlalchemy import Engine, event
from sqlalchemy.exc import OperationalError
from sqlmodel import SQLModel, create_engine
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")

# Pragmas appliques a chaque nouvelle connexion
SQLITE_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=5000",
    "PRAGMA foreign_keys=ON",
)

# 1 tentative initiale + 6 retries : 50ms, 100ms, 200ms, ... 1.6s
WRITE_RETRY_ATTEMPTS = 7
WRITE_RETRY_BASE_DELAY = 0.05


def _apply_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        for pragma in SQLITE_PRAGMAS:
            cursor.execute(pragma)
    finally:
        cursor.close()


def create_sqlite_engine(database_path: Path) -> Engine:
    """
    Cree l'engine SQLite du cache.

    Le repertoire parent est cree si necessaire. Les pragmas sont appliques
    via un listener "connect", donc a chaque connexion du pool.

    Args:
        database_path: Chemin du fichier SQLite

    Returns:
        Engine SQLAlchemy partage par les trois stores
    """
    database_path = Path(database_path)
    database_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{database_path}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    event.listen(engine, "connect", _apply_pragmas)
    return engine


def init_db(engine: Engine) -> Engine:
    """
    Initialise la base de donnees en creant toutes les tables.

    Importe les modeles pour enregistrer leurs metadonnees dans
    SQLModel.metadata, puis cree les tables manquantes. Chaque store cree
    aussi ses propres tables a la construction ; cet appel sert au demarrage
    de la CLI.
    """
    from deckcache.infrastructure.persistence import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.debug(f"Base de donnees initialisee: {engine.url}")
    return engine


def is_database_locked(exc: BaseException) -> bool:
    """Indique si l'exception est une contention de verrou SQLite transitoire."""
    if not isinstance(exc, OperationalError):
        return False
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return "locked" in message or "busy" in message


def _log_lock_retry(retry_state: RetryCallState) -> None:
    logger.debug(
        f"SQLite verrouillee, nouvelle tentative d'ecriture "
        f"({retry_state.attempt_number}/{WRITE_RETRY_ATTEMPTS})"
    )


def run_write_with_retry(
    work: Callable[[], T],
    attempts: int = WRITE_RETRY_ATTEMPTS,
    base_delay: float = WRITE_RETRY_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Execute une unite d'ecriture avec retry sur verrou SQLite.

    `work` doit ouvrir sa propre session : chaque tentative rejoue l'unite
    complete. Les autres erreurs, et la derniere erreur de verrou, sont
    propagees.
    """
    retrying = Retrying(
        retry=retry_if_exception(is_database_locked),
        wait=wait_exponential(multiplier=base_delay),
        stop=stop_after_attempt(attempts),
        sleep=sleep,
        before_sleep=_log_lock_retry,
        reraise=True,
    )
    return retrying(work)


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Execute un appel SQLite synchrone dans l'executor par defaut."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))
