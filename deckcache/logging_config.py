"""
Configuration du logging de deckcache via loguru.

Deux sorties :
- console (stderr), dont le niveau suit --verbose / --quiet
- fichier JSON avec rotation, toujours en DEBUG

Chaque message passe par un patcher qui masque les parametres secrets
(api_key, token...) encore presents dans une URL ou une exception.
"""

import re
import sys
from pathlib import Path

from loguru import logger

from deckcache.utils.constants import REDACTED, SECRET_QUERY_KEYS

_SECRET_PARAM_RE = re.compile(
    r"(?i)\b(" + "|".join(re.escape(key) for key in sorted(SECRET_QUERY_KEYS)) + r")=([^&\s\"'<>]+)"
)

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)


def redact_secrets(text: str) -> str:
    """Masque la valeur de tout parametre secret de la forme `cle=valeur`."""
    return _SECRET_PARAM_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", text)


def _redact_record(record: dict) -> None:
    record["message"] = redact_secrets(record["message"])


def level_for_verbosity(verbose: int, quiet: bool, default: str = "INFO") -> str:
    """
    Niveau console selon les options CLI.

    --quiet l'emporte ; -v passe en DEBUG, -vv et au-dela en TRACE.
    """
    if quiet:
        return "ERROR"
    if verbose >= 2:
        return "TRACE"
    if verbose == 1:
        return "DEBUG"
    return default.upper()


def configure_logging(
    log_level: str = "INFO",
    log_file: Path = Path("logs/deckcache.log"),
    rotation_size: str = "10 MB",
    retention_count: int = 5,
) -> None:
    """Configure les sorties loguru de deckcache.

    Args :
        log_level : Niveau minimum de la sortie console
        log_file : Fichier JSON (le repertoire parent est cree)
        rotation_size : Taille avant rotation (ex: "10 MB")
        retention_count : Nombre de fichiers rotatifs conserves
    """
    logger.remove()
    logger.configure(patcher=_redact_record)

    logger.add(sys.stderr, level=log_level, format=_CONSOLE_FORMAT, colorize=True)

    # Le fichier garde les traces DEBUG du pipeline (retries, degradations de cache)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.add(
        log_file,
        level="DEBUG",
        format="{message}",
        serialize=True,
        rotation=rotation_size,
        retention=retention_count,
        compression="zip",
        enqueue=True,
    )

    logger.debug(f"Logging configure (console {log_level}, fichier {log_file})")
