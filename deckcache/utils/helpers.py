"""
Fonctions utilitaires partagees dans le projet deckcache.

Ce module centralise les fonctions reutilisees a travers le codebase :
- utc_now : horodatage UTC avec tzinfo
- clamp : borne une valeur numerique
- strip_secret_params / redact_secret_params : nettoyage des URLs TMDB
"""

from datetime import datetime, timezone
from typing import Callable

import httpx

from deckcache.utils.constants import REDACTED, SECRET_QUERY_KEYS

# Horloge injectable (tests deterministes)
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Retourne l'instant courant en UTC (tzinfo=timezone.utc)."""
    return datetime.now(timezone.utc)


def clamp(value, minimum, maximum):
    """Borne value dans [minimum, maximum]."""
    return max(minimum, min(maximum, value))


def is_secret_param(name: str) -> bool:
    """Indique si un parametre de requete porte un secret (insensible a la casse)."""
    return name.lower() in SECRET_QUERY_KEYS


def strip_secret_params(url: httpx.URL) -> httpx.URL:
    """
    Retourne l'URL sans ses parametres secrets.

    L'ordre des parametres restants est conserve.
    """
    kept = [(k, v) for k, v in url.params.multi_items() if not is_secret_param(k)]
    return url.copy_with(params=httpx.QueryParams(kept))


def redact_secret_params(url: httpx.URL) -> str:
    """Retourne l'URL en texte avec les valeurs secretes masquees, pour les logs."""
    items = [
        (k, REDACTED if is_secret_param(k) else v)
        for k, v in url.params.multi_items()
    ]
    if not items:
        return str(url)
    query = "&".join(f"{k}={v}" for k, v in items)
    return str(url).split("?", 1)[0] + "?" + query
