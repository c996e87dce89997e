"""
Reglages du store de metadonnees.

Les reglages sont persistes en lignes cle/valeur et toujours relus bornes :
une valeur hors limites est ramenee dans sa plage, une valeur non positive
retombe sur le defaut.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from deckcache.utils.helpers import clamp


class PosterMode(Enum):
    """Mode de construction des URLs d'images.

    Valeurs:
        DIRECT: URLs du CDN TMDB
        LOCAL_PROXY: URLs servies par le cache d'images local
    """

    DIRECT = "direct"
    LOCAL_PROXY = "local_proxy"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PosterMode":
        """Interprete une valeur persistee, DIRECT par defaut."""
        normalized = (value or "").strip().lower().replace("-", "_")
        if normalized in ("local_proxy", "localproxy", "proxy", "local"):
            return cls.LOCAL_PROXY
        return cls.DIRECT


# Cles de la table cache_settings
MOVIE_MAX_COUNT_KEY = "movie_max_count"
POOL_MAX_PER_USER_KEY = "pool_max_per_user"
IMAGE_CACHE_MAX_MB_KEY = "image_cache_max_mb"
POSTER_MODE_KEY = "poster_mode"
RESPONSE_CACHE_MAX_ROWS_KEY = "response_cache_max_rows"

# (defaut, minimum, maximum)
MAX_MOVIES_BOUNDS = (20000, 500, 500000)
MAX_POOL_PER_USER_BOUNDS = (2000, 50, 50000)
IMAGE_CACHE_MAX_MB_BOUNDS = (512, 0, 100000)
RESPONSE_CACHE_MAX_ROWS_BOUNDS = (5000, 200, 200000)


def clamp_setting(value: Optional[int], bounds: tuple[int, int, int]) -> int:
    """Borne une valeur de reglage, le defaut remplace une valeur absente ou <= 0."""
    default, minimum, maximum = bounds
    if value is None or value <= 0:
        return default
    return clamp(value, minimum, maximum)


def clamp_image_budget(value: Optional[int]) -> int:
    """Budget images en Mo ; 0 est une valeur legitime (cache desactive)."""
    default, minimum, maximum = IMAGE_CACHE_MAX_MB_BOUNDS
    if value is None or value < 0:
        return default
    return clamp(value, minimum, maximum)


@dataclass(frozen=True)
class MetadataSettings:
    """
    Reglages bornes du store de metadonnees.

    Attributs:
        max_movies: Nombre maximal de films au catalogue
        max_pool_per_user: Taille maximale du pool d'un utilisateur
        image_cache_max_mb: Budget du cache d'images (0 = desactive)
        poster_mode: Construction des URLs d'images
    """

    max_movies: int = MAX_MOVIES_BOUNDS[0]
    max_pool_per_user: int = MAX_POOL_PER_USER_BOUNDS[0]
    image_cache_max_mb: int = IMAGE_CACHE_MAX_MB_BOUNDS[0]
    poster_mode: PosterMode = PosterMode.DIRECT

    @property
    def image_cache_max_bytes(self) -> int:
        return self.image_cache_max_mb * 1024 * 1024

    def normalized(self) -> "MetadataSettings":
        """Retourne une copie dont chaque valeur est dans sa plage."""
        return MetadataSettings(
            max_movies=clamp_setting(self.max_movies, MAX_MOVIES_BOUNDS),
            max_pool_per_user=clamp_setting(self.max_pool_per_user, MAX_POOL_PER_USER_BOUNDS),
            image_cache_max_mb=clamp_image_budget(self.image_cache_max_mb),
            poster_mode=self.poster_mode,
        )
