"""
Configuration de l'application via pydantic-settings.

La configuration est chargee depuis les variables d'environnement avec le prefixe DECKCACHE_,
et peut optionnellement etre fournie via un fichier .env.

Les identifiants TMDB sont optionnels - sans eux, la decouverte et les details
retournent des resultats vides sans aucun appel reseau.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Trouver le fichier .env a la racine du projet (parent de deckcache/)
_PROJECT_ROOT = Path(__file__).parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Parametres de l'application avec support des variables d'environnement.

    Tous les parametres peuvent etre surcharges via des variables d'environnement
    avec le prefixe DECKCACHE_.
    Exemple : DECKCACHE_REQUESTS_PER_SECOND=8

    Les chemins sont automatiquement etendus (~ -> repertoire home).
    """

    model_config = SettingsConfigDict(
        env_prefix="DECKCACHE_",
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Base de donnees (cache de reponses, catalogue, pools, index d'images)
    database_path: Path = Field(default=Path("data/deckcache.db"))
    # Repertoire des fichiers images (defaut: <repertoire de la base>/tmdb-images)
    image_cache_dir: Optional[Path] = Field(default=None)

    # Identifiants TMDB (OPTIONNELS)
    tmdb_api_key: Optional[str] = Field(default=None)
    tmdb_read_access_token: Optional[str] = Field(default=None)

    # Endpoints TMDB
    tmdb_base_url: str = Field(default="https://api.themoviedb.org/3/")
    tmdb_image_base_url: str = Field(default="https://image.tmdb.org/t/p/")
    image_proxy_base_url: str = Field(default="/api/v1/tmdb/images")
    poster_size: str = Field(default="w500")
    backdrop_size: str = Field(default="w780")

    # Pipeline HTTP
    requests_per_second: int = Field(default=4, ge=1, le=50)
    discover_cache_seconds: int = Field(default=60, ge=0)
    details_cache_seconds: int = Field(default=600, ge=0)
    max_retries: int = Field(default=3, ge=0, le=10)
    http_timeout_seconds: float = Field(default=12.0, gt=0)

    # Cache de reponses et maintenance
    response_cache_max_rows: int = Field(default=5000, ge=200)
    memory_cache_max_entries: int = Field(default=10000, ge=1)
    maintenance_interval_minutes: int = Field(default=10, ge=1)

    # Logging (fichier + stderr, rotation 10MB, 5 fichiers de retention)
    log_level: str = Field(default="INFO")
    log_file: Path = Field(default=Path("logs/deckcache.log"))
    log_rotation_size: str = Field(default="10 MB")
    log_retention_count: int = Field(default=5)

    @field_validator("database_path", "image_cache_dir", "log_file", mode="before")
    @classmethod
    def expand_path(cls, v: Optional[str | Path]) -> Optional[Path]:
        """Etend ~ vers le repertoire home dans les chemins."""
        if v is None:
            return None
        return Path(v).expanduser()

    @property
    def images_dir(self) -> Path:
        """Repertoire effectif des fichiers du cache d'images."""
        if self.image_cache_dir is not None:
            return self.image_cache_dir
        return self.database_path.parent / "tmdb-images"

    @property
    def tmdb_enabled(self) -> bool:
        """Verifie si l'API TMDB est configuree (cle v3 ou token v4)."""
        return bool(self.tmdb_api_key or self.tmdb_read_access_token)
