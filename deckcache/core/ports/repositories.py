"""
Interfaces ports pour le store de metadonnees.

Le store possede le catalogue de films, les pools classes par utilisateur
et les reglages. Les ecritures sont atomiques par appel ; les lectures
degradent vers un resultat vide en cas de panne de stockage.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from deckcache.core.entities import DiscoveredMovie, MovieDetails, StoredMovie
from deckcache.core.value_objects import MetadataSettings


@dataclass(frozen=True)
class MetadataStats:
    """Compteurs du store (affichage CLI)."""

    movie_count: int
    pool_entry_count: int


class IMetadataStore(ABC):
    """Catalogue de films, pools par utilisateur et reglages."""

    @abstractmethod
    async def add_to_pool(self, user_id: str, movies: Sequence[DiscoveredMovie]) -> bool:
        """
        Fusionne les films au catalogue et les classe dans le pool de l'utilisateur.

        Le rang d'un film est son index dans `movies`. Le pool est ensuite
        tronque a max_pool_per_user. Tout est ecrit, ou rien.

        Retourne :
            True si l'ecriture a ete validee
        """
        ...

    @abstractmethod
    async def get_pool(self, user_id: str, limit: int) -> list[StoredMovie]:
        """Films du pool, ordonnes par (rang croissant, ajout le plus recent)."""
        ...

    @abstractmethod
    async def clear_pool(self, user_id: str) -> bool:
        ...

    @abstractmethod
    async def list_movies_needing_details(self, limit: int) -> list[int]:
        """IDs des films sans details, les plus recemment mis a jour d'abord."""
        ...

    @abstractmethod
    async def update_details(self, details: MovieDetails) -> bool:
        """Fusionne les details et horodate details_fetched_at."""
        ...

    @abstractmethod
    async def get_movie(self, tmdb_id: int) -> Optional[StoredMovie]:
        ...

    @abstractmethod
    async def list_movies(
        self,
        skip: int = 0,
        take: int = 50,
        missing_details_only: bool = False,
        title_query: Optional[str] = None,
    ) -> list[StoredMovie]:
        ...

    @abstractmethod
    async def get_stats(self) -> MetadataStats:
        ...

    @abstractmethod
    async def get_settings(self) -> MetadataSettings:
        ...

    @abstractmethod
    async def set_settings(self, settings: MetadataSettings) -> MetadataSettings:
        """Persiste les reglages bornes et declenche une maintenance immediate."""
        ...
