"""
Interfaces ports pour le client de metadonnees.

Interface abstraite definissant le contrat de lecture des metadonnees de films
(decouverte paginee et details). L'implementation concrete est le client TMDB
adosse au pipeline HTTP (rate limiter, cache, retry).
"""

from abc import ABC, abstractmethod
from typing import Optional

from deckcache.core.entities import DiscoveredMovie, MovieDetails, SwipeCard, UserPreferences
from deckcache.core.value_objects import LookupOutcome


class IMovieMetadataClient(ABC):
    """
    Interface des APIs de metadonnees de films.

    Aucune methode ne leve d'exception pour une panne amont : les echecs se
    traduisent par une liste partielle/vide ou par None.
    """

    @abstractmethod
    async def discover(
        self,
        preferences: UserPreferences,
        page: int = 1,
        limit: int = 50,
    ) -> list[SwipeCard]:
        """
        Decouvre des films et les retourne sous forme de cartes.

        Args :
            preferences : Preferences de l'utilisateur (filtres discover)
            page : Premiere page demandee (bornee a [1, 500])
            limit : Nombre maximal de cartes (borne a [1, 200])
        """
        ...

    @abstractmethod
    async def discover_movies(
        self,
        preferences: UserPreferences,
        page: int = 1,
        limit: int = 50,
    ) -> list[DiscoveredMovie]:
        """Comme discover, mais retourne les resumes bruts (alimentation du pool)."""
        ...

    @abstractmethod
    async def get_movie_details(self, tmdb_id: int) -> Optional[MovieDetails]:
        """Retourne les details d'un film, ou None si absent ou indisponible."""
        ...

    @abstractmethod
    async def lookup_movie_details(self, tmdb_id: int) -> LookupOutcome[MovieDetails]:
        """Retourne l'issue detaillee du lookup (Found, NotFound, ...)."""
        ...

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Indique si des identifiants sont disponibles."""
        ...
