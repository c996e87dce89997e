"""
Service de complement des details TMDB pour les films du catalogue.

Les films entrent au catalogue avec le seul resume discover ; ce service
recupere leurs details (duree, genres, nombre de votes) et les fusionne
sans jamais effacer une valeur deja connue.
"""

from dataclasses import dataclass

from loguru import logger

from deckcache.core.ports.api_clients import IMovieMetadataClient
from deckcache.core.ports.repositories import IMetadataStore
from deckcache.core.value_objects import Found, NotFound, Rejected

DEFAULT_BATCH_SIZE = 10


@dataclass
class BackfillStats:
    """Statistiques d'une passe de complement."""

    total: int = 0
    enriched: int = 0
    not_found: int = 0
    failed: int = 0


class DetailsBackfillService:
    """
    Service pour completer les details des films du catalogue.

    Une passe traite au plus `limit` films sans details, les plus recemment
    mis a jour d'abord.
    """

    def __init__(
        self,
        metadata_store: IMetadataStore,
        tmdb_client: IMovieMetadataClient,
    ) -> None:
        """
        Initialise le service de complement.

        Args:
            metadata_store: Store de metadonnees (catalogue)
            tmdb_client: Client API TMDB
        """
        self._store = metadata_store
        self._tmdb_client = tmdb_client

    async def run_once(self, limit: int = DEFAULT_BATCH_SIZE) -> BackfillStats:
        """
        Execute une passe de complement.

        Args:
            limit: Nombre maximum de films a traiter

        Returns:
            Statistiques de la passe
        """
        stats = BackfillStats()
        if not self._tmdb_client.is_configured:
            logger.debug("Complement des details ignore: TMDB non configure")
            return stats

        tmdb_ids = await self._store.list_movies_needing_details(limit)
        stats.total = len(tmdb_ids)

        for tmdb_id in tmdb_ids:
            outcome = await self._tmdb_client.lookup_movie_details(tmdb_id)

            if isinstance(outcome, (NotFound, Rejected)):
                stats.not_found += 1
                continue
            if not isinstance(outcome, Found):
                stats.failed += 1
                continue

            if await self._store.update_details(outcome.value):
                stats.enriched += 1
            else:
                stats.failed += 1

        if stats.total:
            logger.info(
                f"Complement des details: {stats.enriched}/{stats.total} enrichi(s), "
                f"{stats.not_found} introuvable(s), {stats.failed} echec(s)"
            )
        return stats
