"""
Store de metadonnees SQLModel : catalogue de films, pools par utilisateur, reglages.

Chaque ecriture publique est une unite de travail unique (une session, un
commit) rejouee integralement sur verrou SQLite. Les lectures degradent vers
un resultat vide ; les ecritures des chemins de requete loguent l'echec et
retournent False plutot que de lever.
"""

from functools import partial
from typing import Optional, Sequence

from loguru import logger
from sqlalchemy import Engine, delete, func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, col, select

from deckcache.core.entities import (
    DiscoveredMovie,
    MovieDetails,
    StoredMovie,
    merge_movie_fields,
)
from deckcache.core.ports.repositories import IMetadataStore, MetadataStats
from deckcache.core.value_objects import MetadataSettings, PosterMode
from deckcache.core.value_objects.metadata_settings import (
    IMAGE_CACHE_MAX_MB_KEY,
    MAX_MOVIES_BOUNDS,
    MAX_POOL_PER_USER_BOUNDS,
    MOVIE_MAX_COUNT_KEY,
    POOL_MAX_PER_USER_KEY,
    POSTER_MODE_KEY,
    clamp_image_budget,
    clamp_setting,
)
from deckcache.infrastructure.persistence.database import (
    run_blocking,
    run_write_with_retry,
)
from deckcache.infrastructure.persistence.maintenance import MaintenanceGate
from deckcache.infrastructure.persistence.models import (
    CacheSettingModel,
    MovieModel,
    UserPoolEntryModel,
)
from deckcache.utils.helpers import Clock, clamp, utc_now

MAX_NEEDING_DETAILS = 1000
MAX_LIST_TAKE = 500
MAX_TITLE_QUERY_LENGTH = 200

# Garde les max_movies films les plus recemment mis a jour (les pools suivent par CASCADE)
_TRIM_CATALOG_SQL = text(
    "DELETE FROM movies WHERE tmdb_id IN ("
    "SELECT tmdb_id FROM movies ORDER BY updated_at DESC "
    "LIMIT -1 OFFSET :max_movies)"
)

# Garde les max_pool entrees les mieux classees du pool d'un utilisateur
_TRIM_POOL_SQL = text(
    "DELETE FROM user_pool WHERE rowid IN ("
    "SELECT rowid FROM user_pool WHERE user_id = :user_id "
    "ORDER BY rank ASC, added_at DESC "
    "LIMIT -1 OFFSET :max_pool)"
)


class SQLModelMetadataStore(IMetadataStore):
    """
    Implementation SQLModel du store de metadonnees.

    Example:
        store = SQLModelMetadataStore(engine)
        await store.add_to_pool("alice", discovered)
        deck = await store.get_pool("alice", limit=20)
    """

    def __init__(
        self,
        engine: Engine,
        gate: Optional[MaintenanceGate] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._engine = engine
        self._clock = clock
        self._gate = gate or MaintenanceGate(clock=clock, name="store de metadonnees")
        SQLModel.metadata.create_all(
            engine,
            tables=[
                MovieModel.__table__,
                UserPoolEntryModel.__table__,
                CacheSettingModel.__table__,
            ],
        )
        self._seed_default_settings()

    # ------------------------------------------------------------------
    # Pool
    # ------------------------------------------------------------------

    async def add_to_pool(self, user_id: str, movies: Sequence[DiscoveredMovie]) -> bool:
        if not user_id or not user_id.strip() or not movies:
            return False
        await self._gate.run_if_due(self.run_maintenance)

        try:
            settings = await run_blocking(self._read_settings)
            await run_blocking(
                run_write_with_retry,
                partial(self._add_to_pool, user_id, list(movies), settings.max_pool_per_user),
            )
        except SQLAlchemyError as e:
            logger.warning(f"Ajout au pool de {user_id} abandonne ({len(movies)} films): {e}")
            return False
        return True

    async def get_pool(self, user_id: str, limit: int) -> list[StoredMovie]:
        if not user_id or not user_id.strip() or limit <= 0:
            return []
        try:
            return await run_blocking(self._read_pool, user_id, limit)
        except SQLAlchemyError as e:
            logger.warning(f"Lecture du pool de {user_id} impossible: {e}")
            return []

    async def clear_pool(self, user_id: str) -> bool:
        if not user_id or not user_id.strip():
            return False
        try:
            await run_blocking(run_write_with_retry, partial(self._clear_pool, user_id))
        except SQLAlchemyError as e:
            logger.warning(f"Vidage du pool de {user_id} impossible: {e}")
            return False
        return True

    # ------------------------------------------------------------------
    # Catalogue
    # ------------------------------------------------------------------

    async def list_movies_needing_details(self, limit: int) -> list[int]:
        limit = clamp(limit, 1, MAX_NEEDING_DETAILS)
        try:
            return await run_blocking(self._read_needing_details, limit)
        except SQLAlchemyError as e:
            logger.warning(f"Lecture des films sans details impossible: {e}")
            return []

    async def update_details(self, details: MovieDetails) -> bool:
        if details.tmdb_id <= 0:
            return False
        try:
            return await run_blocking(
                run_write_with_retry, partial(self._update_details, details)
            )
        except SQLAlchemyError as e:
            logger.warning(f"Mise a jour des details du film {details.tmdb_id} abandonnee: {e}")
            return False

    async def get_movie(self, tmdb_id: int) -> Optional[StoredMovie]:
        try:
            return await run_blocking(self._read_movie, tmdb_id)
        except SQLAlchemyError as e:
            logger.warning(f"Lecture du film {tmdb_id} impossible: {e}")
            return None

    async def list_movies(
        self,
        skip: int = 0,
        take: int = 50,
        missing_details_only: bool = False,
        title_query: Optional[str] = None,
    ) -> list[StoredMovie]:
        skip = max(0, skip)
        take = clamp(take, 1, MAX_LIST_TAKE)
        query = (title_query or "").strip()[:MAX_TITLE_QUERY_LENGTH] or None
        try:
            return await run_blocking(self._list_movies, skip, take, missing_details_only, query)
        except SQLAlchemyError as e:
            logger.warning(f"Listing du catalogue impossible: {e}")
            return []

    async def get_stats(self) -> MetadataStats:
        try:
            return await run_blocking(self._read_stats)
        except SQLAlchemyError as e:
            logger.warning(f"Lecture des statistiques impossible: {e}")
            return MetadataStats(movie_count=0, pool_entry_count=0)

    # ------------------------------------------------------------------
    # Reglages et maintenance
    # ------------------------------------------------------------------

    async def get_settings(self) -> MetadataSettings:
        try:
            return await run_blocking(self._read_settings)
        except SQLAlchemyError as e:
            logger.warning(f"Lecture des reglages impossible, valeurs par defaut: {e}")
            return MetadataSettings()

    async def set_settings(self, settings: MetadataSettings) -> MetadataSettings:
        normalized = settings.normalized()
        await run_blocking(run_write_with_retry, partial(self._write_settings, normalized))
        logger.info(
            f"Reglages mis a jour: max_movies={normalized.max_movies}, "
            f"max_pool_per_user={normalized.max_pool_per_user}, "
            f"image_cache_max_mb={normalized.image_cache_max_mb}, "
            f"poster_mode={normalized.poster_mode.value}"
        )
        await self._gate.run_now(self.run_maintenance)
        return normalized

    async def run_maintenance(self) -> None:
        """Plafonne le catalogue aux films les plus recemment mis a jour."""
        settings = await run_blocking(self._read_settings)
        removed = await run_blocking(
            run_write_with_retry, partial(self._trim_catalog, settings.max_movies)
        )
        if removed:
            logger.debug(f"Maintenance du catalogue: {removed} film(s) supprime(s)")

    # ------------------------------------------------------------------
    # Unites de travail synchrones (executor)
    # ------------------------------------------------------------------

    def _add_to_pool(self, user_id: str, movies: list[DiscoveredMovie], max_pool: int) -> None:
        now = self._clock()
        # Rang = index dans la liste d'entree ; un doublon garde son premier rang
        ranked: dict[int, tuple[int, DiscoveredMovie]] = {}
        for rank, movie in enumerate(movies):
            if movie.id > 0 and movie.id not in ranked:
                ranked[movie.id] = (rank, movie)

        with Session(self._engine) as session:
            existing = {
                model.tmdb_id: model
                for model in session.exec(
                    select(MovieModel).where(col(MovieModel.tmdb_id).in_(list(ranked)))
                )
            }
            for tmdb_id, (_, movie) in ranked.items():
                model = existing.get(tmdb_id)
                if model is None:
                    model = MovieModel(tmdb_id=tmdb_id, title=movie.display_title)
                    merged = movie.to_stored()
                else:
                    merged = merge_movie_fields(self._to_entity(model), movie.to_stored())
                self._apply(model, merged)
                model.updated_at = now
                session.add(model)
            # Les films doivent exister avant les entrees de pool (cle etrangere)
            session.flush()

            for tmdb_id, (rank, _) in ranked.items():
                session.merge(
                    UserPoolEntryModel(user_id=user_id, tmdb_id=tmdb_id, rank=rank, added_at=now)
                )
            session.flush()
            session.execute(_TRIM_POOL_SQL, {"user_id": user_id, "max_pool": max_pool})
            session.commit()

    def _read_pool(self, user_id: str, limit: int) -> list[StoredMovie]:
        with Session(self._engine) as session:
            statement = (
                select(MovieModel)
                .join(UserPoolEntryModel, UserPoolEntryModel.tmdb_id == MovieModel.tmdb_id)
                .where(UserPoolEntryModel.user_id == user_id)
                .order_by(col(UserPoolEntryModel.rank).asc(), col(UserPoolEntryModel.added_at).desc())
                .limit(limit)
            )
            return [self._to_entity(model) for model in session.exec(statement)]

    def _clear_pool(self, user_id: str) -> None:
        with Session(self._engine) as session:
            session.execute(delete(UserPoolEntryModel).where(UserPoolEntryModel.user_id == user_id))
            session.commit()

    def _read_needing_details(self, limit: int) -> list[int]:
        with Session(self._engine) as session:
            statement = (
                select(MovieModel.tmdb_id)
                .where(col(MovieModel.details_fetched_at).is_(None))
                .order_by(col(MovieModel.updated_at).desc())
                .limit(limit)
            )
            return list(session.exec(statement))

    def _update_details(self, details: MovieDetails) -> bool:
        now = self._clock()
        with Session(self._engine) as session:
            model = session.get(MovieModel, details.tmdb_id)
            if model is None:
                return False
            merged = merge_movie_fields(self._to_entity(model), details.to_stored())
            self._apply(model, merged)
            model.details_fetched_at = now
            model.updated_at = now
            session.add(model)
            session.commit()
        return True

    def _read_movie(self, tmdb_id: int) -> Optional[StoredMovie]:
        with Session(self._engine) as session:
            model = session.get(MovieModel, tmdb_id)
            return self._to_entity(model) if model is not None else None

    def _list_movies(
        self,
        skip: int,
        take: int,
        missing_details_only: bool,
        title_query: Optional[str],
    ) -> list[StoredMovie]:
        with Session(self._engine) as session:
            statement = select(MovieModel)
            if missing_details_only:
                statement = statement.where(col(MovieModel.details_fetched_at).is_(None))
            if title_query:
                pattern = f"%{title_query}%"
                statement = statement.where(
                    col(MovieModel.title).ilike(pattern) | col(MovieModel.original_title).ilike(pattern)
                )
            statement = statement.order_by(col(MovieModel.updated_at).desc()).offset(skip).limit(take)
            return [self._to_entity(model) for model in session.exec(statement)]

    def _read_stats(self) -> MetadataStats:
        with Session(self._engine) as session:
            movie_count = session.execute(select(func.count()).select_from(MovieModel)).scalar_one()
            pool_count = session.execute(
                select(func.count()).select_from(UserPoolEntryModel)
            ).scalar_one()
        return MetadataStats(movie_count=movie_count, pool_entry_count=pool_count)

    def _seed_default_settings(self) -> None:
        defaults = MetadataSettings()
        now = self._clock()
        with Session(self._engine) as session:
            for key, value in self._settings_rows(defaults).items():
                if session.get(CacheSettingModel, key) is None:
                    session.add(CacheSettingModel(settings_key=key, settings_value=value, updated_at=now))
            session.commit()

    def _read_settings(self) -> MetadataSettings:
        with Session(self._engine) as session:
            rows = {
                row.settings_key: row.settings_value
                for row in session.exec(select(CacheSettingModel))
            }
        return MetadataSettings(
            max_movies=clamp_setting(_parse_int(rows.get(MOVIE_MAX_COUNT_KEY)), MAX_MOVIES_BOUNDS),
            max_pool_per_user=clamp_setting(
                _parse_int(rows.get(POOL_MAX_PER_USER_KEY)), MAX_POOL_PER_USER_BOUNDS
            ),
            image_cache_max_mb=clamp_image_budget(_parse_int(rows.get(IMAGE_CACHE_MAX_MB_KEY))),
            poster_mode=PosterMode.parse(rows.get(POSTER_MODE_KEY)),
        )

    def _write_settings(self, settings: MetadataSettings) -> None:
        now = self._clock()
        with Session(self._engine) as session:
            for key, value in self._settings_rows(settings).items():
                session.merge(CacheSettingModel(settings_key=key, settings_value=value, updated_at=now))
            session.commit()

    def _trim_catalog(self, max_movies: int) -> int:
        with Session(self._engine) as session:
            removed = session.execute(_TRIM_CATALOG_SQL, {"max_movies": max_movies}).rowcount
            session.commit()
        return removed

    @staticmethod
    def _settings_rows(settings: MetadataSettings) -> dict[str, str]:
        return {
            MOVIE_MAX_COUNT_KEY: str(settings.max_movies),
            POOL_MAX_PER_USER_KEY: str(settings.max_pool_per_user),
            IMAGE_CACHE_MAX_MB_KEY: str(settings.image_cache_max_mb),
            POSTER_MODE_KEY: settings.poster_mode.value,
        }

    @staticmethod
    def _to_entity(model: MovieModel) -> StoredMovie:
        """Convertit un modele SQLModel en entite du domaine."""
        return StoredMovie(
            tmdb_id=model.tmdb_id,
            title=model.title,
            original_title=model.original_title,
            overview=model.overview,
            poster_path=model.poster_path,
            backdrop_path=model.backdrop_path,
            release_date=model.release_date,
            release_year=model.release_year,
            original_language=model.original_language,
            rating=model.rating,
            vote_count=model.vote_count,
            runtime_minutes=model.runtime_minutes,
            genre_ids=tuple(model.genre_ids),
            genres=tuple(model.genres),
            details_fetched_at=model.details_fetched_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def _apply(model: MovieModel, movie: StoredMovie) -> None:
        """Reporte les champs fusionnes sur le modele (hors cle et horodatages)."""
        model.title = movie.title
        model.original_title = movie.original_title
        model.overview = movie.overview
        model.poster_path = movie.poster_path
        model.backdrop_path = movie.backdrop_path
        model.release_date = movie.release_date
        model.release_year = movie.release_year
        model.original_language = movie.original_language
        model.rating = movie.rating
        model.vote_count = movie.vote_count
        model.runtime_minutes = movie.runtime_minutes
        model.genre_ids = list(movie.genre_ids)
        model.genres = list(movie.genres)


def _parse_int(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None
