"""
Cache de reponses a deux niveaux : memoire du processus puis SQLite.

Le niveau memoire repond sans aucune E/S. En cas d'absence, la ligne SQLite
est lue ; une ligne valide re-alimente le niveau memoire avec son expiration
absolue (donc le TTL restant), une ligne expiree est supprimee et traitee
comme une absence.

Les valeurs sont serialisees en JSON via un pydantic.TypeAdapter du type
demande ; le nom du type sert d'espace de noms dans la cle primaire.

Les deux niveaux convergent au mieux : une panne du stockage degrade la
lecture en absence et l'ecriture en simple log.
"""

from datetime import datetime, timedelta
from functools import partial
from typing import Any, Optional, TypeVar

from loguru import logger
from pydantic import TypeAdapter, ValidationError
from sqlalchemy import Engine, delete, func, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel

from deckcache.core.ports.caching import IResponseCache
from deckcache.core.value_objects.metadata_settings import (
    RESPONSE_CACHE_MAX_ROWS_BOUNDS,
    RESPONSE_CACHE_MAX_ROWS_KEY,
    clamp_setting,
)
from deckcache.infrastructure.persistence.database import (
    run_blocking,
    run_write_with_retry,
)
from deckcache.infrastructure.persistence.maintenance import MaintenanceGate
from deckcache.infrastructure.persistence.models import (
    CacheSettingModel,
    ResponseCacheEntryModel,
)
from deckcache.utils.helpers import Clock, clamp, utc_now

T = TypeVar("T")

DEFAULT_MEMORY_MAX_ENTRIES = 10000

# Garde les max_rows lignes a l'expiration la plus lointaine
_TRIM_OVERFLOW_SQL = text(
    "DELETE FROM response_cache WHERE rowid IN ("
    "SELECT rowid FROM response_cache ORDER BY expires_at DESC "
    "LIMIT -1 OFFSET :max_rows)"
)


class MemoryTier:
    """
    Niveau memoire : dictionnaire borne avec expiration absolue par entree.

    Une entree expiree n'est jamais retournee. Au-dela de max_entries,
    l'insertion la plus ancienne est evincee.
    """

    def __init__(self, max_entries: int = DEFAULT_MEMORY_MAX_ENTRIES, clock: Clock = utc_now) -> None:
        self._max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[Any, datetime]] = {}

    def get(self, key: str, type_name: str) -> Optional[Any]:
        entry = self._entries.get((key, type_name))
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[(key, type_name)]
            return None
        return value

    def set(self, key: str, type_name: str, value: Any, expires_at: datetime) -> None:
        self._entries.pop((key, type_name), None)
        while len(self._entries) >= self._max_entries:
            del self._entries[next(iter(self._entries))]
        self._entries[(key, type_name)] = (value, expires_at)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class TwoTierResponseCache(IResponseCache):
    """
    Cache de reponses memoire + SQLite avec TTL.

    Example:
        cache = TwoTierResponseCache(engine)
        await cache.set("tmdb:http:/3/movie/27205", response, ttl_seconds=600)
        hit = await cache.get("tmdb:http:/3/movie/27205", CachedResponse)
    """

    def __init__(
        self,
        engine: Engine,
        max_rows: int = RESPONSE_CACHE_MAX_ROWS_BOUNDS[0],
        memory_max_entries: int = DEFAULT_MEMORY_MAX_ENTRIES,
        gate: Optional[MaintenanceGate] = None,
        clock: Clock = utc_now,
    ) -> None:
        self._engine = engine
        self._clock = clock
        _, min_rows, max_rows_limit = RESPONSE_CACHE_MAX_ROWS_BOUNDS
        self._max_rows_bounds = (clamp(max_rows, min_rows, max_rows_limit), min_rows, max_rows_limit)
        self._memory = MemoryTier(memory_max_entries, clock)
        self._gate = gate or MaintenanceGate(clock=clock, name="cache de reponses")
        self._adapters: dict[type, TypeAdapter] = {}
        SQLModel.metadata.create_all(
            engine,
            tables=[ResponseCacheEntryModel.__table__, CacheSettingModel.__table__],
        )

    @property
    def memory(self) -> MemoryTier:
        return self._memory

    def _adapter(self, payload_type: type) -> TypeAdapter:
        adapter = self._adapters.get(payload_type)
        if adapter is None:
            adapter = TypeAdapter(payload_type)
            self._adapters[payload_type] = adapter
        return adapter

    async def get(self, key: str, payload_type: type[T]) -> Optional[T]:
        """
        Recupere une valeur du cache.

        Args:
            key: Cle unique identifiant la donnee
            payload_type: Type attendu (dataclass ou modele pydantic)

        Returns:
            La valeur stockee ou None si absente, expiree ou illisible
        """
        type_name = payload_type.__name__
        value = self._memory.get(key, type_name)
        if value is not None:
            return value

        await self._gate.run_if_due(self.run_maintenance)

        try:
            row = await run_blocking(self._read_row, key, type_name)
        except SQLAlchemyError as e:
            logger.debug(f"Cache persistant indisponible en lecture ({key}): {e}")
            return None
        if row is None:
            return None

        payload_json, expires_at = row
        if expires_at <= self._clock():
            await self._delete_expired(key, type_name)
            return None

        try:
            value = self._adapter(payload_type).validate_json(payload_json)
        except ValidationError as e:
            logger.warning(f"Entree de cache illisible ignoree ({key}, {type_name}): {e}")
            return None

        self._memory.set(key, type_name, value, expires_at)
        return value

    async def set(self, key: str, value: object, ttl_seconds: float) -> None:
        """
        Stocke une valeur dans les deux niveaux.

        Args:
            key: Cle unique identifiant la donnee
            value: Valeur a stocker (serialisable par pydantic)
            ttl_seconds: Duree de vie en secondes ; <= 0 ne stocke rien
        """
        if ttl_seconds <= 0:
            return
        now = self._clock()
        expires_at = now + timedelta(seconds=ttl_seconds)
        type_name = type(value).__name__

        self._memory.set(key, type_name, value, expires_at)

        payload = self._adapter(type(value)).dump_json(value)
        try:
            await run_blocking(
                run_write_with_retry,
                partial(self._upsert_row, key, type_name, payload, now, expires_at),
            )
        except SQLAlchemyError as e:
            logger.warning(f"Ecriture du cache persistant abandonnee ({key}): {e}")

        await self._gate.run_if_due(self.run_maintenance)

    async def get_max_rows(self) -> int:
        """Nombre maximal de lignes persistantes (au moins 200)."""
        try:
            return await run_blocking(self._read_max_rows)
        except SQLAlchemyError as e:
            logger.debug(f"Lecture du reglage {RESPONSE_CACHE_MAX_ROWS_KEY} impossible: {e}")
            return self._max_rows_bounds[0]

    async def set_max_rows(self, max_rows: int) -> int:
        """Persiste le nombre maximal de lignes (borne) et le retourne."""
        value = clamp_setting(max_rows, self._max_rows_bounds)
        await run_blocking(run_write_with_retry, partial(self._write_max_rows, value))
        return value

    async def get_row_count(self) -> int:
        try:
            return await run_blocking(self._count_rows)
        except SQLAlchemyError as e:
            logger.debug(f"Comptage du cache persistant impossible: {e}")
            return 0

    async def run_maintenance(self) -> None:
        """Supprime les lignes expirees puis plafonne le nombre de lignes."""
        max_rows = await run_blocking(self._read_max_rows)
        expired, overflow = await run_blocking(
            run_write_with_retry, partial(self._trim, self._clock(), max_rows)
        )
        if expired or overflow:
            logger.debug(
                f"Maintenance du cache de reponses: {expired} expiree(s), "
                f"{overflow} en surplus supprimee(s)"
            )

    async def _delete_expired(self, key: str, type_name: str) -> None:
        try:
            await run_blocking(self._delete_row, key, type_name)
        except SQLAlchemyError as e:
            logger.debug(f"Suppression d'une entree expiree impossible ({key}): {e}")

    def _read_row(self, key: str, type_name: str) -> Optional[tuple[bytes, datetime]]:
        with Session(self._engine) as session:
            row = session.get(ResponseCacheEntryModel, (key, type_name))
            if row is None:
                return None
            return row.payload_json, row.expires_at

    def _upsert_row(
        self,
        key: str,
        type_name: str,
        payload: bytes,
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        stmt = sqlite_insert(ResponseCacheEntryModel).values(
            cache_key=key,
            payload_type=type_name,
            payload_json=payload,
            created_at=created_at,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cache_key", "payload_type"],
            set_={
                "payload_json": stmt.excluded.payload_json,
                "created_at": stmt.excluded.created_at,
                "expires_at": stmt.excluded.expires_at,
            },
        )
        with Session(self._engine) as session:
            session.execute(stmt)
            session.commit()

    def _delete_row(self, key: str, type_name: str) -> None:
        with Session(self._engine) as session:
            session.execute(
                delete(ResponseCacheEntryModel).where(
                    ResponseCacheEntryModel.cache_key == key,
                    ResponseCacheEntryModel.payload_type == type_name,
                )
            )
            session.commit()

    def _read_max_rows(self) -> int:
        with Session(self._engine) as session:
            row = session.get(CacheSettingModel, RESPONSE_CACHE_MAX_ROWS_KEY)
            raw = row.settings_value if row is not None else None
        try:
            value = int(raw) if raw is not None else None
        except ValueError:
            value = None
        return clamp_setting(value, self._max_rows_bounds)

    def _write_max_rows(self, value: int) -> None:
        with Session(self._engine) as session:
            session.merge(
                CacheSettingModel(
                    settings_key=RESPONSE_CACHE_MAX_ROWS_KEY,
                    settings_value=str(value),
                    updated_at=self._clock(),
                )
            )
            session.commit()

    def _count_rows(self) -> int:
        with Session(self._engine) as session:
            return session.execute(
                select(func.count()).select_from(ResponseCacheEntryModel)
            ).scalar_one()

    def _trim(self, now: datetime, max_rows: int) -> tuple[int, int]:
        with Session(self._engine) as session:
            expired = session.execute(
                delete(ResponseCacheEntryModel).where(ResponseCacheEntryModel.expires_at <= now)
            ).rowcount
            overflow = session.execute(_TRIM_OVERFLOW_SQL, {"max_rows": max_rows}).rowcount
            session.commit()
        return expired, overflow
