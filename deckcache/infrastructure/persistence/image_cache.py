"""
Cache d'images TMDB sur disque, indexe dans SQLite et borne en octets.

Un fichier n'est visible sous son nom final qu'une fois entierement ecrit :
le telechargement va dans un fichier temporaire unique puis os.replace le
met en place. L'eviction supprime les entrees les moins recemment accedees
jusqu'a repasser sous le budget.
"""

import hashlib
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Optional

import httpx
from loguru import logger
from sqlalchemy import Engine, delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel

from deckcache.core.ports.caching import IImageCache, ImageCacheResult
from deckcache.infrastructure.persistence.database import (
    run_blocking,
    run_write_with_retry,
)
from deckcache.infrastructure.persistence.models import ImageCacheEntryModel
from deckcache.utils.constants import (
    DEFAULT_IMAGE_CONTENT_TYPE,
    DEFAULT_IMAGE_EXTENSION,
    DEFAULT_IMAGE_SIZE,
    IMAGE_CONTENT_TYPES,
)
from deckcache.utils.helpers import Clock, utc_now


@dataclass(frozen=True)
class ImageKey:
    """Taille et chemin TMDB normalises."""

    size: str
    path: str

    @property
    def cache_key(self) -> str:
        return f"{self.size}:{self.path}"

    @property
    def extension(self) -> str:
        return Path(self.path).suffix.lower() or DEFAULT_IMAGE_EXTENSION

    @property
    def file_name(self) -> str:
        digest = hashlib.sha256(self.cache_key.encode("utf-8")).hexdigest()
        return f"{digest}{self.extension}"


def normalize_image_key(size: Optional[str], path: Optional[str]) -> Optional[ImageKey]:
    """
    Normalise une demande d'image.

    Une taille vide devient "original" ; le chemin recoit toujours un "/"
    initial. Retourne None si le chemin est vide.
    """
    normalized_path = (path or "").strip()
    if not normalized_path:
        return None
    if not normalized_path.startswith("/"):
        normalized_path = "/" + normalized_path
    normalized_size = (size or "").strip().strip("/") or DEFAULT_IMAGE_SIZE
    return ImageKey(size=normalized_size, path=normalized_path)


def content_type_for(path: str) -> str:
    """Type MIME deduit de l'extension du fichier."""
    return IMAGE_CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_IMAGE_CONTENT_TYPE)


class SQLModelImageCache(IImageCache):
    """
    Cache d'images avec eviction LRU.

    Example:
        cache = SQLModelImageCache(engine, Path("data/tmdb-images"), http_client)
        result = await cache.get_or_fetch("w500", "/abc.jpg")
        await cache.prune(512 * 1024 * 1024)
    """

    def __init__(
        self,
        engine: Engine,
        directory: Path,
        http_client: httpx.AsyncClient,
        image_base_url: str = "https://image.tmdb.org/t/p/",
        clock: Clock = utc_now,
    ) -> None:
        self._engine = engine
        self._directory = Path(directory)
        self._http = http_client
        self._image_base_url = image_base_url.rstrip("/")
        self._clock = clock
        self._directory.mkdir(parents=True, exist_ok=True)
        SQLModel.metadata.create_all(engine, tables=[ImageCacheEntryModel.__table__])

    @property
    def directory(self) -> Path:
        return self._directory

    async def get_or_fetch(self, size: str, path: str) -> Optional[ImageCacheResult]:
        key = normalize_image_key(size, path)
        if key is None:
            return None

        try:
            file_name = await run_blocking(self._read_file_name, key.cache_key)
        except SQLAlchemyError as e:
            logger.debug(f"Index d'images indisponible en lecture ({key.cache_key}): {e}")
            file_name = None

        if file_name is not None:
            file_path = self._directory / file_name
            if file_path.exists():
                await self._touch(key.cache_key)
                return ImageCacheResult(file_path=file_path, content_type=content_type_for(key.path))

        content = await self._download(key)
        if content is None:
            return None

        file_path = self._directory / key.file_name
        try:
            await run_blocking(self._write_atomically, file_path, content)
        except OSError as e:
            logger.warning(f"Ecriture de l'image {key.cache_key} impossible: {e}")
            return None

        now = self._clock()
        try:
            await run_blocking(
                run_write_with_retry,
                partial(self._upsert_entry, key, len(content), now),
            )
        except SQLAlchemyError as e:
            # Le fichier reste servi ; l'entree sera recreee au prochain acces
            logger.warning(f"Indexation de l'image {key.cache_key} abandonnee: {e}")

        return ImageCacheResult(file_path=file_path, content_type=content_type_for(key.path))

    async def has(self, size: str, path: str) -> bool:
        key = normalize_image_key(size, path)
        if key is None:
            return False
        try:
            file_name = await run_blocking(self._read_file_name, key.cache_key)
        except SQLAlchemyError as e:
            logger.debug(f"Index d'images indisponible ({key.cache_key}): {e}")
            return False
        return file_name is not None and (self._directory / file_name).exists()

    async def get_total_bytes(self) -> int:
        try:
            return await run_blocking(self._sum_bytes)
        except SQLAlchemyError as e:
            logger.debug(f"Taille du cache d'images indisponible: {e}")
            return 0

    async def prune(self, max_bytes: int) -> int:
        """
        Evince les images les moins recemment accedees.

        Args:
            max_bytes: Budget en octets (un budget negatif vaut 0)

        Returns:
            Nombre d'entrees supprimees
        """
        max_bytes = max(0, max_bytes)
        total = await self.get_total_bytes()
        removed = 0
        while total > max_bytes:
            try:
                oldest = await run_blocking(self._pop_least_recent)
            except SQLAlchemyError as e:
                logger.warning(f"Eviction du cache d'images interrompue: {e}")
                break
            if oldest is None:
                break
            file_name, size_bytes = oldest
            await run_blocking(self._delete_file, self._directory / file_name)
            total -= size_bytes
            removed += 1
        if removed:
            logger.info(f"Cache d'images: {removed} image(s) evincee(s), {total} octets restants")
        return removed

    async def _download(self, key: ImageKey) -> Optional[bytes]:
        url = f"{self._image_base_url}/{key.size}{key.path}"
        try:
            response = await self._http.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Telechargement de l'image {key.cache_key} impossible: {e}")
            return None
        if not response.is_success:
            logger.warning(f"Image {key.cache_key} indisponible: HTTP {response.status_code}")
            return None
        if not response.content:
            logger.warning(f"Image {key.cache_key} vide, ignoree")
            return None
        return response.content

    async def _touch(self, cache_key: str) -> None:
        try:
            await run_blocking(
                run_write_with_retry, partial(self._update_last_access, cache_key, self._clock())
            )
        except SQLAlchemyError as e:
            logger.debug(f"Mise a jour du dernier acces impossible ({cache_key}): {e}")

    def _write_atomically(self, file_path: Path, content: bytes) -> None:
        temp_path = file_path.with_name(f"{file_path.name}.{uuid.uuid4().hex}.tmp")
        try:
            temp_path.write_bytes(content)
            os.replace(temp_path, file_path)
        finally:
            if temp_path.exists():
                temp_path.unlink()

    def _read_file_name(self, cache_key: str) -> Optional[str]:
        with Session(self._engine) as session:
            entry = session.get(ImageCacheEntryModel, cache_key)
            return entry.file_name if entry is not None else None

    def _update_last_access(self, cache_key: str, now: datetime) -> None:
        with Session(self._engine) as session:
            session.execute(
                update(ImageCacheEntryModel)
                .where(ImageCacheEntryModel.cache_key == cache_key)
                .values(last_access_at=now)
            )
            session.commit()

    def _upsert_entry(self, key: ImageKey, size_bytes: int, now: datetime) -> None:
        stmt = sqlite_insert(ImageCacheEntryModel).values(
            cache_key=key.cache_key,
            tmdb_path=key.path,
            size=key.size,
            file_name=key.file_name,
            file_bytes=size_bytes,
            created_at=now,
            last_access_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["cache_key"],
            set_={
                "file_name": stmt.excluded.file_name,
                "file_bytes": stmt.excluded.file_bytes,
                "last_access_at": stmt.excluded.last_access_at,
            },
        )
        with Session(self._engine) as session:
            session.execute(stmt)
            session.commit()

    def _sum_bytes(self) -> int:
        with Session(self._engine) as session:
            total = session.execute(
                select(func.coalesce(func.sum(ImageCacheEntryModel.file_bytes), 0))
            ).scalar_one()
        return int(total)

    def _pop_least_recent(self) -> Optional[tuple[str, int]]:
        def work() -> Optional[tuple[str, int]]:
            with Session(self._engine) as session:
                entry = session.execute(
                    select(ImageCacheEntryModel)
                    .order_by(ImageCacheEntryModel.last_access_at.asc())
                    .limit(1)
                ).scalar_one_or_none()
                if entry is None:
                    return None
                popped = (entry.file_name, entry.file_bytes)
                session.execute(
                    delete(ImageCacheEntryModel).where(
                        ImageCacheEntryModel.cache_key == entry.cache_key
                    )
                )
                session.commit()
                return popped

        return run_write_with_retry(work)

    @staticmethod
    def _delete_file(file_path: Path) -> None:
        try:
            file_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Suppression du fichier {file_path.name} impossible: {e}")
