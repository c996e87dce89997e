"""
Interfaces ports pour les caches.

Contrats du cache de reponses a deux niveaux, du rate limiter et du cache
d'images. Les implementations ne propagent jamais une panne de stockage
vers les chemins qui servent des requetes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class ImageCacheResult:
    """
    Image disponible localement.

    Attributs :
        file_path : Chemin du fichier sur disque
        content_type : Type MIME deduit de l'extension
    """

    file_path: Path
    content_type: str


class IResponseCache(ABC):
    """Cache cle/valeur avec TTL (memoire puis stockage persistant)."""

    @abstractmethod
    async def get(self, key: str, payload_type: type[T]) -> Optional[T]:
        """
        Recupere une valeur non expiree.

        Args :
            key : Cle du cache
            payload_type : Type de la valeur (sert aussi d'espace de noms)

        Retourne :
            La valeur, ou None si absente, expiree ou illisible
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: object, ttl_seconds: float) -> None:
        """Stocke une valeur ; un TTL <= 0 ne stocke rien."""
        ...


class IRateLimiter(ABC):
    """Limiteur de debit des appels sortants."""

    @abstractmethod
    async def acquire(self) -> None:
        """Attend un jeton ; l'annulation de la tache libere la place en file."""
        ...


class IImageCache(ABC):
    """Cache de fichiers images borne en octets, eviction LRU."""

    @abstractmethod
    async def get_or_fetch(self, size: str, path: str) -> Optional[ImageCacheResult]:
        ...

    @abstractmethod
    async def has(self, size: str, path: str) -> bool:
        ...

    @abstractmethod
    async def get_total_bytes(self) -> int:
        ...

    @abstractmethod
    async def prune(self, max_bytes: int) -> int:
        """
        Supprime les entrees les moins recemment accedees jusqu'au budget.

        Retourne :
            Nombre d'entrees supprimees
        """
        ...
