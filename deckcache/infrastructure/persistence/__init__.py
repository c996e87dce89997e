"""
Persistance SQLite des caches.

- database : engine (WAL, busy timeout, cles etrangeres), retry des ecritures
- models : tables SQLModel
- maintenance : porte de maintenance par store
- response_cache : cache de reponses memoire + SQLite
- metadata_store : catalogue, pools par utilisateur, reglages
- image_cache : fichiers images bornes en octets
"""

from deckcache.infrastructure.persistence.database import create_sqlite_engine, init_db
from deckcache.infrastructure.persistence.image_cache import SQLModelImageCache
from deckcache.infrastructure.persistence.maintenance import MaintenanceGate
from deckcache.infrastructure.persistence.metadata_store import SQLModelMetadataStore
from deckcache.infrastructure.persistence.response_cache import TwoTierResponseCache

__all__ = [
    "create_sqlite_engine",
    "init_db",
    "MaintenanceGate",
    "SQLModelImageCache",
    "SQLModelMetadataStore",
    "TwoTierResponseCache",
]
