"""Entity store SPI and implementations."""

from __future__ import annotations

from pathlib import Path

from ...config import GlobalConfig, StoreBackend
from ...infra import SQLiteManager
from .base import ENTITY_KINDS, INVENTORY, PRODUCT, STORE, EntityStore, entity_kind
from .mongo_store import MongoEntityStore
from .sqlite_store import SQLiteEntityStore


def build_store(config: GlobalConfig, base_dir: Path, manager: SQLiteManager) -> EntityStore:
    """Instantiate the configured entity store backend."""

    if config.store.backend is StoreBackend.MONGODB:
        return MongoEntityStore(config.store.uri, config.store.database)
    return SQLiteEntityStore(manager, config.store.resolved_path(base_dir))


__all__ = [
    "ENTITY_KINDS",
    "EntityStore",
    "INVENTORY",
    "MongoEntityStore",
    "PRODUCT",
    "STORE",
    "SQLiteEntityStore",
    "build_store",
    "entity_kind",
]
