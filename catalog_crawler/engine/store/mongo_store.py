"""MongoDB entity store implementation."""

from __future__ import annotations

from typing import Any, Iterable

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ...errors import StoreWriteError
from .base import INVENTORY, PRODUCT, STORE, EntityStore, entity_kind

_COLLECTIONS = {PRODUCT: "products", STORE: "stores", INVENTORY: "inventories"}


def _inventory_key(product_id: Any, store_id: Any) -> str:
    return f"{int(product_id)}:{int(store_id)}"


class MongoEntityStore(EntityStore):
    """One collection per entity kind, documents keyed by ``_id``."""

    def __init__(self, uri: str, database: str, client: MongoClient | None = None) -> None:
        self.client = client or MongoClient(uri)
        self.db = self.client[database]

    def _collection(self, kind: str):
        return self.db[_COLLECTIONS[entity_kind(kind)]]

    def upsert(self, kind: str, entity: dict[str, Any]) -> None:
        kind = entity_kind(kind)
        if kind == INVENTORY:
            key = _inventory_key(entity["product_id"], entity["store_id"])
        else:
            key = entity["id"]
        document = {**entity, "_id": key, "is_dead": bool(entity.get("is_dead", False))}
        try:
            self._collection(kind).replace_one({"_id": key}, document, upsert=True)
        except PyMongoError as exc:
            raise StoreWriteError(str(exc)) from exc

    def mark_dead(self, kind: str, ids: Iterable[int]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        try:
            result = self._collection(kind).update_many(
                {"_id": {"$in": ids}, "is_dead": False}, {"$set": {"is_dead": True}}
            )
        except PyMongoError as exc:
            raise StoreWriteError(str(exc)) from exc
        return result.modified_count

    def mark_inventory_dead(
        self, product_ids: Iterable[int] = (), store_ids: Iterable[int] = ()
    ) -> int:
        changed = 0
        for field, ids in (("product_id", list(product_ids)), ("store_id", list(store_ids))):
            if not ids:
                continue
            try:
                result = self._collection(INVENTORY).update_many(
                    {field: {"$in": ids}, "is_dead": False}, {"$set": {"is_dead": True}}
                )
            except PyMongoError as exc:
                raise StoreWriteError(str(exc)) from exc
            changed += result.modified_count
        return changed

    def mark_orphan_inventory_dead(self, crawl_id: int) -> int:
        try:
            result = self._collection(INVENTORY).update_many(
                {"crawl_id": {"$ne": crawl_id}},
                {"$set": {"quantity": 0, "is_dead": True}},
            )
        except PyMongoError as exc:
            raise StoreWriteError(str(exc)) from exc
        return result.modified_count

    def current_ids(self, kind: str) -> set[int]:
        try:
            return set(self._collection(kind).distinct("_id", {"is_dead": False}))
        except PyMongoError as exc:
            raise StoreWriteError(str(exc)) from exc

    def get(self, kind: str, key: Any) -> dict[str, Any] | None:
        if entity_kind(kind) == INVENTORY:
            key = _inventory_key(*key)
        document = self._collection(kind).find_one({"_id": key})
        if document is None:
            return None
        document.pop("_id", None)
        return document

    def close(self) -> None:
        self.client.close()


__all__ = ["MongoEntityStore"]
