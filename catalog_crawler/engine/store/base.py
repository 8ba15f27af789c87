"""Entity store Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Iterable

PRODUCT = "product"
STORE = "store"
INVENTORY = "inventory"
ENTITY_KINDS = (PRODUCT, STORE, INVENTORY)


def entity_kind(kind: Any) -> str:
    """Accept enum members or plain strings and validate the kind."""

    value = getattr(kind, "value", kind)
    if value not in ENTITY_KINDS:
        raise ValueError(f"unknown entity kind: {kind!r}")
    return value


class EntityStore(ABC):
    """Keyed upsert store with logical tombstones."""

    @abstractmethod
    def upsert(self, kind: str, entity: dict[str, Any]) -> None:
        """Insert or replace one entity keyed by its identifier."""

    def upsert_many(self, kind: str, entities: Iterable[dict[str, Any]]) -> None:
        for entity in entities:
            self.upsert(kind, entity)

    @abstractmethod
    def mark_dead(self, kind: str, ids: Iterable[int]) -> int:
        """Tombstone live product or store rows; return how many changed."""

    @abstractmethod
    def mark_inventory_dead(
        self, product_ids: Iterable[int] = (), store_ids: Iterable[int] = ()
    ) -> int:
        """Tombstone inventory rows belonging to the given products or stores."""

    @abstractmethod
    def mark_orphan_inventory_dead(self, crawl_id: int) -> int:
        """Zero and tombstone inventory rows not written by ``crawl_id``."""

    @abstractmethod
    def current_ids(self, kind: str) -> set[int]:
        """Identifiers of live (not dead) product or store rows."""

    @abstractmethod
    def get(self, kind: str, key: Any) -> dict[str, Any] | None:
        """Return one stored entity with its ``is_dead``/``crawl_id`` flags."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""


__all__ = ["ENTITY_KINDS", "EntityStore", "INVENTORY", "PRODUCT", "STORE", "entity_kind"]
