"""Persist normalized entities into SQLite tables."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

from ...errors import StoreWriteError
from ...infra.storage import SQLiteManager
from .base import INVENTORY, PRODUCT, STORE, EntityStore, entity_kind

_TABLES = {PRODUCT: "products", STORE: "stores"}
_CHUNK = 500

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS products (
        id INTEGER PRIMARY KEY,
        is_dead INTEGER NOT NULL DEFAULT 0,
        crawl_id INTEGER,
        payload TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS stores (
        id INTEGER PRIMARY KEY,
        is_dead INTEGER NOT NULL DEFAULT 0,
        crawl_id INTEGER,
        payload TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inventories (
        product_id INTEGER NOT NULL,
        store_id INTEGER NOT NULL,
        quantity INTEGER NOT NULL DEFAULT 0,
        is_dead INTEGER NOT NULL DEFAULT 0,
        crawl_id INTEGER,
        payload TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (product_id, store_id)
    )
    """,
)


def _chunks(ids: Iterable[int]) -> Iterator[list[int]]:
    batch: list[int] = []
    for value in ids:
        batch.append(int(value))
        if len(batch) >= _CHUNK:
            yield batch
            batch = []
    if batch:
        yield batch


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class SQLiteEntityStore(EntityStore):
    """Products, stores and inventories as JSON payload rows with flag columns."""

    def __init__(self, manager: SQLiteManager, path: Path) -> None:
        self.manager = manager
        self.path = Path(path)
        self.conn = manager.connect(self.path, _SCHEMA)

    def _execute(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, tuple(params))
        except sqlite3.Error as exc:
            self.conn.rollback()
            raise StoreWriteError(str(exc)) from exc

    def _commit(self) -> None:
        try:
            self.conn.commit()
        except sqlite3.Error as exc:
            raise StoreWriteError(str(exc)) from exc

    def upsert(self, kind: str, entity: dict[str, Any]) -> None:
        kind = entity_kind(kind)
        payload = json.dumps(entity, ensure_ascii=False, sort_keys=True)
        is_dead = int(bool(entity.get("is_dead", False)))
        crawl_id = entity.get("crawl_id")
        if kind == INVENTORY:
            self._execute(
                """
                INSERT INTO inventories(product_id, store_id, quantity, is_dead, crawl_id, payload, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(product_id, store_id) DO UPDATE SET
                    quantity = excluded.quantity,
                    is_dead = excluded.is_dead,
                    crawl_id = excluded.crawl_id,
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (
                    entity["product_id"],
                    entity["store_id"],
                    int(entity.get("quantity") or 0),
                    is_dead,
                    crawl_id,
                    payload,
                    _now(),
                ),
            )
        else:
            table = _TABLES[kind]
            self._execute(
                f"""
                INSERT INTO {table}(id, is_dead, crawl_id, payload, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    is_dead = excluded.is_dead,
                    crawl_id = excluded.crawl_id,
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                """,
                (entity["id"], is_dead, crawl_id, payload, _now()),
            )
        self._commit()

    def mark_dead(self, kind: str, ids: Iterable[int]) -> int:
        table = _TABLES[entity_kind(kind)]
        changed = 0
        for batch in _chunks(ids):
            placeholders = ", ".join("?" for _ in batch)
            cur = self._execute(
                f"UPDATE {table} SET is_dead = 1, updated_at = ? WHERE is_dead = 0 AND id IN ({placeholders})",
                (_now(), *batch),
            )
            changed += cur.rowcount
        self._commit()
        return changed

    def mark_inventory_dead(
        self, product_ids: Iterable[int] = (), store_ids: Iterable[int] = ()
    ) -> int:
        changed = 0
        for column, ids in (("product_id", product_ids), ("store_id", store_ids)):
            for batch in _chunks(ids):
                placeholders = ", ".join("?" for _ in batch)
                cur = self._execute(
                    f"UPDATE inventories SET is_dead = 1, updated_at = ? "
                    f"WHERE is_dead = 0 AND {column} IN ({placeholders})",
                    (_now(), *batch),
                )
                changed += cur.rowcount
        self._commit()
        return changed

    def mark_orphan_inventory_dead(self, crawl_id: int) -> int:
        cur = self._execute(
            """
            UPDATE inventories SET quantity = 0, is_dead = 1, updated_at = ?
             WHERE (crawl_id IS NULL OR crawl_id != ?)
               AND (is_dead = 0 OR quantity != 0)
            """,
            (_now(), crawl_id),
        )
        self._commit()
        return cur.rowcount

    def current_ids(self, kind: str) -> set[int]:
        table = _TABLES[entity_kind(kind)]
        rows = self._execute(f"SELECT id FROM {table} WHERE is_dead = 0").fetchall()
        return {row["id"] for row in rows}

    def get(self, kind: str, key: Any) -> dict[str, Any] | None:
        kind = entity_kind(kind)
        if kind == INVENTORY:
            product_id, store_id = key
            row = self._execute(
                "SELECT * FROM inventories WHERE product_id = ? AND store_id = ?",
                (product_id, store_id),
            ).fetchone()
        else:
            row = self._execute(f"SELECT * FROM {_TABLES[kind]} WHERE id = ?", (key,)).fetchone()
        if row is None:
            return None
        entity = json.loads(row["payload"])
        entity["is_dead"] = bool(row["is_dead"])
        entity["crawl_id"] = row["crawl_id"]
        if kind == INVENTORY:
            entity["quantity"] = row["quantity"]
        return entity

    def count(self, kind: str, include_dead: bool = False) -> int:
        kind = entity_kind(kind)
        table = "inventories" if kind == INVENTORY else _TABLES[kind]
        query = f"SELECT count(*) FROM {table}"
        if not include_dead:
            query += " WHERE is_dead = 0"
        return self._execute(query).fetchone()[0]

    def close(self) -> None:
        self._commit()
        self.manager.close(self.path)


__all__ = ["SQLiteEntityStore"]
