"""Crawl session state and its SQLite-backed repository."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from .engine.job_queue import JobKind, JobQueue
from .errors import InvalidSessionStateError, SessionNotFoundError
from .infra.storage import SQLiteManager


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CrawlStatus(str, Enum):
    INITIALIZED = "initialized"
    POPULATING = "populating"
    DRAINING = "draining"
    COMPLETED = "completed"
    RECONCILED = "reconciled"
    FAILED = "failed"


_TRANSITIONS: dict[CrawlStatus, frozenset[CrawlStatus]] = {
    CrawlStatus.INITIALIZED: frozenset({CrawlStatus.POPULATING, CrawlStatus.FAILED}),
    CrawlStatus.POPULATING: frozenset({CrawlStatus.DRAINING, CrawlStatus.FAILED}),
    CrawlStatus.DRAINING: frozenset({CrawlStatus.COMPLETED, CrawlStatus.FAILED}),
    CrawlStatus.COMPLETED: frozenset({CrawlStatus.RECONCILED, CrawlStatus.FAILED}),
    CrawlStatus.FAILED: frozenset({CrawlStatus.POPULATING, CrawlStatus.DRAINING}),
    CrawlStatus.RECONCILED: frozenset(),
}

FINISHED_STATUSES = frozenset({CrawlStatus.COMPLETED, CrawlStatus.RECONCILED})


class CrawlEvent(BaseModel):
    """One entry of the append-only session log."""

    level: str
    message: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)


class ProductAggregate(BaseModel):
    """Inventory totals stored per crawled product."""

    inventory_count: int = 0
    inventory_price_in_cents: int = 0
    inventory_volume_in_milliliters: int = 0
    inventories: int = 0


class CrawlSession(BaseModel):
    """State of one crawl pass, persisted after every state-changing step.

    Counters are derived from the crawled-id sets and the per-product
    aggregates rather than incremented, so replaying a job after a resume
    overwrites its contribution instead of adding it twice.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, validate_assignment=False)

    id: int
    status: CrawlStatus = CrawlStatus.INITIALIZED
    job_queue: JobQueue = Field(default_factory=JobQueue)
    populated: bool = False
    attempted_product_ids: set[int] = Field(default_factory=set)
    attempted_store_ids: set[int] = Field(default_factory=set)
    crawled_product_ids: set[int] = Field(default_factory=set)
    crawled_store_ids: set[int] = Field(default_factory=set)
    product_aggregates: dict[int, ProductAggregate] = Field(default_factory=dict)
    removed_product_ids: set[int] = Field(default_factory=set)
    removed_store_ids: set[int] = Field(default_factory=set)
    error: str | None = None
    events: list[CrawlEvent] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("job_queue", mode="before")
    @classmethod
    def _coerce_queue(cls, value: Any) -> JobQueue:
        if isinstance(value, JobQueue):
            return value
        return JobQueue.from_list(value or [])

    @field_serializer("job_queue")
    def _dump_queue(self, queue: JobQueue) -> list[list[Any]]:
        return queue.to_list()

    @field_serializer(
        "attempted_product_ids",
        "attempted_store_ids",
        "crawled_product_ids",
        "crawled_store_ids",
        "removed_product_ids",
        "removed_store_ids",
    )
    def _dump_ids(self, ids: set[int]) -> list[int]:
        return sorted(ids)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def can_transition(self, status: CrawlStatus) -> bool:
        return status is self.status or status in _TRANSITIONS[self.status]

    def transition(self, status: CrawlStatus) -> None:
        if status is self.status:
            return
        if status not in _TRANSITIONS[self.status]:
            raise InvalidSessionStateError(
                f"crawl #{self.id} cannot move from {self.status.value} to {status.value}"
            )
        self.status = status

    @property
    def is_finished(self) -> bool:
        return self.status in FINISHED_STATUSES

    def record_event(self, level: str, message: str, **payload: Any) -> CrawlEvent:
        event = CrawlEvent(level=level, message=message, payload=payload)
        self.events.append(event)
        return event

    # ------------------------------------------------------------------
    # Id bookkeeping
    # ------------------------------------------------------------------
    def attempted_ids(self, kind: JobKind) -> set[int]:
        return self.attempted_product_ids if JobKind(kind) is JobKind.PRODUCT else self.attempted_store_ids

    def crawled_ids(self, kind: JobKind) -> set[int]:
        return self.crawled_product_ids if JobKind(kind) is JobKind.PRODUCT else self.crawled_store_ids

    def removed_ids(self, kind: JobKind) -> set[int]:
        return self.removed_product_ids if JobKind(kind) is JobKind.PRODUCT else self.removed_store_ids

    def mark_attempted(self, kind: JobKind, entity_id: int) -> None:
        self.attempted_ids(kind).add(entity_id)

    def mark_crawled(self, kind: JobKind, entity_id: int) -> None:
        self.crawled_ids(kind).add(entity_id)

    def record_product(self, product_id: int, aggregate: ProductAggregate) -> None:
        self.product_aggregates[product_id] = aggregate
        self.mark_crawled(JobKind.PRODUCT, product_id)

    # ------------------------------------------------------------------
    # Derived counters
    # ------------------------------------------------------------------
    def _sum_aggregates(self, attribute: str) -> int:
        return sum(
            getattr(aggregate, attribute)
            for product_id, aggregate in self.product_aggregates.items()
            if product_id in self.crawled_product_ids
        )

    @property
    def total_finished_jobs(self) -> int:
        return len(self.attempted_product_ids) + len(self.attempted_store_ids)

    @property
    def total_products(self) -> int:
        return len(self.crawled_product_ids)

    @property
    def total_stores(self) -> int:
        return len(self.crawled_store_ids)

    @property
    def total_inventories(self) -> int:
        return self._sum_aggregates("inventories")

    @property
    def total_product_inventory_count(self) -> int:
        return self._sum_aggregates("inventory_count")

    @property
    def total_product_inventory_price_in_cents(self) -> int:
        return self._sum_aggregates("inventory_price_in_cents")

    @property
    def total_product_inventory_volume_in_milliliters(self) -> int:
        return self._sum_aggregates("inventory_volume_in_milliliters")

    def counters(self) -> dict[str, int]:
        return {
            "total_products": self.total_products,
            "total_stores": self.total_stores,
            "total_inventories": self.total_inventories,
            "total_product_inventory_count": self.total_product_inventory_count,
            "total_product_inventory_price_in_cents": self.total_product_inventory_price_in_cents,
            "total_product_inventory_volume_in_milliliters": (
                self.total_product_inventory_volume_in_milliliters
            ),
            "total_finished_jobs": self.total_finished_jobs,
            "pending_jobs": len(self.job_queue),
        }


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS crawl_sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        status TEXT NOT NULL,
        payload TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
)


class SessionRepository:
    """Persist crawl sessions as JSON documents in SQLite."""

    def __init__(self, manager: SQLiteManager, path: Path) -> None:
        self.manager = manager
        self.path = Path(path)
        self._conn = manager.connect(self.path, _SCHEMA)

    def create(self) -> CrawlSession:
        now = _utcnow().isoformat()
        cur = self._conn.execute(
            "INSERT INTO crawl_sessions(status, payload, created_at, updated_at) VALUES (?, '{}', ?, ?)",
            (CrawlStatus.INITIALIZED.value, now, now),
        )
        self._conn.commit()
        session = CrawlSession(id=cur.lastrowid)
        self.save(session)
        return session

    def save(self, session: CrawlSession) -> None:
        session.updated_at = _utcnow()
        cur = self._conn.execute(
            "UPDATE crawl_sessions SET status = ?, payload = ?, updated_at = ? WHERE id = ?",
            (
                session.status.value,
                session.model_dump_json(),
                session.updated_at.isoformat(),
                session.id,
            ),
        )
        if cur.rowcount == 0:
            self._conn.execute(
                "INSERT INTO crawl_sessions(id, status, payload, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                (
                    session.id,
                    session.status.value,
                    session.model_dump_json(),
                    session.created_at.isoformat(),
                    session.updated_at.isoformat(),
                ),
            )
        self._conn.commit()

    def load(self, session_id: int) -> CrawlSession:
        row = self._conn.execute(
            "SELECT payload FROM crawl_sessions WHERE id = ?", (session_id,)
        ).fetchone()
        if row is None:
            raise SessionNotFoundError(f"crawl #{session_id} does not exist")
        return CrawlSession.model_validate(json.loads(row["payload"]))

    def latest(self, statuses: Iterable[CrawlStatus] | None = None) -> CrawlSession | None:
        query = "SELECT payload FROM crawl_sessions"
        params: list[Any] = []
        if statuses is not None:
            values = [CrawlStatus(status).value for status in statuses]
            query += f" WHERE status IN ({', '.join('?' for _ in values)})"
            params.extend(values)
        query += " ORDER BY id DESC LIMIT 1"
        row = self._conn.execute(query, params).fetchone()
        if row is None:
            return None
        return CrawlSession.model_validate(json.loads(row["payload"]))

    def previous_completed(self, before_id: int) -> CrawlSession | None:
        values = [status.value for status in FINISHED_STATUSES]
        row = self._conn.execute(
            f"SELECT payload FROM crawl_sessions WHERE id < ? AND status IN ({', '.join('?' for _ in values)}) "
            "ORDER BY id DESC LIMIT 1",
            (before_id, *values),
        ).fetchone()
        if row is None:
            return None
        return CrawlSession.model_validate(json.loads(row["payload"]))

    def recent(self, limit: int = 20) -> list[CrawlSession]:
        rows = self._conn.execute(
            "SELECT payload FROM crawl_sessions ORDER BY id DESC LIMIT ?", (limit,)
        ).fetchall()
        return [CrawlSession.model_validate(json.loads(row["payload"])) for row in rows]


__all__ = [
    "CrawlEvent",
    "CrawlSession",
    "CrawlStatus",
    "FINISHED_STATUSES",
    "ProductAggregate",
    "SessionRepository",
]
