"""Post-crawl reconciliation: tombstone entities the crawl no longer saw."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping

import structlog

from ..config import ReconcilePolicy
from ..errors import InvalidSessionStateError
from .job_queue import JobKind
from .store import EntityStore

if TYPE_CHECKING:
    from ..session import CrawlSession


@dataclass(slots=True)
class ReconcileResult:
    """What one reconciliation pass removed and how many rows it touched."""

    removed: dict[JobKind, set[int]] = field(default_factory=dict)
    tombstoned: dict[str, int] = field(default_factory=dict)

    def summary(self) -> dict[str, int]:
        data = {f"removed_{kind.value}s": len(ids) for kind, ids in self.removed.items()}
        data.update({f"tombstoned_{name}": count for name, count in self.tombstoned.items()})
        return data


class DiffReconciler:
    """Compute ``previous - crawled`` per kind and retire the difference.

    The previous side comes from the live store (``ReconcilePolicy.STORE``) or
    from an explicitly supplied mapping such as the crawled ids of the prior
    completed session (``ReconcilePolicy.PREVIOUS_SESSION``). Store failures
    propagate unchanged.
    """

    def __init__(
        self,
        store: EntityStore,
        policy: ReconcilePolicy = ReconcilePolicy.STORE,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        self.store = store
        self.policy = ReconcilePolicy(policy)
        self.logger = logger or structlog.get_logger("catalog_crawler.reconcile")

    def previous_ids(
        self, kind: JobKind, previous: Mapping[JobKind, set[int]] | None = None
    ) -> set[int]:
        if previous is not None:
            return set(previous.get(kind, set()))
        if self.policy is ReconcilePolicy.PREVIOUS_SESSION:
            return set()
        return set(self.store.current_ids(kind.value))

    def compute(
        self,
        session: "CrawlSession",
        previous: Mapping[JobKind, set[int]] | None = None,
    ) -> dict[JobKind, set[int]]:
        return {
            kind: self.previous_ids(kind, previous) - session.crawled_ids(kind)
            for kind in JobKind
        }

    def reconcile(
        self,
        session: "CrawlSession",
        previous: Mapping[JobKind, set[int]] | None = None,
    ) -> ReconcileResult:
        if not session.is_finished:
            raise InvalidSessionStateError(
                f"crawl #{session.id} is {session.status.value}; only completed crawls reconcile"
            )
        removed = self.compute(session, previous)
        result = ReconcileResult(removed=removed)
        for kind, ids in removed.items():
            session.removed_ids(kind).update(ids)
            result.tombstoned[f"{kind.value}s"] = self.store.mark_dead(kind.value, ids) if ids else 0

        result.tombstoned["inventories"] = self.store.mark_inventory_dead(
            product_ids=removed[JobKind.PRODUCT], store_ids=removed[JobKind.STORE]
        )
        result.tombstoned["orphan_inventories"] = self.store.mark_orphan_inventory_dead(session.id)
        self.logger.info("reconciled", crawl_id=session.id, **result.summary())
        return result


__all__ = ["DiffReconciler", "ReconcileResult"]
