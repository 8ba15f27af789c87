"""Crawl orchestrator wiring together discovery, fetching, transform, persistence and reconciliation."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Protocol

import structlog

from .config import ReconcilePolicy
from .engine import DiffReconciler, JobKind, PaginationReducer, ProductListStrategy, ReconcileResult
from .engine.fields import INVENTORY_FIELDS, PRODUCT_FIELDS, STORE_FIELDS
from .engine.job_queue import Job
from .engine.store import INVENTORY, PRODUCT, STORE, EntityStore
from .engine.transform import TransformEngine
from .errors import (
    CrawlerError,
    FieldComputationError,
    InvalidSessionStateError,
    NotFoundError,
    RedirectedError,
    SessionNotFoundError,
    UnknownJobKindError,
)
from .logging_conf import crawl_logger
from .session import (
    CrawlSession,
    CrawlStatus,
    ProductAggregate,
    SessionRepository,
)

RESUMABLE_STATUSES = (
    CrawlStatus.INITIALIZED,
    CrawlStatus.POPULATING,
    CrawlStatus.DRAINING,
    CrawlStatus.FAILED,
)


class Source(Protocol):
    def list_products(self, page: int = 1) -> dict[str, Any]: ...

    def list_stores(self) -> dict[str, Any]: ...

    def get_store(self, store_id: int) -> dict[str, Any]: ...

    def get_product(self, product_id: int) -> dict[str, Any]: ...

    def get_inventory(self, product_id: int) -> dict[str, Any]: ...


class Progress(Protocol):
    def start(self, total: int) -> None: ...

    def advance(self, success: bool = False, skipped: bool = False, current_job: str | None = None) -> None: ...

    def close(self) -> None: ...


def default_engines() -> dict[str, TransformEngine]:
    return {
        PRODUCT: TransformEngine(PRODUCT_FIELDS),
        STORE: TransformEngine(STORE_FIELDS),
        INVENTORY: TransformEngine(INVENTORY_FIELDS),
    }


class CrawlOrchestrator:
    """Drive one crawl session through populate → drain → reconcile.

    Every state change is checkpointed through the session repository so an
    interrupted crawl resumes from the first unfinished job. A job leaves the
    queue only after it has been handled; replaying it after a crash rewrites
    the same rows and the same per-product aggregate.
    """

    def __init__(
        self,
        source: Source,
        store: EntityStore,
        sessions: SessionRepository,
        reconciler: DiffReconciler | None = None,
        engines: Mapping[str, TransformEngine] | None = None,
        max_pages: int | None = None,
        logger_factory: Callable[[int], structlog.BoundLogger] = crawl_logger,
    ) -> None:
        self.source = source
        self.store = store
        self.sessions = sessions
        self.reconciler = reconciler or DiffReconciler(store)
        self.engines = dict(engines or default_engines())
        self.max_pages = max_pages
        self._logger_factory = logger_factory
        self._loggers: dict[int, structlog.BoundLogger] = {}
        self._handlers: dict[JobKind, Callable[[CrawlSession, int], bool]] = {
            JobKind.PRODUCT: self._place_product,
            JobKind.STORE: self._place_store,
        }

    # ------------------------------------------------------------------
    # Session log
    # ------------------------------------------------------------------
    def logger_for(self, session: CrawlSession) -> structlog.BoundLogger:
        logger = self._loggers.get(session.id)
        if logger is None:
            logger = self._logger_factory(session.id).bind(component="orchestrator")
            self._loggers[session.id] = logger
        return logger

    def _log(self, session: CrawlSession, level: str, message: str, **payload: Any) -> None:
        if level != "debug":
            session.record_event(level, message, **payload)
        getattr(self.logger_for(session), level)(message, **payload)

    def _checkpoint(self, session: CrawlSession) -> None:
        self.sessions.save(session)

    def _fail(self, session: CrawlSession, exc: BaseException) -> None:
        session.error = f"{type(exc).__name__}: {exc}"
        # A reconciled crawl keeps its status; the error is still recorded.
        if session.can_transition(CrawlStatus.FAILED):
            session.transition(CrawlStatus.FAILED)
        self._log(session, "error", "Crawl failed", error=session.error)
        self._checkpoint(session)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start(self) -> CrawlSession:
        session = self.sessions.create()
        self._log(session, "info", "Initialized crawl", crawl_id=session.id)
        self._checkpoint(session)
        return session

    def populate(self, session: CrawlSession) -> CrawlSession:
        session.transition(CrawlStatus.POPULATING)
        session.populated = False
        session.job_queue.clear()
        self._checkpoint(session)
        try:
            self._log(session, "info", "Enumerating product job queue")
            reducer = PaginationReducer(
                ProductListStrategy(self.source),
                max_pages=self.max_pages,
                logger=self.logger_for(session),
            )
            product_ids = reducer.run()
            self._log(session, "info", "Enumerating store job queue")
            store_ids = self.source.list_stores()["store_ids"]
        except Exception as exc:
            self._fail(session, exc)
            raise

        pushed_products = session.job_queue.push(JobKind.PRODUCT, product_ids)
        pushed_stores = session.job_queue.push(JobKind.STORE, store_ids)
        session.populated = True
        self._log(
            session,
            "info",
            "Job queue populated",
            products=pushed_products,
            stores=pushed_stores,
            pages=reducer.requests_made,
        )
        self._checkpoint(session)
        return session

    def drain(self, session: CrawlSession, progress: Progress | None = None) -> CrawlSession:
        session.transition(CrawlStatus.DRAINING)
        self._checkpoint(session)
        if progress is not None:
            progress.start(len(session.job_queue))
        self._log(session, "info", "Draining job queue", pending=len(session.job_queue))
        try:
            while (job := session.job_queue.peek()) is not None:
                handled = self._dispatch(session, job)
                session.mark_attempted(job.kind, job.id)
                session.job_queue.pop()
                self._checkpoint(session)
                if progress is not None:
                    progress.advance(
                        success=handled,
                        skipped=not handled,
                        current_job=f"{job.kind.value} #{job.id}",
                    )
        except Exception as exc:
            self._fail(session, exc)
            raise
        finally:
            if progress is not None:
                progress.close()

        session.transition(CrawlStatus.COMPLETED)
        self._log(session, "info", "Crawl completed", **session.counters())
        self._checkpoint(session)
        return session

    def reconcile(
        self,
        session: CrawlSession,
        previous: Mapping[JobKind, set[int]] | None = None,
    ) -> ReconcileResult:
        if previous is None and self.reconciler.policy is ReconcilePolicy.PREVIOUS_SESSION:
            prior = self.sessions.previous_completed(session.id)
            previous = {kind: set(prior.crawled_ids(kind)) if prior else set() for kind in JobKind}
        try:
            result = self.reconciler.reconcile(session, previous)
        except InvalidSessionStateError:
            raise
        except Exception as exc:
            self._fail(session, exc)
            raise
        session.transition(CrawlStatus.RECONCILED)
        self._log(session, "info", "Reconciled crawl", **result.summary())
        self._checkpoint(session)
        return result

    def run(
        self,
        session: CrawlSession | None = None,
        reconcile: bool = True,
        progress: Progress | None = None,
    ) -> CrawlSession:
        session = session or self.start()
        self.populate(session)
        self.drain(session, progress)
        if reconcile:
            self.reconcile(session)
        return session

    def resume(
        self,
        session_id: int | None = None,
        reconcile: bool = True,
        progress: Progress | None = None,
    ) -> CrawlSession:
        if session_id is None:
            session = self.sessions.latest(RESUMABLE_STATUSES)
            if session is None:
                raise SessionNotFoundError("no unfinished crawl to resume")
        else:
            session = self.sessions.load(session_id)
        if session.is_finished:
            raise InvalidSessionStateError(
                f"crawl #{session.id} is already {session.status.value}"
            )

        self._log(
            session,
            "info",
            "Resuming crawl",
            status=session.status.value,
            pending=len(session.job_queue),
        )
        session.error = None
        if not session.populated:
            self.populate(session)
        self.drain(session, progress)
        if reconcile:
            self.reconcile(session)
        return session

    # ------------------------------------------------------------------
    # Job handlers
    # ------------------------------------------------------------------
    def _dispatch(self, session: CrawlSession, job: Job) -> bool:
        handler = self._handlers.get(job.kind) if isinstance(job.kind, JobKind) else None
        if handler is None:
            raise UnknownJobKindError(f"no handler for job kind {job.kind!r} (id {job.id})")
        return handler(session, job.id)

    def _skip(self, session: CrawlSession, kind: JobKind, entity_id: int, exc: CrawlerError) -> bool:
        self._log(
            session,
            "warning",
            f"Skipping {kind.value} #{entity_id}",
            kind=kind.value,
            id=entity_id,
            reason=type(exc).__name__,
            detail=str(exc),
        )
        return False

    def _place_store(self, session: CrawlSession, store_id: int) -> bool:
        try:
            raw = self.source.get_store(store_id)
            entity = self.engines[STORE].transform(raw, entity_id=store_id)
        except (NotFoundError, FieldComputationError) as exc:
            return self._skip(session, JobKind.STORE, store_id, exc)

        if entity.get("postal_code"):
            entity["postal_code"] = "".join(str(entity["postal_code"]).split())
        entity.update(is_dead=False, crawl_id=session.id)
        self.store.upsert(STORE, entity)
        session.mark_crawled(JobKind.STORE, store_id)
        self._log(session, "debug", "Placed store", id=store_id)
        return True

    def _place_product(self, session: CrawlSession, product_id: int) -> bool:
        try:
            raw = self.source.get_product(product_id)
            inventory = self.source.get_inventory(product_id)
            count = int(inventory["inventory_count"])
            product = self.engines[PRODUCT].transform(
                {**raw, "inventoryCount": count}, entity_id=product_id
            )
            lines = [
                self.engines[INVENTORY].transform({**line, "productId": product_id}, entity_id=product_id)
                for line in inventory["inventories"]
            ]
        except (NotFoundError, RedirectedError, FieldComputationError) as exc:
            return self._skip(session, JobKind.PRODUCT, product_id, exc)

        product.update(is_dead=False, crawl_id=session.id)
        self.store.upsert(PRODUCT, product)
        for line in lines:
            line.update(is_dead=False, crawl_id=session.id)
        self.store.upsert_many(INVENTORY, lines)

        session.record_product(
            product_id,
            ProductAggregate(
                inventory_count=product["inventory_count"],
                inventory_price_in_cents=product["inventory_price_in_cents"],
                inventory_volume_in_milliliters=product["inventory_volume_in_milliliters"],
                inventories=len(lines),
            ),
        )
        self._log(session, "debug", "Placed product", id=product_id, inventories=len(lines))
        return True


__all__ = ["CrawlOrchestrator", "RESUMABLE_STATUSES", "default_engines"]
