"""Engine components orchestrating discover → fetch → transform → persist → reconcile."""

from .fetcher import CatalogSource
from .job_queue import Job, JobKind, JobQueue
from .pagination import PageStrategy, PaginationReducer, ProductListStrategy
from .reconcile import DiffReconciler, ReconcileResult
from .store import EntityStore, MongoEntityStore, SQLiteEntityStore, build_store
from .transform import FieldContext, FieldRegistry, FieldSpec, TransformEngine

__all__ = [
    "CatalogSource",
    "DiffReconciler",
    "EntityStore",
    "FieldContext",
    "FieldRegistry",
    "FieldSpec",
    "Job",
    "JobKind",
    "JobQueue",
    "MongoEntityStore",
    "PageStrategy",
    "PaginationReducer",
    "ProductListStrategy",
    "ReconcileResult",
    "SQLiteEntityStore",
    "TransformEngine",
    "build_store",
]
