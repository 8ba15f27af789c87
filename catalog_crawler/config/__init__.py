"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import (
    ApiConfig,
    GlobalConfig,
    ReconcileConfig,
    ReconcilePolicy,
    StoreBackend,
    StoreConfig,
)

__all__ = [
    "ApiConfig",
    "ConfigLocator",
    "ConfigRepository",
    "GlobalConfig",
    "ReconcileConfig",
    "ReconcilePolicy",
    "StoreBackend",
    "StoreConfig",
]
