"""Pydantic models describing crawler configuration."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator


class StoreBackend(str, Enum):
    """Entity store implementations available to the crawler."""

    SQLITE = "sqlite"
    MONGODB = "mongodb"


class ReconcilePolicy(str, Enum):
    """Which side of the diff is treated as the previously known ids."""

    STORE = "store"
    PREVIOUS_SESSION = "previous_session"


class ApiConfig(BaseModel):
    """Catalog API endpoint and request policy settings."""

    base_url: str = "https://api.example-catalog.com/v1"
    timeout: float = 15.0
    max_attempts: int = 3
    backoff_base: float = 0.5
    backoff_cap: float = 8.0
    delay_range: tuple[float, float] = (0.0, 0.0)
    user_agent_rotation: bool = False
    user_agents: list[str] = Field(default_factory=list)
    extra_headers: dict[str, str] = Field(default_factory=dict)
    max_pages: int | None = 1000

    @field_validator("base_url")
    @classmethod
    def _strip_slash(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("delay_range", mode="before")
    @classmethod
    def _coerce_delay(cls, value: Any) -> tuple[float, float]:
        if value in (None, ""):
            return (0.0, 0.0)
        if isinstance(value, (list, tuple)) and len(value) == 2:
            low, high = float(value[0]), float(value[1])
            if low < 0 or high < 0:
                raise ValueError("Delay range values must be non-negative")
            if high < low:
                raise ValueError("Delay range upper bound must be >= lower bound")
            return (low, high)
        raise ValueError("Delay range expects a two-item list or tuple")

    @model_validator(mode="after")
    def _validate_retry(self) -> "ApiConfig":
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.backoff_base < 0 or self.backoff_cap < 0:
            raise ValueError("backoff values must be non-negative")
        if self.max_pages is not None and self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        return self


class StoreConfig(BaseModel):
    """Where normalized entities are persisted."""

    backend: StoreBackend = StoreBackend.SQLITE
    path: Path = Field(default=Path("data/catalog.db"))
    uri: str = "mongodb://localhost:27017"
    database: str = "catalog_crawler"

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        return Path(value)

    def resolved_path(self, base_dir: Path) -> Path:
        if not self.path.is_absolute():
            return (base_dir / self.path).resolve()
        return self.path


class ReconcileConfig(BaseModel):
    """Post-crawl reconciliation settings."""

    enabled: bool = True
    policy: ReconcilePolicy = ReconcilePolicy.STORE


class GlobalConfig(BaseModel):
    """Top level crawler configuration."""

    api: ApiConfig = Field(default_factory=ApiConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    state_dir: Path = Field(default=Path("data/state"))
    enable_progress_bar: bool = True

    @field_validator("state_dir", mode="before")
    @classmethod
    def _coerce_dirs(cls, value: Any) -> Path:
        return Path(value)

    def sessions_path(self, base_dir: Path) -> Path:
        state_dir = self.state_dir if self.state_dir.is_absolute() else base_dir / self.state_dir
        return (state_dir / "sessions.db").resolve()


__all__ = [
    "ApiConfig",
    "GlobalConfig",
    "ReconcileConfig",
    "ReconcilePolicy",
    "StoreBackend",
    "StoreConfig",
]
