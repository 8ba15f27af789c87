from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from catalog_crawler.config import (
    ApiConfig,
    ConfigLocator,
    ConfigRepository,
    GlobalConfig,
    ReconcilePolicy,
    StoreBackend,
)


def test_config_locator_uses_env_and_creates_directories(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CATALOG_CRAWLER_HOME", str(tmp_path))
    locator = ConfigLocator()
    assert locator.project_root == tmp_path.resolve()
    for path in (locator.data_dir, locator.state_dir, locator.logs_dir):
        assert path.exists()
    assert locator.global_config_path() == (tmp_path / "data" / "crawler_config.yaml").resolve()


def test_first_load_writes_defaults(temp_config_repository: ConfigRepository) -> None:
    config = temp_config_repository.load_global_config()
    path = temp_config_repository.locator.global_config_path()
    assert path.exists()
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    assert payload["api"]["max_attempts"] == 3
    assert payload["reconcile"]["policy"] == "store"
    assert config == GlobalConfig()


def test_config_repository_global_roundtrip(tmp_path: Path) -> None:
    repo = ConfigRepository(ConfigLocator(project_root=tmp_path))
    config = GlobalConfig.model_validate(
        {
            "api": {"base_url": "https://catalog.test/v1/", "delay_range": [0.2, 0.4]},
            "store": {"backend": "mongodb", "database": "catalog_test"},
            "reconcile": {"policy": "previous_session"},
            "enable_progress_bar": False,
        }
    )
    repo.save_global_config(config)
    loaded = repo.reload()
    assert loaded == config
    assert loaded.api.base_url == "https://catalog.test/v1"
    assert loaded.api.delay_range == (0.2, 0.4)
    assert loaded.store.backend is StoreBackend.MONGODB
    assert loaded.reconcile.policy is ReconcilePolicy.PREVIOUS_SESSION


def test_json_config_is_supported(tmp_path: Path) -> None:
    locator = ConfigLocator(project_root=tmp_path)
    (locator.data_dir / "crawler_config.json").write_text('{"api": {"max_pages": 5}}', encoding="utf-8")
    config = ConfigRepository(locator).load_global_config()
    assert config.api.max_pages == 5


def test_paths_resolve_against_project_root(tmp_path: Path) -> None:
    config = GlobalConfig()
    assert config.sessions_path(tmp_path) == (tmp_path / "data" / "state" / "sessions.db").resolve()
    assert config.store.resolved_path(tmp_path) == (tmp_path / "data" / "catalog.db").resolve()


@pytest.mark.parametrize(
    "overrides",
    [
        {"base_url": "catalog.test"},
        {"max_attempts": 0},
        {"delay_range": [2, 1]},
        {"max_pages": 0},
    ],
)
def test_api_config_validation(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        ApiConfig(**overrides)
