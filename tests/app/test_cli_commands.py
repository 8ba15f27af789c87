from __future__ import annotations

from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from catalog_crawler.app import AppState, app
from catalog_crawler.config import GlobalConfig
from catalog_crawler.engine import ReconcileResult
from catalog_crawler.engine.job_queue import JobKind
from catalog_crawler.errors import SessionNotFoundError
from catalog_crawler.session import CrawlSession, CrawlStatus, SessionRepository


class StubOrchestrator:
    def __init__(self, session: CrawlSession | None = None, error: Exception | None = None) -> None:
        self.session = session
        self.error = error
        self.calls: list[tuple] = []

    def run(self, reconcile: bool = True, progress=None) -> CrawlSession:
        self.calls.append(("run", reconcile, progress.enabled))
        if self.error:
            raise self.error
        return self.session

    def resume(self, session_id=None, reconcile: bool = True, progress=None) -> CrawlSession:
        self.calls.append(("resume", session_id, reconcile))
        if self.error:
            raise self.error
        return self.session

    def reconcile(self, session: CrawlSession) -> ReconcileResult:
        self.calls.append(("reconcile", session.id))
        return ReconcileResult(removed={JobKind.PRODUCT: set(), JobKind.STORE: {2}}, tombstoned={"stores": 1})


def make_state(sessions: SessionRepository, orchestrator: StubOrchestrator) -> AppState:
    return AppState(
        repository=SimpleNamespace(),
        config=GlobalConfig(),
        storage=SimpleNamespace(),
        sessions=sessions,
        store=SimpleNamespace(),
        orchestrator=orchestrator,
    )


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def finished_session(session_id: int = 1) -> CrawlSession:
    session = CrawlSession(id=session_id, status=CrawlStatus.RECONCILED, crawled_store_ids={1, 3})
    session.removed_store_ids.add(2)
    return session


def test_cli_crawl_run(monkeypatch, runner, session_repository) -> None:
    state = make_state(session_repository, StubOrchestrator(finished_session()))
    monkeypatch.setattr("catalog_crawler.app.build_state", lambda verbose: state)

    result = runner.invoke(app, ["crawl", "run", "--quiet"])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls == [("run", True, False)]
    assert "Crawl #1" in result.stdout
    assert "reconciled" in result.stdout
    assert "total_stores" in result.stdout


def test_cli_crawl_run_without_reconcile(monkeypatch, runner, session_repository) -> None:
    state = make_state(session_repository, StubOrchestrator(finished_session()))
    monkeypatch.setattr("catalog_crawler.app.build_state", lambda verbose: state)

    result = runner.invoke(app, ["crawl", "run", "--no-reconcile", "--quiet"])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls[0][1] is False


def test_cli_resume_reports_errors(monkeypatch, runner, session_repository) -> None:
    orchestrator = StubOrchestrator(error=SessionNotFoundError("no unfinished crawl to resume"))
    state = make_state(session_repository, orchestrator)
    monkeypatch.setattr("catalog_crawler.app.build_state", lambda verbose: state)

    result = runner.invoke(app, ["crawl", "resume"])
    assert result.exit_code == 1
    assert "no unfinished crawl" in result.stdout
    assert orchestrator.calls == [("resume", None, True)]


def test_cli_resume_with_id(monkeypatch, runner, session_repository) -> None:
    state = make_state(session_repository, StubOrchestrator(finished_session(4)))
    monkeypatch.setattr("catalog_crawler.app.build_state", lambda verbose: state)

    result = runner.invoke(app, ["crawl", "resume", "4", "--quiet"])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls == [("resume", 4, True)]
    assert "Crawl #4" in result.stdout


def test_cli_status_list_and_events(monkeypatch, runner, session_repository) -> None:
    state = make_state(session_repository, StubOrchestrator())
    monkeypatch.setattr("catalog_crawler.app.build_state", lambda verbose: state)

    empty = runner.invoke(app, ["crawl", "status"])
    assert empty.exit_code == 0
    assert "No crawls yet" in empty.stdout

    session = session_repository.create()
    session.record_event("warning", "Skipping store #2", id=2)
    session_repository.save(session)

    status = runner.invoke(app, ["crawl", "status", str(session.id)])
    assert status.exit_code == 0, status.stdout
    assert "initialized" in status.stdout

    listing = runner.invoke(app, ["crawl", "list", "--limit", "5"])
    assert listing.exit_code == 0, listing.stdout
    assert "Recent crawls" in listing.stdout

    events = runner.invoke(app, ["crawl", "events", str(session.id)])
    assert events.exit_code == 0, events.stdout
    assert "Skipping store #2" in events.stdout

    missing = runner.invoke(app, ["crawl", "status", "99"])
    assert missing.exit_code == 1


def test_cli_reconcile(monkeypatch, runner, session_repository) -> None:
    state = make_state(session_repository, StubOrchestrator())
    monkeypatch.setattr("catalog_crawler.app.build_state", lambda verbose: state)
    session = session_repository.create()

    result = runner.invoke(app, ["crawl", "reconcile", str(session.id)])
    assert result.exit_code == 0, result.stdout
    assert state.orchestrator.calls == [("reconcile", session.id)]
    assert "removed_stores" in result.stdout


def test_cli_log_list_and_show(monkeypatch, runner, session_repository, tmp_path) -> None:
    monkeypatch.setenv("CATALOG_CRAWLER_HOME", str(tmp_path))
    crawls = tmp_path / "logs" / "crawls"
    crawls.mkdir(parents=True)
    (tmp_path / "logs" / "crawler.log").write_text("first\nsecond\n", encoding="utf-8")
    (crawls / "crawl-3.log").write_text('{"event": "crawl_started"}\n', encoding="utf-8")
    state = make_state(session_repository, StubOrchestrator())
    monkeypatch.setattr("catalog_crawler.app.build_state", lambda verbose: state)

    listing = runner.invoke(app, ["log", "list"])
    assert listing.exit_code == 0, listing.stdout
    assert "crawler" in listing.stdout
    assert "crawl-3" in listing.stdout

    shown = runner.invoke(app, ["log", "show", "crawler", "--lines", "1"])
    assert shown.exit_code == 0, shown.stdout
    assert "second" in shown.stdout
    assert "first" not in shown.stdout

    unknown = runner.invoke(app, ["log", "show", "nope"])
    assert unknown.exit_code == 1
