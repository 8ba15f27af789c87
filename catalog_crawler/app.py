"""Typer CLI entrypoint for catalog-crawler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig
from .engine import CatalogSource, DiffReconciler, EntityStore, build_store
from .errors import CrawlerError
from .infra import SQLiteManager, UserAgentPool
from .logging_conf import available_logs, configure_logging, tail_log
from .orchestrator import CrawlOrchestrator
from .session import CrawlSession, SessionRepository
from .ui import ProgressReporter

app = typer.Typer(
    help="catalog-crawler command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
crawl_app = typer.Typer(
    name="crawl",
    help="Run, resume and inspect crawl sessions.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    storage: SQLiteManager
    sessions: SessionRepository
    store: EntityStore
    orchestrator: CrawlOrchestrator


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    config = repository.load_global_config()
    root = repository.project_root
    storage = SQLiteManager()
    sessions = SessionRepository(storage, config.sessions_path(root))
    store = build_store(config, root, storage)

    ua_pool = None
    if config.api.user_agent_rotation and config.api.user_agents:
        ua_pool = UserAgentPool(config.api.user_agents)

    orchestrator = CrawlOrchestrator(
        source=CatalogSource(config.api, ua_pool=ua_pool),
        store=store,
        sessions=sessions,
        reconciler=DiffReconciler(store, policy=config.reconcile.policy),
        max_pages=config.api.max_pages,
    )
    return AppState(
        repository=repository,
        config=config,
        storage=storage,
        sessions=sessions,
        store=store,
        orchestrator=orchestrator,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _render_session(session: CrawlSession) -> Table:
    table = Table(title=f"Crawl #{session.id}", box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("field", style="cyan", no_wrap=True)
    table.add_column("value", style="green")
    table.add_row("status", session.status.value)
    table.add_row("created_at", session.created_at.isoformat(timespec="seconds"))
    table.add_row("updated_at", session.updated_at.isoformat(timespec="seconds"))
    for name, value in session.counters().items():
        table.add_row(name, str(value))
    table.add_row("removed_products", str(len(session.removed_product_ids)))
    table.add_row("removed_stores", str(len(session.removed_store_ids)))
    if session.error:
        table.add_row("error", f"[red]{session.error}[/red]")
    return table


def _progress(state: AppState, quiet: bool) -> ProgressReporter:
    return ProgressReporter(enabled=state.config.enable_progress_bar and not quiet, console=console)


def _abort(exc: CrawlerError) -> None:
    console.print(f"{type(exc).__name__}: {exc}", style="red")
    raise typer.Exit(code=1)


app.add_typer(crawl_app, name="crawl", help="Run and inspect crawls (run/resume/reconcile/status/list/events)")
app.add_typer(log_app, name="log", help="List or show log files")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    ctx.obj = build_state(verbose)


@crawl_app.command("run", help="Start a new crawl: populate, drain and reconcile.")
def crawl_run(
    ctx: typer.Context,
    no_reconcile: bool = typer.Option(False, "--no-reconcile", help="Skip reconciliation.", is_flag=True),
    quiet: bool = typer.Option(False, "--quiet", help="Hide the progress bar.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    reconcile = state.config.reconcile.enabled and not no_reconcile
    try:
        session = state.orchestrator.run(reconcile=reconcile, progress=_progress(state, quiet))
    except CrawlerError as exc:
        _abort(exc)
        return
    console.print(_render_session(session))


@crawl_app.command("resume", help="Resume an unfinished crawl (latest when no id is given).")
def crawl_resume(
    ctx: typer.Context,
    session_id: Optional[int] = typer.Argument(None, help="Crawl id."),
    no_reconcile: bool = typer.Option(False, "--no-reconcile", help="Skip reconciliation.", is_flag=True),
    quiet: bool = typer.Option(False, "--quiet", help="Hide the progress bar.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    reconcile = state.config.reconcile.enabled and not no_reconcile
    try:
        session = state.orchestrator.resume(
            session_id, reconcile=reconcile, progress=_progress(state, quiet)
        )
    except CrawlerError as exc:
        _abort(exc)
        return
    console.print(_render_session(session))


@crawl_app.command("reconcile", help="Tombstone entities a completed crawl did not see.")
def crawl_reconcile(
    ctx: typer.Context,
    session_id: int = typer.Argument(..., help="Crawl id."),
) -> None:
    state = _get_state(ctx)
    try:
        session = state.sessions.load(session_id)
        result = state.orchestrator.reconcile(session)
    except CrawlerError as exc:
        _abort(exc)
        return
    table = Table(title=f"Crawl #{session.id} reconciled", box=box.SIMPLE_HEAD)
    table.add_column("item", style="cyan")
    table.add_column("count", style="green", justify="right")
    for name, value in result.summary().items():
        table.add_row(name, str(value))
    console.print(table)


@crawl_app.command("status", help="Show counters of a crawl (latest when no id is given).")
def crawl_status(
    ctx: typer.Context,
    session_id: Optional[int] = typer.Argument(None, help="Crawl id."),
) -> None:
    state = _get_state(ctx)
    if session_id is None:
        session = state.sessions.latest()
        if session is None:
            console.print("No crawls yet. Start one with `catalog-crawler crawl run`.", style="yellow")
            raise typer.Exit(code=0)
    else:
        try:
            session = state.sessions.load(session_id)
        except CrawlerError as exc:
            _abort(exc)
            return
    console.print(_render_session(session))


@crawl_app.command("list", help="List recent crawls.")
def crawl_list(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", help="Number of crawls to show."),
) -> None:
    state = _get_state(ctx)
    sessions = state.sessions.recent(limit)
    if not sessions:
        console.print("No crawls yet. Start one with `catalog-crawler crawl run`.", style="yellow")
        raise typer.Exit(code=0)
    table = Table(title=f"Recent crawls · {len(sessions)}", box=box.SIMPLE_HEAD)
    table.add_column("id", style="cyan", no_wrap=True, justify="right")
    table.add_column("status", style="magenta")
    table.add_column("products", justify="right")
    table.add_column("stores", justify="right")
    table.add_column("pending", justify="right")
    table.add_column("updated", style="green")
    for session in sessions:
        table.add_row(
            str(session.id),
            session.status.value,
            str(session.total_products),
            str(session.total_stores),
            str(len(session.job_queue)),
            session.updated_at.isoformat(timespec="seconds"),
        )
    console.print(table)


@crawl_app.command("events", help="Show the event log of a crawl.")
def crawl_events(
    ctx: typer.Context,
    session_id: int = typer.Argument(..., help="Crawl id."),
    limit: int = typer.Option(50, "--limit", help="Show the last N events."),
) -> None:
    state = _get_state(ctx)
    try:
        session = state.sessions.load(session_id)
    except CrawlerError as exc:
        _abort(exc)
        return
    events = session.events[-limit:] if limit > 0 else session.events
    if not events:
        console.print("No events recorded.", style="dim")
        return
    table = Table(title=f"Crawl #{session.id} · last {len(events)} events", box=box.SIMPLE_HEAD)
    table.add_column("time", style="green", no_wrap=True)
    table.add_column("level", style="magenta")
    table.add_column("message")
    table.add_column("payload", style="dim", overflow="fold")
    styles = {"warning": "yellow", "error": "red"}
    for event in events:
        level = styles.get(event.level)
        table.add_row(
            event.created_at.isoformat(timespec="seconds"),
            f"[{level}]{event.level}[/{level}]" if level else event.level,
            event.message,
            ", ".join(f"{key}={value}" for key, value in event.payload.items()),
        )
    console.print(table)


@log_app.command("list", help="List available log files.")
def log_list() -> None:
    logs = list(available_logs())
    if not logs:
        console.print("No log files yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("name", style="green")
    table.add_column("size", justify="right")
    for path in logs:
        table.add_row(path.stem, str(path.stat().st_size))
    console.print(table)


@log_app.command("show", help="Show the tail of a log file (crawler, error or crawl-<id>).")
def log_show(
    name: str = typer.Argument("crawler", help="Log name as printed by `log list`."),
    lines: int = typer.Option(100, "--lines", help="Number of lines to show."),
) -> None:
    matches = [path for path in available_logs() if path.stem == name]
    if not matches:
        console.print(f"Unknown log `{name}`. See `catalog-crawler log list`.", style="yellow")
        raise typer.Exit(code=1)
    content = tail_log(matches[0], lines)
    if not content:
        console.print("Log is empty.", style="dim")
        return
    console.print(f"{name} · last {len(content)} lines", style="cyan")
    console.print("".join(content), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
