"""Typer CLI entrypoint for the roadmap tracker."""

from __future__ import annotations

import json
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

import typer
import yaml
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, WatchSettings
from .engine import EXPORT_FORMATS, FileExporter
from .errors import InvalidQuery, RoadmapError
from .logging_conf import available_provider_logs, configure_logging, log_dir, tail_log
from .models import ChangeEntry, RoadmapPage
from .orchestrator import Orchestrator, RefreshSummary
from .providers import ProbeResult
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="Roadmap tracker command line tool.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(
    name="config",
    help="Configuration commands.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Log viewing commands.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    orchestrator: Orchestrator
    scheduler: APSchedulerAdapter


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    orchestrator = Orchestrator(config_repository=repository)
    return AppState(
        repository=repository,
        orchestrator=orchestrator,
        scheduler=APSchedulerAdapter(),
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except InvalidQuery as exc:
        console.print(f"Invalid query: {exc}", style="red")
        raise typer.Exit(code=2) from exc
    except RoadmapError as exc:
        console.print(f"{type(exc).__name__}: {exc}", style="red")
        raise typer.Exit(code=1) from exc


def _print_json(payload: object) -> None:
    console.print_json(json.dumps(payload, ensure_ascii=False))


def _render_columns_table(rows: list[tuple[str, str, str]]) -> Table:
    table = Table(title="Columns", box=box.SIMPLE_HEAD)
    table.add_column("Provider", style="cyan", no_wrap=True)
    table.add_column("Column", style="green")
    table.add_column("Upstream id", style="magenta", overflow="fold")
    for row in rows:
        table.add_row(*row)
    return table


def _render_page_table(provider: str, page: RoadmapPage) -> Table:
    meta = page.meta
    table = Table(
        title=(
            f"{provider} · page {meta.page}/{meta.total_pages} · "
            f"{meta.total_results} items"
        ),
        box=box.SIMPLE_HEAD,
    )
    table.add_column("Title", style="cyan", overflow="fold")
    table.add_column("Status", style="green")
    table.add_column("Updated", style="yellow")
    table.add_column("Target", style="magenta")
    for item in page.items:
        table.add_row(
            item.title,
            item.status,
            item.updated_at.strftime("%Y-%m-%d"),
            item.target_at.strftime("%Y-%m-%d") if item.target_at else "-",
        )
    return table


def _render_health_table(results: dict[str, ProbeResult]) -> Table:
    table = Table(title="Provider health", box=box.SIMPLE_HEAD)
    table.add_column("Provider", style="cyan", no_wrap=True)
    table.add_column("OK")
    table.add_column("Status")
    table.add_column("Latency (ms)", justify="right")
    table.add_column("Items", justify="right")
    table.add_column("Error", style="red", overflow="fold")
    for name, result in results.items():
        table.add_row(
            name,
            "[green]yes[/green]" if result.ok else "[red]no[/red]",
            str(result.status_code or "-"),
            str(result.latency_ms),
            str(result.items),
            result.error or "",
        )
    return table


def _render_refresh_table(summaries: list[RefreshSummary]) -> Table:
    table = Table(title="Refresh", box=box.SIMPLE_HEAD)
    table.add_column("Provider", style="cyan", no_wrap=True)
    table.add_column("Column", style="green")
    table.add_column("Items", justify="right")
    table.add_column("Error", style="red", overflow="fold")
    for summary in summaries:
        for column, total in summary.totals.items():
            table.add_row(summary.provider, column, str(total), "")
        for column, error in summary.errors.items():
            table.add_row(summary.provider, column, "-", error)
    return table


def _print_changes(provider: str, entries: list[ChangeEntry]) -> None:
    for entry in entries:
        console.print(
            f"[{entry.detected_at:%H:%M:%S}] {provider}: {entry.item.title} "
            f"{entry.previous} → {entry.current}",
            style="yellow",
        )


app.add_typer(config_app, name="config", help="Show configuration.")
app.add_typer(log_app, name="log", help="List or tail log files.")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("columns", help="List logical columns and their upstream identifiers.")
def columns(
    ctx: typer.Context,
    provider: Optional[str] = typer.Argument(None, help="Limit to one provider."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
) -> None:
    state = _get_state(ctx)
    with _handle_errors():
        names = [provider] if provider else state.orchestrator.providers
        mapping = {name: state.orchestrator.service(name).columns() for name in names}
    if as_json:
        _print_json(mapping)
        return
    rows = [
        (name, column, identifier)
        for name, cols in mapping.items()
        for column, identifier in cols.items()
    ]
    console.print(_render_columns_table(rows))


@app.command("items", help="Fetch one page (or every page) of a provider column.")
def items(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider name (hive, cubecraft)."),
    column: str = typer.Argument(..., help="Logical column (in-progress, coming-next, released)."),
    page: int = typer.Option(1, "--page", help="1-based page number."),
    all_pages: bool = typer.Option(False, "--all", help="Return every page."),
    sort: Optional[str] = typer.Option(None, "--sort", help="field[:asc|desc]"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Bypass the response cache."),
    raw: bool = typer.Option(False, "--raw", help="Print the untouched upstream body."),
    in_review: bool = typer.Option(False, "--in-review", help="Include submissions in review."),
    no_pinned: bool = typer.Option(False, "--no-pinned", help="Exclude pinned submissions."),
    table: bool = typer.Option(False, "--table", help="Render a table instead of JSON."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Export items to a file."),
    fmt: str = typer.Option("json", "--format", help=f"Export format: {', '.join(EXPORT_FORMATS)}"),
) -> None:
    state = _get_state(ctx)
    if fmt not in EXPORT_FORMATS:
        raise typer.BadParameter(f"format must be one of {', '.join(EXPORT_FORMATS)}")
    with _handle_errors():
        service = state.orchestrator.service(provider)
        query = service.build_query(
            column,
            page=page,
            sort=sort,
            bypass_cache=no_cache,
            in_review=in_review,
            include_pinned=not no_pinned,
        )
        if raw:
            typer.echo(service.get_raw(query).decode("utf-8", "replace"))
            return
        pages = service.get_all(query) if all_pages else [service.get_page(query)]

    if output is not None:
        with FileExporter(output, fmt) as exporter:
            count = sum(exporter.export_many(p.items) for p in pages)
        console.print(f"Exported {count} items to {output}", style="green")
        return
    if table:
        for entry in pages:
            console.print(_render_page_table(service.name, entry))
        return
    if all_pages:
        _print_json([entry.as_dict() for entry in pages])
    else:
        _print_json(pages[0].as_dict())


@app.command("updates", help="Poll a provider and print the status changes seen while polling.")
def updates(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider name."),
    rounds: int = typer.Option(2, "--rounds", min=1, help="Number of refreshes to run."),
    interval: Optional[int] = typer.Option(
        None, "--interval", min=0, help="Seconds between refreshes (default: watch interval)."
    ),
) -> None:
    state = _get_state(ctx)
    orchestrator = state.orchestrator
    pause = interval if interval is not None else orchestrator.global_config.watch.interval_seconds
    with _handle_errors():
        service = orchestrator.service(provider)
        for index in range(rounds):
            if index:
                time.sleep(pause)
            orchestrator.refresh(service.name)
        entries = service.updates()
    _print_json([entry.as_dict() for entry in entries])


@app.command("health", help="Probe every enabled provider.")
def health(
    ctx: typer.Context,
    timeout: float = typer.Option(15.0, "--timeout", help="Deadline per probe in seconds."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
) -> None:
    state = _get_state(ctx)
    results = state.orchestrator.health(timeout=timeout)
    if as_json:
        _print_json({name: result.as_dict() for name, result in results.items()})
    else:
        console.print(_render_health_table(results))
    if not all(result.ok for result in results.values()):
        raise typer.Exit(code=1)


@app.command("watch", help="Refresh providers periodically and print status changes.")
def watch(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(None, "--interval", help="Seconds between refreshes."),
    once: bool = typer.Option(False, "--once", help="Refresh once and exit."),
) -> None:
    state = _get_state(ctx)
    orchestrator = state.orchestrator
    configured = orchestrator.global_config.watch
    try:
        settings = WatchSettings(
            interval_seconds=interval if interval is not None else configured.interval_seconds,
            columns=configured.columns,
        )
    except ValidationError as exc:
        raise typer.BadParameter(str(exc.errors()[0]["msg"]), param_hint="--interval") from exc

    summaries = [orchestrator.refresh(name, settings.columns) for name in orchestrator.providers]
    console.print(_render_refresh_table(summaries))
    if once:
        if not all(summary.ok for summary in summaries):
            raise typer.Exit(code=1)
        return

    def _refresh(provider: str, columns: list[str]) -> None:
        summary = orchestrator.refresh(provider, columns)
        if summary.changes:
            entries = orchestrator.service(provider).updates()[-summary.changes :]
            _print_changes(provider, entries)

    state.scheduler.schedule_refresh(orchestrator.providers, settings, _refresh)
    state.scheduler.start()
    for job in state.scheduler.list_jobs():
        console.print(f"Scheduled {job['id']} next at {job['next_run_time']}", style="dim")
    console.print(
        f"Watching {', '.join(orchestrator.providers)} every {settings.interval_seconds}s "
        "(Ctrl+C to stop).",
        style="cyan",
    )
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("Stopping watch.", style="dim")
    finally:
        for name in orchestrator.providers:
            state.scheduler.remove_provider(name)
        state.scheduler.shutdown()
        orchestrator.close()


@config_app.command("show", help="Print the effective configuration.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    config = state.repository.load_global_config()
    console.print(f"# {state.repository.path}", style="dim")
    console.print(
        yaml.safe_dump(config.model_dump(mode="json"), allow_unicode=True, sort_keys=False)
    )


@log_app.command("list", help="List available provider log files.")
def log_list() -> None:
    logs = list(available_provider_logs())
    console.print("Log files:", style="cyan")
    if not logs:
        console.print("No provider logs yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the tail of a log file.")
def log_show(
    provider: Optional[str] = typer.Option(
        None, "--provider", help="Provider name (global log when empty)."
    ),
    tail: int = typer.Option(100, "--tail", help="Show the last N lines."),
) -> None:
    base_dir = log_dir()
    path = base_dir / "providers" / f"{provider}.log" if provider else base_dir / "tracker.log"
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    header = f"{provider or 'global'} log · last {len(lines)} lines"
    console.print(header, style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
