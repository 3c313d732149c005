"""Command-line interface for FigNotes."""

import asyncio
import json
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from fignotes.export import EXPORTERS
from fignotes.logging_config import configure_logging
from fignotes.models import FigNotesSettings, SyncResult, Task
from fignotes.parsing import CommentParser, StaticCanvas
from fignotes.remote import FigmaClient, parse_file_key
from fignotes.storage import JsonFileKeyValueStore, SettingsStore, StoredSettings, TaskStore
from fignotes.sync import SyncScheduler, SyncService

app = typer.Typer(
    name="fignotes",
    help="Design review command center - reconcile Figma comments with local task metadata",
    add_completion=False,
)
console = Console()

READINESS_STYLES = {
    "Ready": "bold green",
    "Needs Cleanup": "bold yellow",
    "High Risk": "bold red",
}


def _settings() -> FigNotesSettings:
    settings = FigNotesSettings()
    configure_logging(settings.log_level, settings.log_format)
    return settings


def _build_service(settings: FigNotesSettings, canvas: Optional[StaticCanvas] = None) -> SyncService:
    kv = JsonFileKeyValueStore(settings.store_dir)
    return SyncService(TaskStore(kv, key=settings.tasks_key), parser=CommentParser(canvas=canvas))


def _settings_store(settings: FigNotesSettings) -> SettingsStore:
    return SettingsStore(JsonFileKeyValueStore(settings.store_dir))


def _parse_value(raw: str) -> Any:
    """Interpret a CLI value as JSON when possible (true, 3, null), else as text."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _load_json(path: Path) -> Any:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _print_result(result: SyncResult, limit: int) -> None:
    metrics = result.file_metrics
    style = READINESS_STYLES.get(metrics.ship_readiness.value, "bold")
    console.print(f"[{style}]{metrics.ship_readiness.value}[/{style}]  {result.weekly_summary}")
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    if result.tasks:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("ID", style="cyan")
        table.add_column("Priority", style="red")
        table.add_column("Status", style="blue")
        table.add_column("Age", justify="right")
        table.add_column("Assignee", style="green")
        table.add_column("Location", style="yellow")
        table.add_column("Message", style="white")

        for task in result.tasks[:limit]:
            marker = " *" if task.is_currently_working else ""
            table.add_row(
                f"{task.comment_id}{marker}",
                task.priority.value,
                "Resolved" if task.resolved else task.internal_status.value,
                f"{task.age_in_days}d",
                task.assignee or "-",
                f"{task.page} / {task.frame}",
                task.message[:60],
            )
        console.print(table)
        if len(result.tasks) > limit:
            console.print(f"[dim]... and {len(result.tasks) - limit} more tasks[/dim]")

    if result.metrics:
        flows = Table(show_header=True, header_style="bold magenta")
        flows.add_column("Flow", style="yellow")
        flows.add_column("Open", justify="right")
        flows.add_column("Total", justify="right")
        flows.add_column("Critical", justify="right", style="red")
        flows.add_column("Estimate", justify="right")
        flows.add_column("Health", justify="right", style="green")
        for flow in result.metrics:
            flows.add_row(
                flow.flow_name,
                str(flow.unresolved_tasks),
                str(flow.total_tasks),
                str(flow.critical_tasks),
                f"{flow.total_time_estimate}m",
                str(flow.health_score),
            )
        console.print(flows)


def _print_task(task: Task) -> None:
    console.print(f"[cyan]ID:[/cyan] {task.comment_id}")
    console.print(f"[cyan]Message:[/cyan] {task.message}")
    console.print(f"[cyan]Location:[/cyan] {task.page} / {task.frame}")
    console.print(f"[cyan]Priority:[/cyan] {task.priority.value}")
    console.print(f"[cyan]Status:[/cyan] {task.internal_status.value}")
    console.print(f"[cyan]Assignee:[/cyan] {task.assignee or 'Unassigned'}")
    console.print(f"[cyan]Estimate:[/cyan] {task.estimate_minutes}m")
    console.print(f"[cyan]Age:[/cyan] {task.age_in_days}d")


@app.command()
def sync(
    comments: Optional[Path] = typer.Option(None, "--comments", "-c", help="JSON file of raw comments"),
    canvas: Optional[Path] = typer.Option(None, "--canvas", help="JSON file of the file document"),
    remote: bool = typer.Option(False, "--remote", "-r", help="Fetch comments from the Figma API"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user handle"),
    limit: int = typer.Option(25, "--limit", "-n", help="Maximum tasks to show"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the result as JSON"),
) -> None:
    """Reconcile comments with stored tasks and show the result."""
    try:
        settings = _settings()
        current_user = user or settings.current_user
        raw: Optional[List[Any]] = None
        static_canvas = StaticCanvas.from_document(_load_json(canvas)) if canvas else None

        if remote:
            saved = _settings_store(settings).load()
            token = settings.figma_token or saved.pat
            file_key = parse_file_key(settings.file_url or saved.file_url)
            if not token or not file_key:
                raise typer.BadParameter("A token and a Figma file URL are required for --remote")
            client = FigmaClient(token, base_url=settings.api_base_url, timeout=settings.http_timeout)
            snapshot = asyncio.run(client.fetch_snapshot(file_key, with_canvas=static_canvas is None))
            for error in snapshot.errors:
                console.print(f"[yellow]Warning:[/yellow] {error}")
            raw = snapshot.comments
            current_user = current_user or snapshot.current_user
            static_canvas = static_canvas or snapshot.canvas
        elif comments:
            data = _load_json(comments)
            raw = data.get("comments") if isinstance(data, dict) else data
        else:
            raise typer.BadParameter("Pass --comments FILE or --remote")

        service = _build_service(settings, static_canvas)
        result = asyncio.run(service.sync(raw, current_user))
        _print_result(result, limit)

        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            with open(output, "w", encoding="utf-8") as f:
                json.dump(result.model_dump(mode="json"), f, indent=2)
            console.print(f"[bold green]✓[/bold green] Saved to {output}")

    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def state(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user handle"),
    limit: int = typer.Option(25, "--limit", "-n", help="Maximum tasks to show"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result as JSON"),
) -> None:
    """Show stored tasks and metrics without fetching."""
    try:
        settings = _settings()
        result = asyncio.run(_build_service(settings).get_state(user or settings.current_user))
        if as_json:
            console.print_json(data=result.model_dump(mode="json"))
        else:
            _print_result(result, limit)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def focus(
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user handle"),
) -> None:
    """Show the single most actionable task."""
    try:
        settings = _settings()
        task = asyncio.run(_build_service(settings).focus(user or settings.current_user))
        if task is None:
            console.print("[yellow]No actionable focus tasks found.[/yellow]")
            return
        console.print("\n[bold]Focus Task[/bold]")
        _print_task(task)
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def update(
    task_id: str = typer.Argument(..., help="Comment id of the task"),
    key: str = typer.Argument(..., help="Field to change (e.g. priority, internalStatus)"),
    value: str = typer.Argument(..., help="New value (JSON literals are decoded)"),
) -> None:
    """Change one user-owned field of a task."""
    try:
        settings = _settings()
        task = asyncio.run(_build_service(settings).update_task(task_id, key, _parse_value(value)))
        console.print(f"[bold green]✓[/bold green] Updated {task.comment_id}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def bulk_update(
    ids: str = typer.Option(..., "--ids", help="Comma-separated comment ids"),
    assignments: List[str] = typer.Option(..., "--set", "-s", help="field=value, repeatable"),
) -> None:
    """Apply the same field changes to several tasks."""
    try:
        updates = {}
        for assignment in assignments:
            key, sep, value = assignment.partition("=")
            if not sep:
                raise typer.BadParameter(f"Expected field=value, got '{assignment}'")
            updates[key.strip()] = _parse_value(value.strip())

        task_ids = [i.strip() for i in ids.split(",") if i.strip()]
        settings = _settings()
        changed = asyncio.run(_build_service(settings).bulk_update(task_ids, updates))
        console.print(f"[bold green]✓[/bold green] Updated {len(changed)} tasks")
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def working(
    task_id: Optional[str] = typer.Argument(None, help="Comment id to mark as in progress"),
    clear: bool = typer.Option(False, "--clear", help="Clear the working task"),
) -> None:
    """Mark the task you are working on."""
    try:
        settings = _settings()
        service = _build_service(settings)
        if clear or task_id is None:
            asyncio.run(service.clear_working())
            console.print("[bold green]✓[/bold green] Working task cleared")
        else:
            asyncio.run(service.set_working(task_id))
            console.print(f"[bold green]✓[/bold green] Working on {task_id}")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def export(
    fmt: str = typer.Option("csv", "--format", "-f", help="csv or md"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file (stdout if omitted)"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user handle"),
) -> None:
    """Export stored tasks as CSV or Markdown."""
    try:
        exporter = EXPORTERS.get(fmt)
        if exporter is None:
            raise typer.BadParameter(f"Unsupported format: {fmt}")
        settings = _settings()
        result = asyncio.run(_build_service(settings).get_state(user or settings.current_user))
        content = exporter(result)
        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(content, encoding="utf-8")
            console.print(f"[bold green]✓[/bold green] Saved to {output}")
        else:
            print(content)
    except typer.BadParameter:
        raise
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


async def _watch_remote(
    settings: FigNotesSettings,
    client: FigmaClient,
    file_key: str,
    current_user: Optional[str],
    interval: float,
    iterations: Optional[int],
    limit: int,
) -> None:
    service = _build_service(settings)
    scheduler = SyncScheduler(
        service,
        delay=settings.sync_debounce_ms / 1000.0,
        on_result=lambda result: _print_result(result, limit),
        on_error=lambda e: console.print(f"[bold red]Error:[/bold red] {e}"),
    )
    count = 0
    while iterations is None or count < iterations:
        snapshot = await client.fetch_snapshot(file_key, with_canvas=count == 0)
        for error in snapshot.errors:
            console.print(f"[yellow]Warning:[/yellow] {error}")
        if snapshot.canvas is not None:
            service.parser = CommentParser(canvas=snapshot.canvas, clock=service.clock)
        await scheduler.request(snapshot.comments, current_user or snapshot.current_user)
        count += 1
        if iterations is None or count < iterations:
            await asyncio.sleep(interval)


@app.command()
def watch(
    interval: float = typer.Option(60.0, "--interval", "-i", help="Seconds between fetches"),
    iterations: Optional[int] = typer.Option(None, "--iterations", help="Stop after this many syncs"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Current user handle"),
    limit: int = typer.Option(10, "--limit", "-n", help="Maximum tasks to show"),
) -> None:
    """Poll the Figma API and sync on every fetch."""
    try:
        settings = _settings()
        saved = _settings_store(settings).load()
        token = settings.figma_token or saved.pat
        file_key = parse_file_key(settings.file_url or saved.file_url)
        if not token or not file_key:
            raise typer.BadParameter("A token and a Figma file URL are required to watch")
        client = FigmaClient(token, base_url=settings.api_base_url, timeout=settings.http_timeout)
        asyncio.run(
            _watch_remote(settings, client, file_key, user or settings.current_user, interval, iterations, limit)
        )
    except typer.BadParameter:
        raise
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def settings(
    pat: Optional[str] = typer.Option(None, "--pat", help="Personal access token to save"),
    file_url: Optional[str] = typer.Option(None, "--file-url", help="Figma file URL to save"),
) -> None:
    """Show or save the access token and file URL."""
    try:
        store = _settings_store(_settings())
        current = store.load()
        if pat is None and file_url is None:
            console.print(f"[cyan]Token:[/cyan] {'set' if current.pat else 'not set'}")
            console.print(f"[cyan]File URL:[/cyan] {current.file_url or 'not set'}")
            return
        store.save(
            StoredSettings(
                pat=pat if pat is not None else current.pat,
                file_url=file_url if file_url is not None else current.file_url,
            )
        )
        console.print("[bold green]✓[/bold green] Settings saved.")
    except Exception as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
