"""
CLI for the token holder rank service.
Runs the API server, one-off foreground fetches, and backup lookups.
"""
import asyncio
import functools
import sys
from typing import Optional

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.table import Table

from holders_ingest import query
from holders_ingest.backup import DurableBackup
from holders_ingest.config import get_settings
from holders_ingest.ingestion.ranking import rank_records
from holders_ingest.models import Snapshot, utc_now
from holders_ingest.service import build_service
from holders_ingest.store import SnapshotStore
from holders_ingest.utils.logging import setup_logging

console = Console()
logger = structlog.get_logger()


def async_command(f):
    """Decorator to run async functions in click commands."""
    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        return asyncio.run(f(*args, **kwargs))
    return wrapper


def _load_backup_store(backup: DurableBackup) -> Optional[SnapshotStore]:
    contents = backup.load()
    if contents is None:
        return None
    return SnapshotStore(
        Snapshot(
            records=tuple(rank_records(contents.records)),
            taken_at=contents.modified_at,
            complete=True,
        )
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """Token holder rank service CLI."""
    settings = get_settings()
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        format_type=settings.log_format,
    )


@cli.command()
@click.option("--host", default=None, help="Bind address (default: HOST setting)")
@click.option("--port", "-p", type=int, default=None, help="Listen port (default: PORT setting)")
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """Run the HTTP API with scheduled background refreshes."""
    import uvicorn

    from holders_ingest.api.app import create_app

    settings = ctx.obj["settings"]
    host = host or settings.host
    port = port or settings.port

    console.print(f"Server running on http://localhost:{port}")
    console.print(f"API available at http://localhost:{port}/api/holders")
    console.print(f"Data will update every {settings.refresh_interval_hours:g} hours")
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


@cli.command()
@click.pass_context
@async_command
async def fetch(ctx):
    """Fetch all holders now, in the foreground, and write the backup."""
    settings = ctx.obj["settings"]
    service = build_service(settings)
    console.print(Panel(f"Fetching holders of {settings.contract_address}", style="bold blue"))

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        task = progress.add_task("Fetching pages...", total=100)
        service.engine.add_progress_listener(
            lambda percent: progress.update(task, completed=percent)
        )
        result = await service.engine.run()

    if ctx.obj["verbose"]:
        console.print_json(data=result.to_dict())

    if result.success:
        console.print(f"[green]✓ Fetched {result.records_published} holders "
                      f"in {result.pages_fetched} pages ({result.duration_seconds:.1f}s)[/green]")
        console.print(f"Backup written to {service.backup.path}")
    else:
        console.print(f"[red]✗ Fetch failed: {result.error}[/red]")
        if result.restored_from_backup:
            console.print("[yellow]Existing backup left untouched[/yellow]")
        sys.exit(1)


@cli.command()
@click.argument("address")
@click.pass_context
def rank(ctx, address: str):
    """Look up the rank of ADDRESS in the backup file."""
    settings = ctx.obj["settings"]
    store = _load_backup_store(DurableBackup(settings.backup_path))
    if store is None:
        console.print(f"[red]No usable backup at {settings.backup_path}[/red]")
        sys.exit(1)

    result = query.rank_of(store, address)
    if result is None:
        console.print(f"[yellow]Address not found: {address}[/yellow]")
        sys.exit(1)

    table = Table(title="Holder rank")
    table.add_column("Rank", justify="right")
    table.add_column("Address")
    table.add_column("Balance", justify="right")
    table.add_column("Total holders", justify="right")
    table.add_row(str(result.rank), result.address, result.balance, str(result.total_holders))
    console.print(table)


@cli.command()
@click.pass_context
def status(ctx):
    """Show what the backup file currently holds."""
    settings = ctx.obj["settings"]
    backup = DurableBackup(settings.backup_path)
    store = _load_backup_store(backup)

    table = Table(title="Holder snapshot backup")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Path", str(backup.path))

    if store is None:
        table.add_row("Status", "[red]missing or unreadable[/red]")
        console.print(table)
        return

    snapshot = store.read()
    age = snapshot.age_seconds(utc_now()) or 0
    stale = age >= settings.refresh_interval_seconds
    table.add_row("Holders", str(snapshot.total))
    table.add_row("Last update", snapshot.taken_at.isoformat())
    table.add_row("Age", f"{age / 3600:.1f}h")
    table.add_row("Status", "[yellow]stale[/yellow]" if stale else "[green]fresh[/green]")
    console.print(table)


if __name__ == "__main__":
    cli()
