"""CLI entry point."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from beaconwatch.core.config import Settings, get_settings
from beaconwatch.core.exceptions import BeaconWatchError
from beaconwatch.core.logging import configure_logging

app = typer.Typer(
    name="beaconwatch",
    help="Track BLE beacon sightings and serve their latest state",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


@app.callback()
def main(
    ctx: typer.Context,
    db: str | None = typer.Option(None, "--db", help="SQLite database path (or memory://)"),
    window: float | None = typer.Option(None, "--window", help="Dedup window in seconds"),
    watchlist: Path | None = typer.Option(None, "--watchlist", help="Watchlist JSON file"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level"),
    log_format: str | None = typer.Option(None, "--log-format", help="console or json"),
    metrics: bool | None = typer.Option(None, "--metrics/--no-metrics", help="Export Prometheus metrics at /metrics"),
) -> None:
    """Options shared by every command."""
    ctx.obj = {
        "database_path": db,
        "dedup_window": window,
        "watchlist_path": watchlist,
        "log_level": log_level,
        "log_format": log_format,
        "metrics_enabled": metrics,
    }


def _settings(ctx: typer.Context, **overrides: Any) -> Settings:
    """Merge shared and command options over environment settings."""
    try:
        settings = get_settings(**{**(ctx.obj or {}), **overrides})
    except ValidationError as e:
        err_console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        raise typer.Exit(code=2) from e
    configure_logging(settings.log_level, settings.log_format, console=err_console)
    return settings


def _watch(settings: Settings, source: Any = None) -> Any:
    """Build a BeaconWatch; fatal configuration problems exit the process."""
    from beaconwatch.core.service import BeaconWatch, format_sighting
    from beaconwatch.models.watchlist import Watchlist, load_watchlist
    from beaconwatch.storage import create_store

    watchlist = Watchlist()
    if settings.watchlist_path is not None:
        watchlist = load_watchlist(settings.watchlist_path)

    def _display(sighting: Any, result: Any) -> None:
        console.print(format_sighting(sighting, result, watchlist), markup=False, highlight=False)

    return BeaconWatch(
        create_store(settings.database_path),
        source=source,
        settings=settings,
        watchlist=watchlist,
        on_sighting=_display,
    )


def _ble_source(settings: Settings) -> Any:
    from beaconwatch.source.ble import BleakSightingSource

    return BleakSightingSource(settings.device, allow_duplicates=settings.allow_duplicates)


def _run(coro_factory: Any) -> None:
    """Run a coroutine, turning fatal errors into exit codes."""
    try:
        asyncio.run(coro_factory())
    except KeyboardInterrupt:
        console.print("canceled")
    except BeaconWatchError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1) from e


@app.command()
def run(
    ctx: typer.Context,
    device: str | None = typer.Option(None, "--device", help="BLE adapter, e.g. hci0"),
    duration: float | None = typer.Option(None, "--duration", "--du", help="Scanning duration (s)"),
    delay: float | None = typer.Option(None, "--delay", help="Delay between scans (s)"),
    dup: bool | None = typer.Option(None, "--dup/--no-dup", help="Allow duplicate reports"),
    host: str | None = typer.Option(None, "--host", help="HTTP bind address"),
    port: int | None = typer.Option(None, "--port", help="HTTP port"),
) -> None:
    """Scan for beacons and serve the beacon list."""
    settings = _settings(
        ctx,
        device=device,
        scan_duration=duration,
        scan_delay=delay,
        allow_duplicates=dup,
        host=host,
        port=port,
    )

    async def _main() -> None:
        async with _watch(settings, _ble_source(settings)) as watch:
            await watch.run()

    _run(_main)


@app.command()
def scan(
    ctx: typer.Context,
    device: str | None = typer.Option(None, "--device", help="BLE adapter, e.g. hci0"),
    duration: float | None = typer.Option(None, "--duration", "--du", help="Scanning duration (s)"),
    delay: float | None = typer.Option(None, "--delay", help="Delay between scans (s)"),
    dup: bool | None = typer.Option(None, "--dup/--no-dup", help="Allow duplicate reports"),
    cycles: int | None = typer.Option(None, "--cycles", min=1, help="Stop after N scan cycles"),
) -> None:
    """Scan for beacons without serving HTTP."""
    settings = _settings(
        ctx,
        device=device,
        scan_duration=duration,
        scan_delay=delay,
        allow_duplicates=dup,
    )

    async def _main() -> None:
        async with _watch(settings, _ble_source(settings)) as watch:
            await watch.scan(max_cycles=cycles)
            console.print(str(watch.engine.metrics.summary()), markup=False)

    _run(_main)


@app.command()
def serve(
    ctx: typer.Context,
    host: str | None = typer.Option(None, "--host", help="HTTP bind address"),
    port: int | None = typer.Option(None, "--port", help="HTTP port"),
) -> None:
    """Serve the beacon list without scanning."""
    settings = _settings(ctx, host=host, port=port)

    async def _main() -> None:
        async with _watch(settings) as watch:
            await watch.serve()

    _run(_main)


@app.command()
def replay(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="JSON-lines file of recorded sightings"),
    speed: float = typer.Option(0.0, "--speed", min=0.0, help="Playback speed, 0 = as fast as possible"),
) -> None:
    """Feed recorded sightings through the reconciliation engine."""
    from beaconwatch.source.replay import ReplaySightingSource

    settings = _settings(ctx, scan_delay=0)

    async def _main() -> None:
        async with _watch(settings, ReplaySightingSource(path, speed=speed)) as watch:
            await watch.scan()
            console.print(str(watch.engine.metrics.summary()), markup=False)

    _run(_main)


@app.command()
def beacons(
    ctx: typer.Context,
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
) -> None:
    """Print the stored beacon table."""
    settings = _settings(ctx)
    rows: list[Any] = []

    async def _main() -> None:
        async with _watch(settings) as watch:
            rows.extend(await watch.list_beacons())

    _run(_main)

    if as_json:
        console.print_json(json.dumps([row.model_dump(mode="json") for row in rows]))
        return

    table = Table(title="Beacons")
    for column in ("id", "address", "detected", "name", "rssi"):
        table.add_column(column)
    for row in rows:
        table.add_row(str(row.id), row.address, row.detected.isoformat(), row.name, str(row.rssi))
    console.print(table)


@app.command()
def version() -> None:
    """Show version."""
    from beaconwatch import __version__

    console.print(f"beaconwatch {__version__}")


@app.command()
def info(ctx: typer.Context) -> None:
    """Show system information."""
    import sys

    from beaconwatch import __version__

    settings = _settings(ctx)
    console.print(f"[bold]beaconwatch[/bold] {__version__}")
    console.print(f"Python {sys.version}")
    console.print(f"Database: {settings.database_path}")
    console.print(f"Dedup window: {settings.dedup_window.total_seconds():g}s")


if __name__ == "__main__":
    app()
