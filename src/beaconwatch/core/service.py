"""BeaconWatch - main orchestrator.

The BeaconWatch class wires a beacon store, the reconciliation engine, a
sighting source and the HTTP query API, and owns their lifecycle.

Example:
    >>> import asyncio
    >>> from beaconwatch.core.service import BeaconWatch
    >>> from beaconwatch.storage.memory import MemoryBeaconStore
    >>> async def example():
    ...     async with BeaconWatch(MemoryBeaconStore()) as watch:
    ...         return await watch.list_beacons()
    >>> asyncio.run(example())
    []
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

from beaconwatch.core.config import Settings
from beaconwatch.engine.reconciler import ReconciliationEngine
from beaconwatch.metrics.collector import EngineMetrics
from beaconwatch.models.watchlist import Watchlist
from beaconwatch.runner import ScanRunner, ScanStats, SightingCallback

if TYPE_CHECKING:
    from fastapi import FastAPI

    from beaconwatch.engine.reconciler import ReconcileResult
    from beaconwatch.models.beacon import BeaconRecord
    from beaconwatch.models.sighting import Sighting
    from beaconwatch.protocols.source import SightingSource
    from beaconwatch.protocols.store import BeaconStore

logger = logging.getLogger(__name__)


def _report_scan_exit(task: asyncio.Task[Any]) -> None:
    """Log a scanning task that died while the HTTP server keeps running."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Scanning stopped: %s", exc, exc_info=exc)


def format_sighting(
    sighting: Sighting,
    result: ReconcileResult | None = None,
    watchlist: Watchlist | None = None,
) -> str:
    """One display line per sighting: ``[address] C|N rssi: name``.

    Example:
        >>> from beaconwatch.models import Sighting
        >>> format_sighting(Sighting(address="AA:BB", name="Tag1", rssi=-7, connectable=True))
        '[AA:BB] C  -7: Tag1'
    """
    flag = "C" if sighting.connectable else "N"
    line = f"[{sighting.address}] {flag} {sighting.rssi:3d}:"
    if sighting.name:
        line += f" {sighting.name}"
    if watchlist is not None:
        label = watchlist.label(sighting.address)
        if label:
            line += f" <{label}>"
    if result is not None and result.error is not None:
        line += " (not persisted)"
    return line


class BeaconWatch:
    """Main orchestrator for beacon tracking.

    Args:
        store: Durable beacon store.
        source: Optional sighting source; required for scanning.
        settings: Settings (defaults loaded from the environment).
        watchlist: Optional watchlist for display labels.
        metrics: Optional shared metrics collector.
        on_sighting: Optional display callback for every processed sighting.
    """

    def __init__(
        self,
        store: BeaconStore,
        *,
        source: SightingSource | None = None,
        settings: Settings | None = None,
        watchlist: Watchlist | None = None,
        metrics: EngineMetrics | None = None,
        on_sighting: SightingCallback | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._store = store
        self._source = source
        self._watchlist = watchlist or Watchlist()
        self._engine = ReconciliationEngine(
            store,
            window=self._settings.dedup_window,
            metrics=metrics or EngineMetrics(enable_prometheus=self._settings.metrics_enabled),
        )
        self._runner: ScanRunner | None = None
        if source is not None:
            self._runner = ScanRunner(
                source,
                self._engine,
                duration=self._settings.scan_duration,
                delay=self._settings.scan_delay,
                on_sighting=on_sighting,
            )
        self._initialized = False

    @property
    def settings(self) -> Settings:
        """Active settings."""
        return self._settings

    @property
    def store(self) -> BeaconStore:
        """The beacon store."""
        return self._store

    @property
    def engine(self) -> ReconciliationEngine:
        """The reconciliation engine."""
        return self._engine

    @property
    def runner(self) -> ScanRunner | None:
        """The scan runner, if a source was given."""
        return self._runner

    @property
    def watchlist(self) -> Watchlist:
        """The watchlist (possibly empty)."""
        return self._watchlist

    async def list_beacons(self) -> list[BeaconRecord]:
        """Current beacon table, straight from the store."""
        return await self._store.list_beacons()

    def create_app(self) -> FastAPI:
        """HTTP API over this instance; lifecycle stays with BeaconWatch."""
        from beaconwatch.api.fastapi import create_app

        return create_app(
            store=self._store,
            engine=self._engine,
            watchlist=self._watchlist,
            manage_lifecycle=False,
        )

    async def scan(self, max_cycles: int | None = None) -> list[ScanStats]:
        """Run the scanning task.

        Raises:
            RuntimeError: If no source was configured.
        """
        if self._runner is None:
            raise RuntimeError("No sighting source configured")
        return await self._runner.run(max_cycles=max_cycles)

    async def serve(self) -> None:
        """Serve the HTTP API until the server is asked to exit."""
        import uvicorn

        config = uvicorn.Config(
            self.create_app(),
            host=self._settings.host,
            port=self._settings.port,
            log_config=None,
        )
        server = uvicorn.Server(config)
        logger.info("Serving beacons on http://%s:%d/", self._settings.host, self._settings.port)
        await server.serve()

    async def run(self) -> None:
        """Scan and serve concurrently until the server stops.

        The server handles SIGINT/SIGTERM; once it returns the scanning
        task is cancelled.
        """
        scan_task = asyncio.create_task(self.scan(), name="beaconwatch-scan")
        scan_task.add_done_callback(_report_scan_exit)
        try:
            await self.serve()
        finally:
            scan_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await scan_task

    async def initialize(self) -> None:
        """Initialize store and source."""
        if self._initialized:
            return
        await self._store.initialize()
        if self._source is not None:
            await self._source.initialize()
        self._initialized = True

    async def close(self) -> None:
        """Close source and store."""
        if self._source is not None:
            await self._source.close()
        await self._store.close()
        self._initialized = False

    async def __aenter__(self) -> BeaconWatch:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    def info(self) -> dict[str, Any]:
        """Get orchestrator metadata."""
        return {
            "source": self._source.name if self._source is not None else None,
            "store": type(self._store).__name__,
            "dedup_window_seconds": self._engine.window.total_seconds(),
            "cached_addresses": len(self._engine.cache),
            "watchlist_entries": len(self._watchlist),
            "initialized": self._initialized,
        }
