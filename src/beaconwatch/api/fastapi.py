"""FastAPI integration for beaconwatch.

Provides the read side of the system:
- The beacon table as JSON (``GET /``)
- Health and statistics
- The configured watchlist
- Prometheus metrics (``/metrics``) when the engine exports them
- OpenAPI documentation

Beacons are always read from the durable store, never from the engine's
dedup cache, so duplicates that only touched the cache are not visible.

Example:
    >>> from beaconwatch.api.fastapi import create_app
    >>> from beaconwatch.storage.memory import MemoryBeaconStore
    >>>
    >>> app = create_app(store=MemoryBeaconStore())
    >>>
    >>> # Run with: uvicorn beaconwatch.api.fastapi:app
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from beaconwatch.engine.reconciler import ReconciliationEngine
from beaconwatch.models.watchlist import Watchlist
from beaconwatch.protocols.store import BeaconStore


def create_app(
    store: BeaconStore,
    engine: ReconciliationEngine | None = None,
    watchlist: Watchlist | None = None,
    title: str = "beaconwatch API",
    version: str = "0.1.0",
    description: str = "Latest known state of BLE beacons",
    manage_lifecycle: bool = True,
) -> FastAPI:
    """Create a FastAPI application for beaconwatch.

    Args:
        store: Beacon store to read from.
        engine: Optional engine, for cache and reconciliation stats.
        watchlist: Optional watchlist to serve.
        title: API title for OpenAPI docs.
        version: API version.
        description: API description for docs.
        manage_lifecycle: Initialize/close the store with the app. Disable
            when the store is shared with a scanner that owns it.

    Returns:
        Configured FastAPI application.

    Example:
        >>> from beaconwatch.api.fastapi import create_app
        >>> from beaconwatch.storage.memory import MemoryBeaconStore
        >>> app = create_app(store=MemoryBeaconStore())
        >>> app.title
        'beaconwatch API'
    """
    # =========================================================================
    # Lifecycle
    # =========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Initialize the store on startup and close it on shutdown."""
        if manage_lifecycle:
            await app.state.store.initialize()
        try:
            yield
        finally:
            if manage_lifecycle:
                await app.state.store.close()

    app = FastAPI(
        title=title,
        version=version,
        description=description,
        lifespan=lifespan,
    )

    # Store backends in app state
    app.state.store = store
    app.state.engine = engine
    app.state.watchlist = watchlist or Watchlist()

    # =========================================================================
    # Beacon Endpoints
    # =========================================================================

    async def _beacons() -> list[dict[str, Any]]:
        records = await app.state.store.list_beacons()
        return [record.model_dump(mode="json") for record in records]

    @app.get("/")
    async def list_beacons() -> list[dict[str, Any]]:
        """Every stored beacon row in insertion order."""
        return await _beacons()

    @app.get("/api/v1/beacons")
    async def list_beacons_v1() -> list[dict[str, Any]]:
        """Alias of ``GET /``."""
        return await _beacons()

    # =========================================================================
    # Health & Info Endpoints
    # =========================================================================

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/api/v1/stats")
    async def get_stats() -> dict[str, Any]:
        """Store statistics plus engine metrics when an engine is attached."""
        result: dict[str, Any] = {"store": await app.state.store.get_stats()}
        engine: ReconciliationEngine | None = app.state.engine
        if engine is not None:
            result["engine"] = engine.metrics.to_dict()
            result["cache"] = {
                "addresses": len(engine.cache),
                "pending_writes": engine.cache.pending_writes,
                "window_seconds": engine.window.total_seconds(),
            }
        return result

    @app.get("/api/v1/watchlist")
    async def get_watchlist() -> dict[str, Any]:
        """The configured watchlist, keyed as in the file."""
        return app.state.watchlist.model_dump(mode="json")

    # =========================================================================
    # Prometheus
    # =========================================================================

    if engine is not None and engine.metrics.prometheus_enabled:
        from prometheus_client import make_asgi_app

        app.mount("/metrics", make_asgi_app(registry=engine.metrics.registry))

    return app


# Default app instance for uvicorn
# Usage: uvicorn beaconwatch.api.fastapi:app
def _create_default_app() -> FastAPI:
    """Create app over the SQLite store named by the settings."""
    from beaconwatch.core.config import get_settings
    from beaconwatch.storage import create_store

    return create_app(store=create_store(get_settings().database_path))


app = _create_default_app()
