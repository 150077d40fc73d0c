"""Tests for beaconwatch.api.fastapi - the HTTP query API.

Tests cover:
- App factory and lifecycle
- The beacon list endpoint and its JSON contract
- Health, stats and watchlist endpoints
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from beaconwatch.engine.reconciler import ReconciliationEngine
from beaconwatch.models.beacon import BeaconRecord
from beaconwatch.models.sighting import Sighting
from beaconwatch.models.watchlist import Watchlist
from beaconwatch.storage.memory import MemoryBeaconStore

T0 = datetime(2024, 1, 1, tzinfo=UTC)

# =============================================================================
# Test Fixtures and Helpers
# =============================================================================


@pytest.fixture
def store() -> MemoryBeaconStore:
    """Memory store with two rows."""
    s = MemoryBeaconStore()
    asyncio.run(s.insert(BeaconRecord(address="AA:BB", detected=T0, name="Tag1", rssi=-60)))
    asyncio.run(s.insert(BeaconRecord(address="CC:DD", detected=T0, rssi=-70)))
    return s


@pytest.fixture
def test_client(store: MemoryBeaconStore) -> TestClient:
    """Test client over the memory store."""
    from beaconwatch.api.fastapi import create_app

    return TestClient(create_app(store=store, manage_lifecycle=False))


# =============================================================================
# App Factory Tests
# =============================================================================


class TestAppFactory:
    """Tests for create_app()."""

    def test_create_app_defaults(self, store: MemoryBeaconStore) -> None:
        from beaconwatch.api.fastapi import create_app

        app = create_app(store=store)
        assert app.title == "beaconwatch API"
        assert app.state.store is store
        assert app.state.engine is None

    def test_lifecycle_initializes_and_closes(self) -> None:
        """Managed lifecycle initializes and closes the store."""
        from beaconwatch.api.fastapi import create_app

        mock_store = AsyncMock()
        mock_store.list_beacons = AsyncMock(return_value=[])
        with TestClient(create_app(store=mock_store)) as client:
            client.get("/")
            mock_store.initialize.assert_awaited_once()
        mock_store.close.assert_awaited_once()

    def test_unmanaged_lifecycle_leaves_store_alone(self) -> None:
        from beaconwatch.api.fastapi import create_app

        mock_store = AsyncMock()
        mock_store.list_beacons = AsyncMock(return_value=[])
        with TestClient(create_app(store=mock_store, manage_lifecycle=False)):
            pass
        mock_store.initialize.assert_not_awaited()
        mock_store.close.assert_not_awaited()


# =============================================================================
# Beacon Endpoints
# =============================================================================


class TestBeaconEndpoints:
    """Tests for GET / and /api/v1/beacons."""

    def test_root_lists_rows(self, test_client: TestClient) -> None:
        response = test_client.get("/")
        assert response.status_code == 200
        assert response.json() == [
            {
                "id": 1,
                "address": "AA:BB",
                "detected": "2024-01-01T00:00:00Z",
                "name": "Tag1",
                "rssi": -60,
            },
            {
                "id": 2,
                "address": "CC:DD",
                "detected": "2024-01-01T00:00:00Z",
                "name": "",
                "rssi": -70,
            },
        ]

    def test_v1_alias(self, test_client: TestClient) -> None:
        assert test_client.get("/api/v1/beacons").json() == test_client.get("/").json()

    def test_empty_store(self) -> None:
        """An empty table is an empty JSON array."""
        from beaconwatch.api.fastapi import create_app

        client = TestClient(create_app(store=MemoryBeaconStore(), manage_lifecycle=False))
        assert client.get("/").json() == []

    def test_reads_store_not_cache(self) -> None:
        """Absorbed sightings only change the cache, not the response."""
        from beaconwatch.api.fastapi import create_app

        store = MemoryBeaconStore()
        engine = ReconciliationEngine(store)

        async def feed() -> None:
            await engine.process(Sighting(address="AA:BB", name="Tag1", rssi=-60, detected_at=T0))
            await engine.process(Sighting(address="AA:BB", rssi=-90, detected_at=T0))

        asyncio.run(feed())
        client = TestClient(create_app(store=store, engine=engine, manage_lifecycle=False))
        rows = client.get("/").json()
        assert [(r["name"], r["rssi"]) for r in rows] == [("Tag1", -60)]

    def test_store_error_is_500(self) -> None:
        """Store failures surface as a server error."""
        from beaconwatch.api.fastapi import create_app
        from beaconwatch.core.exceptions import StorageError

        mock_store = AsyncMock()
        mock_store.list_beacons = AsyncMock(side_effect=StorageError("locked"))
        client = TestClient(
            create_app(store=mock_store, manage_lifecycle=False),
            raise_server_exceptions=False,
        )
        assert client.get("/").status_code == 500


# =============================================================================
# Health & Info Endpoints
# =============================================================================


class TestInfoEndpoints:
    """Tests for health, stats and watchlist."""

    def test_health(self, test_client: TestClient) -> None:
        assert test_client.get("/health").json() == {"status": "healthy"}

    def test_stats_without_engine(self, test_client: TestClient) -> None:
        data = test_client.get("/api/v1/stats").json()
        assert data == {"store": {"beacons": 2, "addresses": 2, "backend": "memory"}}

    def test_stats_with_engine(self, store: MemoryBeaconStore) -> None:
        from beaconwatch.api.fastapi import create_app

        engine = ReconciliationEngine(store)
        asyncio.run(engine.process(Sighting(address="EE:FF", rssi=-50)))
        client = TestClient(create_app(store=store, engine=engine, manage_lifecycle=False))

        data = client.get("/api/v1/stats").json()
        assert data["engine"]["inserts"] == 1
        assert data["cache"] == {"addresses": 1, "pending_writes": 0, "window_seconds": 60.0}

    def test_watchlist(self, store: MemoryBeaconStore) -> None:
        from beaconwatch.api.fastapi import create_app

        watchlist = Watchlist.model_validate({"AA:BB": {"id": "bus-1", "name": "Bus 1"}})
        client = TestClient(create_app(store=store, watchlist=watchlist, manage_lifecycle=False))
        assert client.get("/api/v1/watchlist").json() == {"AA:BB": {"id": "bus-1", "name": "Bus 1"}}


# =============================================================================
# Prometheus Tests
# =============================================================================


class TestPrometheus:
    """Tests for the /metrics mount."""

    def test_metrics_served_when_enabled(self, store: MemoryBeaconStore) -> None:
        pytest.importorskip("prometheus_client")
        from beaconwatch.api.fastapi import create_app
        from beaconwatch.metrics.collector import EngineMetrics

        engine = ReconciliationEngine(store, metrics=EngineMetrics(enable_prometheus=True))
        asyncio.run(engine.process(Sighting(address="EE:FF", rssi=-50)))
        client = TestClient(create_app(store=store, engine=engine, manage_lifecycle=False))

        response = client.get("/metrics/")
        assert response.status_code == 200
        assert "beaconwatch_sightings_total 1.0" in response.text
        assert 'beaconwatch_actions_total{action="insert"} 1.0' in response.text

    def test_no_metrics_route_by_default(self, store: MemoryBeaconStore) -> None:
        from beaconwatch.api.fastapi import create_app

        engine = ReconciliationEngine(store)
        client = TestClient(create_app(store=store, engine=engine, manage_lifecycle=False))
        assert client.get("/metrics/").status_code == 404
