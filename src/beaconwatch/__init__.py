"""
beaconwatch - BLE beacon sighting tracker.

beaconwatch ingests a stream of proximity-beacon sightings, drops re-sightings
of the same beacon within a sliding dedup window, persists the resulting
events and serves the latest known state of every beacon over HTTP.

Key Features:
- Reconciliation engine deciding insert / update / absorb per sighting
- Concurrency-safe dedup cache with per-address write ordering
- SQLite store with auto-created schema
- Live BLE scanning (bleak) or replay from recorded files
- FastAPI read endpoint

Quick Start:
    >>> from beaconwatch import BeaconWatch, SQLiteBeaconStore, Settings
    >>> from beaconwatch.source.ble import BleakSightingSource
    >>> watch = BeaconWatch(SQLiteBeaconStore("ble.sqlite"), source=BleakSightingSource())
    >>> async with watch:
    ...     await watch.run()

Architecture:
    Sources: BleakSightingSource, ReplaySightingSource
    Engine: ReconciliationEngine, DedupCache
    Stores: SQLiteBeaconStore, MemoryBeaconStore
"""

# Configuration and errors
from beaconwatch.core.config import Settings, get_settings
from beaconwatch.core.exceptions import (
    BeaconWatchError,
    ConfigurationError,
    ScanError,
    StorageError,
)

# Core orchestration
from beaconwatch.core.service import BeaconWatch, format_sighting

# Reconciliation
from beaconwatch.engine import (
    Action,
    DedupCache,
    ReconcileResult,
    ReconciliationEngine,
)

# Metrics collection
from beaconwatch.metrics import EngineMetrics, MetricsSummary

# Models
from beaconwatch.models import BeaconRecord, Sighting, Watchlist, load_watchlist

# Runner
from beaconwatch.runner import ScanRunner, ScanStats

# Sources
from beaconwatch.source.replay import ReplaySightingSource

# Stores
from beaconwatch.storage import MemoryBeaconStore, SQLiteBeaconStore, create_store

__version__ = "0.1.0"

__all__ = [
    # Models
    "BeaconRecord",
    "Sighting",
    "Watchlist",
    "load_watchlist",
    # Engine
    "Action",
    "DedupCache",
    "ReconcileResult",
    "ReconciliationEngine",
    # Stores
    "MemoryBeaconStore",
    "SQLiteBeaconStore",
    "create_store",
    # Sources
    "ReplaySightingSource",
    # Runner
    "ScanRunner",
    "ScanStats",
    # Orchestration
    "BeaconWatch",
    "format_sighting",
    # Metrics
    "EngineMetrics",
    "MetricsSummary",
    # Config and errors
    "Settings",
    "get_settings",
    "BeaconWatchError",
    "ConfigurationError",
    "ScanError",
    "StorageError",
    # Version
    "__version__",
]
