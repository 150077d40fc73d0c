"""Beacon store implementations.

All stores create their schema on initialize(). Just pass a path and call
initialize() - no manual setup needed.

Quick Start:
    from beaconwatch.storage import create_store

    store = create_store("ble.sqlite")   # SQLite file
    store = create_store(":memory:")     # SQLite, in-memory
    store = create_store("memory://")    # pure-Python list

    await store.initialize()
"""

from __future__ import annotations

from pathlib import Path

from beaconwatch.storage.memory import MemoryBeaconStore
from beaconwatch.storage.sqlite import SQLiteBeaconStore


def create_store(location: str | Path) -> MemoryBeaconStore | SQLiteBeaconStore:
    """Pick a store for a database location.

    Example:
        >>> from beaconwatch.storage import create_store
        >>> type(create_store("memory://")).__name__
        'MemoryBeaconStore'
        >>> type(create_store("ble.sqlite")).__name__
        'SQLiteBeaconStore'
    """
    location = str(location)
    if location == "memory://":
        return MemoryBeaconStore()
    if location.startswith("sqlite:///"):
        location = location[len("sqlite:///"):]
    return SQLiteBeaconStore(location)


__all__ = [
    "MemoryBeaconStore",
    "SQLiteBeaconStore",
    "create_store",
]
