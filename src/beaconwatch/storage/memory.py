"""In-memory beacon store for testing.

Provides a complete in-memory implementation of BeaconStore, useful for
testing, development and dry runs.

Example:
    >>> from beaconwatch.storage.memory import MemoryBeaconStore
    >>> store = MemoryBeaconStore()
    >>> hasattr(store, 'insert')
    True
    >>> hasattr(store, 'update_name')
    True

Note:
    All methods are async. Use within async context or with asyncio.run().
"""

from __future__ import annotations

from typing import Any

from beaconwatch.models.beacon import BeaconRecord


class MemoryBeaconStore:
    """In-memory beacon table backed by a list.

    Thread-safe for single-process async usage: no method awaits, so each
    call runs to completion on the event loop. Data is lost when the
    process exits.

    Example:
        >>> from beaconwatch.storage.memory import MemoryBeaconStore
        >>> s = MemoryBeaconStore()
        >>> s._initialized
        False
    """

    def __init__(self) -> None:
        self._rows: list[BeaconRecord] = []
        self._next_id = 1
        self._initialized = False

    async def initialize(self) -> None:
        """No-op for memory storage."""
        self._initialized = True

    async def close(self) -> None:
        """Clear all data."""
        self._rows.clear()
        self._next_id = 1
        self._initialized = False

    # --- Write Operations ---

    async def insert(self, record: BeaconRecord) -> int:
        """Append a row and return its id."""
        row_id = self._next_id
        self._next_id += 1
        self._rows.append(record.model_copy(update={"id": row_id}))
        return row_id

    async def update_name(self, address: str, name: str) -> int:
        """Set the name of every row with this address."""
        affected = 0
        for i, row in enumerate(self._rows):
            if row.address == address:
                self._rows[i] = row.model_copy(update={"name": name})
                affected += 1
        return affected

    # --- Read Operations ---

    async def list_beacons(self) -> list[BeaconRecord]:
        """All rows in insertion order."""
        return [row.model_copy() for row in self._rows]

    async def count(self) -> int:
        """Number of stored rows."""
        return len(self._rows)

    async def get_stats(self) -> dict[str, Any]:
        """Get storage statistics."""
        return {
            "beacons": len(self._rows),
            "addresses": len({row.address for row in self._rows}),
            "backend": "memory",
        }
