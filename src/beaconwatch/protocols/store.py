"""Beacon store protocol.

Defines the interface the reconciliation engine writes through and the
query API reads from.

Example:
    >>> from beaconwatch.protocols.store import BeaconStore
    >>> hasattr(BeaconStore, "insert")
    True
    >>> hasattr(BeaconStore, "list_beacons")
    True
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from beaconwatch.models.beacon import BeaconRecord


@runtime_checkable
class BeaconStore(Protocol):
    """Durable beacon table.

    Implementations must be safe to call concurrently from several tasks
    and must raise ``StorageError`` for driver failures.

    See Also:
        beaconwatch.storage.sqlite.SQLiteBeaconStore
        beaconwatch.storage.memory.MemoryBeaconStore
    """

    # --- Write Operations ---

    async def insert(self, record: BeaconRecord) -> int:
        """Append a row and return its id."""
        ...

    async def update_name(self, address: str, name: str) -> int:
        """Set the name of rows matching address. Returns affected count."""
        ...

    # --- Read Operations ---

    async def list_beacons(self) -> list[BeaconRecord]:
        """All rows in insertion order."""
        ...

    async def count(self) -> int:
        """Number of stored rows."""
        ...

    async def get_stats(self) -> dict[str, Any]:
        """Backend statistics."""
        ...

    # --- Lifecycle ---

    async def initialize(self) -> None:
        """Initialize storage (create tables, indexes, etc.)."""
        ...

    async def close(self) -> None:
        """Clean up resources."""
        ...
