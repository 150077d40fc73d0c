"""Sighting source protocol.

Defines the interface for anything that produces beacon sightings: a live
BLE scanner, a replay file, a test double.

Example:
    >>> from beaconwatch.protocols.source import SightingSource
    >>> hasattr(SightingSource, "scan")
    True
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from beaconwatch.models.sighting import Sighting


@runtime_checkable
class SightingSource(Protocol):
    """Sighting source protocol.

    ``scan`` runs one scan cycle and yields sightings as they arrive. The
    cycle ends when ``duration`` elapses or the source is exhausted.
    """

    @property
    def name(self) -> str:
        """Source name used in logs and stats."""
        ...

    @property
    def exhausted(self) -> bool:
        """True once the source can produce no more sightings."""
        ...

    def scan(self, duration: timedelta) -> AsyncIterator[Sighting]:
        """Run one scan cycle."""
        ...

    async def initialize(self) -> None:
        """Acquire the transport."""
        ...

    async def close(self) -> None:
        """Release the transport."""
        ...
