"""Protocol definitions for pluggable backends."""

from beaconwatch.protocols.source import SightingSource
from beaconwatch.protocols.store import BeaconStore

__all__ = [
    "BeaconStore",
    "SightingSource",
]
