"""Sighting sources.

``BleakSightingSource`` needs bleak and a Bluetooth adapter; it is imported
lazily so the rest of the package works without a Bluetooth stack.
"""

from beaconwatch.source.replay import ReplaySightingSource

__all__ = ["ReplaySightingSource"]
