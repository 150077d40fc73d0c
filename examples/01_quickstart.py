#!/usr/bin/env python3
"""
beaconwatch Quickstart Example

Replays recorded sightings through the reconciliation engine and prints the
resulting beacon table.

Usage:
    python examples/01_quickstart.py
"""

import asyncio
from pathlib import Path

from beaconwatch import BeaconWatch, MemoryBeaconStore, ReplaySightingSource, Settings, format_sighting

HERE = Path(__file__).parent


async def main() -> None:
    """Replay a recording with the default one-minute dedup window."""

    # In-memory store (use SQLiteBeaconStore for persistence)
    store = MemoryBeaconStore()
    settings = Settings(scan_delay=0)

    watch = BeaconWatch(
        store,
        source=ReplaySightingSource(HERE / "sightings.jsonl"),
        settings=settings,
        on_sighting=lambda s, r: print(f"{format_sighting(s, r)}  -> {r.action.value}"),
    )

    async with watch:
        await watch.scan()

        print("\nBeacon table:")
        for row in await watch.list_beacons():
            print(f"  {row.id}  {row.address}  {row.detected:%H:%M:%S}  {row.rssi}  {row.name!r}")

        print()
        print(watch.engine.metrics.summary())


if __name__ == "__main__":
    asyncio.run(main())
