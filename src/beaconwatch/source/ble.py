"""Live BLE sighting source backed by bleak.

Each ``scan`` call starts a BleakScanner, yields one Sighting per received
advertisement until the scan duration elapses, then stops the scanner.

Example:
    >>> from datetime import timedelta
    >>> from beaconwatch.source.ble import BleakSightingSource
    >>> source = BleakSightingSource(device="hci0", allow_duplicates=True)
    >>> async for sighting in source.scan(timedelta(seconds=10)):
    ...     print(sighting.address, sighting.rssi)

Note:
    Requires the ``bleak`` package and a working Bluetooth stack.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from typing import Any

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from beaconwatch.core.exceptions import ScanError
from beaconwatch.models.sighting import Sighting

logger = logging.getLogger(__name__)


def advertisement_to_sighting(
    device: BLEDevice,
    adv: AdvertisementData,
    detected_at: datetime | None = None,
) -> Sighting:
    """Convert a bleak advertisement into a Sighting.

    Only the advertised local name is used; the name BlueZ may have cached
    for the device from earlier connections is ignored.
    """
    return Sighting(
        address=device.address,
        name=adv.local_name or "",
        rssi=adv.rssi,
        detected_at=detected_at or datetime.now(UTC),
        # not every bleak backend reports connectability
        connectable=bool(getattr(adv, "connectable", False)),
    )


class BleakSightingSource:
    """Scans for BLE advertisements with bleak.

    Args:
        device: Adapter to scan with ("default" picks the system default).
        allow_duplicates: Report every advertisement instead of letting the
            controller filter repeats (BlueZ ``DuplicateData`` filter).
        name: Source name for logs and stats.
    """

    def __init__(
        self,
        device: str = "default",
        *,
        allow_duplicates: bool = False,
        name: str = "ble",
    ) -> None:
        self._device = device
        self._allow_duplicates = allow_duplicates
        self._name = name
        self._initialized = False

    @property
    def name(self) -> str:
        """Source name."""
        return self._name

    @property
    def exhausted(self) -> bool:
        """A live scanner never runs dry."""
        return False

    async def initialize(self) -> None:
        """Nothing to acquire up front; each scan opens its own scanner."""
        self._initialized = True

    async def close(self) -> None:
        """No-op; scanners are stopped at the end of each scan."""
        self._initialized = False

    def scanner_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for BleakScanner, minus the callback."""
        kwargs: dict[str, Any] = {
            "bluez": {"filters": {"DuplicateData": self._allow_duplicates}},
        }
        if self._device and self._device != "default":
            kwargs["adapter"] = self._device
        return kwargs

    async def scan(self, duration: timedelta) -> AsyncIterator[Sighting]:
        """Scan for ``duration`` and yield sightings as they arrive.

        Raises:
            ScanError: If the scanner cannot be created or started.
        """
        queue: asyncio.Queue[Sighting] = asyncio.Queue()

        def _on_advertisement(device: BLEDevice, adv: AdvertisementData) -> None:
            try:
                queue.put_nowait(advertisement_to_sighting(device, adv))
            except ValueError as e:
                logger.debug("Dropping advertisement from %s: %s", device.address, e)

        try:
            scanner = BleakScanner(detection_callback=_on_advertisement, **self.scanner_kwargs())
            await scanner.start()
        except (BleakError, OSError) as e:
            raise ScanError(f"Cannot start BLE scan on {self._device}: {e}", source=self._name, cause=e) from e

        logger.info("Scanning for %ss...", duration.total_seconds())
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration.total_seconds()
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    sighting = await asyncio.wait_for(queue.get(), timeout=remaining)
                except TimeoutError:
                    break
                yield sighting
        finally:
            try:
                await scanner.stop()
            except BleakError as e:
                logger.warning("Error stopping BLE scanner: %s", e)
        logger.info("Scan done")
