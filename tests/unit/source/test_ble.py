"""Tests for beaconwatch.source.ble - the bleak-backed source.

No Bluetooth hardware is needed: BleakScanner is replaced with a fake that
replays advertisements through the detection callback.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any

import pytest

bleak = pytest.importorskip("bleak", reason="bleak not installed")

from bleak.exc import BleakError  # noqa: E402

from beaconwatch.core.exceptions import ScanError  # noqa: E402
from beaconwatch.engine.reconciler import ReconciliationEngine  # noqa: E402
from beaconwatch.protocols.source import SightingSource  # noqa: E402
from beaconwatch.runner import ScanRunner  # noqa: E402
from beaconwatch.source import ble  # noqa: E402
from beaconwatch.source.ble import BleakSightingSource, advertisement_to_sighting  # noqa: E402
from beaconwatch.storage.memory import MemoryBeaconStore  # noqa: E402

# =============================================================================
# Test Fixtures and Helpers
# =============================================================================


def make_adv(name: str | None = "Tag1", rssi: int = -60, connectable: bool | None = None) -> Any:
    adv = SimpleNamespace(local_name=name, rssi=rssi)
    if connectable is not None:
        adv.connectable = connectable
    return adv


class FakeScanner:
    """Stands in for BleakScanner."""

    instances: list[FakeScanner] = []
    advertisements: list[tuple[Any, Any]] = []
    init_error: Exception | None = None
    start_error: Exception | None = None

    def __init__(self, detection_callback: Any = None, **kwargs: Any) -> None:
        if FakeScanner.init_error is not None:
            raise FakeScanner.init_error
        self.callback = detection_callback
        self.kwargs = kwargs
        self.stopped = False
        FakeScanner.instances.append(self)

    async def start(self) -> None:
        if FakeScanner.start_error is not None:
            raise FakeScanner.start_error
        for device, adv in FakeScanner.advertisements:
            self.callback(device, adv)

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def fake_scanner(monkeypatch: pytest.MonkeyPatch) -> type[FakeScanner]:
    FakeScanner.instances = []
    FakeScanner.advertisements = []
    FakeScanner.start_error = None
    FakeScanner.init_error = None
    monkeypatch.setattr(ble, "BleakScanner", FakeScanner)
    return FakeScanner


# =============================================================================
# Conversion
# =============================================================================


class TestAdvertisementToSighting:
    """Tests for advertisement_to_sighting()."""

    def test_fields(self) -> None:
        device = SimpleNamespace(address="AA:BB")
        at = datetime(2024, 1, 1, tzinfo=UTC)
        sighting = advertisement_to_sighting(device, make_adv("\x00Tag1"), detected_at=at)
        assert (sighting.address, sighting.name, sighting.rssi) == ("AA:BB", "Tag1", -60)
        assert sighting.detected_at == at

    def test_missing_name(self) -> None:
        sighting = advertisement_to_sighting(SimpleNamespace(address="AA:BB"), make_adv(None))
        assert sighting.name == ""

    def test_connectable_optional(self) -> None:
        device = SimpleNamespace(address="AA:BB")
        assert advertisement_to_sighting(device, make_adv()).connectable is False
        assert advertisement_to_sighting(device, make_adv(connectable=True)).connectable is True


# =============================================================================
# Scanning
# =============================================================================


class TestBleakSightingSource:
    """Tests for BleakSightingSource."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(BleakSightingSource(), SightingSource)

    def test_never_exhausted(self) -> None:
        assert BleakSightingSource().exhausted is False

    def test_scanner_kwargs_default_adapter(self) -> None:
        kwargs = BleakSightingSource().scanner_kwargs()
        assert kwargs == {"bluez": {"filters": {"DuplicateData": False}}}

    def test_scanner_kwargs_named_adapter(self) -> None:
        kwargs = BleakSightingSource("hci1", allow_duplicates=True).scanner_kwargs()
        assert kwargs["adapter"] == "hci1"
        assert kwargs["bluez"]["filters"]["DuplicateData"] is True

    async def test_scan_yields_advertisements(self, fake_scanner: type[FakeScanner]) -> None:
        fake_scanner.advertisements = [
            (SimpleNamespace(address="AA:BB"), make_adv("Tag1", -60)),
            (SimpleNamespace(address="CC:DD"), make_adv(None, -70)),
        ]
        source = BleakSightingSource()
        sightings = [s async for s in source.scan(timedelta(milliseconds=50))]
        assert [(s.address, s.name) for s in sightings] == [("AA:BB", "Tag1"), ("CC:DD", "")]
        assert fake_scanner.instances[0].stopped is True

    async def test_scan_ends_after_duration(self, fake_scanner: type[FakeScanner]) -> None:
        """An idle scan returns once the duration elapses."""
        source = BleakSightingSource()
        sightings = await asyncio.wait_for(
            _collect(source.scan(timedelta(milliseconds=20))), timeout=1
        )
        assert sightings == []

    async def test_start_failure_is_scan_error(self, fake_scanner: type[FakeScanner]) -> None:
        fake_scanner.start_error = BleakError("adapter not found")
        source = BleakSightingSource("hci9")
        with pytest.raises(ScanError, match="hci9") as exc_info:
            await _collect(source.scan(timedelta(seconds=1)))
        assert exc_info.value.source == "ble"

    async def test_construction_failure_is_scan_error(self, fake_scanner: type[FakeScanner]) -> None:
        """bleak refuses to build a scanner on unsupported platforms."""
        fake_scanner.init_error = BleakError("Unsupported platform")
        with pytest.raises(ScanError, match="Unsupported platform"):
            await _collect(BleakSightingSource().scan(timedelta(seconds=1)))

    async def test_construction_failure_ends_only_the_cycle(self, fake_scanner: type[FakeScanner]) -> None:
        fake_scanner.init_error = BleakError("Unsupported platform")
        runner = ScanRunner(
            BleakSightingSource(),
            ReconciliationEngine(MemoryBeaconStore()),
            duration=timedelta(milliseconds=10),
            delay=timedelta(0),
        )
        stats = await runner.run_cycle()
        assert stats.scan_error is not None
        assert "Unsupported platform" in stats.scan_error

    async def test_closing_early_stops_scanner(self, fake_scanner: type[FakeScanner]) -> None:
        fake_scanner.advertisements = [(SimpleNamespace(address="AA:BB"), make_adv())]
        scan = BleakSightingSource().scan(timedelta(seconds=5))
        await anext(scan)
        await scan.aclose()
        assert fake_scanner.instances[0].stopped is True


async def _collect(scan: Any) -> list[Any]:
    return [s async for s in scan]
