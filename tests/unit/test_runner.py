"""Tests for the scan runner.

The runner is the long-running task that:
1. Scans a sighting source for a fixed duration
2. Feeds every sighting to the reconciliation engine in order
3. Reports results to a display callback
4. Survives transport errors and repeats after a delay
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import pytest

from beaconwatch.core.exceptions import ScanError
from beaconwatch.engine.policy import Action
from beaconwatch.engine.reconciler import ReconcileResult, ReconciliationEngine
from beaconwatch.models.sighting import Sighting
from beaconwatch.runner import ScanRunner, ScanStats
from beaconwatch.storage.memory import MemoryBeaconStore

T0 = datetime(2024, 1, 1, tzinfo=UTC)
NO_DELAY = timedelta(0)

# =============================================================================
# Test Fixtures - Scripted Sighting Source
# =============================================================================


class ScriptedSource:
    """Yields one scripted batch of sightings per scan cycle."""

    def __init__(self, batches: list[list[Sighting]], fail_on: set[int] | None = None):
        self._batches = batches
        self._fail_on = fail_on or set()
        self._cycle = 0
        self.closed_scans = 0

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def exhausted(self) -> bool:
        return self._cycle >= len(self._batches)

    async def scan(self, duration: timedelta) -> AsyncIterator[Sighting]:
        index = self._cycle
        self._cycle += 1
        try:
            if index in self._fail_on:
                raise ScanError("adapter went away", source=self.name)
            for sighting in self._batches[index]:
                yield sighting
        finally:
            self.closed_scans += 1

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass


def make_sighting(address: str = "AA:BB", after: float = 0, name: str = "") -> Sighting:
    return Sighting(address=address, name=name, rssi=-60, detected_at=T0 + timedelta(seconds=after))


@pytest.fixture
def store() -> MemoryBeaconStore:
    return MemoryBeaconStore()


def make_runner(source: ScriptedSource, store: MemoryBeaconStore, **kwargs) -> ScanRunner:
    return ScanRunner(source, ReconciliationEngine(store), delay=NO_DELAY, **kwargs)


# =============================================================================
# Cycle Tests
# =============================================================================


class TestRunCycle:
    """Tests for a single scan cycle."""

    async def test_processes_sightings_in_order(self, store: MemoryBeaconStore) -> None:
        source = ScriptedSource(
            [[make_sighting(name="Tag1"), make_sighting(after=10), make_sighting(after=20, name="Tag2")]]
        )
        runner = make_runner(source, store)

        stats = await runner.run_cycle()

        assert (stats.sightings, stats.inserts, stats.absorbed, stats.updates) == (3, 1, 1, 1)
        assert (await store.list_beacons())[0].name == "Tag2"
        assert source.closed_scans == 1

    async def test_callback_gets_every_sighting(self, store: MemoryBeaconStore) -> None:
        seen: list[tuple[str, Action]] = []

        def on_sighting(sighting: Sighting, result: ReconcileResult) -> None:
            seen.append((sighting.address, result.action))

        source = ScriptedSource([[make_sighting(), make_sighting("CC:DD"), make_sighting(after=1)]])
        await make_runner(source, store, on_sighting=on_sighting).run_cycle()

        assert seen == [("AA:BB", Action.INSERT), ("CC:DD", Action.INSERT), ("AA:BB", Action.ABSORB)]

    async def test_scan_error_recorded(self, store: MemoryBeaconStore) -> None:
        """Transport errors end the cycle without raising."""
        source = ScriptedSource([[make_sighting()]], fail_on={0})
        stats = await make_runner(source, store).run_cycle()
        assert stats.scan_error == "adapter went away"
        assert stats.sightings == 0

    async def test_processing_error_counted(self, store: MemoryBeaconStore) -> None:
        """An unexpected engine error skips the sighting, not the cycle."""

        class BrokenEngine(ReconciliationEngine):
            async def process(self, sighting: Sighting) -> ReconcileResult:
                if sighting.address == "BAD":
                    raise RuntimeError("boom")
                return await super().process(sighting)

        source = ScriptedSource([[make_sighting("BAD"), make_sighting()]])
        runner = ScanRunner(source, BrokenEngine(store), delay=NO_DELAY)

        stats = await runner.run_cycle()

        assert stats.errors == 1
        assert stats.inserts == 1

    async def test_history(self, store: MemoryBeaconStore) -> None:
        runner = make_runner(ScriptedSource([[], []]), store)
        await runner.run_cycle()
        await runner.run_cycle()
        assert [s.cycle for s in runner.history] == [1, 2]


# =============================================================================
# Loop Tests
# =============================================================================


class TestRun:
    """Tests for the scan loop."""

    async def test_stops_when_source_exhausted(self, store: MemoryBeaconStore) -> None:
        source = ScriptedSource([[make_sighting()], [make_sighting(after=120)]])
        ran = await make_runner(source, store).run()
        assert len(ran) == 2
        assert await store.count() == 2

    async def test_max_cycles(self, store: MemoryBeaconStore) -> None:
        source = ScriptedSource([[], [], [], []])
        ran = await make_runner(source, store).run(max_cycles=2)
        assert len(ran) == 2

    async def test_continues_after_scan_error(self, store: MemoryBeaconStore) -> None:
        """A failed cycle is followed by the next one."""
        source = ScriptedSource([[make_sighting()], [make_sighting("CC:DD")]], fail_on={0})
        ran = await make_runner(source, store).run()
        assert ran[0].scan_error is not None
        assert ran[1].inserts == 1

    async def test_window_spans_cycles(self, store: MemoryBeaconStore) -> None:
        """The dedup cache persists between cycles."""
        source = ScriptedSource([[make_sighting()], [make_sighting(after=10)]])
        ran = await make_runner(source, store).run()
        assert ran[1].absorbed == 1
        assert await store.count() == 1


class TestScanStats:
    """Tests for ScanStats."""

    def test_dedup_rate_empty(self) -> None:
        assert ScanStats(cycle=1).dedup_rate == 0.0

    def test_dedup_rate(self) -> None:
        assert ScanStats(cycle=1, sightings=4, inserts=1, updates=1, absorbed=2).dedup_rate == 0.75
