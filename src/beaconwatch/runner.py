"""Scan runner - the long-running scanning task.

The runner repeats scan cycles against a sighting source:

1. Scan for the configured duration
2. Hand every sighting to the reconciliation engine, in arrival order
3. Report each sighting to an optional display callback
4. Sleep for the configured delay, then start over

Scan timeouts simply end a cycle. Transport errors end the cycle too and
are logged; the runner resumes after the delay. Cancelling the runner
leaves every fully processed sighting in effect.

Example:
    >>> from beaconwatch.runner import ScanRunner, ScanStats
    >>> hasattr(ScanRunner, "run_cycle")
    True
    >>> ScanStats(cycle=1, sightings=10, inserts=2).absorbed
    0
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from beaconwatch.core.exceptions import ScanError
from beaconwatch.engine.policy import Action

if TYPE_CHECKING:
    from beaconwatch.engine.reconciler import ReconcileResult, ReconciliationEngine
    from beaconwatch.models.sighting import Sighting
    from beaconwatch.protocols.source import SightingSource

logger = logging.getLogger(__name__)

SightingCallback = Callable[["Sighting", "ReconcileResult"], None]


@dataclass
class ScanStats:
    """Statistics from one scan cycle.

    Example:
        >>> from beaconwatch.runner import ScanStats
        >>> stats = ScanStats(cycle=3, sightings=8, inserts=2, updates=1, absorbed=5)
        >>> stats.dedup_rate
        0.75
    """

    cycle: int
    sightings: int = 0
    inserts: int = 0
    updates: int = 0
    absorbed: int = 0
    persistence_failures: int = 0
    errors: int = 0
    scan_error: str | None = None
    duration_ms: float = 0.0
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def dedup_rate(self) -> float:
        """Share of sightings that did not produce a new row (0.0 to 1.0)."""
        if self.sightings == 0:
            return 0.0
        return (self.updates + self.absorbed) / self.sightings

    def count(self, result: ReconcileResult) -> None:
        """Fold one engine result into the stats."""
        if result.action is Action.INSERT:
            self.inserts += 1
        elif result.action is Action.UPDATE:
            self.updates += 1
        else:
            self.absorbed += 1
        if result.error is not None:
            self.persistence_failures += 1


class ScanRunner:
    """Drives a sighting source through the reconciliation engine.

    Args:
        source: Where sightings come from.
        engine: Reconciliation engine to feed.
        duration: Length of one scan cycle.
        delay: Pause between scan cycles.
        on_sighting: Optional callback invoked after each processed sighting.
    """

    def __init__(
        self,
        source: SightingSource,
        engine: ReconciliationEngine,
        *,
        duration: timedelta = timedelta(seconds=10),
        delay: timedelta = timedelta(seconds=10),
        on_sighting: SightingCallback | None = None,
    ) -> None:
        self._source = source
        self._engine = engine
        self._duration = duration
        self._delay = delay
        self._on_sighting = on_sighting
        self._cycles = 0
        self._history: list[ScanStats] = []

    @property
    def source(self) -> SightingSource:
        """The sighting source."""
        return self._source

    @property
    def engine(self) -> ReconciliationEngine:
        """The reconciliation engine."""
        return self._engine

    @property
    def history(self) -> list[ScanStats]:
        """Stats of completed cycles, oldest first."""
        return list(self._history)

    async def run_cycle(self) -> ScanStats:
        """Run a single scan cycle.

        Returns:
            Statistics about the cycle. Transport errors are recorded in
            ``scan_error`` rather than raised.
        """
        self._cycles += 1
        stats = ScanStats(cycle=self._cycles)
        start_time = time.perf_counter()

        try:
            async with contextlib.aclosing(self._source.scan(self._duration)) as sightings:
                async for sighting in sightings:
                    stats.sightings += 1
                    try:
                        result = await self._engine.process(sighting)
                    except Exception:
                        stats.errors += 1
                        logger.exception("Failed to process sighting from %s", sighting.address)
                        continue
                    stats.count(result)
                    if self._on_sighting is not None:
                        self._on_sighting(sighting, result)
        except ScanError as e:
            stats.scan_error = str(e)
            logger.error("Scan cycle %d failed: %s", stats.cycle, e)

        stats.duration_ms = (time.perf_counter() - start_time) * 1000
        self._history.append(stats)
        logger.debug(
            "Cycle %d: %d sightings, %d inserts, %d updates, %d absorbed",
            stats.cycle,
            stats.sightings,
            stats.inserts,
            stats.updates,
            stats.absorbed,
        )
        return stats

    async def run(self, max_cycles: int | None = None) -> list[ScanStats]:
        """Run scan cycles until cancelled, the source runs dry, or max_cycles.

        Returns:
            Stats of the cycles run by this call.
        """
        ran: list[ScanStats] = []
        while max_cycles is None or len(ran) < max_cycles:
            ran.append(await self.run_cycle())
            if self._source.exhausted:
                logger.info("Source %s exhausted", self._source.name)
                break
            if max_cycles is not None and len(ran) >= max_cycles:
                break
            await asyncio.sleep(self._delay.total_seconds())
        return ran
