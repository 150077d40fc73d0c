"""Reconciliation engine - turns sightings into store writes.

The engine is the only writer of the beacon table. For every sighting it
asks the dedup cache for a decision (made and applied under the cache lock),
then performs at most one store call outside that lock:

1. Unknown address: insert a new row
2. Re-sighting within the dedup window with a name: rename the rows
3. Re-sighting within the window without a name: nothing
4. Re-sighting at or beyond the window: insert a new row

Store failures are neither retried nor rolled back. The cache keeps the new
state, so it may disagree with the store afterwards; every such failure is
logged, counted and returned to the caller.

Example:
    >>> import asyncio
    >>> from beaconwatch.engine import ReconciliationEngine
    >>> from beaconwatch.models import Sighting
    >>> from beaconwatch.storage.memory import MemoryBeaconStore
    >>> async def example():
    ...     engine = ReconciliationEngine(MemoryBeaconStore())
    ...     result = await engine.process(Sighting(address="AA:BB", name="Tag1", rssi=-60))
    ...     return result.action.value, result.record_id
    >>> asyncio.run(example())
    ('insert', 1)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from beaconwatch.core.exceptions import StorageError
from beaconwatch.engine.cache import CacheEntry, Decision, DedupCache
from beaconwatch.engine.policy import DEFAULT_WINDOW, Action
from beaconwatch.metrics.collector import EngineMetrics

if TYPE_CHECKING:
    from beaconwatch.models.beacon import BeaconRecord
    from beaconwatch.models.sighting import Sighting
    from beaconwatch.protocols.store import BeaconStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """What ``process`` did with one sighting.

    Example:
        >>> from datetime import datetime, UTC
        >>> from beaconwatch.engine.reconciler import ReconcileResult
        >>> from beaconwatch.engine.policy import Action
        >>> from beaconwatch.models import BeaconRecord
        >>> r = BeaconRecord(address="a", detected=datetime.now(UTC), rssi=-1)
        >>> ReconcileResult(action=Action.ABSORB, record=r).ok
        True
    """

    action: Action
    record: BeaconRecord
    known: bool = False
    elapsed: timedelta | None = None
    record_id: int | None = None
    affected: int | None = None
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        """False if the store call failed."""
        return self.error is None

    @property
    def persisted(self) -> bool:
        """True if a store call was made and succeeded."""
        return self.action is not Action.ABSORB and self.error is None


class ReconciliationEngine:
    """Sole arbiter of what gets written to the beacon store.

    Args:
        store: Beacon store to write through.
        window: Dedup window (default one minute).
        metrics: Metrics collector; a private one is created if omitted.

    Example:
        >>> from beaconwatch.engine import ReconciliationEngine
        >>> from beaconwatch.storage.memory import MemoryBeaconStore
        >>> engine = ReconciliationEngine(MemoryBeaconStore())
        >>> engine.window.total_seconds()
        60.0
    """

    def __init__(
        self,
        store: BeaconStore,
        *,
        window: timedelta = DEFAULT_WINDOW,
        metrics: EngineMetrics | None = None,
    ) -> None:
        if window <= timedelta(0):
            raise ValueError("window must be positive")
        self._store = store
        self._window = window
        self._metrics = metrics or EngineMetrics()
        self._cache = DedupCache()

    @property
    def store(self) -> BeaconStore:
        """The store written through."""
        return self._store

    @property
    def window(self) -> timedelta:
        """The dedup window."""
        return self._window

    @property
    def metrics(self) -> EngineMetrics:
        """Engine metrics."""
        return self._metrics

    @property
    def cache(self) -> DedupCache:
        """The dedup cache (read helpers only)."""
        return self._cache

    async def process(self, sighting: Sighting) -> ReconcileResult:
        """Reconcile one sighting and persist the outcome.

        The cache reflects the sighting before any store call starts, so
        cancelling this coroutine during persistence keeps the cache update.

        Returns:
            The decision and the store outcome. Store failures are reported
            in ``error``, never raised.
        """
        decision = await self._cache.reconcile(sighting, self._window)
        self._metrics.record_sighting()
        self._metrics.record_action(decision.action.value)

        result = ReconcileResult(
            action=decision.action,
            record=decision.record,
            known=decision.previous is not None,
            elapsed=decision.elapsed,
        )
        if result.elapsed is not None and decision.action is not Action.INSERT:
            logger.debug(
                "Re-detected %s after %.3f min",
                sighting.address,
                result.elapsed.total_seconds() / 60.0,
            )
        if decision.action is Action.ABSORB:
            return result

        try:
            if decision.wait_for is not None:
                # shielded: cancelling this write must not cancel the one before it
                await asyncio.shield(decision.wait_for)
            await self._persist(decision, result)
        finally:
            self._cache.release(decision)
        return result

    async def _persist(self, decision: Decision, result: ReconcileResult) -> None:
        """Run the store call for a write decision and fill in the result."""
        record = decision.record
        operation = decision.action.value
        try:
            with self._metrics.time_operation(operation):
                if decision.action is Action.INSERT:
                    result.record_id = await self._store.insert(record)
                else:
                    result.affected = await self._store.update_name(record.address, record.name)
        except StorageError as e:
            result.error = e
            self._metrics.record_failure(operation)
            logger.warning(
                "Failed to %s beacon %s, cache and store may now disagree: %s",
                operation,
                record.address,
                e,
            )
            return

        if decision.action is Action.INSERT:
            logger.info("Inserted %s as row %s", record.address, result.record_id)
        else:
            logger.info("Updated name of %s to %r (%s rows)", record.address, record.name, result.affected)

    # --- Inspection ---

    def get(self, address: str) -> BeaconRecord | None:
        """Copy of the cached record for address."""
        return self._cache.get(address)

    def snapshot(self) -> dict[str, CacheEntry]:
        """Copy of the whole dedup cache."""
        return self._cache.snapshot()
