"""Dedup cache - last processed record per beacon address.

The cache owns its lock. ``reconcile`` performs lookup, policy decision and
overwrite as one critical section, so two overlapping sightings of a
never-seen address cannot both be treated as first sightings. Persistence
happens after the lock is released; to keep store writes for one address
in call order, every write-producing decision is linked to the previous
one for the same address.

Example:
    >>> import asyncio
    >>> from beaconwatch.engine.cache import DedupCache
    >>> from beaconwatch.models import Sighting
    >>> cache = DedupCache()
    >>> decision = asyncio.run(cache.reconcile(Sighting(address="AA:BB", rssi=-50)))
    >>> decision.action
    <Action.INSERT: 'insert'>
    >>> len(cache), "AA:BB" in cache
    (1, True)
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta

from beaconwatch.engine.policy import DEFAULT_WINDOW, Action, decide
from beaconwatch.models.beacon import BeaconRecord
from beaconwatch.models.sighting import Sighting


@dataclass
class CacheEntry:
    """Cached state for one address.

    ``record`` is replaced in full on every sighting; ``first_seen_at`` and
    ``seen_count`` are bookkeeping only and never affect decisions.
    """

    record: BeaconRecord
    first_seen_at: datetime
    seen_count: int = 1


@dataclass
class Decision:
    """Outcome of one ``reconcile`` call.

    Attributes:
        action: What to persist.
        record: Copy of the record now cached for the address.
        previous: Copy of the record cached before, None on first sighting.
        wait_for: Completes when the previous write for this address is done.
        done: Set by ``DedupCache.release`` once this decision's write is done.
    """

    action: Action
    record: BeaconRecord
    previous: BeaconRecord | None = None
    wait_for: asyncio.Future[None] | None = None
    done: asyncio.Future[None] | None = None

    @property
    def elapsed(self) -> timedelta | None:
        """Time since the previous sighting of the address."""
        if self.previous is None:
            return None
        return self.record.detected - self.previous.detected


class DedupCache:
    """Address-keyed cache guarded by an asyncio lock.

    Entries are never evicted. Read helpers return copies and do not take
    the lock: they never await, so on the event loop they observe either
    the state before or after a whole ``reconcile``.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._tails: dict[str, asyncio.Future[None]] = {}
        self._lock = asyncio.Lock()

    async def reconcile(
        self,
        sighting: Sighting,
        window: timedelta = DEFAULT_WINDOW,
    ) -> Decision:
        """Decide and apply a sighting.

        The cache entry is overwritten before this returns, whatever the
        decision. Callers that get a write decision must call ``release``
        once the write has finished, failed or been cancelled.
        """
        async with self._lock:
            entry = self._entries.get(sighting.address)
            previous = entry.record if entry is not None else None
            action = decide(previous, sighting, window)

            record = BeaconRecord.from_sighting(sighting)
            if entry is None:
                self._entries[sighting.address] = CacheEntry(
                    record=record,
                    first_seen_at=sighting.detected_at,
                )
            else:
                entry.record = record
                entry.seen_count += 1

            decision = Decision(
                action=action,
                record=record.model_copy(),
                previous=previous.model_copy() if previous is not None else None,
            )
            if action is not Action.ABSORB:
                self._link(sighting.address, decision)
            return decision

    def _link(self, address: str, decision: Decision) -> None:
        """Chain a write decision behind the last pending write for address."""
        decision.wait_for = self._tails.get(address)
        decision.done = asyncio.get_running_loop().create_future()
        self._tails[address] = decision.done

    def release(self, decision: Decision) -> None:
        """Mark a write decision finished and unblock the next one.

        A decision released before its predecessor finished (it was
        cancelled while waiting) stays unresolved until the predecessor
        is, so later writes for the address still run after earlier ones.
        """
        done = decision.done
        if done is None:
            return
        address = decision.record.address
        previous = decision.wait_for
        if previous is not None and not previous.done():
            previous.add_done_callback(lambda _: self._finish(address, done))
            return
        self._finish(address, done)

    def _finish(self, address: str, done: asyncio.Future[None]) -> None:
        if not done.done():
            done.set_result(None)
        if self._tails.get(address) is done:
            del self._tails[address]

    # --- Inspection ---

    def get(self, address: str) -> BeaconRecord | None:
        """Copy of the cached record for address."""
        entry = self._entries.get(address)
        return entry.record.model_copy() if entry is not None else None

    def entry(self, address: str) -> CacheEntry | None:
        """Copy of the full cache entry for address."""
        entry = self._entries.get(address)
        if entry is None:
            return None
        return dataclasses.replace(entry, record=entry.record.model_copy())

    def snapshot(self) -> dict[str, CacheEntry]:
        """Copy of every cache entry."""
        return {
            address: dataclasses.replace(entry, record=entry.record.model_copy())
            for address, entry in self._entries.items()
        }

    @property
    def pending_writes(self) -> int:
        """Addresses with a write still in flight."""
        return len(self._tails)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, address: object) -> bool:
        return address in self._entries
