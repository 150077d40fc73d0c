"""Dedup policy - what a sighting means for the store.

A pure function of the cached record and the new sighting; the cache
applies it under its lock.

Example:
    >>> from datetime import datetime, timedelta, UTC
    >>> from beaconwatch.engine.policy import Action, decide
    >>> from beaconwatch.models import BeaconRecord, Sighting
    >>> t0 = datetime(2024, 1, 1, tzinfo=UTC)
    >>> cached = BeaconRecord(address="AA:BB", detected=t0, name="Tag1", rssi=-60)
    >>> decide(None, Sighting(address="AA:BB", rssi=-60, detected_at=t0))
    <Action.INSERT: 'insert'>
    >>> decide(cached, Sighting(address="AA:BB", rssi=-61, detected_at=t0 + timedelta(seconds=30)))
    <Action.ABSORB: 'absorb'>
"""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from beaconwatch.models.beacon import BeaconRecord
    from beaconwatch.models.sighting import Sighting

DEFAULT_WINDOW = timedelta(minutes=1)


class Action(str, Enum):
    """What the engine does with a sighting.

    Example:
        >>> Action.UPDATE.value
        'update'
    """

    INSERT = "insert"  # new row
    UPDATE = "update"  # rename existing rows
    ABSORB = "absorb"  # cache only


def elapsed_minutes(cached: BeaconRecord, sighting: Sighting) -> float:
    """Minutes between the cached detection and a new sighting, not truncated.

    Negative when the new sighting carries an earlier timestamp.
    """
    return (sighting.detected_at - cached.detected).total_seconds() / 60.0


def decide(
    cached: BeaconRecord | None,
    sighting: Sighting,
    window: timedelta = DEFAULT_WINDOW,
) -> Action:
    """Decide how to persist a sighting.

    Args:
        cached: The last processed record for the address, or None.
        sighting: The incoming sighting.
        window: Re-sightings closer than this to ``cached`` are duplicates.

    Returns:
        INSERT for an unknown address or a re-sighting at or beyond the
        window; UPDATE for a duplicate carrying a name; ABSORB for a
        nameless duplicate.

    Example:
        >>> from datetime import datetime, timedelta, UTC
        >>> from beaconwatch.models import BeaconRecord, Sighting
        >>> t0 = datetime(2024, 1, 1, tzinfo=UTC)
        >>> cached = BeaconRecord(address="a", detected=t0, rssi=-1)
        >>> decide(cached, Sighting(address="a", name="x", rssi=-1,
        ...                         detected_at=t0 + timedelta(minutes=1)))
        <Action.INSERT: 'insert'>
    """
    if cached is None:
        return Action.INSERT
    if elapsed_minutes(cached, sighting) < window.total_seconds() / 60.0:
        return Action.UPDATE if sighting.name else Action.ABSORB
    return Action.INSERT
