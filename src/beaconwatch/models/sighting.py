"""Sighting model - one observed beacon advertisement.

Sightings are produced by a sighting source and consumed by the
reconciliation engine. They are immutable once produced.

Example:
    >>> from datetime import datetime, UTC
    >>> from beaconwatch.models.sighting import Sighting
    >>> s = Sighting(
    ...     address="aa:bb:cc:dd:ee:ff",
    ...     name="\\x00Tag1\\x00",
    ...     rssi=-67,
    ...     detected_at=datetime(2024, 1, 1, tzinfo=UTC),
    ... )
    >>> s.name
    'Tag1'
    >>> s.connectable
    False
"""

from __future__ import annotations

import unicodedata
from datetime import UTC, datetime

from pydantic import ConfigDict, Field, field_validator

from beaconwatch.models.base import BeaconWatchModel


def clean_name(value: str) -> str:
    """Trim non-printable characters from both ends of a broadcast name.

    Padding bytes and control characters are common in advertised local
    names. Interior characters are left alone.

    Example:
        >>> clean_name("\\x00\\x01Kontakt\\n")
        'Kontakt'
        >>> clean_name(" spaced ")
        ' spaced '
    """
    start, end = 0, len(value)
    while start < end and not _is_graphic(value[start]):
        start += 1
    while end > start and not _is_graphic(value[end - 1]):
        end -= 1
    return value[start:end]


def _is_graphic(ch: str) -> bool:
    return ch.isprintable() or unicodedata.category(ch) == "Zs"


class Sighting(BeaconWatchModel):
    """A single detected beacon broadcast.

    An empty address is accepted; such sightings all share the same cache
    entry downstream.

    Example:
        >>> from beaconwatch.models.sighting import Sighting
        >>> s = Sighting(address="AA:BB", rssi=-40)
        >>> s.name
        ''
        >>> s.detected_at.tzinfo is not None
        True
    """

    model_config = ConfigDict(frozen=True)

    address: str = Field(..., description="Beacon address (opaque identifier)")
    name: str = Field(default="", description="Advertised local name, possibly empty")
    rssi: int = Field(..., description="Received signal strength in dBm")
    detected_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the advertisement was observed",
    )
    connectable: bool = Field(default=False, description="Display only")

    @field_validator("name", mode="before")
    @classmethod
    def _clean(cls, v: object) -> object:
        if v is None:
            return ""
        if isinstance(v, str):
            return clean_name(v)
        return v

    @field_validator("detected_at")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v
