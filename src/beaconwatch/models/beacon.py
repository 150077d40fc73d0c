"""BeaconRecord - the tracked state of one beacon address.

The same model is used for the engine's cache copy (``id`` is ``None``) and
for rows read back from the store (``id`` assigned by the store).

Example:
    >>> from datetime import datetime, UTC
    >>> from beaconwatch.models.beacon import BeaconRecord
    >>> from beaconwatch.models.sighting import Sighting
    >>> s = Sighting(address="AA:BB", name="Tag1", rssi=-60,
    ...              detected_at=datetime(2024, 1, 1, tzinfo=UTC))
    >>> r = BeaconRecord.from_sighting(s)
    >>> r.id is None
    True
    >>> sorted(r.model_dump(mode="json"))
    ['address', 'detected', 'id', 'name', 'rssi']
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import Field, field_validator

from beaconwatch.models.base import BeaconWatchModel
from beaconwatch.models.sighting import Sighting


class BeaconRecord(BeaconWatchModel):
    """Latest known state of a beacon.

    Field names are the external JSON contract: ``id, address, detected,
    name, rssi``.
    """

    id: int | None = Field(default=None, description="Row id assigned by the store")
    address: str = Field(..., description="Beacon address")
    detected: datetime = Field(..., description="When the beacon was detected")
    name: str = Field(default="", description="Latest known name")
    rssi: int = Field(..., description="Latest observed signal strength")

    @field_validator("detected")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v

    @classmethod
    def from_sighting(cls, sighting: Sighting) -> BeaconRecord:
        """Build an unsaved record carrying every field of a sighting.

        Example:
            >>> from beaconwatch.models.beacon import BeaconRecord
            >>> from beaconwatch.models.sighting import Sighting
            >>> BeaconRecord.from_sighting(Sighting(address="x", rssi=-1)).rssi
            -1
        """
        return cls(
            address=sighting.address,
            detected=sighting.detected_at,
            name=sighting.name,
            rssi=sighting.rssi,
        )
