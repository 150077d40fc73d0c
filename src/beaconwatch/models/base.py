"""Base model shared by all beaconwatch models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class BeaconWatchModel(BaseModel):
    """Base model with standard configuration.

    Whitespace is not stripped: beacon names are kept as broadcast, apart
    from the non-printable trimming done by the sighting model.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        validate_assignment=True,
        extra="forbid",
    )
