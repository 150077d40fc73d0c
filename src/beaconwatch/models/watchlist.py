"""Watchlist - known beacons and their labels.

The watchlist is a JSON object mapping a beacon key (usually its address)
to an entry with an ``id`` and a ``name``::

    {
        "ac:23:3f:a0:00:01": {"id": "bus-12", "name": "Route 12"}
    }

It only labels display output; reconciliation ignores it.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import Field, RootModel, ValidationError

from beaconwatch.core.exceptions import ConfigurationError
from beaconwatch.models.base import BeaconWatchModel


class WatchlistEntry(BeaconWatchModel):
    """One watched beacon."""

    id: str = Field(..., description="External identifier of the tagged asset")
    name: str = Field(default="", description="Human-readable label")


class Watchlist(RootModel[dict[str, WatchlistEntry]]):
    """Mapping of beacon key to entry, matched case-insensitively.

    Example:
        >>> from beaconwatch.models.watchlist import Watchlist
        >>> wl = Watchlist.model_validate({"AA:BB": {"id": "bus-1", "name": "Bus 1"}})
        >>> wl.lookup("aa:bb").name
        'Bus 1'
        >>> wl.lookup("cc:dd") is None
        True
    """

    root: dict[str, WatchlistEntry] = Field(default_factory=dict)

    def lookup(self, address: str) -> WatchlistEntry | None:
        """Find the entry for an address, ignoring case."""
        entry = self.root.get(address)
        if entry is not None:
            return entry
        wanted = address.lower()
        for key, value in self.root.items():
            if key.lower() == wanted:
                return value
        return None

    def label(self, address: str) -> str | None:
        """Display label for an address, or None if not watched."""
        entry = self.lookup(address)
        if entry is None:
            return None
        return entry.name or entry.id

    def __len__(self) -> int:
        return len(self.root)


def load_watchlist(path: str | Path) -> Watchlist:
    """Load a watchlist file.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(
            f"Watchlist file {path} not found. You can copy it from the template file"
        )
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Watchlist.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigurationError(f"Invalid watchlist file {path}: {e}") from e
