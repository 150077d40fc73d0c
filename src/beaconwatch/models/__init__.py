"""beaconwatch data models."""

from beaconwatch.models.base import BeaconWatchModel
from beaconwatch.models.beacon import BeaconRecord
from beaconwatch.models.sighting import Sighting, clean_name
from beaconwatch.models.watchlist import Watchlist, WatchlistEntry, load_watchlist

__all__ = [
    "BeaconRecord",
    "BeaconWatchModel",
    "Sighting",
    "Watchlist",
    "WatchlistEntry",
    "clean_name",
    "load_watchlist",
]
