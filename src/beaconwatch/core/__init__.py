"""Core configuration, errors and orchestration.

The orchestrator lives in ``beaconwatch.core.service`` and is not imported
here, so low-level modules can depend on the exceptions without pulling in
the whole application.
"""

from beaconwatch.core.config import Settings, get_settings
from beaconwatch.core.exceptions import (
    BeaconWatchError,
    ConfigurationError,
    ScanError,
    StorageError,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "BeaconWatchError",
    "ConfigurationError",
    "ScanError",
    "StorageError",
]
