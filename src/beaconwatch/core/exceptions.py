"""Custom exceptions.

beaconwatch uses a small hierarchy of exceptions to separate expected,
non-fatal failures (storage, transport) from fatal startup problems:

Example:
    >>> from beaconwatch.core.exceptions import StorageError, BeaconWatchError
    >>> isinstance(StorageError("db error"), BeaconWatchError)
    True
    >>> try:
    ...     raise ConfigurationError("watchlist.json not found")
    ... except BeaconWatchError as e:
    ...     print(f"Caught: {type(e).__name__}")
    Caught: ConfigurationError
"""

from __future__ import annotations


class BeaconWatchError(Exception):
    """Base exception for beaconwatch.

    Example:
        >>> from beaconwatch.core.exceptions import BeaconWatchError
        >>> e = BeaconWatchError("something went wrong")
        >>> str(e)
        'something went wrong'
    """


class StorageError(BeaconWatchError):
    """Persistence operation failed.

    Raised by beacon stores for insert, update and query failures. The
    reconciliation engine reports it and keeps going.

    Example:
        >>> from beaconwatch.core.exceptions import StorageError
        >>> raise StorageError("database is locked")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        StorageError: database is locked
    """


class ScanError(BeaconWatchError):
    """BLE transport failed.

    Covers adapter/stack failures. Scan timeouts and cancellations are not
    errors: they simply end the current scan cycle.

    Example:
        >>> from beaconwatch.core.exceptions import ScanError
        >>> err = ScanError("adapter hci1 not found", source="ble")
        >>> err.source
        'ble'
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.cause = cause


class ConfigurationError(BeaconWatchError):
    """Configuration is invalid or a required file is missing.

    Only raised at startup, before scanning and serving begin.

    Example:
        >>> from beaconwatch.core.exceptions import ConfigurationError
        >>> raise ConfigurationError("missing key")  # doctest: +IGNORE_EXCEPTION_DETAIL
        Traceback (most recent call last):
        ConfigurationError: missing key
    """
