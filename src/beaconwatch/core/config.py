"""beaconwatch configuration.

Application settings loaded from environment variables with BEACONWATCH_ prefix.

Example:
    >>> from beaconwatch.core.config import get_settings
    >>> settings = get_settings(log_level="DEBUG")
    >>> settings.log_level
    'DEBUG'
    >>> settings.port
    1323
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Loads from environment variables with BEACONWATCH_ prefix. Durations
    accept seconds (``10``) or ISO 8601 strings (``PT10S``).

    Example:
        >>> from beaconwatch.core.config import Settings
        >>> s = Settings(database_path=":memory:", scan_duration=5)
        >>> s.scan_duration.total_seconds()
        5.0
        >>> s.dedup_window.total_seconds()
        60.0
    """

    model_config = SettingsConfigDict(
        env_prefix="BEACONWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage
    database_path: str = Field(default="./ble.sqlite", description="SQLite database file")

    # Scanning
    device: str = Field(default="default", description="BLE adapter to scan with")
    scan_duration: timedelta = Field(default=timedelta(seconds=10), description="Scanning duration")
    scan_delay: timedelta = Field(default=timedelta(seconds=10), description="Delay between scans")
    allow_duplicates: bool = Field(default=False, description="Allow duplicate reports")

    # Reconciliation
    dedup_window: timedelta = Field(
        default=timedelta(minutes=1),
        description="Re-sightings closer than this are duplicates",
    )

    # HTTP
    host: str = Field(default="0.0.0.0", description="HTTP bind address")
    port: int = Field(default=1323, ge=1, le=65535)
    metrics_enabled: bool = Field(default=False, description="Export Prometheus metrics at /metrics")

    # Watchlist
    watchlist_path: Path | None = Field(default=None, description="Optional watchlist JSON file")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format: console or json")

    @field_validator("scan_duration", "scan_delay", "dedup_window", mode="before")
    @classmethod
    def _seconds(cls, v: Any) -> Any:
        """Plain numbers from the environment are seconds."""
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                return v
        return v

    @field_validator("scan_duration", "dedup_window")
    @classmethod
    def _positive(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("must be positive")
        return v

    @field_validator("scan_delay")
    @classmethod
    def _not_negative(cls, v: timedelta) -> timedelta:
        if v < timedelta(0):
            raise ValueError("must not be negative")
        return v

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v


def get_settings(**overrides: Any) -> Settings:
    """Get settings with optional overrides.

    ``None`` overrides are ignored so CLI options can be passed straight
    through.

    Example:
        >>> from beaconwatch.core.config import get_settings
        >>> s = get_settings(port=8080, device=None)
        >>> s.port, s.device
        (8080, 'default')
    """
    return Settings(**{k: v for k, v in overrides.items() if v is not None})
