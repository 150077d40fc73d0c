"""Replay sighting source - sightings from a JSON-lines file.

Each line is one sighting::

    {"address": "AA:BB", "name": "Tag1", "rssi": -60, "detected_at": "2024-01-01T00:00:00Z"}

``detected_at`` and ``connectable`` are optional. Lines that do not parse are
logged and skipped. The file is consumed across successive scan cycles, so a
replay behaves like a scanner whose advertisements happen to be recorded.

Example:
    >>> from beaconwatch.source.replay import ReplaySightingSource
    >>> source = ReplaySightingSource("sightings.jsonl", speed=0)
    >>> await source.initialize()
    >>> async for sighting in source.scan(timedelta(seconds=10)):
    ...     print(sighting.address)
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from beaconwatch.core.exceptions import ConfigurationError
from beaconwatch.models.sighting import Sighting

logger = logging.getLogger(__name__)


class ReplaySightingSource:
    """Replays recorded sightings.

    Args:
        path: JSON-lines file.
        speed: Playback speed relative to the recorded timestamps. 0 replays
            as fast as possible; 1.0 keeps the recorded gaps.
        name: Source name for logs and stats.

    Example:
        >>> source = ReplaySightingSource("rec.jsonl")
        >>> source.name
        'replay'
    """

    def __init__(
        self,
        path: str | Path,
        *,
        speed: float = 0.0,
        name: str = "replay",
    ) -> None:
        if speed < 0:
            raise ValueError("speed must not be negative")
        self._path = Path(path)
        self._speed = speed
        self._name = name
        self._sightings: list[Sighting] = []
        self._position = 0
        self._skipped = 0
        self._initialized = False

    @property
    def name(self) -> str:
        """Source name."""
        return self._name

    @property
    def exhausted(self) -> bool:
        """True once every recorded sighting has been replayed."""
        return self._initialized and self._position >= len(self._sightings)

    @property
    def skipped(self) -> int:
        """Lines that could not be parsed."""
        return self._skipped

    async def initialize(self) -> None:
        """Load the file.

        Raises:
            ConfigurationError: If the file does not exist.
        """
        if not self._path.is_file():
            raise ConfigurationError(f"Replay file {self._path} not found")
        self._sightings = []
        self._skipped = 0
        for lineno, line in enumerate(self._path.read_text(encoding="utf-8").splitlines(), 1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                self._sightings.append(Sighting.model_validate(json.loads(line)))
            except (json.JSONDecodeError, ValidationError) as e:
                self._skipped += 1
                logger.warning("%s:%d: skipping malformed sighting: %s", self._path, lineno, e)
        self._position = 0
        self._initialized = True
        logger.info("Loaded %d sightings from %s", len(self._sightings), self._path)

    async def close(self) -> None:
        """Forget the loaded sightings."""
        self._sightings = []
        self._position = 0
        self._initialized = False

    async def scan(self, duration: timedelta) -> AsyncIterator[Sighting]:
        """Yield recorded sightings until ``duration`` elapses or the file ends."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + duration.total_seconds()
        previous: datetime | None = None
        while self._position < len(self._sightings):
            sighting = self._sightings[self._position]
            if self._speed and previous is not None:
                gap = (sighting.detected_at - previous).total_seconds() / self._speed
                if gap > 0:
                    if loop.time() + gap > deadline:
                        return
                    await asyncio.sleep(gap)
            if loop.time() > deadline:
                return
            self._position += 1
            previous = sighting.detected_at
            yield sighting
