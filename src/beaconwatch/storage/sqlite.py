"""SQLite beacon store - zero-config persistent storage.

Writes the ``beacon(id, detected, address, rssi, name)`` table. The schema
is created on first use, so an empty or missing database file is fine.

Example:
    >>> from beaconwatch.storage.sqlite import SQLiteBeaconStore
    >>>
    >>> # Just pass a path - schema auto-creates!
    >>> store = SQLiteBeaconStore("ble.sqlite")
    >>> await store.initialize()
    >>>
    >>> # Or use in-memory for testing
    >>> store = SQLiteBeaconStore(":memory:")
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

from beaconwatch.core.exceptions import StorageError
from beaconwatch.models.beacon import BeaconRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Existing databases may hold nanosecond fractions, e.g. "2024-01-01 12:00:00.123456789+02:00".
_FRACTION = re.compile(r"(\.\d{6})\d+")


def _parse_detected(value: str | datetime) -> datetime:
    """Parse a stored detection time, tolerating nanosecond precision."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = _FRACTION.sub(r"\1", value.strip())
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class SQLiteBeaconStore:
    """SQLite beacon store with auto-schema creation.

    Blocking ``sqlite3`` calls run in a worker thread so a slow write never
    stalls the event loop. A single connection is shared, guarded by a
    lock.

    Args:
        path: Database file path, or ":memory:" for in-memory.
        timeout: Lock timeout in seconds (default 30).

    Example:
        >>> store = SQLiteBeaconStore("ble.sqlite")
        >>> await store.initialize()  # Auto-creates tables
        >>> row_id = await store.insert(record)
    """

    # Schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        path: str | Path = ":memory:",
        *,
        timeout: float = 30.0,
    ) -> None:
        self._path = str(path)
        self._timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._initialized = False

    @property
    def path(self) -> str:
        """Database path."""
        return self._path

    @contextmanager
    def _cursor(self) -> Iterator[sqlite3.Cursor]:
        """Get a cursor with automatic commit/rollback."""
        with self._lock:
            conn = self._conn
            if not conn:
                raise StorageError("Storage not initialized. Call initialize() first.")
            try:
                cursor = conn.cursor()
            except sqlite3.Error as e:
                raise StorageError(str(e)) from e
            try:
                yield cursor
                conn.commit()
            except sqlite3.Error as e:
                self._rollback(conn)
                raise StorageError(str(e)) from e
            except Exception:
                self._rollback(conn)
                raise
            finally:
                cursor.close()

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        try:
            conn.rollback()
        except sqlite3.Error as e:
            logger.warning("Rollback failed: %s", e)

    async def _run(self, func: Callable[[], T]) -> T:
        return await asyncio.to_thread(func)

    async def initialize(self) -> None:
        """Open the database and auto-create the schema.

        Safe to call multiple times (idempotent).
        """
        if self._initialized:
            return
        try:
            self._conn = sqlite3.connect(
                self._path,
                timeout=self._timeout,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open database {self._path}: {e}") from e
        self._conn.row_factory = sqlite3.Row

        try:
            # WAL lets the HTTP readers run alongside the scanner's writes
            if self._path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            await self._run(self._create_schema)
        except sqlite3.Error as e:
            self._discard_connection()
            raise StorageError(f"Cannot open database {self._path}: {e}") from e
        except StorageError:
            self._discard_connection()
            raise
        self._initialized = True
        logger.info("SQLite beacon store ready at %s", self._path)

    def _discard_connection(self) -> None:
        """Close a connection that failed to initialize."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _create_schema(self) -> None:
        """Create tables and indexes."""
        with self._cursor() as cursor:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS beacon (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    detected TEXT NOT NULL,
                    address TEXT NOT NULL,
                    rssi INTEGER NOT NULL DEFAULT 0,
                    name TEXT NOT NULL DEFAULT ''
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS _beaconwatch_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            cursor.execute(
                "INSERT OR REPLACE INTO _beaconwatch_meta (key, value) VALUES ('schema_version', ?)",
                (str(self.SCHEMA_VERSION),),
            )

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_beacon_address ON beacon(address)")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            with self._lock:
                self._conn.close()
            self._conn = None
        self._initialized = False

    # --- Write Operations ---

    async def insert(self, record: BeaconRecord) -> int:
        """Append a beacon row and return its id."""

        def _insert() -> int:
            with self._cursor() as cursor:
                cursor.execute(
                    "INSERT INTO beacon (detected, address, rssi, name) VALUES (?, ?, ?, ?)",
                    (
                        record.detected.isoformat(),
                        record.address,
                        record.rssi,
                        record.name,
                    ),
                )
                return int(cursor.lastrowid)

        return await self._run(_insert)

    async def update_name(self, address: str, name: str) -> int:
        """Set the name of every row with this address."""

        def _update() -> int:
            with self._cursor() as cursor:
                cursor.execute("UPDATE beacon SET name = ? WHERE address = ?", (name, address))
                return cursor.rowcount

        return await self._run(_update)

    # --- Read Operations ---

    async def list_beacons(self) -> list[BeaconRecord]:
        """All rows in insertion order."""

        def _list() -> list[BeaconRecord]:
            with self._cursor() as cursor:
                cursor.execute("SELECT id, address, rssi, name, detected FROM beacon ORDER BY id")
                return [self._row_to_record(row) for row in cursor.fetchall()]

        return await self._run(_list)

    async def count(self) -> int:
        """Number of stored rows."""

        def _count() -> int:
            with self._cursor() as cursor:
                cursor.execute("SELECT COUNT(*) FROM beacon")
                return cursor.fetchone()[0]

        return await self._run(_count)

    # --- Helper Methods ---

    def _row_to_record(self, row: sqlite3.Row) -> BeaconRecord:
        """Convert a database row to BeaconRecord."""
        return BeaconRecord(
            id=row["id"],
            address=row["address"],
            detected=_parse_detected(row["detected"]),
            name=row["name"] or "",
            rssi=row["rssi"] or 0,
        )

    # --- Convenience Methods ---

    async def get_stats(self) -> dict[str, Any]:
        """Get storage statistics."""

        def _stats() -> dict[str, Any]:
            with self._cursor() as cursor:
                cursor.execute("SELECT COUNT(*), COUNT(DISTINCT address) FROM beacon")
                beacons, addresses = cursor.fetchone()
                return {
                    "beacons": beacons,
                    "addresses": addresses,
                    "backend": "sqlite",
                    "path": self._path,
                }

        return await self._run(_stats)
