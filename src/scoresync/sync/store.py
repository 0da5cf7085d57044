"""Record stores backing the sync subsystem.

This module provides:
- RecordStore: Protocol the sync subsystem reads from and appends to
- MemoryRecordStore: In-process store (tests, throwaway sessions)
- LocalRecordStore: SQLite key-value store, one JSON array per key

The sync subsystem only ever reads a snapshot and appends; records are never
reordered, mutated or deleted.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from scoresync.core.records import GameRecord, encode_records
from scoresync.sync.codec import decode_records
from scoresync.sync.types import DecodeError, RecordValidationError, StorageError

logger = logging.getLogger(__name__)

GAMES_KEY = "carcassonne_games"


class RecordStore(Protocol):
    """Append-only persistence of game records."""

    def read_all(self) -> list[GameRecord]:
        """Return a snapshot of every record, in append order."""
        ...

    def append(self, record: GameRecord) -> None:
        """Append one record."""
        ...


class MemoryRecordStore:
    """Record store held in memory."""

    def __init__(self, records: list[GameRecord] | None = None) -> None:
        self._records: list[GameRecord] = list(records or [])

    def __len__(self) -> int:
        return len(self._records)

    def read_all(self) -> list[GameRecord]:
        return list(self._records)

    def append(self, record: GameRecord) -> None:
        self._records.append(record)


class LocalRecordStore:
    """SQLite-backed record store.

    Records are kept as one JSON array under a single key of a key-value
    table, the same layout a browser build keeps in local storage, so a
    store can be moved between implementations by copying the value.
    """

    def __init__(self, db_path: Path, key: str = GAMES_KEY) -> None:
        """Open (or create) the store.

        Args:
            db_path: Path to SQLite database file.
            key: Key holding the record array.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._key = key

        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
        """)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def get_item(self, key: str) -> str | None:
        """Read a raw value.

        Raises:
            StorageError: If the database cannot be read.
        """
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        """Write a raw value.

        Raises:
            StorageError: If the database cannot be written.
        """
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                    (key, value),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    def read_all(self) -> list[GameRecord]:
        """Return every stored record.

        Raises:
            StorageError: If the stored value is unreadable.
        """
        raw = self.get_item(self._key)
        if raw is None:
            return []
        try:
            return decode_records(raw)
        except (DecodeError, RecordValidationError) as e:
            raise StorageError(f"Stored games are corrupt: {e}") from e

    def append(self, record: GameRecord) -> None:
        """Append one record.

        Raises:
            StorageError: If the store cannot be read or written.
        """
        with self._lock:
            records = self.read_all()
            records.append(record)
            self.set_item(self._key, encode_records(records))
        logger.debug("Stored game %s (%d total)", record.identity, len(records))
