from __future__ import annotations

import sqlite3
import threading

from homesync.core.time_utils import Clock, now_iso, utc_now
from homesync.domain.ports import CursorStore, KeyValueStore
from homesync.infrastructure.entity_store_sqlite import run_with_locked_retry
from homesync.infrastructure.sqlite_uow import transaction

SYNC_CURSOR_KEY = "sync.last_sync_at"
OFFLINE_QUEUE_KEY = "sync.offline_queue"


class SQLiteKeyValueStore(KeyValueStore):
    def __init__(self, connection: sqlite3.Connection, *, clock: Clock = utc_now) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._clock = clock
        self._lock = threading.RLock()

    def get(self, key: str) -> str | None:
        def _query() -> str | None:
            row = self._connection.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None

        with self._lock:
            return run_with_locked_retry(_query, context=f"kv_store.get[{key}]")

    def set(self, key: str, value: str) -> None:
        def _write() -> None:
            with transaction(self._connection):
                self._connection.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                    """,
                    (key, value, now_iso(self._clock)),
                )

        with self._lock:
            run_with_locked_retry(_write, context=f"kv_store.set[{key}]")

    def delete(self, key: str) -> None:
        def _write() -> None:
            with transaction(self._connection):
                self._connection.execute("DELETE FROM kv_store WHERE key = ?", (key,))

        with self._lock:
            run_with_locked_retry(_write, context=f"kv_store.delete[{key}]")


class KeyValueCursorStore(CursorStore):
    """Persists the pull watermark as a single ISO string."""

    def __init__(self, kv_store: KeyValueStore, key: str = SYNC_CURSOR_KEY) -> None:
        self._kv_store = kv_store
        self._key = key

    def load(self) -> str | None:
        return self._kv_store.get(self._key)

    def save(self, value: str) -> None:
        self._kv_store.set(self._key, value)
