from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from typing import Any, Callable, TypeVar

from homesync.core.errors import ImmutableRemoteIdError, StorageError
from homesync.core.time_utils import Clock, now_iso, utc_now
from homesync.domain.models import EntityType, LocalRecord
from homesync.domain.ports import LocalEntityStore
from homesync.infrastructure.sqlite_uow import transaction

logger = logging.getLogger(__name__)

_LOCKED_RETRY_BACKOFF_SECONDS = (0.05, 0.15, 0.3)
_RECORD_ATTRIBUTES = frozenset({"id", "remote_id", "created_at", "updated_at"})
_T = TypeVar("_T")

_SELECT_COLUMNS = "entity_type, id, remote_id, fields, created_at, updated_at"


def _is_locked_operational_error(error: sqlite3.OperationalError) -> bool:
    return "locked" in str(error).lower()


def run_with_locked_retry(operation: Callable[[], _T], *, context: str) -> _T:
    """Retries briefly while another connection holds the write lock.

    Any other ``sqlite3.Error`` (and the final locked attempt) surfaces as
    ``StorageError``.
    """
    for attempt, delay_seconds in enumerate(_LOCKED_RETRY_BACKOFF_SECONDS, start=1):
        try:
            return operation()
        except sqlite3.OperationalError as error:
            if not _is_locked_operational_error(error):
                raise StorageError(f"SQLite error in {context}: {error}") from error
            logger.warning(
                "SQLite locked in %s (attempt=%s/%s); retrying in %.0fms",
                context,
                attempt,
                len(_LOCKED_RETRY_BACKOFF_SECONDS),
                delay_seconds * 1000,
            )
            time.sleep(delay_seconds)
        except sqlite3.Error as error:
            raise StorageError(f"SQLite error in {context}: {error}") from error
    try:
        return operation()
    except sqlite3.Error as error:
        raise StorageError(f"SQLite error in {context}: {error}") from error


def _row_to_record(row: sqlite3.Row) -> LocalRecord:
    try:
        fields = json.loads(row["fields"])
    except (TypeError, json.JSONDecodeError) as exc:
        raise StorageError(f"Corrupt fields for record {row['id']}") from exc
    return LocalRecord(
        entity_type=EntityType(row["entity_type"]),
        id=row["id"],
        remote_id=row["remote_id"],
        fields=fields,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _sort_key(sort_by: str) -> Callable[[LocalRecord], Any]:
    def key(record: LocalRecord) -> Any:
        if sort_by in _RECORD_ATTRIBUTES:
            value = getattr(record, sort_by)
        else:
            value = record.fields.get(sort_by)
        return value.casefold() if isinstance(value, str) else value

    return key


class SQLiteEntityStore(LocalEntityStore):
    def __init__(self, connection: sqlite3.Connection, *, clock: Clock = utc_now) -> None:
        self._connection = connection
        self._connection.row_factory = sqlite3.Row
        self._clock = clock
        self._lock = threading.RLock()

    def fetch_all(
        self, entity_type: EntityType, sort_by: str | None = None, descending: bool = False
    ) -> list[LocalRecord]:
        def _query() -> list[LocalRecord]:
            cursor = self._connection.execute(
                f"SELECT {_SELECT_COLUMNS} FROM local_records WHERE entity_type = ? ORDER BY seq",
                (entity_type.value,),
            )
            return [_row_to_record(row) for row in cursor.fetchall()]

        with self._lock:
            records = run_with_locked_retry(_query, context="local_records.fetch_all")
        if sort_by is None:
            return list(reversed(records)) if descending else records
        key = _sort_key(sort_by)
        present = [record for record in records if key(record) is not None]
        missing = [record for record in records if key(record) is None]
        try:
            present.sort(key=key, reverse=descending)
        except TypeError:
            present.sort(key=lambda record: str(key(record)), reverse=descending)
        return present + missing

    def get(self, entity_type: EntityType, local_id: str) -> LocalRecord | None:
        def _query() -> LocalRecord | None:
            row = self._connection.execute(
                f"SELECT {_SELECT_COLUMNS} FROM local_records WHERE entity_type = ? AND id = ?",
                (entity_type.value, local_id),
            ).fetchone()
            return _row_to_record(row) if row else None

        with self._lock:
            return run_with_locked_retry(_query, context="local_records.get")

    def find_by_remote_id(self, entity_type: EntityType, remote_id: str) -> LocalRecord | None:
        def _query() -> LocalRecord | None:
            row = self._connection.execute(
                f"SELECT {_SELECT_COLUMNS} FROM local_records WHERE entity_type = ? AND remote_id = ?",
                (entity_type.value, remote_id),
            ).fetchone()
            return _row_to_record(row) if row else None

        with self._lock:
            return run_with_locked_retry(_query, context="local_records.find_by_remote_id")

    def count(self, entity_type: EntityType) -> int:
        def _query() -> int:
            row = self._connection.execute(
                "SELECT COUNT(*) AS total FROM local_records WHERE entity_type = ?",
                (entity_type.value,),
            ).fetchone()
            return int(row["total"])

        with self._lock:
            return run_with_locked_retry(_query, context="local_records.count")

    def upsert(self, record: LocalRecord) -> LocalRecord:
        """Inserts by local id or replaces the fields of the existing record.

        ``created_at`` of an existing record is kept and ``updated_at`` moves to
        the store clock. A ``None`` remote id never clears an assigned one.
        """

        def _write() -> LocalRecord:
            with transaction(self._connection):
                existing = self.get(record.entity_type, record.id)
                if existing is None:
                    return self._insert(record)
                remote_id = existing.remote_id
                if record.remote_id is not None:
                    if remote_id is not None and remote_id != record.remote_id:
                        raise ImmutableRemoteIdError(
                            f"{record.entity_type.value}:{record.id} already bound to {remote_id}"
                        )
                    remote_id = record.remote_id
                updated = LocalRecord(
                    entity_type=existing.entity_type,
                    id=existing.id,
                    remote_id=remote_id,
                    fields=dict(record.fields),
                    created_at=existing.created_at,
                    updated_at=now_iso(self._clock),
                )
                self._connection.execute(
                    """
                    UPDATE local_records
                    SET remote_id = ?, fields = ?, updated_at = ?
                    WHERE entity_type = ? AND id = ?
                    """,
                    (
                        updated.remote_id,
                        json.dumps(updated.fields, sort_keys=True),
                        updated.updated_at,
                        updated.entity_type.value,
                        updated.id,
                    ),
                )
                return updated

        with self._lock:
            return run_with_locked_retry(_write, context="local_records.upsert")

    def assign_remote_id(self, entity_type: EntityType, local_id: str, remote_id: str) -> LocalRecord:
        def _write() -> LocalRecord:
            with transaction(self._connection):
                existing = self.get(entity_type, local_id)
                if existing is None:
                    raise StorageError(f"Unknown local record {entity_type.value}:{local_id}")
                if existing.remote_id == remote_id:
                    return existing
                if existing.remote_id is not None:
                    raise ImmutableRemoteIdError(
                        f"{entity_type.value}:{local_id} already bound to {existing.remote_id}"
                    )
                updated_at = now_iso(self._clock)
                self._connection.execute(
                    "UPDATE local_records SET remote_id = ?, updated_at = ? WHERE entity_type = ? AND id = ?",
                    (remote_id, updated_at, entity_type.value, local_id),
                )
                return LocalRecord(
                    entity_type=existing.entity_type,
                    id=existing.id,
                    remote_id=remote_id,
                    fields=existing.fields,
                    created_at=existing.created_at,
                    updated_at=updated_at,
                )

        with self._lock:
            return run_with_locked_retry(_write, context="local_records.assign_remote_id")

    def delete(self, entity_type: EntityType, local_id: str) -> bool:
        def _write() -> bool:
            with transaction(self._connection):
                cursor = self._connection.execute(
                    "DELETE FROM local_records WHERE entity_type = ? AND id = ?",
                    (entity_type.value, local_id),
                )
                return cursor.rowcount > 0

        with self._lock:
            return run_with_locked_retry(_write, context="local_records.delete")

    def _insert(self, record: LocalRecord) -> LocalRecord:
        timestamp = now_iso(self._clock)
        inserted = LocalRecord(
            entity_type=record.entity_type,
            id=record.id,
            remote_id=record.remote_id,
            fields=dict(record.fields),
            created_at=record.created_at or timestamp,
            updated_at=record.updated_at or timestamp,
        )
        self._connection.execute(
            """
            INSERT INTO local_records (entity_type, id, remote_id, fields, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                inserted.entity_type.value,
                inserted.id,
                inserted.remote_id,
                json.dumps(inserted.fields, sort_keys=True),
                inserted.created_at,
                inserted.updated_at,
            ),
        )
        return inserted
