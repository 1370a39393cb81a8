from __future__ import annotations

import sqlite3

import pytest

from homesync.infrastructure.db import get_connection
from homesync.infrastructure.migrations import MIGRATIONS, MigrationRunner


def _tables(connection: sqlite3.Connection) -> set[str]:
    rows = connection.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {row["name"] for row in rows}


def test_apply_all_is_idempotent_and_tracks_user_version() -> None:
    connection = get_connection(":memory:")
    try:
        runner = MigrationRunner(connection)

        assert runner.apply_all() == [migration.version for migration in MIGRATIONS]
        assert runner.apply_all() == []
        assert {"local_records", "kv_store", "schema_migrations"} <= _tables(connection)
        assert connection.execute("PRAGMA user_version").fetchone()[0] == MIGRATIONS[-1].version
        assert all(item["applied"] for item in runner.status())
    finally:
        connection.close()


def test_rollback_drops_latest_migration() -> None:
    connection = get_connection(":memory:")
    try:
        runner = MigrationRunner(connection)
        runner.apply_all()

        assert runner.rollback() == [2]
        assert "kv_store" not in _tables(connection)
        assert connection.execute("PRAGMA user_version").fetchone()[0] == 1
        assert runner.apply_all() == [2]
    finally:
        connection.close()


def test_remote_id_is_unique_per_entity_type(connection) -> None:
    insert = (
        "INSERT INTO local_records (entity_type, id, remote_id, fields, created_at, updated_at) "
        "VALUES (?, ?, ?, '{}', 't', 't')"
    )
    connection.execute(insert, ("property", "l1", "r1"))
    connection.execute(insert, ("tenant", "l2", "r1"))
    connection.execute(insert, ("property", "l3", None))
    connection.execute(insert, ("property", "l4", None))

    with pytest.raises(sqlite3.IntegrityError):
        connection.execute(insert, ("property", "l5", "r1"))
