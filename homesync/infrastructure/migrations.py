from __future__ import annotations

import hashlib
import logging
import sqlite3
from dataclasses import dataclass

from homesync.core.time_utils import now_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationDefinition:
    version: int
    name: str
    up_sql: str
    down_sql: str


MIGRATIONS: tuple[MigrationDefinition, ...] = (
    MigrationDefinition(
        version=1,
        name="local_records",
        up_sql="""
            CREATE TABLE IF NOT EXISTS local_records (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                entity_type TEXT NOT NULL,
                id TEXT NOT NULL,
                remote_id TEXT,
                fields TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                UNIQUE (entity_type, id)
            );
            CREATE UNIQUE INDEX IF NOT EXISTS idx_local_records_remote
                ON local_records (entity_type, remote_id)
                WHERE remote_id IS NOT NULL;
        """,
        down_sql="""
            DROP INDEX IF EXISTS idx_local_records_remote;
            DROP TABLE IF EXISTS local_records;
        """,
    ),
    MigrationDefinition(
        version=2,
        name="kv_store",
        up_sql="""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
        """,
        down_sql="DROP TABLE IF EXISTS kv_store;",
    ),
)


class MigrationRunner:
    def __init__(
        self,
        connection: sqlite3.Connection,
        migrations: tuple[MigrationDefinition, ...] = MIGRATIONS,
    ) -> None:
        self.connection = connection
        self.connection.row_factory = sqlite3.Row
        self.migrations = tuple(sorted(migrations, key=lambda item: item.version))

    def apply_all(self) -> list[int]:
        self._ensure_history_table()
        applied_versions = self._applied_versions()
        applied: list[int] = []
        for migration in self.migrations:
            if migration.version in applied_versions:
                continue
            self._apply_migration(migration)
            applied.append(migration.version)
        if applied:
            logger.info("Applied migrations: %s", applied)
        return applied

    def rollback(self, steps: int = 1) -> list[int]:
        self._ensure_history_table()
        cursor = self.connection.cursor()
        cursor.execute("SELECT version FROM schema_migrations ORDER BY version DESC LIMIT ?", (steps,))
        versions_to_rollback = [row["version"] for row in cursor.fetchall()]
        version_map = {migration.version: migration for migration in self.migrations}
        rolled_back: list[int] = []
        for version in versions_to_rollback:
            self._rollback_migration(version_map[version])
            rolled_back.append(version)
        return rolled_back

    def status(self) -> list[dict[str, object]]:
        self._ensure_history_table()
        applied_versions = self._applied_versions()
        return [
            {
                "version": migration.version,
                "name": migration.name,
                "applied": migration.version in applied_versions,
            }
            for migration in self.migrations
        ]

    def _ensure_history_table(self) -> None:
        self.connection.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                checksum TEXT NOT NULL,
                applied_at TEXT NOT NULL
            )
            """
        )
        self.connection.commit()

    def _applied_versions(self) -> set[int]:
        cursor = self.connection.execute("SELECT version FROM schema_migrations")
        return {row["version"] for row in cursor.fetchall()}

    def _apply_migration(self, migration: MigrationDefinition) -> None:
        checksum = hashlib.sha256(migration.up_sql.encode("utf-8")).hexdigest()
        self.connection.executescript(migration.up_sql)
        with self.connection:
            self.connection.execute(
                """
                INSERT INTO schema_migrations (version, name, checksum, applied_at)
                VALUES (?, ?, ?, ?)
                """,
                (migration.version, migration.name, checksum, now_iso()),
            )
            self.connection.execute(f"PRAGMA user_version = {migration.version}")

    def _rollback_migration(self, migration: MigrationDefinition) -> None:
        self.connection.executescript(migration.down_sql)
        with self.connection:
            self.connection.execute("DELETE FROM schema_migrations WHERE version = ?", (migration.version,))
            self.connection.execute(f"PRAGMA user_version = {migration.version - 1}")


def run_migrations(connection: sqlite3.Connection) -> list[int]:
    return MigrationRunner(connection).apply_all()
