from __future__ import annotations

import hashlib
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationDefinition:
    version: int
    name: str
    up_sql: str


MIGRATIONS: tuple[MigrationDefinition, ...] = (
    MigrationDefinition(
        version=1,
        name="kv_store",
        up_sql="""
        CREATE TABLE IF NOT EXISTS kv_store (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        """,
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
        self.migrations = migrations

    def apply_all(self) -> list[int]:
        self._ensure_history_table()
        applied_versions = self._applied_versions()
        applied: list[int] = []
        for migration in self.migrations:
            if migration.version in applied_versions:
                continue
            self._apply_migration(migration)
            applied.append(migration.version)
        return applied

    def _ensure_history_table(self) -> None:
        cursor = self.connection.cursor()
        cursor.execute(
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
        cursor = self.connection.cursor()
        cursor.execute("SELECT version FROM schema_migrations")
        return {row["version"] for row in cursor.fetchall()}

    def _apply_migration(self, migration: MigrationDefinition) -> None:
        checksum = hashlib.sha256(migration.up_sql.encode("utf-8")).hexdigest()
        with self.connection:
            self.connection.executescript(migration.up_sql)
            self.connection.execute(
                """
                INSERT INTO schema_migrations (version, name, checksum, applied_at)
                VALUES (?, ?, ?, ?)
                """,
                (
                    migration.version,
                    migration.name,
                    checksum,
                    datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
                ),
            )
            self.connection.execute(f"PRAGMA user_version = {migration.version}")
        logger.info("Migración aplicada: %s_%s", migration.version, migration.name)


def run_migrations(connection: sqlite3.Connection) -> list[int]:
    return MigrationRunner(connection).apply_all()
