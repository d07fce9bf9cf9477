"""
editgate — state database

File: src/editgate/persistence/state_db.py
Last updated: 2026-10-19

Purpose
- Own the SQLite file that holds plan records: connection setup, the
  forward-only migration runner, and the statement helpers ``PlanRepository``
  is written against.

Functional requirements
- ``migrate`` is idempotent. A recorded migration whose checksum differs from
  the code's is a hard error, and so is a database newer than the code.
- Every write runs in its own ``BEGIN IMMEDIATE`` transaction; reads use a
  short-lived connection.
- SQLITE_BUSY is retried with exponential backoff up to a bounded limit, then
  surfaces as ``StateDBBusyError``.
"""

from __future__ import annotations

import hashlib
import sqlite3
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from editgate.plans.models import PlanStatus

SQLValue = str | int | float | bytes | None
SQLParams = Sequence[SQLValue]
RowValue = str | int | float | bytes | None

STATE_DB_SCHEMA_VERSION: Final[int] = 1
DEFAULT_BUSY_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_BUSY_RETRY_LIMIT: Final[int] = 4
DEFAULT_BUSY_RETRY_BACKOFF_MS: Final[int] = 25

_PLAN_STATUSES: Final[str] = ",".join(f"'{status.value}'" for status in PlanStatus)

_SCHEMA_VERSIONS_SQL: Final[str] = """
CREATE TABLE IF NOT EXISTS schema_versions (
    version INTEGER PRIMARY KEY CHECK (version > 0),
    name TEXT NOT NULL,
    checksum TEXT NOT NULL CHECK (length(checksum) = 64),
    applied_at TEXT NOT NULL
)
"""

_PLANS_SQL: Final[str] = f"""
CREATE TABLE IF NOT EXISTS plans (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    status TEXT NOT NULL CHECK (status IN ({_PLAN_STATUSES})),
    phases_json TEXT NOT NULL,
    current_phase_index INTEGER NOT NULL CHECK (current_phase_index >= 0),
    affected_files_json TEXT NOT NULL,
    metadata_json TEXT NOT NULL,
    payload_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    approved_at TEXT,
    completed_at TEXT,
    updated_at TEXT NOT NULL
)
"""

_BUSY_MESSAGES: Final[tuple[str, ...]] = (
    "database is locked",
    "database table is locked",
    "database schema is locked",
)


@dataclass(frozen=True, slots=True)
class Migration:
    version: int
    name: str
    statements: tuple[str, ...]

    @property
    def checksum(self) -> str:
        digest = hashlib.sha256(f"{self.version}:{self.name}\n".encode())
        for statement in self.statements:
            lines = (line.rstrip() for line in statement.strip().splitlines())
            digest.update("\n".join(lines).encode("utf-8"))
            digest.update(b"\n--\n")
        return digest.hexdigest()


MIGRATIONS: Final[tuple[Migration, ...]] = (
    Migration(
        version=1,
        name="plan_state_schema",
        statements=(
            _PLANS_SQL,
            "CREATE INDEX IF NOT EXISTS idx_plans_status_created ON plans(status, created_at DESC)",
        ),
    ),
)


class StateDBError(RuntimeError):
    """Base class for state DB failures."""


class StateDBBusyError(StateDBError):
    """The database stayed locked through every retry."""


class StateDBMigrationError(StateDBError):
    """The schema on disk cannot be brought to the code's version."""


class StateDB:
    """Plan-state SQLite file with WAL connections and checksummed migrations."""

    def __init__(
        self,
        path: str | Path,
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        busy_retry_limit: int = DEFAULT_BUSY_RETRY_LIMIT,
        busy_retry_backoff_ms: int = DEFAULT_BUSY_RETRY_BACKOFF_MS,
    ) -> None:
        for name, value in (
            ("busy_timeout_ms", busy_timeout_ms),
            ("busy_retry_limit", busy_retry_limit),
            ("busy_retry_backoff_ms", busy_retry_backoff_ms),
        ):
            if value < 0:
                raise ValueError(f"{name} must be >= 0")
        self._path = Path(path).expanduser()
        self._busy_timeout_ms = busy_timeout_ms
        self._busy_retry_limit = busy_retry_limit
        self._busy_retry_backoff_ms = busy_retry_backoff_ms

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(
            self._path,
            timeout=self._busy_timeout_ms / 1000.0,
            isolation_level=None,
        )
        try:
            conn.row_factory = sqlite3.Row
            conn.execute(f"PRAGMA busy_timeout={self._busy_timeout_ms}")
            mode = conn.execute("PRAGMA journal_mode=WAL").fetchone()
            if mode is None or str(mode[0]).lower() != "wal":
                raise StateDBError(f"could not switch {self._path} to WAL journal mode")
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """An owned connection inside ``BEGIN IMMEDIATE``; rolled back if the body raises."""

        with self.connection() as conn:
            self._run(conn, "BEGIN IMMEDIATE", (), operation="begin transaction")
            try:
                yield conn
            except Exception:
                conn.rollback()
                raise
            self._run(conn, "COMMIT", (), operation="commit transaction")

    def migrate(self) -> int:
        """Apply pending migrations and return the schema version now on disk."""

        with self.connection() as conn:
            self._run(conn, _SCHEMA_VERSIONS_SQL, (), operation="create schema_versions")
            rows = self._run(
                conn, "SELECT version, checksum FROM schema_versions", (), operation="read schema"
            ).fetchall()
        applied = {int(row["version"]): str(row["checksum"]) for row in rows}
        newest = max(applied, default=0)
        if newest > STATE_DB_SCHEMA_VERSION:
            raise StateDBMigrationError(
                f"database schema is newer than supported by this build "
                f"(db={newest}, code={STATE_DB_SCHEMA_VERSION})"
            )

        for migration in MIGRATIONS:
            recorded = applied.get(migration.version)
            if recorded is not None:
                if recorded != migration.checksum:
                    raise StateDBMigrationError(
                        f"migration checksum mismatch for version {migration.version}: "
                        f"db={recorded} code={migration.checksum}"
                    )
                continue
            operation = f"apply migration {migration.version}"
            with self.transaction() as conn:
                for statement in migration.statements:
                    self._run(conn, statement, (), operation=operation)
                self._run(
                    conn,
                    "INSERT INTO schema_versions (version, name, checksum, applied_at)"
                    " VALUES (?, ?, ?, ?)",
                    (migration.version, migration.name, migration.checksum, _utc_now_iso()),
                    operation=operation,
                )
        return self.schema_version()

    def schema_version(self) -> int:
        row = self.query_one("SELECT COALESCE(MAX(version), 0) AS version FROM schema_versions")
        return 0 if row is None else int(row["version"] or 0)

    def execute(self, sql: str, params: SQLParams = ()) -> int:
        """Run one write statement in its own transaction; returns the affected row count."""

        with self.transaction() as conn:
            return self._run(conn, sql, params, operation="execute statement").rowcount

    def query_all(self, sql: str, params: SQLParams = ()) -> list[dict[str, RowValue]]:
        with self.connection() as conn:
            rows = self._run(conn, sql, params, operation="query").fetchall()
        return [dict(row) for row in rows]

    def query_one(self, sql: str, params: SQLParams = ()) -> dict[str, RowValue] | None:
        with self.connection() as conn:
            row = self._run(conn, sql, params, operation="query").fetchone()
        return None if row is None else dict(row)

    def _run(
        self,
        conn: sqlite3.Connection,
        sql: str,
        params: SQLParams,
        *,
        operation: str,
    ) -> sqlite3.Cursor:
        attempt = 0
        while True:
            try:
                return conn.execute(sql, tuple(params))
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as exc:
                busy = any(message in str(exc).lower() for message in _BUSY_MESSAGES)
                if busy and attempt < self._busy_retry_limit:
                    time.sleep(self._busy_retry_backoff_ms / 1000.0 * 2**attempt)
                    attempt += 1
                    continue
                if busy:
                    raise StateDBBusyError(
                        f"{operation} stayed locked for {self._path} after "
                        f"{attempt + 1} attempt(s): {exc}"
                    ) from exc
                raise StateDBError(f"{operation} failed for {self._path}: {exc}") from exc


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


__all__ = [
    "DEFAULT_BUSY_RETRY_BACKOFF_MS",
    "DEFAULT_BUSY_RETRY_LIMIT",
    "DEFAULT_BUSY_TIMEOUT_MS",
    "MIGRATIONS",
    "STATE_DB_SCHEMA_VERSION",
    "Migration",
    "RowValue",
    "SQLParams",
    "SQLValue",
    "StateDB",
    "StateDBBusyError",
    "StateDBError",
    "StateDBMigrationError",
]
