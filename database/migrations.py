"""
Database Layer - Schema Migrations.

============================================================
RESPONSIBILITY
============================================================
Drives the target schema forward using versioned SQL files.

- Source: <version>_<name>.up.sql / <version>_<name>.down.sql
- State: schema_migrations(version, dirty), one row
- Every apply/rollback runs under a session-scoped advisory
  lock so concurrent runs serialize
- Dirty state is reported, never repaired

============================================================
MIGRATION PROTOCOL (per file)
============================================================
1. record (version, dirty=true) and commit
2. run the file body in its own transaction
3. record (version, dirty=false) and commit

A failure in step 2 leaves dirty=true for the operator.

============================================================
"""

import re
import zlib
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Union

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from core.constants import MIGRATIONS_TABLE
from core.context import ContextLogger, CorrelationContext
from core.exceptions import migration_error

from .errors import is_table_not_found_error


MIGRATION_FILE_PATTERN = re.compile(r"^(\d+)_([A-Za-z0-9_.-]+?)\.(up|down)\.sql$")
PLACEHOLDER_FILES = frozenset({".gitkeep"})

# Shared with golang-migrate so both tools contend for the same lock.
ADVISORY_LOCK_SALT = 1486364155


# =============================================================
# MIGRATION SOURCE
# =============================================================

@dataclass(frozen=True)
class MigrationFile:
    """One migration script on disk."""

    version: int
    name: str
    direction: str
    path: Path


class FileMigrationSource:
    """
    Versioned SQL files in one directory.

    The directory is scanned once at construction; any entry that is
    neither a migration file nor a placeholder is rejected.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self._up: Dict[int, MigrationFile] = {}
        self._down: Dict[int, MigrationFile] = {}
        self._scan()

    def _scan(self) -> None:
        if not self.directory.is_dir():
            raise migration_error(
                f"migrations directory not found: {self.directory}",
                directory=str(self.directory),
            )

        for entry in sorted(self.directory.iterdir()):
            if entry.name in PLACEHOLDER_FILES:
                continue

            match = MIGRATION_FILE_PATTERN.match(entry.name)
            if not entry.is_file() or match is None:
                raise migration_error(
                    f"invalid migration file name: {entry.name}",
                    directory=str(self.directory),
                    file=entry.name,
                )

            version = int(match.group(1))
            direction = match.group(3)
            target = self._up if direction == "up" else self._down
            if version in target:
                raise migration_error(
                    f"duplicate {direction} migration for version {version}: "
                    f"{target[version].path.name} and {entry.name}",
                    version=version,
                )
            target[version] = MigrationFile(version, match.group(2), direction, entry)

        orphans = sorted(set(self._down) - set(self._up))
        if orphans:
            raise migration_error(
                f"down migrations without matching up migration: {orphans}",
                versions=orphans,
            )

    def __contains__(self, version: int) -> bool:
        return version in self._up

    def __len__(self) -> int:
        return len(self._up)

    def versions(self) -> List[int]:
        """Known versions, ascending."""
        return sorted(self._up)

    def latest(self) -> Optional[int]:
        versions = self.versions()
        return versions[-1] if versions else None

    def next_version(self, current: Optional[int]) -> Optional[int]:
        for version in self.versions():
            if current is None or version > current:
                return version
        return None

    def previous_version(self, current: int) -> Optional[int]:
        earlier = [v for v in self.versions() if v < current]
        return earlier[-1] if earlier else None

    def pending(self, current: Optional[int]) -> List[int]:
        return [v for v in self.versions() if current is None or v > current]

    def migration(self, version: int) -> MigrationFile:
        try:
            return self._up[version]
        except KeyError:
            raise migration_error(f"no migration found for version {version}", version=version) from None

    def read_up(self, version: int) -> str:
        return self.migration(version).path.read_text(encoding="utf-8")

    def read_down(self, version: int) -> str:
        down = self._down.get(version)
        if down is None:
            raise migration_error(f"no down migration for version {version}", version=version)
        return down.path.read_text(encoding="utf-8")


# =============================================================
# ADVISORY LOCK
# =============================================================

def generate_advisory_lock_id(database_name: str, *additional_names: str) -> int:
    """
    Lock key for a database, identical to golang-migrate's.

    Names are joined as ``additional...\\x00database``, hashed with
    CRC-32 (IEEE) and multiplied by the salt modulo 2**32.
    """
    if additional_names:
        database_name = "\x00".join(list(additional_names) + [database_name])
    checksum = zlib.crc32(database_name.encode("utf-8"))
    return (checksum * ADVISORY_LOCK_SALT) & 0xFFFFFFFF


class AdvisoryLock(ABC):
    """Session-scoped database lock held on one connection."""

    @abstractmethod
    def acquire(self, conn: Connection) -> None:
        """Block until the lock is held by ``conn``'s session."""

    @abstractmethod
    def release(self, conn: Connection) -> None:
        """Release the lock held by ``conn``'s session."""


class PostgresAdvisoryLock(AdvisoryLock):
    """pg_advisory_lock / pg_advisory_unlock on a fixed key."""

    def __init__(self, lock_id: int):
        self.lock_id = lock_id

    def acquire(self, conn: Connection) -> None:
        conn.execute(text("SELECT pg_advisory_lock(:lock_id)"), {"lock_id": self.lock_id})
        conn.commit()

    def release(self, conn: Connection) -> None:
        conn.execute(text("SELECT pg_advisory_unlock(:lock_id)"), {"lock_id": self.lock_id})
        conn.commit()


def advisory_lock_for(
    engine: Engine,
    database_name: str,
    schema_name: str = "public",
    table_name: str = MIGRATIONS_TABLE,
) -> AdvisoryLock:
    """
    Advisory lock for the engine's dialect.

    Raises:
        InitError (MIGRATION) when the dialect has no session lock
    """
    if engine.dialect.name != "postgresql":
        raise migration_error(
            f"advisory locking is not available for dialect '{engine.dialect.name}'",
            dialect=engine.dialect.name,
        )
    return PostgresAdvisoryLock(generate_advisory_lock_id(database_name, schema_name, table_name))


# =============================================================
# MIGRATION STATE
# =============================================================

@dataclass(frozen=True)
class MigrationVersion:
    """Row of schema_migrations."""

    version: int
    dirty: bool


@dataclass
class MigrationResult:
    """Outcome of apply_forward()."""

    prior_version: Optional[int]
    new_version: Optional[int]
    applied: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prior_version": self.prior_version,
            "new_version": self.new_version,
            "migrations_applied": self.applied,
        }


# =============================================================
# MIGRATOR
# =============================================================

class Migrator:
    """Applies a FileMigrationSource to the target database."""

    def __init__(
        self,
        engine: Engine,
        source: FileMigrationSource,
        lock: AdvisoryLock,
        context: Optional[CorrelationContext] = None,
        table_name: str = MIGRATIONS_TABLE,
    ):
        self._engine = engine
        self.source = source
        self._lock = lock
        self._table = table_name
        self._log: ContextLogger = (context or CorrelationContext()).logger(__name__, "migrator")

    # ---------------------------------------------------------
    # STATE TABLE
    # ---------------------------------------------------------

    def _ensure_table(self, conn: Connection) -> None:
        conn.execute(text(
            f"CREATE TABLE IF NOT EXISTS {self._table} "
            "(version BIGINT NOT NULL PRIMARY KEY, dirty BOOLEAN NOT NULL)"
        ))
        conn.commit()

    def _read_version(self, conn: Connection) -> Optional[MigrationVersion]:
        row = conn.execute(text(f"SELECT version, dirty FROM {self._table} LIMIT 1")).fetchone()
        conn.commit()
        if row is None:
            return None
        return MigrationVersion(version=int(row[0]), dirty=bool(row[1]))

    def _set_version(self, conn: Connection, version: Optional[int], dirty: bool) -> None:
        conn.execute(text(f"DELETE FROM {self._table}"))
        if version is not None:
            conn.execute(
                text(f"INSERT INTO {self._table} (version, dirty) VALUES (:version, :dirty)"),
                {"version": version, "dirty": dirty},
            )
        conn.commit()

    @contextmanager
    def _locked(self) -> Generator[Connection, None, None]:
        """Dedicated connection holding the advisory lock."""
        with self._engine.connect() as conn:
            try:
                self._lock.acquire(conn)
            except SQLAlchemyError as e:
                raise migration_error(f"failed to acquire migration lock: {e}", cause=e) from e
            self._log.debug("Migration lock acquired", fields={"action": "lock_acquired"})
            try:
                yield conn
            finally:
                if conn.in_transaction():
                    conn.rollback()
                try:
                    self._lock.release(conn)
                except SQLAlchemyError as e:
                    # Closing the session releases the lock as well.
                    self._log.warning(
                        f"Failed to release migration lock: {e}",
                        fields={"action": "lock_release_failed", "error": str(e)},
                    )

    # ---------------------------------------------------------
    # OPERATIONS
    # ---------------------------------------------------------

    def current_version(self) -> Optional[MigrationVersion]:
        """
        Current (version, dirty), or None before the first migration.

        Raises:
            InitError (MIGRATION) if the state table cannot be read
        """
        try:
            with self._engine.connect() as conn:
                return self._read_version(conn)
        except SQLAlchemyError as e:
            if is_table_not_found_error(e):
                return None
            raise migration_error(f"failed to get migration version: {e}", cause=e) from e

    def pending_versions(self) -> List[int]:
        current = self.current_version()
        return self.source.pending(current.version if current else None)

    def validate_schema(self) -> MigrationVersion:
        """
        Confirm the version-tracking table exists and is readable.

        Raises:
            InitError (MIGRATION) if missing, empty or unreadable
        """
        try:
            with self._engine.connect() as conn:
                state = self._read_version(conn)
        except SQLAlchemyError as e:
            if is_table_not_found_error(e):
                raise migration_error(
                    f"{self._table} table does not exist - database may not be initialized",
                    cause=e,
                ) from e
            raise migration_error(f"failed to check {self._table} table: {e}", cause=e) from e

        if state is None:
            raise migration_error(f"{self._table} table has no recorded version")
        return state

    def apply_forward(self) -> MigrationResult:
        """
        Apply every pending migration in ascending order.

        Re-running at head is a no-op.

        Raises:
            InitError (MIGRATION) on missing files, dirty state or failure
        """
        if len(self.source) == 0:
            raise migration_error(f"no migration files found in {self.source.directory}")

        applied = 0
        try:
            with self._locked() as conn:
                self._ensure_table(conn)
                current = self._read_version(conn)
                prior = current.version if current else None

                if current is not None and current.dirty:
                    raise migration_error(
                        f"database is in dirty state at version {current.version}; "
                        "manual intervention required",
                        version=current.version,
                    )
                if prior is not None and prior not in self.source:
                    raise migration_error(
                        f"database version {prior} has no matching migration file",
                        version=prior,
                    )

                pending = self.source.pending(prior)
                self._log.info(
                    f"Applying {len(pending)} pending migration(s)",
                    fields={"action": "apply_start", "current_version": prior, "pending": pending},
                )
                for version in pending:
                    self._apply_one(conn, version)
                    applied += 1
        except SQLAlchemyError as e:
            raise migration_error(f"failed to run migrations: {e}", cause=e) from e

        state = self.current_version()
        if state is None:
            raise migration_error("migration state missing after applying migrations")
        if state.dirty:
            raise migration_error(
                f"migrations completed but database is in dirty state (version: {state.version})",
                version=state.version,
            )

        return MigrationResult(prior_version=prior, new_version=state.version, applied=applied)

    @staticmethod
    def _run_body(conn: Connection, body: str) -> None:
        """Execute a migration file verbatim, with no parameter substitution."""
        if body.strip():
            conn.execution_options(no_parameters=True).exec_driver_sql(body)

    def _apply_one(self, conn: Connection, version: int) -> None:
        migration = self.source.migration(version)
        body = self.source.read_up(version)

        self._set_version(conn, version, dirty=True)
        try:
            self._run_body(conn, body)
            conn.commit()
        except Exception as e:
            conn.rollback()
            raise migration_error(
                f"failed to apply migration {version} ({migration.path.name}): {e}",
                cause=e,
                version=version,
                file=migration.path.name,
            ) from e
        self._set_version(conn, version, dirty=False)

        self._log.info(
            f"Applied migration {migration.path.name}",
            fields={"action": "migration_applied", "version": version},
        )

    def rollback_one(self) -> Optional[MigrationVersion]:
        """
        Step back exactly one version.

        Returns:
            The new state (None once the first migration is undone)

        Raises:
            InitError (MIGRATION) if nothing to roll back, dirty, or failure
        """
        try:
            with self._locked() as conn:
                self._ensure_table(conn)
                current = self._read_version(conn)
                if current is None:
                    raise migration_error("no migration to roll back")
                if current.dirty:
                    raise migration_error(
                        f"database is in dirty state at version {current.version}; "
                        "manual intervention required",
                        version=current.version,
                    )

                body = self.source.read_down(current.version)
                previous = self.source.previous_version(current.version)

                self._set_version(conn, current.version, dirty=True)
                try:
                    self._run_body(conn, body)
                    conn.commit()
                except Exception as e:
                    conn.rollback()
                    raise migration_error(
                        f"failed to roll back migration {current.version}: {e}",
                        cause=e,
                        version=current.version,
                    ) from e
                self._set_version(conn, previous, dirty=False)
        except SQLAlchemyError as e:
            raise migration_error(f"failed to roll back migration: {e}", cause=e) from e

        self._log.info(
            f"Rolled back migration {current.version}",
            fields={"action": "migration_rolled_back", "from_version": current.version, "to_version": previous},
        )
        return self.current_version()
