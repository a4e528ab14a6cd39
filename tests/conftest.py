"""
Shared fixtures for initializer tests.

============================================================
PURPOSE
============================================================
File-backed SQLite databases stand in for PostgreSQL so the
transaction, migration and safety paths run for real. The
advisory lock is replaced by a recording double because
SQLite has no session-scoped lock primitive.

============================================================
"""

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import QueuePool

from auth.passwords import PasswordHasher
from core.config import load_config
from core.context import CorrelationContext
from tests.support import TEST_MIGRATIONS, RecordingLock, write_migrations


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "bootstrap.sqlite"


@pytest.fixture
def engine(db_path):
    engine = create_engine(f"sqlite:///{db_path}", poolclass=QueuePool)
    yield engine
    engine.dispose()


@pytest.fixture
def migrations_dir(tmp_path):
    return write_migrations(tmp_path / "migrations", TEST_MIGRATIONS)


@pytest.fixture
def lock():
    return RecordingLock()


@pytest.fixture
def context():
    return CorrelationContext()


@pytest.fixture
def hasher():
    # Minimum bcrypt cost keeps the suite fast.
    return PasswordHasher(rounds=4)


@pytest.fixture
def valid_env(migrations_dir):
    return {
        "DB_HOST": "localhost",
        "DB_USER": "t",
        "DB_PASSWORD": "t",
        "DB_NAME": "t",
        "JWT_SECRET": "s",
        "DEFAULT_ADMIN_PASSWORD": "secure-admin-pass-1",
        "MIGRATIONS_DIR": str(migrations_dir),
    }


@pytest.fixture
def config(valid_env):
    return load_config(environ=valid_env)


@pytest.fixture
def create_users_table(engine):
    """Create the users table directly (no migration bookkeeping)."""
    def _create():
        with engine.begin() as conn:
            conn.execute(text(TEST_MIGRATIONS["000001_create_users.up.sql"]))
    return _create
