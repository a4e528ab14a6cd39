"""
Database Package Initialization.

============================================================
TARGET DATABASE ACCESS FOR THE INITIALIZER
============================================================

This package owns every interaction with the target
PostgreSQL database.

- engine: pooled engine creation and connection proof
- health: bounded liveness probe and pool inspection
- migrations: versioned SQL migrations with advisory locking
- errors: driver error inspection (undefined table)
- models: ORM model for the administrator identity

============================================================
"""

# Core engine and session management
from .engine import (
    Base,
    build_database_url,
    connect_database,
    create_database_engine,
    dispose_engine,
    make_session_factory,
)

# Driver error inspection
from .errors import is_table_not_found_error, sqlstate_of

# Health probing
from .health import HealthProber, HealthStatus, pool_statistics

# Migrations
from .migrations import (
    AdvisoryLock,
    FileMigrationSource,
    MigrationResult,
    MigrationVersion,
    Migrator,
    PostgresAdvisoryLock,
    advisory_lock_for,
    generate_advisory_lock_id,
)

# ORM models
from .models import User, UserRole

__all__ = [
    "Base",
    "build_database_url",
    "connect_database",
    "create_database_engine",
    "dispose_engine",
    "make_session_factory",
    "is_table_not_found_error",
    "sqlstate_of",
    "HealthProber",
    "HealthStatus",
    "pool_statistics",
    "AdvisoryLock",
    "FileMigrationSource",
    "MigrationResult",
    "MigrationVersion",
    "Migrator",
    "PostgresAdvisoryLock",
    "advisory_lock_for",
    "generate_advisory_lock_id",
    "User",
    "UserRole",
]
