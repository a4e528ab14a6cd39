"""
Database Layer - Core Engine.

============================================================
RESPONSIBILITY
============================================================
Builds the pooled SQLAlchemy engine for the target
PostgreSQL database and proves it is reachable.

- SQLAlchemy engine with QueuePool
- Engine is created from an explicit DatabaseConfig
  (no module-level engine, no environment lookups)
- Connection failures surface as DATABASE InitErrors
- No retries: the orchestrator treats failure as terminal

============================================================
"""

from typing import Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from core.config import DatabaseConfig
from core.constants import CONNECT_TIMEOUT_SECONDS
from core.context import CorrelationContext
from core.exceptions import database_error

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()


# =============================================================
# DATABASE ENGINE
# =============================================================

def build_database_url(config: DatabaseConfig) -> URL:
    """SQLAlchemy URL for the configured database (password kept out of str())."""
    return URL.create(
        "postgresql+psycopg2",
        username=config.user,
        password=config.password or None,
        host=config.host,
        port=config.port_number,
        database=config.name,
        query={"sslmode": config.sslmode},
    )


def create_database_engine(
    config: DatabaseConfig,
    pool_size: int = 5,
    max_overflow: int = 5,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
    context: Optional[CorrelationContext] = None,
) -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    Creating the engine does not open a connection.

    Args:
        config: Database coordinates
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements
        context: Correlation context stamped on connection logs

    Returns:
        SQLAlchemy Engine

    Raises:
        InitError (DATABASE) if the engine cannot be built
    """
    try:
        url = build_database_url(config)
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            echo=echo,
            connect_args={"connect_timeout": CONNECT_TIMEOUT_SECONDS},
        )
    except (SQLAlchemyError, ImportError, ValueError) as e:
        raise database_error(
            f"failed to create database engine: {e}",
            cause=e,
            host=config.host,
            database=config.name,
        ) from e

    log = (context or CorrelationContext()).logger(__name__, "database_connector")

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        log.debug("Database connection established", fields={"action": "connection_opened"})

    @event.listens_for(engine, "checkout")
    def on_checkout(dbapi_conn, connection_record, connection_proxy):
        log.debug("Database connection checked out from pool", fields={"action": "connection_checkout"})

    log.debug(
        f"Created database engine for: {config.describe()}",
        fields={"action": "engine_created", "pool_size": pool_size},
    )
    return engine


def connect_database(engine: Engine) -> None:
    """
    Open one pooled connection to prove the engine is live.

    The connection goes back to the pool, so the pool holds
    at least one open connection afterwards.

    Raises:
        InitError (DATABASE) if the connection cannot be opened
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
    except SQLAlchemyError as e:
        raise database_error(f"failed to connect to database: {e}", cause=e) from e


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )


def dispose_engine(engine: Optional[Engine]) -> None:
    """Close every pooled connection."""
    if engine is not None:
        engine.dispose()


__all__ = [
    "Base",
    "build_database_url",
    "create_database_engine",
    "connect_database",
    "make_session_factory",
    "dispose_engine",
]
