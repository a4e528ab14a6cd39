"""
Database Layer - Health Probe.

Verifies a pooled engine is usable before any data is read:
a ping bounded by a deadline, then a look at pool statistics.
No application data is queried.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.constants import HEALTH_CHECK_TIMEOUT_SECONDS
from core.context import ContextLogger, CorrelationContext
from core.exceptions import database_error


@dataclass
class HealthStatus:
    """Outcome of a successful probe."""

    status: str
    open_connections: int
    idle_connections: int
    ping_seconds: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "open_connections": self.open_connections,
            "idle_connections": self.idle_connections,
            "ping_seconds": round(self.ping_seconds, 6),
        }


def pool_statistics(engine: Engine) -> Dict[str, int]:
    """
    Open/idle connection counts from the engine's pool.

    Pools that do not track connections report zero.
    """
    pool = engine.pool
    checked_in = pool.checkedin() if hasattr(pool, "checkedin") else 0
    checked_out = pool.checkedout() if hasattr(pool, "checkedout") else 0
    return {
        "open_connections": checked_in + checked_out,
        "idle_connections": checked_in,
    }


class HealthProber:
    """Bounded liveness probe for the target database."""

    def __init__(
        self,
        engine: Engine,
        timeout_seconds: float = HEALTH_CHECK_TIMEOUT_SECONDS,
        context: Optional[CorrelationContext] = None,
    ):
        self._engine = engine
        self._timeout = timeout_seconds
        self._log: ContextLogger = (context or CorrelationContext()).logger(__name__, "health_prober")

    def ping(self) -> float:
        """
        Run ``SELECT 1`` within the deadline.

        Returns:
            Elapsed seconds

        Raises:
            InitError (DATABASE) on failure or deadline overrun
        """
        started = time.perf_counter()
        try:
            with self._engine.connect() as conn:
                if self._engine.dialect.name == "postgresql":
                    timeout_ms = int(self._timeout * 1000)
                    conn.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
                conn.execute(text("SELECT 1")).fetchone()
                conn.rollback()
        except SQLAlchemyError as e:
            raise database_error(f"database ping failed: {e}", cause=e) from e

        elapsed = time.perf_counter() - started
        if elapsed > self._timeout:
            raise database_error(
                f"database ping exceeded {self._timeout}s deadline",
                elapsed_seconds=round(elapsed, 3),
            )
        return elapsed

    def check(self) -> HealthStatus:
        """Ping, then require at least one open pooled connection."""
        self._log.debug("Pinging database", fields={"action": "ping", "timeout_seconds": self._timeout})
        elapsed = self.ping()

        stats = pool_statistics(self._engine)
        if stats["open_connections"] == 0:
            raise database_error("no open database connections", **stats)

        status = HealthStatus(
            status="healthy",
            open_connections=stats["open_connections"],
            idle_connections=stats["idle_connections"],
            ping_seconds=elapsed,
        )
        self._log.debug("Database is healthy", fields={"action": "health_checked", **status.to_dict()})
        return status
