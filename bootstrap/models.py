"""
Bootstrap - Models.

============================================================
RESPONSIBILITY
============================================================
Data records produced by an initializer run.

- Pipeline steps in strict order
- Step summaries and the final initialization summary
- Data summary from the safety check

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from core.constants import ADMIN_USERNAME


# ============================================================
# PIPELINE STEPS
# ============================================================

class InitStep(Enum):
    """
    Initialization steps in strict order.

    Failure of any step short-circuits the rest.
    """

    ENVIRONMENT_VALIDATION = (1, "environment_validation", "Validate environment and configuration")
    DATABASE_CONNECTION = (2, "database_connection", "Open pooled database connection")
    DATABASE_HEALTH_CHECK = (3, "database_health_check", "Ping database and inspect pool")
    SAFETY_CHECK = (4, "safety_check", "Verify database holds no application data")
    MIGRATION_EXECUTION = (5, "migration_execution", "Apply pending schema migrations")
    ADMIN_USER_CREATION = (6, "admin_user_creation", "Create the administrator identity")

    def __init__(self, order: int, step_id: str, description: str):
        self._order = order
        self._step_id = step_id
        self._description = description

    @property
    def order(self) -> int:
        return self._order

    @property
    def step_id(self) -> str:
        return self._step_id

    @property
    def description(self) -> str:
        return self._description

    @classmethod
    def get_ordered_steps(cls) -> List["InitStep"]:
        return sorted(cls, key=lambda s: s.order)


class StepStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


# ============================================================
# STEP SUMMARY
# ============================================================

@dataclass
class StepSummary:
    """Outcome of one step."""

    name: str
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    status: StepStatus
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.name,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration": f"{self.duration_seconds:.3f}s",
            "status": self.status.value,
            "details": self.details,
        }


# ============================================================
# INITIALIZATION SUMMARY
# ============================================================

NEXT_STEPS = (
    "Start the main application server",
    f"Log in with username '{ADMIN_USERNAME}' and the password from DEFAULT_ADMIN_PASSWORD",
    "Create additional users and configure the system as needed",
    "Review the application logs for any additional configuration requirements",
)


@dataclass
class InitializationSummary:
    """Final report of a run."""

    correlation_id: str
    started_at: datetime
    database_host: str
    database_name: str
    dry_run: bool = False
    completed_at: Optional[datetime] = None
    steps: List[StepSummary] = field(default_factory=list)
    admin_created: bool = False
    migrations_applied: int = 0

    @property
    def duration_seconds(self) -> float:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    @property
    def succeeded(self) -> bool:
        return self.completed_at is not None and all(s.succeeded for s in self.steps)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlation_id": self.correlation_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration": f"{self.duration_seconds:.3f}s",
            "dry_run": self.dry_run,
            "steps": [s.to_dict() for s in self.steps],
            "admin_created": self.admin_created,
            "migrations_applied": self.migrations_applied,
            "database_host": self.database_host,
            "database_name": self.database_name,
        }


# ============================================================
# DATA SUMMARY
# ============================================================

@dataclass
class DataSummary:
    """Row counts of the tracked tables."""

    counts: Dict[str, int] = field(default_factory=dict)

    @property
    def non_empty_tables(self) -> List[str]:
        """Populated tables in the order they were counted."""
        return [t for t, n in self.counts.items() if n > 0]

    @property
    def is_empty(self) -> bool:
        return not self.non_empty_tables

    def count(self, table: str) -> int:
        return self.counts.get(table, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "counts": dict(self.counts),
            "is_empty": self.is_empty,
            "non_empty_tables": self.non_empty_tables,
        }
