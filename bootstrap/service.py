"""
Bootstrap - Initialization Service.

============================================================
RESPONSIBILITY
============================================================
Drives one initializer run from a validated configuration to
a fully migrated database with its administrator identity.

- Sequences the steps in strict order
- Records a StepSummary per step
- Enriches failures with correlation id, step and duration
- Owns the engine and disposes it on every exit path

============================================================
PIPELINE
============================================================
environment_validation -> database_connection
    -> database_health_check -> safety_check
    -> migration_execution -> admin_user_creation

Dry run: environment_validation plus construction of the
later components. No database contact.

============================================================
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from sqlalchemy.engine import Engine

from auth.passwords import PasswordHasher
from core.config import BootstrapConfig, validate_environment
from core.constants import ENV_ADMIN_PASSWORD
from core.context import ContextLogger, CorrelationContext
from core.exceptions import ErrorKind, ErrorReporter, wrap_error
from database.engine import connect_database, create_database_engine, dispose_engine
from database.health import HealthProber
from database.migrations import AdvisoryLock, FileMigrationSource, Migrator, advisory_lock_for

from .admin import AdminCreator
from .models import NEXT_STEPS, InitializationSummary, InitStep, StepStatus, StepSummary
from .safety import SafetyChecker


# Kind given to an opaque error raised inside a step.
STEP_ERROR_KINDS = {
    InitStep.ENVIRONMENT_VALIDATION: ErrorKind.CONFIG,
    InitStep.DATABASE_CONNECTION: ErrorKind.DATABASE,
    InitStep.DATABASE_HEALTH_CHECK: ErrorKind.DATABASE,
    InitStep.SAFETY_CHECK: ErrorKind.SAFETY,
    InitStep.MIGRATION_EXECUTION: ErrorKind.MIGRATION,
    InitStep.ADMIN_USER_CREATION: ErrorKind.CREATION,
}

# Step recorded on records outside any pipeline step.
RUN_STEP = "initialization"

# Called as factory(database_config, context=...)
EngineFactory = Callable[..., Engine]
LockFactory = Callable[[Engine], AdvisoryLock]


class InitService:
    """
    Orchestrates the initializer pipeline.

    Collaborators are injectable so tests can supply an engine
    for a local database and a lock that does not need PostgreSQL.
    """

    def __init__(
        self,
        config: BootstrapConfig,
        context: Optional[CorrelationContext] = None,
        hasher: Optional[PasswordHasher] = None,
        engine_factory: EngineFactory = create_database_engine,
        migration_lock_factory: Optional[LockFactory] = None,
    ):
        self.config = config
        self.context = context or CorrelationContext()
        self._hasher = hasher or PasswordHasher()
        self._engine_factory = engine_factory
        self._lock_factory = migration_lock_factory

        self.reporter = ErrorReporter(self.context.correlation_id)
        self.summary = InitializationSummary(
            correlation_id=self.context.correlation_id,
            started_at=self.context.started_at,
            database_host=config.database.host,
            database_name=config.database.name,
        )

        self._engine: Optional[Engine] = None
        self.safety_checker: Optional[SafetyChecker] = None
        self.migrator: Optional[Migrator] = None
        self.admin_creator: Optional[AdminCreator] = None

        self._log: ContextLogger = self.context.logger(__name__, "init_service")

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine

    # =========================================================
    # ENTRY POINTS
    # =========================================================

    def run(self, dry_run: bool = False) -> InitializationSummary:
        """
        Run the pipeline once and release the engine.

        Raises:
            InitError of the failing step's kind
        """
        runner = self.run_dry if dry_run else self.run_full
        self.context.enter_step(RUN_STEP)
        try:
            return runner()
        finally:
            self.close()

    def run_full(self) -> InitializationSummary:
        """Run every step in order."""
        self._log.info(
            "Starting database initialization",
            fields={
                "action": "initialization_start",
                "database": self.config.database.describe(),
                "steps": [s.step_id for s in InitStep.get_ordered_steps()],
            },
        )

        self._run_step(InitStep.ENVIRONMENT_VALIDATION, self._validate_environment)
        self._run_step(InitStep.DATABASE_CONNECTION, self._connect_database)
        self._run_step(InitStep.DATABASE_HEALTH_CHECK, self._check_health)
        self._run_step(InitStep.SAFETY_CHECK, self._check_safety)
        self._run_step(InitStep.MIGRATION_EXECUTION, self._run_migrations)
        self._run_step(InitStep.ADMIN_USER_CREATION, self._create_admin)

        return self._complete()

    def run_dry(self) -> InitializationSummary:
        """Validate the environment and build the components without connecting."""
        self.summary.dry_run = True
        self._log.info(
            "Starting dry run - no database changes will be made",
            fields={"action": "dry_run_start", "database": self.config.database.describe()},
        )

        self._run_step(InitStep.ENVIRONMENT_VALIDATION, self._validate_and_prepare)

        return self._complete()

    def close(self) -> None:
        """Dispose the connection pool. Safe to call more than once."""
        if self._engine is not None:
            dispose_engine(self._engine)
            self._engine = None
            self._log.debug("Database engine disposed", fields={"action": "engine_disposed"})

    # =========================================================
    # STEP EXECUTION
    # =========================================================

    def _run_step(self, step: InitStep, fn: Callable[[], Optional[Dict[str, Any]]]) -> Dict[str, Any]:
        """
        Execute one step and record its summary.

        Args:
            step: Pipeline step
            fn: Step body returning optional structured details

        Returns:
            The step details

        Raises:
            InitError enriched with correlation id, step and duration
        """
        self.context.enter_step(step.step_id)
        started_at = datetime.now(timezone.utc)
        started = time.perf_counter()

        self._log.info(
            f"Starting step: {step.description}",
            fields={"action": "step_start", "order": step.order},
        )

        try:
            details = fn() or {}
        except Exception as e:
            duration = time.perf_counter() - started
            self.summary.steps.append(StepSummary(
                name=step.step_id,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
                duration_seconds=duration,
                status=StepStatus.FAILED,
            ))

            wrapped = wrap_error(
                e,
                correlation_id=self.context.correlation_id,
                step=step.step_id,
                kind=STEP_ERROR_KINDS[step],
                context={"duration": f"{duration:.3f}s"},
            )
            self.reporter.report(wrapped)

            self._log.error(
                "step_failed",
                fields={
                    "action": "step_failed",
                    "status": StepStatus.FAILED.value,
                    "duration": f"{duration:.3f}s",
                    "error": str(e),
                    "error_type": wrapped.kind.label,
                    "recoverable": wrapped.recoverable,
                },
            )
            if wrapped is e:
                raise
            raise wrapped from e

        duration = time.perf_counter() - started
        step_summary = StepSummary(
            name=step.step_id,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
            duration_seconds=duration,
            status=StepStatus.SUCCESS,
            details=details,
        )
        self.summary.steps.append(step_summary)

        self._log.info(
            f"Step completed: {step.description}",
            fields={
                "action": "step_completed",
                "status": StepStatus.SUCCESS.value,
                "duration": f"{duration:.3f}s",
                "details": details,
            },
        )
        return details

    def _complete(self) -> InitializationSummary:
        self.summary.completed_at = datetime.now(timezone.utc)
        self.context.enter_step(RUN_STEP)

        if self.summary.dry_run:
            message = "Dry run completed successfully - configuration is valid"
        else:
            message = "Database initialization completed successfully"

        self._log.info(
            message,
            fields={
                "action": "initialization_completed",
                "status": StepStatus.SUCCESS.value,
                "duration": f"{self.summary.duration_seconds:.3f}s",
                "summary": self.summary.to_dict(),
                "next_steps": [] if self.summary.dry_run else list(NEXT_STEPS),
            },
        )
        return self.summary

    # =========================================================
    # COMPONENT WIRING
    # =========================================================

    def _build_components(self, engine: Engine) -> None:
        """Construct the components bound to ``engine`` (memoized)."""
        if self.safety_checker is None:
            self.safety_checker = SafetyChecker(engine, context=self.context)

        if self.migrator is None:
            source = FileMigrationSource(self.config.migrations_dir)
            if self._lock_factory is not None:
                lock = self._lock_factory(engine)
            else:
                lock = advisory_lock_for(engine, self.config.database.name)
            self.migrator = Migrator(engine, source, lock, context=self.context)

        if self.admin_creator is None:
            self.admin_creator = AdminCreator(
                engine,
                self._hasher,
                context=self.context,
                environ={ENV_ADMIN_PASSWORD: self.config.admin_password},
            )

    # =========================================================
    # STEPS
    # =========================================================

    def _validate_environment(self) -> Dict[str, Any]:
        validate_environment(self.config)
        return {
            "database": self.config.database.describe(),
            "sslmode": self.config.database.sslmode,
            "log_format": self.config.log.format,
            "migrations_dir": str(self.config.migrations_dir),
        }

    def _validate_and_prepare(self) -> Dict[str, Any]:
        details = self._validate_environment()

        self._engine = self._engine_factory(self.config.database, context=self.context)
        self._build_components(self._engine)

        details["components_constructed"] = True
        details["migration_files"] = self.migrator.source.versions()
        return details

    def _connect_database(self) -> Dict[str, Any]:
        self._engine = self._engine_factory(self.config.database, context=self.context)
        connect_database(self._engine)
        self._build_components(self._engine)
        return {
            "host": self.config.database.host,
            "database": self.config.database.name,
        }

    def _check_health(self) -> Dict[str, Any]:
        prober = HealthProber(self._engine, context=self.context)
        return prober.check().to_dict()

    def _check_safety(self) -> Dict[str, Any]:
        data = self.safety_checker.validate()
        return data.to_dict()

    def _run_migrations(self) -> Dict[str, Any]:
        result = self.migrator.apply_forward()
        self.summary.migrations_applied = result.applied
        return result.to_dict()

    def _create_admin(self) -> Dict[str, Any]:
        admin = self.admin_creator.create_from_env()
        self.summary.admin_created = True
        return {
            "username": admin.username,
            "email": admin.email,
            "role": admin.role,
            "user_id": admin.id,
        }


def run_initialization(
    config: BootstrapConfig,
    dry_run: bool = False,
    context: Optional[CorrelationContext] = None,
) -> InitializationSummary:
    """Convenience wrapper: build an InitService and run it once."""
    service = InitService(config, context=context)
    return service.run(dry_run=dry_run)


__all__ = [
    "RUN_STEP",
    "InitService",
    "STEP_ERROR_KINDS",
    "run_initialization",
]
