"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the single error record used by the initializer.

- One exception class, tagged with an ErrorKind
- Each kind fixes severity, recoverability and exit code
- Classifies opaque third-party errors by message content
- Collects errors for the final run report

============================================================
ERROR KINDS
============================================================
CONFIG     -> exit 1  (recoverable)
DATABASE   -> exit 2  (recoverable)
SAFETY     -> exit 3  (NOT recoverable, operator must clear data)
MIGRATION  -> exit 4  (recoverable)
CREATION   -> exit 5  (recoverable)
SYSTEM     -> exit 10 (NOT recoverable)

============================================================
"""

import json
from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import (
    EXIT_CONFIG_ERROR,
    EXIT_DATABASE_ERROR,
    EXIT_MIGRATION_ERROR,
    EXIT_SAFETY_ERROR,
    EXIT_SUCCESS,
    EXIT_SYSTEM_ERROR,
    EXIT_USER_CREATION_ERROR,
)


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordering used to pick the most severe error."""
        return {
            Severity.LOW: 1,
            Severity.MEDIUM: 2,
            Severity.HIGH: 3,
            Severity.CRITICAL: 4,
        }[self]


# ============================================================
# ERROR KINDS
# ============================================================

class ErrorKind(Enum):
    """
    Closed set of initialization failure kinds.

    The value tuple is (name, exit_code, recoverable).
    """

    CONFIG = ("configuration", EXIT_CONFIG_ERROR, True)
    DATABASE = ("database", EXIT_DATABASE_ERROR, True)
    SAFETY = ("safety", EXIT_SAFETY_ERROR, False)
    MIGRATION = ("migration", EXIT_MIGRATION_ERROR, True)
    CREATION = ("creation", EXIT_USER_CREATION_ERROR, True)
    SYSTEM = ("system", EXIT_SYSTEM_ERROR, False)

    def __init__(self, label: str, exit_code: int, recoverable: bool):
        self.label = label
        self.exit_code = exit_code
        self.recoverable = recoverable

    @property
    def severity(self) -> Severity:
        """Every initialization failure aborts the run."""
        return Severity.CRITICAL


# Substring table for opaque errors, checked in order.
_CLASSIFIER_RULES = (
    (ErrorKind.CONFIG, ("configuration", "environment", "missing", "invalid", "config")),
    (ErrorKind.DATABASE, ("database", "connection", "postgres", "sql", "db")),
    (ErrorKind.SAFETY, ("safety", "not empty", "existing data", "non-empty")),
    (ErrorKind.MIGRATION, ("migration", "schema", "migrate")),
    (ErrorKind.CREATION, ("user", "admin", "password", "creation", "hash")),
)

_DEFAULT_MESSAGES = {
    ErrorKind.CONFIG: "Configuration error",
    ErrorKind.DATABASE: "Database error",
    ErrorKind.SAFETY: "Safety check failed",
    ErrorKind.MIGRATION: "Migration error",
    ErrorKind.CREATION: "User creation error",
    ErrorKind.SYSTEM: "System error",
}


# ============================================================
# ERROR RECORD
# ============================================================

class InitError(Exception):
    """
    Error record for every initializer failure.

    Carries:
    - kind: taxonomy tag, fixes exit code and recoverability
    - severity: for alerting
    - context: structured data for debugging
    - correlation_id / step: which run and which stage failed
    - cause: the underlying error this wraps
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        step: Optional[str] = None,
    ):
        super().__init__(message)

        self.kind = kind
        self.message = message
        self.cause = cause
        self.context: Dict[str, Any] = dict(context or {})
        self.correlation_id = correlation_id
        self.step = step
        self.timestamp = datetime.now(timezone.utc)

        if cause is not None:
            self.__cause__ = cause

    @property
    def severity(self) -> Severity:
        return self.kind.severity

    @property
    def recoverable(self) -> bool:
        return self.kind.recoverable

    @property
    def exit_code(self) -> int:
        return self.kind.exit_code

    def __str__(self) -> str:
        parts = [f"[{self.kind.label}:{self.severity.value}]"]
        if self.step:
            parts.append(f"Step '{self.step}':")
        parts.append(self.message)
        if self.cause is not None:
            parts.append(f"(caused by: {self.cause})")
        return " ".join(parts)

    def with_context(self, key: str, value: Any) -> "InitError":
        """Attach one context entry and return self for chaining."""
        self.context[key] = value
        return self

    def cause_chain(self) -> List[str]:
        """Messages of the wrapped errors, outermost first."""
        chain = []
        current: Optional[BaseException] = self.cause
        seen = set()
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            chain.append(f"{type(current).__name__}: {current}")
            current = current.__cause__ or current.__context__
        return chain

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging/storage."""
        return {
            "type": self.kind.label,
            "severity": self.severity.value,
            "message": self.message,
            "cause": str(self.cause) if self.cause is not None else None,
            "cause_chain": self.cause_chain(),
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "correlation_id": self.correlation_id,
            "step": self.step,
            "recoverable": self.recoverable,
            "exit_code": self.exit_code,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


# ============================================================
# CONSTRUCTORS
# ============================================================

def config_error(message: str, cause: Optional[BaseException] = None, **context: Any) -> InitError:
    return InitError(ErrorKind.CONFIG, message, cause=cause, context=context)


def database_error(message: str, cause: Optional[BaseException] = None, **context: Any) -> InitError:
    return InitError(ErrorKind.DATABASE, message, cause=cause, context=context)


def safety_error(message: str, cause: Optional[BaseException] = None, **context: Any) -> InitError:
    return InitError(ErrorKind.SAFETY, message, cause=cause, context=context)


def migration_error(message: str, cause: Optional[BaseException] = None, **context: Any) -> InitError:
    return InitError(ErrorKind.MIGRATION, message, cause=cause, context=context)


def creation_error(message: str, cause: Optional[BaseException] = None, **context: Any) -> InitError:
    return InitError(ErrorKind.CREATION, message, cause=cause, context=context)


def system_error(message: str, cause: Optional[BaseException] = None, **context: Any) -> InitError:
    return InitError(ErrorKind.SYSTEM, message, cause=cause, context=context)


# ============================================================
# CLASSIFICATION
# ============================================================

def classify_error(error: BaseException) -> ErrorKind:
    """
    Infer the kind of an opaque error from its message.

    Lossy by nature; only used for errors that did not come
    out of this package as an InitError.
    """
    if isinstance(error, InitError):
        return error.kind

    text = str(error).lower()
    for kind, needles in _CLASSIFIER_RULES:
        if any(needle in text for needle in needles):
            return kind
    return ErrorKind.SYSTEM


def wrap_error(
    error: BaseException,
    correlation_id: Optional[str] = None,
    step: Optional[str] = None,
    kind: Optional[ErrorKind] = None,
    context: Optional[Dict[str, Any]] = None,
) -> InitError:
    """
    Turn any exception into an InitError and enrich it.

    An existing InitError keeps its kind and is enriched in place.
    For other errors, ``kind`` wins over the message classifier.
    """
    if isinstance(error, InitError):
        wrapped = error
    else:
        resolved = kind or classify_error(error)
        wrapped = InitError(resolved, _DEFAULT_MESSAGES[resolved], cause=error)

    if correlation_id:
        wrapped.correlation_id = correlation_id
        wrapped.context["correlation_id"] = correlation_id
    if step:
        wrapped.step = step
        wrapped.context["step"] = step
    for key, value in (context or {}).items():
        wrapped.context[key] = value

    return wrapped


def determine_exit_code(error: Optional[BaseException]) -> int:
    """Exit code for the process given the error that ended it."""
    if error is None:
        return EXIT_SUCCESS
    return classify_error(error).exit_code


# ============================================================
# ERROR REPORTER
# ============================================================

class ErrorReporter:
    """Collects the error records of one run."""

    def __init__(self, correlation_id: str):
        self.correlation_id = correlation_id
        self._errors: List[InitError] = []

    def report(self, error: InitError) -> None:
        error.correlation_id = self.correlation_id
        self._errors.append(error)

    @property
    def errors(self) -> List[InitError]:
        return list(self._errors)

    @property
    def has_errors(self) -> bool:
        return bool(self._errors)

    def most_severe(self) -> Optional[InitError]:
        """First error of the highest severity seen."""
        if not self._errors:
            return None
        best = self._errors[0]
        for error in self._errors[1:]:
            if error.severity.rank > best.severity.rank:
                best = error
        return best

    def generate_report(self) -> Dict[str, Any]:
        report: Dict[str, Any] = {
            "correlation_id": self.correlation_id,
            "error_count": len(self._errors),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if self._errors:
            by_kind: Dict[str, List[Dict[str, Any]]] = {}
            for error in self._errors:
                by_kind.setdefault(error.kind.label, []).append(error.to_dict())
            report["most_severe"] = self.most_severe().to_dict()
            report["errors_by_type"] = by_kind
        return report
