"""
Core Module Package.

This package contains the infrastructure every initializer
component depends on.

Components:
- constants: Exit codes, tracked tables, environment names
- exceptions: InitError and the error taxonomy
- config: Environment loading and validation
- context: Correlation context and context-aware logger
- structured_logging: JSON/text log formatting
"""

from .constants import TRACKED_TABLES
from .context import ContextLogger, CorrelationContext, new_correlation_id
from .exceptions import (
    ErrorKind,
    ErrorReporter,
    InitError,
    Severity,
    classify_error,
    determine_exit_code,
    wrap_error,
)

__all__ = [
    "TRACKED_TABLES",
    "ContextLogger",
    "CorrelationContext",
    "new_correlation_id",
    "ErrorKind",
    "ErrorReporter",
    "InitError",
    "Severity",
    "classify_error",
    "determine_exit_code",
    "wrap_error",
]
