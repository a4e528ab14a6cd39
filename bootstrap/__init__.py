"""
Bootstrap Package.

============================================================
ONE-SHOT DATABASE INITIALIZER
============================================================

Brings a freshly provisioned database to the minimum state the
requirements service needs to start:

- Validated configuration
- Healthy pooled connection
- Verified empty database
- Schema migrated to the latest version
- One administrator identity

============================================================
"""

from .admin import AdminCreator
from .models import (
    DataSummary,
    InitializationSummary,
    InitStep,
    StepStatus,
    StepSummary,
)
from .safety import SafetyChecker
from .service import InitService, run_initialization

__all__ = [
    "AdminCreator",
    "DataSummary",
    "InitializationSummary",
    "InitService",
    "InitStep",
    "SafetyChecker",
    "StepStatus",
    "StepSummary",
    "run_initialization",
]
