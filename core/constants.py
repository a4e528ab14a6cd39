"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all initializer-wide constants.

- Exit codes (contractual, supervisors depend on them)
- Tracked application tables
- Administrator identity
- Environment variable names and defaults

============================================================
"""

# ============================================================
# EXIT CODES
# ============================================================

EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_DATABASE_ERROR = 2
EXIT_SAFETY_ERROR = 3
EXIT_MIGRATION_ERROR = 4
EXIT_USER_CREATION_ERROR = 5
EXIT_SYSTEM_ERROR = 10

# ============================================================
# SAFETY CHECK
# ============================================================

# Counted in this order so logs are stable across runs.
TRACKED_TABLES = (
    "users",
    "epics",
    "user_stories",
    "requirements",
    "acceptance_criteria",
    "comments",
)

# ============================================================
# ADMINISTRATOR IDENTITY
# ============================================================

ADMIN_USERNAME = "admin"
ADMIN_EMAIL = "admin@localhost"
MIN_ADMIN_PASSWORD_LENGTH = 8
# bcrypt only hashes the first 72 bytes and rejects longer input.
MAX_ADMIN_PASSWORD_BYTES = 72

# ============================================================
# ENVIRONMENT
# ============================================================

ENV_DB_HOST = "DB_HOST"
ENV_DB_PORT = "DB_PORT"
ENV_DB_USER = "DB_USER"
ENV_DB_PASSWORD = "DB_PASSWORD"
ENV_DB_NAME = "DB_NAME"
ENV_DB_SSLMODE = "DB_SSLMODE"
ENV_JWT_SECRET = "JWT_SECRET"
ENV_ADMIN_PASSWORD = "DEFAULT_ADMIN_PASSWORD"
ENV_LOG_LEVEL = "LOG_LEVEL"
ENV_LOG_FORMAT = "LOG_FORMAT"
ENV_MIGRATIONS_DIR = "MIGRATIONS_DIR"

DEFAULT_DB_PORT = "5432"
DEFAULT_DB_SSLMODE = "disable"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_LOG_FORMAT = "json"

# Shipped in sample configs; never acceptable as a real signing secret.
PLACEHOLDER_JWT_SECRET = "your-secret-key"

VALID_SSLMODES = ("disable", "allow", "prefer", "require", "verify-ca", "verify-full")
VALID_LOG_FORMATS = ("json", "text")
VALID_LOG_LEVELS = ("debug", "info", "warn", "warning", "error", "critical")

# ============================================================
# DATABASE
# ============================================================

HEALTH_CHECK_TIMEOUT_SECONDS = 10
CONNECT_TIMEOUT_SECONDS = 10
MIGRATIONS_TABLE = "schema_migrations"
