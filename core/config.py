"""
Core Module - Configuration.

============================================================
RESPONSIBILITY
============================================================
Materializes the run configuration and validates it.

- Reads environment variables (optionally from a .env file)
- Builds an immutable BootstrapConfig
- validate_environment() is the ONLY place where presence
  and value policies are enforced

============================================================
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from .constants import (
    DEFAULT_DB_PORT,
    DEFAULT_DB_SSLMODE,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_LEVEL,
    ENV_ADMIN_PASSWORD,
    ENV_DB_HOST,
    ENV_DB_NAME,
    ENV_DB_PASSWORD,
    ENV_DB_PORT,
    ENV_DB_SSLMODE,
    ENV_DB_USER,
    ENV_JWT_SECRET,
    ENV_LOG_FORMAT,
    ENV_LOG_LEVEL,
    ENV_MIGRATIONS_DIR,
    MAX_ADMIN_PASSWORD_BYTES,
    MIN_ADMIN_PASSWORD_LENGTH,
    PLACEHOLDER_JWT_SECRET,
    VALID_LOG_FORMATS,
    VALID_LOG_LEVELS,
    VALID_SSLMODES,
)
from .exceptions import config_error


# Repository-level migrations directory, used when MIGRATIONS_DIR is unset.
DEFAULT_MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"


# ============================================================
# CONFIGURATION DATACLASSES
# ============================================================

@dataclass(frozen=True)
class DatabaseConfig:
    """Coordinates of the target PostgreSQL database."""

    host: str = ""
    port: str = DEFAULT_DB_PORT
    user: str = ""
    password: str = ""
    name: str = ""
    sslmode: str = DEFAULT_DB_SSLMODE

    @property
    def port_number(self) -> int:
        return int(self.port)

    def describe(self) -> str:
        """host:port/name, safe to log."""
        return f"{self.host}:{self.port}/{self.name}"


@dataclass(frozen=True)
class LogConfig:
    """Logging level and output format."""

    level: str = DEFAULT_LOG_LEVEL
    format: str = DEFAULT_LOG_FORMAT


@dataclass(frozen=True)
class BootstrapConfig:
    """Complete, immutable configuration for one initializer run."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    jwt_secret: str = ""
    admin_password: str = ""
    log: LogConfig = field(default_factory=LogConfig)
    migrations_dir: Path = DEFAULT_MIGRATIONS_DIR


# ============================================================
# LOADING
# ============================================================

def _get_env(environ: Mapping[str, str], key: str, fallback: str = "") -> str:
    """Environment value, falling back when unset or empty."""
    value = environ.get(key, "")
    return value if value != "" else fallback


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    migrations_dir: Optional[str] = None,
    use_dotenv: bool = True,
) -> BootstrapConfig:
    """
    Build the run configuration from the environment.

    Loading never fails: absent values stay empty and are
    reported together by validate_environment().

    Args:
        environ: Mapping to read from (default: os.environ)
        migrations_dir: Explicit migrations directory override
        use_dotenv: Load a .env file into os.environ first

    Returns:
        BootstrapConfig instance
    """
    if environ is None:
        if use_dotenv:
            load_dotenv()
        environ = os.environ

    resolved_migrations = (
        migrations_dir
        or _get_env(environ, ENV_MIGRATIONS_DIR)
        or str(DEFAULT_MIGRATIONS_DIR)
    )

    return BootstrapConfig(
        database=DatabaseConfig(
            host=_get_env(environ, ENV_DB_HOST),
            port=_get_env(environ, ENV_DB_PORT, DEFAULT_DB_PORT),
            user=_get_env(environ, ENV_DB_USER),
            password=_get_env(environ, ENV_DB_PASSWORD),
            name=_get_env(environ, ENV_DB_NAME),
            sslmode=_get_env(environ, ENV_DB_SSLMODE, DEFAULT_DB_SSLMODE),
        ),
        jwt_secret=_get_env(environ, ENV_JWT_SECRET),
        admin_password=_get_env(environ, ENV_ADMIN_PASSWORD),
        log=LogConfig(
            level=_get_env(environ, ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).lower(),
            format=_get_env(environ, ENV_LOG_FORMAT, DEFAULT_LOG_FORMAT).lower(),
        ),
        migrations_dir=Path(resolved_migrations),
    )


# ============================================================
# VALIDATION
# ============================================================

def collect_problems(config: BootstrapConfig) -> Tuple[List[str], List[str]]:
    """
    Check every policy and return (missing, invalid).

    Nothing short-circuits: all problems are gathered in one pass.
    """
    missing: List[str] = []
    invalid: List[str] = []

    db = config.database
    if not db.host:
        missing.append(ENV_DB_HOST)
    if not db.port:
        missing.append(ENV_DB_PORT)
    elif not db.port.isdigit() or not 0 < int(db.port) < 65536:
        invalid.append(f"{ENV_DB_PORT} (must be a port number between 1 and 65535)")
    if not db.user:
        missing.append(ENV_DB_USER)
    if not db.name:
        missing.append(ENV_DB_NAME)
    if db.sslmode not in VALID_SSLMODES:
        invalid.append(f"{ENV_DB_SSLMODE} (must be one of: {', '.join(VALID_SSLMODES)})")

    if not config.jwt_secret:
        missing.append(ENV_JWT_SECRET)
    elif config.jwt_secret == PLACEHOLDER_JWT_SECRET:
        invalid.append(f"{ENV_JWT_SECRET} (must not be the placeholder value)")

    if not config.admin_password:
        missing.append(ENV_ADMIN_PASSWORD)
    elif len(config.admin_password) < MIN_ADMIN_PASSWORD_LENGTH:
        invalid.append(
            f"{ENV_ADMIN_PASSWORD} (must be at least {MIN_ADMIN_PASSWORD_LENGTH} characters)"
        )
    elif len(config.admin_password.encode("utf-8")) > MAX_ADMIN_PASSWORD_BYTES:
        invalid.append(
            f"{ENV_ADMIN_PASSWORD} (must be at most {MAX_ADMIN_PASSWORD_BYTES} bytes)"
        )

    if config.log.format not in VALID_LOG_FORMATS:
        invalid.append(f"{ENV_LOG_FORMAT} (must be one of: {', '.join(VALID_LOG_FORMATS)})")
    if config.log.level not in VALID_LOG_LEVELS:
        invalid.append(f"{ENV_LOG_LEVEL} (must be one of: {', '.join(VALID_LOG_LEVELS)})")

    return missing, invalid


def validate_environment(config: BootstrapConfig) -> None:
    """
    Validate the configuration.

    Raises:
        InitError (CONFIG) carrying ``missing`` and ``invalid`` lists
        in its context; the message describes both.
    """
    missing, invalid = collect_problems(config)
    if not missing and not invalid:
        return

    parts = []
    if missing:
        parts.append(f"missing required environment variables: [{', '.join(missing)}]")
    if invalid:
        parts.append(f"invalid environment variables: [{', '.join(invalid)}]")

    raise config_error(
        "; ".join(parts),
        missing=missing,
        invalid=invalid,
    )
