"""
Tests for Configuration Loading and Validation.

============================================================
PURPOSE
============================================================
Covers:
1. Defaults for optional variables
2. One-pass reporting of missing and invalid values
3. Placeholder secret and admin password length policies

============================================================
"""

from pathlib import Path

import pytest

from core.config import (
    DEFAULT_MIGRATIONS_DIR,
    collect_problems,
    load_config,
    validate_environment,
)
from core.exceptions import ErrorKind, InitError


# ============================================================
# LOADING
# ============================================================

class TestLoadConfig:
    """Tests for building BootstrapConfig from a mapping."""

    def test_defaults(self):
        config = load_config(environ={})

        assert config.database.port == "5432"
        assert config.database.sslmode == "disable"
        assert config.log.level == "info"
        assert config.log.format == "json"
        assert config.migrations_dir == DEFAULT_MIGRATIONS_DIR

    def test_empty_values_fall_back_to_defaults(self):
        config = load_config(environ={"DB_PORT": "", "LOG_FORMAT": ""})
        assert config.database.port == "5432"
        assert config.log.format == "json"

    def test_values_are_read(self, valid_env):
        config = load_config(environ={**valid_env, "LOG_LEVEL": "DEBUG", "LOG_FORMAT": "Text"})

        assert config.database.host == "localhost"
        assert config.database.describe() == "localhost:5432/t"
        assert config.jwt_secret == "s"
        assert config.admin_password == "secure-admin-pass-1"
        assert config.log.level == "debug"
        assert config.log.format == "text"
        assert config.migrations_dir == Path(valid_env["MIGRATIONS_DIR"])

    def test_explicit_migrations_dir_wins(self, valid_env, tmp_path):
        config = load_config(environ=valid_env, migrations_dir=str(tmp_path))
        assert config.migrations_dir == tmp_path

    def test_config_is_immutable(self, config):
        with pytest.raises(AttributeError):
            config.jwt_secret = "other"


# ============================================================
# VALIDATION
# ============================================================

class TestValidateEnvironment:
    """Tests for the single validation pass."""

    def test_valid_environment_passes(self, config):
        validate_environment(config)

    def test_all_missing_reported_at_once(self):
        config = load_config(environ={})

        with pytest.raises(InitError) as exc_info:
            validate_environment(config)

        error = exc_info.value
        assert error.kind == ErrorKind.CONFIG
        assert error.exit_code == 1
        assert error.context["missing"] == [
            "DB_HOST",
            "DB_USER",
            "DB_NAME",
            "JWT_SECRET",
            "DEFAULT_ADMIN_PASSWORD",
        ]
        assert "missing required environment variables" in error.message

    def test_missing_admin_password(self, valid_env):
        env = dict(valid_env)
        del env["DEFAULT_ADMIN_PASSWORD"]

        with pytest.raises(InitError) as exc_info:
            validate_environment(load_config(environ=env))

        assert exc_info.value.kind == ErrorKind.CONFIG
        assert "DEFAULT_ADMIN_PASSWORD" in exc_info.value.message

    def test_weak_admin_password(self, valid_env):
        env = {**valid_env, "DEFAULT_ADMIN_PASSWORD": "weak"}

        with pytest.raises(InitError) as exc_info:
            validate_environment(load_config(environ=env))

        assert exc_info.value.kind == ErrorKind.CONFIG
        assert "at least 8 characters" in exc_info.value.message

    @pytest.mark.parametrize("password", [
        "x" * 73,
        "é" * 37,
    ])
    def test_admin_password_over_bcrypt_limit(self, valid_env, password):
        env = {**valid_env, "DEFAULT_ADMIN_PASSWORD": password}

        with pytest.raises(InitError) as exc_info:
            validate_environment(load_config(environ=env))

        assert exc_info.value.kind == ErrorKind.CONFIG
        assert exc_info.value.context["invalid"] == [
            "DEFAULT_ADMIN_PASSWORD (must be at most 72 bytes)"
        ]

    def test_admin_password_at_bcrypt_limit(self, valid_env):
        validate_environment(load_config(environ={**valid_env, "DEFAULT_ADMIN_PASSWORD": "x" * 72}))

    def test_placeholder_jwt_secret(self, valid_env):
        env = {**valid_env, "JWT_SECRET": "your-secret-key"}

        missing, invalid = collect_problems(load_config(environ=env))

        assert missing == []
        assert len(invalid) == 1
        assert invalid[0].startswith("JWT_SECRET")

    def test_missing_and_invalid_described_together(self, valid_env):
        env = {**valid_env, "DEFAULT_ADMIN_PASSWORD": "short"}
        del env["DB_HOST"]

        with pytest.raises(InitError) as exc_info:
            validate_environment(load_config(environ=env))

        message = exc_info.value.message
        assert "missing required environment variables: [DB_HOST]" in message
        assert "invalid environment variables" in message
        assert exc_info.value.context["invalid"] == [
            "DEFAULT_ADMIN_PASSWORD (must be at least 8 characters)"
        ]

    @pytest.mark.parametrize("key,value", [
        ("DB_PORT", "not-a-port"),
        ("DB_PORT", "70000"),
        ("DB_SSLMODE", "sometimes"),
        ("LOG_FORMAT", "xml"),
        ("LOG_LEVEL", "loud"),
    ])
    def test_invalid_optional_values(self, valid_env, key, value):
        missing, invalid = collect_problems(load_config(environ={**valid_env, key: value}))

        assert missing == []
        assert [item.split(" ")[0] for item in invalid] == [key]

    def test_db_password_not_enforced(self, valid_env):
        env = dict(valid_env)
        del env["DB_PASSWORD"]

        validate_environment(load_config(environ=env))
