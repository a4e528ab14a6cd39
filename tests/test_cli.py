"""
Tests for the Command-Line Interface.

============================================================
PURPOSE
============================================================
Covers:
1. --help and --show-steps
2. Exit codes for configuration failures
3. Remediation checklist on stderr
4. Dry run end to end through main()
5. Log records on stderr, operator text on stdout

============================================================
"""

import json
import logging

import pytest

from bootstrap.cli import create_parser, main, print_failure
from core.exceptions import safety_error


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() installs its own handler; remove it after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


# ============================================================
# PARSER
# ============================================================

class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = create_parser().parse_args([])

        assert not args.dry_run
        assert not args.verbose
        assert not args.show_steps
        assert args.migrations_dir is None

    def test_help_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])

        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "--dry-run" in out
        assert "Exit codes" in out

    def test_show_steps(self, capsys):
        assert main(["--show-steps"], environ={}) == 0

        out = capsys.readouterr().out
        assert "environment_validation" in out
        assert "admin_user_creation" in out


# ============================================================
# EXIT CODES
# ============================================================

class TestMain:
    """Tests for main() outcomes."""

    def test_missing_environment_exits_1(self, capsys):
        code = main([], environ={})

        assert code == 1
        err = capsys.readouterr().err
        assert "Initialization failed [configuration] (exit 1)" in err
        assert "Suggested actions:" in err
        assert "--dry-run" in err

    def test_dry_run_exits_0(self, valid_env, capsys):
        code = main(["--dry-run"], environ=valid_env)

        assert code == 0
        assert "Dry run completed successfully" in capsys.readouterr().out

    def test_migrations_dir_flag(self, valid_env, tmp_path, capsys):
        code = main(["--dry-run", "--migrations-dir", str(tmp_path / "absent")], environ=valid_env)

        assert code == 4
        assert "migrations directory not found" in capsys.readouterr().err

    def test_text_log_format(self, valid_env, capsys):
        code = main(["--dry-run"], environ={**valid_env, "LOG_FORMAT": "text"})

        assert code == 0
        assert " | INFO     | " in capsys.readouterr().err

    def test_logs_on_stderr_only(self, valid_env, capsys):
        code = main(["--dry-run"], environ=valid_env)

        assert code == 0
        captured = capsys.readouterr()
        assert not [line for line in captured.out.splitlines() if line.startswith("{")]

        records = [json.loads(line) for line in captured.err.splitlines() if line.startswith("{")]
        assert records
        assert len({r["correlation_id"] for r in records}) == 1
        assert all(r.get("step") for r in records)


# ============================================================
# FAILURE OUTPUT
# ============================================================

class TestPrintFailure:
    """Tests for the stderr summary."""

    def test_non_recoverable_has_no_checklist(self, capsys):
        print_failure(safety_error("database safety check failed:\nDatabase contains existing data"))

        err = capsys.readouterr().err
        assert err.splitlines() == [
            "Initialization failed [safety] (exit 3): database safety check failed:"
        ]
