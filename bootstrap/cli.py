"""
Bootstrap - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the database initializer.

- Provides argparse-based CLI
- Loads configuration from the environment (and .env)
- Maps the outcome to a contractual exit code
- Prints a remediation checklist for recoverable failures

============================================================
USAGE
============================================================
python -m bootstrap.cli
python -m bootstrap.cli --dry-run
python -m bootstrap.cli --verbose --migrations-dir ./migrations

============================================================
"""

import argparse
import sys
from typing import List, Mapping, Optional

from core.config import BootstrapConfig, load_config
from core.constants import (
    EXIT_SUCCESS,
    EXIT_SYSTEM_ERROR,
    VALID_LOG_FORMATS,
)
from core.context import CorrelationContext
from core.exceptions import ErrorKind, InitError, wrap_error
from core.structured_logging import configure_logging

from .models import NEXT_STEPS, InitializationSummary, InitStep
from .service import InitService


# Checklists printed for recoverable failures.
REMEDIATION = {
    ErrorKind.CONFIG: (
        "Check your environment variables",
        "Verify configuration values",
        "Try running with --dry-run to validate configuration",
    ),
    ErrorKind.DATABASE: (
        "Verify the database server is running and reachable",
        "Check DB_HOST, DB_PORT, DB_USER and DB_PASSWORD",
        "Check DB_SSLMODE against the server's TLS settings",
    ),
    ErrorKind.MIGRATION: (
        "Inspect the schema_migrations table for a dirty version",
        "Fix the failing migration file, then clear the dirty flag manually",
        "Check the migrations directory for unexpected files",
    ),
    ErrorKind.CREATION: (
        "Verify DEFAULT_ADMIN_PASSWORD is at least 8 characters",
        "Check whether an admin user already exists",
        "Check the database user's permissions on the users table",
    ),
}


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="requirements-init",
        description="Initialize a fresh database for the requirements service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Required environment variables:
  DB_HOST, DB_USER, DB_PASSWORD, DB_NAME, JWT_SECRET, DEFAULT_ADMIN_PASSWORD

Optional environment variables:
  DB_PORT (default 5432), DB_SSLMODE (default disable),
  LOG_LEVEL (default info), LOG_FORMAT (json|text, default json),
  MIGRATIONS_DIR (default ./migrations)

Exit codes:
  0   success
  1   configuration error
  2   database connection / health error
  3   safety error (database not empty)
  4   migration error
  5   administrator creation error
  10  system error

Examples:
  %(prog)s --dry-run            # Validate configuration only
  %(prog)s --verbose            # Initialize with debug logging
        """
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and build components without database changes",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--migrations-dir",
        type=str,
        metavar="PATH",
        help="Directory containing migration files (overrides MIGRATIONS_DIR)",
    )

    parser.add_argument(
        "--show-steps",
        action="store_true",
        help="Show initialization steps and exit",
    )

    return parser


# ============================================================
# OUTPUT
# ============================================================

def show_steps() -> None:
    """Print the initialization steps."""
    print("\nInitialization steps")
    print("=" * 60)

    for stage in InitStep.get_ordered_steps():
        print(f"  [{stage.order:02d}] {stage.step_id:25s} - {stage.description}")

    print()


def print_banner(config: BootstrapConfig, dry_run: bool) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print("  REQUIREMENTS SERVICE")
    print("  Database Initializer")
    print("=" * 60)
    print(f"  Database:   {config.database.describe()}")
    print(f"  SSL Mode:   {config.database.sslmode}")
    print(f"  Migrations: {config.migrations_dir}")
    print(f"  Dry Run:    {dry_run}")
    print("=" * 60)
    print()


def print_success(summary: InitializationSummary) -> None:
    if summary.dry_run:
        print("Dry run completed successfully. Configuration is valid.")
        return

    print("Database initialization completed successfully.")
    print(f"  Migrations applied: {summary.migrations_applied}")
    print(f"  Admin created:      {summary.admin_created}")
    print(f"  Total duration:     {summary.duration_seconds:.3f}s")
    print()
    print("Next steps:")
    for i, message in enumerate(NEXT_STEPS, 1):
        print(f"  {i}. {message}")


def print_failure(error: InitError) -> None:
    """One summary line on stderr, plus a checklist when recoverable."""
    headline = error.message.splitlines()[0] if error.message else error.kind.label
    print(
        f"Initialization failed [{error.kind.label}] (exit {error.exit_code}): {headline}",
        file=sys.stderr,
    )

    checklist = REMEDIATION.get(error.kind)
    if error.recoverable and checklist:
        print("Suggested actions:", file=sys.stderr)
        for item in checklist:
            print(f"  - {item}", file=sys.stderr)


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None, environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])
        environ: Environment mapping (default: os.environ plus .env)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.show_steps:
        show_steps()
        return EXIT_SUCCESS

    context = CorrelationContext()
    log = context.logger(__name__, "cli")

    config = load_config(environ=environ, migrations_dir=args.migrations_dir)
    log_format = config.log.format if config.log.format in VALID_LOG_FORMATS else "json"
    configure_logging(level=config.log.level, fmt=log_format, verbose=args.verbose)

    print_banner(config, args.dry_run)

    try:
        service = InitService(config, context=context)
        summary = service.run(dry_run=args.dry_run)
    except InitError as e:
        print_failure(e)
        return e.exit_code
    except KeyboardInterrupt:
        log.error("Interrupted by user", fields={"action": "interrupted"})
        print("Initialization interrupted.", file=sys.stderr)
        return EXIT_SYSTEM_ERROR
    except Exception as e:
        error = wrap_error(e, correlation_id=context.correlation_id)
        log.error(
            f"Fatal error: {e}",
            exc_info=True,
            fields={"action": "fatal_error", "error": str(e)},
        )
        print_failure(error)
        return error.exit_code

    print_success(summary)
    return EXIT_SUCCESS


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
