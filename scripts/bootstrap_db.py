"""
Scripts - Bootstrap Database.

============================================================
RESPONSIBILITY
============================================================
Initializes the database for first-time setup.

- Validates the environment
- Verifies the database is empty
- Runs schema migrations
- Creates the default administrator

============================================================
USAGE
============================================================
python -m scripts.bootstrap_db

Options:
  --dry-run          Validate configuration only
  --verbose          Enable debug logging
  --migrations-dir   Override the migrations directory
  --show-steps       List the initialization steps

============================================================
"""

import sys

from bootstrap.cli import main


if __name__ == "__main__":
    sys.exit(main())
