"""
Test support: migration fixtures on disk and an advisory lock double.
"""

from pathlib import Path
from typing import Dict, List

from database.migrations import AdvisoryLock


# One statement per file: pysqlite executes a single statement at a time.
TEST_MIGRATIONS: Dict[str, str] = {
    "000001_create_users.up.sql": (
        "CREATE TABLE users ("
        "id VARCHAR(36) PRIMARY KEY, "
        "username VARCHAR(255) NOT NULL UNIQUE, "
        "email VARCHAR(255) NOT NULL UNIQUE, "
        "password_hash VARCHAR(255) NOT NULL, "
        "role VARCHAR(50) NOT NULL, "
        "created_at TIMESTAMP NOT NULL, "
        "updated_at TIMESTAMP NOT NULL)"
    ),
    "000001_create_users.down.sql": "DROP TABLE users",
    "000002_create_epics.up.sql": (
        "CREATE TABLE epics (id VARCHAR(36) PRIMARY KEY, title VARCHAR(500) NOT NULL)"
    ),
    "000002_create_epics.down.sql": "DROP TABLE epics",
    "000003_create_comments.up.sql": (
        "CREATE TABLE comments (id VARCHAR(36) PRIMARY KEY, content TEXT NOT NULL)"
    ),
    "000003_create_comments.down.sql": "DROP TABLE comments",
}


def write_migrations(directory: Path, files: Dict[str, str]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for name, body in files.items():
        (directory / name).write_text(body, encoding="utf-8")
    return directory


class RecordingLock(AdvisoryLock):
    """Advisory lock double that records calls."""

    def __init__(self):
        self.calls: List[str] = []

    def acquire(self, conn) -> None:
        self.calls.append("acquire")

    def release(self, conn) -> None:
        self.calls.append("release")
