"""
Tests for the Safety Checker.

============================================================
PURPOSE
============================================================
Covers:
1. Missing tables count as empty
2. Populated tables are reported in fixed order
3. "Table does not exist" by SQLSTATE and by message
4. Other query errors surface as DATABASE errors
5. Caller-supplied table lists

============================================================
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, ProgrammingError

from bootstrap.safety import EMPTY_REPORT, REFUSAL_SENTENCE, SafetyChecker
from core.exceptions import ErrorKind, InitError
from database.errors import is_table_not_found_error, sqlstate_of
from tests.support import TEST_MIGRATIONS


class FakeDriverError(Exception):
    """Driver exception carrying a SQLSTATE like psycopg2's."""

    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


def failing_engine(error):
    """Engine double whose every query raises ``error``."""
    engine = MagicMock()
    engine.connect.return_value.__enter__.return_value.execute.side_effect = error
    return engine


def insert_user(engine, username="someone"):
    with engine.begin() as conn:
        conn.execute(
            text(
                "INSERT INTO users (id, username, email, password_hash, role, created_at, updated_at) "
                "VALUES (:id, :username, :email, 'x', 'User', '2024-01-01', '2024-01-01')"
            ),
            {"id": username, "username": username, "email": f"{username}@example.com"},
        )


# ============================================================
# TABLE-NOT-FOUND DETECTION
# ============================================================

class TestTableNotFound:
    """Tests for is_table_not_found_error()."""

    def test_sqlstate_42p01(self):
        error = ProgrammingError("SELECT 1", {}, FakeDriverError("boom", pgcode="42P01"))

        assert sqlstate_of(error) == "42P01"
        assert is_table_not_found_error(error)

    def test_other_sqlstate_is_not_table_missing(self):
        error = ProgrammingError(
            "SELECT 1", {}, FakeDriverError('relation "users" does not exist', pgcode="42501")
        )
        assert not is_table_not_found_error(error)

    @pytest.mark.parametrize("message", [
        'relation "users" does not exist',
        "no such table: epics",
        "UNDEFINED_TABLE",
    ])
    def test_message_fallback(self, message):
        assert is_table_not_found_error(RuntimeError(message))

    def test_unrelated_error(self):
        assert not is_table_not_found_error(RuntimeError("connection reset"))
        assert not is_table_not_found_error(None)


# ============================================================
# EMPTY DATABASE
# ============================================================

class TestEmptyDatabase:
    """Tests on a database without application data."""

    def test_missing_tables_count_as_empty(self, engine, context):
        checker = SafetyChecker(engine, context=context)

        summary = checker.summary()

        assert summary.is_empty
        assert summary.counts == {
            "users": 0,
            "epics": 0,
            "user_stories": 0,
            "requirements": 0,
            "acceptance_criteria": 0,
            "comments": 0,
        }
        assert checker.is_empty()
        assert checker.report() == EMPTY_REPORT

    def test_existing_empty_table(self, engine, create_users_table):
        create_users_table()

        assert SafetyChecker(engine).validate().is_empty

    def test_missing_table_via_sqlstate(self, context):
        engine = failing_engine(ProgrammingError("SELECT", {}, FakeDriverError("x", pgcode="42P01")))

        assert SafetyChecker(engine, context=context).is_empty()


# ============================================================
# POPULATED DATABASE
# ============================================================

class TestPopulatedDatabase:
    """Tests on a database that already holds data."""

    def test_single_row_refused(self, engine, create_users_table):
        create_users_table()
        insert_user(engine)
        checker = SafetyChecker(engine)

        assert not checker.is_empty()

        with pytest.raises(InitError) as exc_info:
            checker.validate()

        error = exc_info.value
        assert error.kind == ErrorKind.SAFETY
        assert error.exit_code == 3
        assert not error.recoverable
        assert "users: 1 records" in error.message
        assert REFUSAL_SENTENCE in error.message
        assert error.context["non_empty_tables"] == ["users"]

    def test_report_lists_tables_in_fixed_order(self, engine, create_users_table):
        with engine.begin() as conn:
            conn.execute(text(TEST_MIGRATIONS["000003_create_comments.up.sql"]))
            conn.execute(text("INSERT INTO comments (id, content) VALUES ('c1', 'a')"))
            conn.execute(text("INSERT INTO comments (id, content) VALUES ('c2', 'b')"))
        create_users_table()
        insert_user(engine)

        checker = SafetyChecker(engine)
        summary = checker.summary()

        assert summary.non_empty_tables == ["users", "comments"]
        assert checker.report().splitlines() == [
            "Database contains existing data in the following tables:",
            "  - users: 1 records",
            "  - comments: 2 records",
            "",
            REFUSAL_SENTENCE,
        ]


# ============================================================
# QUERY ERRORS
# ============================================================

class TestQueryErrors:
    """Tests for errors that are not a missing table."""

    def test_query_error_is_database_kind(self):
        engine = failing_engine(OperationalError("SELECT", {}, FakeDriverError("disk I/O error")))

        with pytest.raises(InitError) as exc_info:
            SafetyChecker(engine).validate()

        assert exc_info.value.kind == ErrorKind.DATABASE
        assert exc_info.value.context["table"] == "users"


# ============================================================
# CUSTOM TABLE LIST
# ============================================================

class TestCustomTables:
    """The checker guards exactly the tables it was given."""

    def test_populated_custom_table_refused(self, engine):
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE widgets (id INTEGER PRIMARY KEY)"))
            conn.execute(text("INSERT INTO widgets (id) VALUES (1)"))
        checker = SafetyChecker(engine, tables=("widgets",))

        summary = checker.summary()

        assert summary.counts == {"widgets": 1}
        assert summary.non_empty_tables == ["widgets"]
        assert not checker.is_empty()
        with pytest.raises(InitError) as exc_info:
            checker.validate()
        assert exc_info.value.kind == ErrorKind.SAFETY
        assert "  - widgets: 1 records" in exc_info.value.message

    def test_report_follows_checker_order(self, engine, create_users_table):
        with engine.begin() as conn:
            conn.execute(text("CREATE TABLE widgets (id INTEGER PRIMARY KEY)"))
            conn.execute(text("INSERT INTO widgets (id) VALUES (1)"))
        create_users_table()
        insert_user(engine)

        checker = SafetyChecker(engine, tables=("widgets", "users"))

        assert checker.summary().non_empty_tables == ["widgets", "users"]
