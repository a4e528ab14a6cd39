"""
Bootstrap - Safety Checker.

============================================================
RESPONSIBILITY
============================================================
Guarantees the initializer never mutates a populated database.

- Counts rows in every tracked application table
- A missing table counts as empty (fresh database)
- Any other query error is a DATABASE failure
- A populated database is a SAFETY failure (not recoverable)

============================================================
"""

from typing import Iterable, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.constants import TRACKED_TABLES
from core.context import ContextLogger, CorrelationContext
from core.exceptions import database_error, safety_error
from database.errors import is_table_not_found_error

from .models import DataSummary

EMPTY_REPORT = "Database is empty and safe for initialization"
REFUSAL_SENTENCE = "Initialization cannot proceed on a non-empty database to prevent data corruption."


class SafetyChecker:
    """Checks that the tracked tables hold no rows."""

    def __init__(
        self,
        engine: Engine,
        context: Optional[CorrelationContext] = None,
        tables: Iterable[str] = TRACKED_TABLES,
    ):
        self._engine = engine
        self._tables = tuple(tables)
        self._log: ContextLogger = (context or CorrelationContext()).logger(__name__, "safety_checker")

    def count_rows(self, table: str) -> int:
        """
        COUNT(*) of one table, 0 if the table does not exist.

        Each count runs on its own connection so a failed statement
        cannot abort the transaction used for the next table.

        Raises:
            InitError (DATABASE) for any other query error
        """
        try:
            with self._engine.connect() as conn:
                return int(conn.execute(text(f"SELECT COUNT(*) FROM {table}")).scalar() or 0)
        except SQLAlchemyError as e:
            if is_table_not_found_error(e):
                self._log.debug(
                    f"Table {table} does not exist, treating as empty",
                    fields={"action": "table_missing", "table": table},
                )
                return 0
            raise database_error(f"failed to check table {table}: {e}", cause=e, table=table) from e

    def summary(self) -> DataSummary:
        """Row counts for every tracked table."""
        data = DataSummary()
        for table in self._tables:
            data.counts[table] = self.count_rows(table)

        self._log.debug(
            "Collected data summary",
            fields={"action": "data_summary", **data.to_dict()},
        )
        return data

    def is_empty(self) -> bool:
        return self.summary().is_empty

    @staticmethod
    def format_report(data: DataSummary) -> str:
        if data.is_empty:
            return EMPTY_REPORT

        lines = ["Database contains existing data in the following tables:"]
        for table in data.non_empty_tables:
            lines.append(f"  - {table}: {data.count(table)} records")
        lines.append("")
        lines.append(REFUSAL_SENTENCE)
        return "\n".join(lines)

    def report(self) -> str:
        """Human-readable emptiness report."""
        return self.format_report(self.summary())

    def validate(self) -> DataSummary:
        """
        Fail unless every tracked table is empty.

        Returns:
            The data summary (all zero)

        Raises:
            InitError (SAFETY) embedding the full report
            InitError (DATABASE) if a count fails
        """
        data = self.summary()
        if data.is_empty:
            return data

        report = self.format_report(data)
        self._log.error(
            "Database safety check failed - database contains existing data",
            fields={"action": "safety_failed", "non_empty_tables": data.non_empty_tables},
        )
        raise safety_error(
            f"database safety check failed:\n{report}",
            non_empty_tables=data.non_empty_tables,
            counts=dict(data.counts),
        )
