"""
Database Layer - Driver Error Inspection.

Recognizes "table does not exist" independently of the driver:
first by SQLSTATE, then by well-known message fragments.
"""

from typing import Optional

UNDEFINED_TABLE_SQLSTATE = "42P01"

TABLE_NOT_FOUND_PATTERNS = (
    "does not exist",
    "no such table",
    "undefined_table",
)


def sqlstate_of(error: BaseException) -> Optional[str]:
    """
    SQLSTATE carried by a driver error, if any.

    Looks through SQLAlchemy's DBAPIError wrapper (``.orig``) and
    understands both psycopg2 (``pgcode``) and psycopg 3 (``sqlstate``).
    """
    for candidate in (getattr(error, "orig", None), error):
        if candidate is None:
            continue
        code = getattr(candidate, "pgcode", None) or getattr(candidate, "sqlstate", None)
        if isinstance(code, str) and code:
            return code
    return None


def is_table_not_found_error(error: Optional[BaseException]) -> bool:
    """True when ``error`` means the queried table does not exist."""
    if error is None:
        return False

    code = sqlstate_of(error)
    if code is not None:
        return code == UNDEFINED_TABLE_SQLSTATE

    message = str(error).lower()
    return any(pattern in message for pattern in TABLE_NOT_FOUND_PATTERNS)
