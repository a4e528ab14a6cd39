"""
Database ORM Models.

============================================================
RESPONSIBILITY
============================================================
Maps the tables the initializer writes to.

Only ``users`` is written (the administrator identity). The
rest of the schema is owned by the SQL migrations and is
read through plain COUNT queries by the safety checker.

============================================================
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String

from .engine import Base


# =============================================================
# HELPER FUNCTIONS
# =============================================================

def generate_uuid() -> str:
    """Generate a new UUID."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


# =============================================================
# ROLES
# =============================================================

class UserRole(str, enum.Enum):
    """Role that determines user permissions."""

    ADMINISTRATOR = "Administrator"
    USER = "User"
    COMMENTER = "Commenter"


# =============================================================
# USERS TABLE
# =============================================================

class User(Base):
    """
    Application user.

    Created by: migrations (table), bootstrap.admin (admin row)
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String(255), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    __table_args__ = (
        Index("idx_users_role", "role"),
    )

    @property
    def is_administrator(self) -> bool:
        return self.role == UserRole.ADMINISTRATOR.value

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} role={self.role}>"
