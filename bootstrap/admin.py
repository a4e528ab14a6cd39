"""
Bootstrap - Administrator Creator.

============================================================
RESPONSIBILITY
============================================================
Creates the single bootstrap administrator in one transaction.

1. Read DEFAULT_ADMIN_PASSWORD
2. Validate it (non-empty, >= 8 characters)
3. Hash it with the injected hasher
4. Begin transaction
5. Refuse if a user named 'admin' exists (rollback)
6. Insert admin / admin@localhost / Administrator
7. Commit

Every failure is a CREATION InitError.

============================================================
"""

import os
from typing import Mapping, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.passwords import PasswordHasher, PasswordHashError
from core.constants import ADMIN_EMAIL, ADMIN_USERNAME, ENV_ADMIN_PASSWORD, MIN_ADMIN_PASSWORD_LENGTH
from core.context import ContextLogger, CorrelationContext
from core.exceptions import creation_error
from database.engine import make_session_factory
from database.models import User, UserRole


class AdminCreator:
    """Creates the default administrator identity."""

    def __init__(
        self,
        engine: Engine,
        hasher: PasswordHasher,
        context: Optional[CorrelationContext] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._engine = engine
        self._hasher = hasher
        self._session_factory = make_session_factory(engine)
        self._environ = environ if environ is not None else os.environ
        self._log: ContextLogger = (context or CorrelationContext()).logger(__name__, "admin_creator")

    # ---------------------------------------------------------
    # VALIDATION
    # ---------------------------------------------------------

    @staticmethod
    def validate_password(password: str) -> None:
        if not password:
            raise creation_error("password validation failed: password cannot be empty")
        if len(password) < MIN_ADMIN_PASSWORD_LENGTH:
            raise creation_error(
                f"password validation failed: password must be at least "
                f"{MIN_ADMIN_PASSWORD_LENGTH} characters long"
            )

    # ---------------------------------------------------------
    # CREATION
    # ---------------------------------------------------------

    def create_from_env(self) -> User:
        """Create the administrator using DEFAULT_ADMIN_PASSWORD."""
        password = self._environ.get(ENV_ADMIN_PASSWORD, "")
        if not password:
            raise creation_error(f"{ENV_ADMIN_PASSWORD} environment variable is required")
        return self.create(password)

    def create(self, password: str) -> User:
        """
        Create the administrator with ``password``.

        Returns:
            The committed User row

        Raises:
            InitError (CREATION) on validation, hashing or database failure
        """
        self._log.info("Creating default admin user", fields={"action": "start_creation"})

        self.validate_password(password)

        self._log.debug("Hashing admin password", fields={"action": "hash_password"})
        try:
            password_hash = self._hasher.hash_password(password)
        except (PasswordHashError, ValueError) as e:
            raise creation_error(f"failed to hash admin password: {e}", cause=e) from e

        admin = User(
            username=ADMIN_USERNAME,
            email=ADMIN_EMAIL,
            password_hash=password_hash,
            role=UserRole.ADMINISTRATOR.value,
        )

        with self._session_factory() as session:
            try:
                session.begin()

                existing = session.execute(
                    select(User).where(User.username == ADMIN_USERNAME)
                ).scalar_one_or_none()
                if existing is not None:
                    existing_id = existing.id
                    session.rollback()
                    self._log.error(
                        "Admin user already exists",
                        fields={"action": "user_exists", "existing_user": existing_id},
                    )
                    raise creation_error("admin user already exists", existing_user=existing_id)

                self._log.debug("Inserting admin user", fields={"action": "insert_user"})
                session.add(admin)
                session.flush()
            except SQLAlchemyError as e:
                session.rollback()
                raise creation_error(f"failed to create admin user: {e}", cause=e) from e

            try:
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                raise creation_error(f"failed to commit admin user creation: {e}", cause=e) from e

        self._log.info(
            "Default admin user created successfully",
            fields={
                "action": "creation_completed",
                "username": admin.username,
                "role": admin.role,
                "user_id": admin.id,
            },
        )
        return admin

    # ---------------------------------------------------------
    # QUERIES
    # ---------------------------------------------------------

    def administrator_exists(self) -> bool:
        """
        True if a user named 'admin' OR any Administrator exists.

        A renamed administrator still counts.
        """
        try:
            with self._session_factory() as session:
                count = session.execute(
                    select(func.count()).select_from(User).where(
                        or_(User.username == ADMIN_USERNAME, User.role == UserRole.ADMINISTRATOR.value)
                    )
                ).scalar_one()
        except SQLAlchemyError as e:
            raise creation_error(f"failed to check for existing admin user: {e}", cause=e) from e
        return count > 0
