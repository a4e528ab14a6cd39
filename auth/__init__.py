"""
Auth Package.

Password hashing primitive used when creating the bootstrap
administrator.
"""

from .passwords import PasswordHasher, PasswordHashError

__all__ = ["PasswordHasher", "PasswordHashError"]
