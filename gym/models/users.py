"""User entity and roles."""

from enum import Enum

from pydantic import Field

from shared.models.entity import Entity


class UserRole(str, Enum):
    """Role stored in users.role."""
    CLIENT = "CLIENT"
    TRAINER = "TRAINER"
    ADMIN = "ADMIN"


class User(Entity):
    """A client, trainer or administrator account.

    password holds the already-hashed value; it is never hashed or compared
    in Python.
    """
    login: str = Field(..., min_length=1)
    password: str = Field(..., repr=False)
    role: UserRole
    first_name: str
    last_name: str

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
