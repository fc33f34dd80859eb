"""Gym domain models."""
from .users import User, UserRole

__all__ = ["User", "UserRole"]
