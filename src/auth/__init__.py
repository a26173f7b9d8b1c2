"""Access token verification and role checks."""

from src.auth.dependencies import (
    CurrentUser,
    InstructorUser,
    StudentUser,
    get_current_user,
)
from src.auth.permissions import UserRole
from src.auth.schemas import AuthenticatedUser


__all__ = [
    "AuthenticatedUser",
    "CurrentUser",
    "InstructorUser",
    "StudentUser",
    "UserRole",
    "get_current_user",
]
