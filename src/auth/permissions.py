"""Role-based access control.

Hierarchical roles:
- ADMIN (level 3): manages every course
- INSTRUCTOR (level 2): authors and uploads media for own courses
- STUDENT (level 1): buys courses and consumes enrolled content
"""

from enum import Enum
from uuid import UUID


class UserRole(str, Enum):
    """User roles. Higher level means more permissions."""

    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.STUDENT: 1,
    UserRole.INSTRUCTOR: 2,
    UserRole.ADMIN: 3,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role, 0 for unknown roles."""
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.INSTRUCTOR)
        True
        >>> has_permission("student", "instructor")
        False
    """
    return get_role_level(user_role) >= get_role_level(required_role)


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.ADMIN]


def can_manage_course(
    role: UserRole | str, user_id: UUID | str, instructor_id: UUID | str
) -> bool:
    """Admins manage every course, instructors only their own."""
    if is_admin(role):
        return True
    if not has_permission(role, UserRole.INSTRUCTOR):
        return False
    return str(user_id) == str(instructor_id)
