"""Authenticated principal schema."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

from src.auth.permissions import UserRole


class AuthenticatedUser(BaseModel):
    """Caller identity extracted from a verified access token."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    email: EmailStr
    role: UserRole
