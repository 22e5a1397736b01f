"""User models for authentication and authorization."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr


class User(BaseModel):
    """Core user model. Represents a row in the users table."""

    id: UUID
    email: EmailStr
    display_name: str
    password_hash: str
    created_at: datetime


class UserPublic(BaseModel):
    """What the API returns. Never includes the password hash."""

    id: UUID
    email: EmailStr
    display_name: str
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> UserPublic:
        """Convert internal User model to public API response."""
        return cls(
            id=user.id,
            email=user.email,
            display_name=user.display_name,
            created_at=user.created_at,
        )
