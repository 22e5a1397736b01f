"""Repository for user operations."""

from __future__ import annotations

from uuid import UUID

import asyncpg

from backend.db import system_conn, user_conn
from backend.models.user import User


def _row_to_user(row: asyncpg.Record) -> User:
    """Convert a database row to a User model."""
    return User(
        id=row["id"],
        email=row["email"],
        display_name=row["display_name"],
        password_hash=row["password_hash"],
        created_at=row["created_at"],
    )


class UserRepo:
    """All user-related database operations."""

    async def get_by_email(self, email: str) -> User | None:
        """
        Get a user by normalized email address.
        Used during login. System conn because user context not yet established.

        Args:
            email: Normalized email address to look up

        Returns:
            User if found, None otherwise
        """
        async with system_conn() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM users WHERE email = $1",
                email,
            )
            return _row_to_user(row) if row else None

    async def create(self, email: str, display_name: str, password_hash: str) -> User | None:
        """
        Create a new user at registration.

        Args:
            email: Normalized email address
            display_name: Name shown in the editor header
            password_hash: bcrypt hash of the password

        Returns:
            Newly created User, or None if the email is already registered
        """
        async with system_conn() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO users (email, display_name, password_hash)
                VALUES ($1, $2, $3)
                ON CONFLICT (email) DO NOTHING
                RETURNING *
                """,
                email,
                display_name,
                password_hash,
            )
            return _row_to_user(row) if row else None

    async def get(self, user_id: UUID) -> User | None:
        """
        Get a user by ID.

        Args:
            user_id: User UUID

        Returns:
            User if found, None otherwise
        """
        async with user_conn(user_id) as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
            return _row_to_user(row) if row else None
