"""User directory backed by the users table."""

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import execute_statement
from app.models.users import users
from app.schemas.users import UserRole


class UserService:
    """Service for user lookups."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def get_user_by_id(self, user_id: UUID) -> dict[str, Any] | None:
        """
        Get user by ID.

        Args:
            user_id: User ID

        Returns:
            User data or None if not found
        """
        stmt = select(users).where(users.c.id == user_id)
        result = await execute_statement(self.db, stmt, "get_user_by_id")
        row = result.fetchone()

        return dict(row._mapping) if row else None

    async def list_admin_ids(self) -> list[UUID]:
        """IDs of all active administrators."""
        stmt = select(users.c.id).where(
            users.c.role == UserRole.ADMIN.value,
            users.c.is_active.is_(True),
        )
        result = await execute_statement(self.db, stmt, "list_admin_ids")

        return [row.id for row in result.fetchall()]

    async def list_providers(self) -> list[dict[str, Any]]:
        """Active providers ordered by first name, for booking forms."""
        stmt = (
            select(users.c.id, users.c.first_name, users.c.last_name)
            .where(
                users.c.role == UserRole.PROVIDER.value,
                users.c.is_active.is_(True),
            )
            .order_by(users.c.first_name.asc())
        )
        result = await execute_statement(self.db, stmt, "list_providers")

        return [dict(row._mapping) for row in result.fetchall()]
