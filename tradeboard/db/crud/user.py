"""
CRUD operations for User model.
"""

import uuid
from typing import Any

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tradeboard.models.user import User, Role


class UserCRUD:
    """
    Database operations for User model.
    Users are scoped to a company; the same external user may belong
    to several companies with a separate row for each.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        external_user_id: str,
        company_id: str | None,
        alias: str,
        role: str = Role.MEMBER.value,
        **fields: Any
    ) -> User:
        """
        Creates a new user within a company.

        Args:
            db: Database session
            external_user_id: Identifier issued by the hosting platform
            company_id: Company the user belongs to
            alias: Public alias shown on the leaderboard
            role: Company role
            **fields: Optional profile columns

        Returns:
            Created User instance
        """
        user = User(
            external_user_id=external_user_id,
            company_id=company_id,
            alias=alias,
            role=role,
            **fields
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_by_external_id(
        db: AsyncSession,
        external_user_id: str,
        company_id: str | None
    ) -> User | None:
        """
        Retrieves a user by platform identity within a company.

        Args:
            db: Database session
            external_user_id: Identifier issued by the hosting platform
            company_id: Company scope

        Returns:
            User instance or None if not found
        """
        result = await db.execute(
            select(User).where(
                User.external_user_id == external_user_id,
                User.company_id == company_id
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_member_ids(
        db: AsyncSession,
        company_id: str,
        roles: tuple[str, ...]
    ) -> list[uuid.UUID]:
        """Returns ids of company users holding one of the given roles."""
        result = await db.execute(
            select(User.id).where(
                User.company_id == company_id,
                User.role.in_(roles)
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_leaderboard_owners(db: AsyncSession) -> list[User]:
        """
        Retrieves the company owners who opted their company into
        the public leaderboard.
        """
        result = await db.execute(
            select(User).where(
                User.opt_in.is_(True),
                User.role == Role.COMPANY_OWNER.value,
                User.company_id.is_not(None),
                User.company_id != ""
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_company_users(
        db: AsyncSession,
        company_id: str,
        page: int = 1,
        page_size: int = 10,
        search: str | None = None
    ) -> tuple[list[User], int]:
        """
        Lists users in a company, newest first.

        Args:
            db: Database session
            company_id: Company scope
            page: 1-based page number
            page_size: Rows per page
            search: Case-insensitive match on alias, username or display name

        Returns:
            Tuple of (users on the page, total matching users)
        """
        conditions = [User.company_id == company_id]
        if search:
            term = search.lower()
            conditions.append(or_(
                func.lower(User.alias).contains(term, autoescape=True),
                func.lower(User.username).contains(term, autoescape=True),
                func.lower(User.display_name).contains(term, autoescape=True),
            ))

        total = await db.scalar(select(func.count(User.id)).where(*conditions))

        result = await db.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total or 0

    @staticmethod
    async def update(db: AsyncSession, user: User, **kwargs: Any) -> User:
        """
        Updates user fields.

        Args:
            db: Database session
            user: User to update
            **kwargs: Fields to update

        Returns:
            Updated User instance
        """
        for key, value in kwargs.items():
            if hasattr(user, key):
                setattr(user, key, value)

        await db.commit()
        await db.refresh(user)
        return user
