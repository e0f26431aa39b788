"""
Audit trail writes and reads.
"""

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tradeboard.models.activity_log import ActivityLog


class ActivityLogCRUD:
    """Append-only log of trade actions per user."""

    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: uuid.UUID,
        action: str,
        details: dict[str, Any] | None = None
    ) -> ActivityLog:
        """Append an entry and commit it on its own."""
        entry = ActivityLog(user_id=user_id, action=action, details=details)
        db.add(entry)
        await db.commit()
        return entry

    @staticmethod
    async def get_recent(
        db: AsyncSession,
        user_id: uuid.UUID,
        limit: int = 100,
        action: str | None = None
    ) -> list[ActivityLog]:
        """Newest entries first, optionally only one action type."""
        query = select(ActivityLog).where(ActivityLog.user_id == user_id)
        if action:
            query = query.where(ActivityLog.action == action)
        result = await db.execute(
            query.order_by(ActivityLog.created_at.desc()).limit(limit)
        )
        return list(result.scalars())
