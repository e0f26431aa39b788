"""
Activity log model for recording trade actions.
Provides the audit trail for created, rejected, settled and deleted trades.
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import String, DateTime, ForeignKey, Index, JSON, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeboard.db.database import Base


class ActivityLog(Base):
    """
    Records a user action and its context.
    """

    __tablename__ = "activity_logs"
    __table_args__ = (
        Index("idx_activity_logs_user_created", "user_id", "created_at"),
        Index("idx_activity_logs_action", "action"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )

    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False
    )
    details: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="activity_logs"
    )

    def __repr__(self) -> str:
        return f"<ActivityLog(action={self.action}, user_id={self.user_id})>"
