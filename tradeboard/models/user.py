"""
User model for company membership, roles and leaderboard profile.
Identity is supplied by the hosting platform; one row per (user, company).
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from sqlalchemy import String, Boolean, DateTime, Text, JSON, Uuid, UniqueConstraint, Index, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tradeboard.db.database import Base


class Role(str, Enum):
    """Company roles, most privileged first."""
    COMPANY_OWNER = "companyOwner"
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


# Roles whose trades count towards company-wide stats
COMPANY_STATS_ROLES = (Role.COMPANY_OWNER.value, Role.OWNER.value, Role.ADMIN.value)


class User(Base):
    """
    Represents a member of a company.
    Owners and admins record trades; company owners may opt the
    company into the public leaderboard.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("external_user_id", "company_id", name="uq_users_external_company"),
        Index("idx_users_company_role", "company_id", "role"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    external_user_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True
    )
    company_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Role.MEMBER.value
    )

    alias: Mapped[str] = mapped_column(
        String(50),
        nullable=False
    )
    display_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True
    )
    username: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True
    )
    avatar_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True
    )

    company_name: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True
    )
    company_description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True
    )
    opt_in: Mapped[bool] = mapped_column(
        Boolean,
        default=False
    )
    hide_leaderboard_from_members: Mapped[bool] = mapped_column(
        Boolean,
        default=False
    )
    membership_plans: Mapped[list | None] = mapped_column(
        JSON,
        nullable=True
    )

    discord_webhook_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True
    )
    webhook_url: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True
    )
    notify_on_settlement: Mapped[bool] = mapped_column(
        Boolean,
        default=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    trades: Mapped[list["Trade"]] = relationship(
        "Trade",
        back_populates="user",
        cascade="all, delete-orphan"
    )
    activity_logs: Mapped[list["ActivityLog"]] = relationship(
        "ActivityLog",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, company_id={self.company_id}, role={self.role})>"
