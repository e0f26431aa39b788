"""
User Service - profile management and company role administration.
"""

import logging
import math
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tradeboard.core.exceptions import AuthorizationError, NotFoundError
from tradeboard.db.crud import UserCRUD
from tradeboard.models.user import User
from tradeboard.schemas.common import normalize_paging
from tradeboard.schemas.users import UserProfileUpdate
from tradeboard.services.authorization import (
    COMPANY_PROFILE_FIELDS,
    can_manage_company_profile,
    check_role_change,
    require_user_manager,
)
from tradeboard.services.stats_service import StatsService

logger = logging.getLogger(__name__)

# Fields every role may change on their own profile
PERSONAL_FIELDS = ("alias", "discord_webhook_url", "webhook_url", "notify_on_settlement")

# Company fields a non-owner is refused outright rather than silently ignored
RESTRICTED_FIELDS = ("opt_in", "membership_plans")


class UserService:
    """
    Reads and updates the caller's profile and manages company members.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_profile(self, user: User) -> dict[str, Any]:
        """
        Profile with personal stats, and company stats for owners.
        """
        stats = await StatsService(self.db).get_user_stats(user)
        return {"user": user, **stats}

    async def update_profile(self, user: User, changes: UserProfileUpdate) -> User:
        """
        Apply profile changes permitted for the user's role.

        Args:
            user: Caller
            changes: Requested changes; unset fields are left alone

        Returns:
            Updated user

        Raises:
            AuthorizationError: A non company owner tried to opt in or
                manage membership plans
        """
        requested = changes.model_dump(exclude_unset=True)

        if not can_manage_company_profile(user):
            refused = [f for f in RESTRICTED_FIELDS if f in requested]
            if refused:
                raise AuthorizationError(
                    "Only company owners can opt-in to leaderboard and manage membership plans",
                    details={"fields": refused}
                )

        updates: dict[str, Any] = {}
        for field in PERSONAL_FIELDS:
            if field in requested:
                value = requested[field]
                # Empty webhook strings clear the webhook
                if field.endswith("webhook_url") and value == "":
                    value = None
                updates[field] = value

        if can_manage_company_profile(user):
            for field in COMPANY_PROFILE_FIELDS:
                if field in requested:
                    value = requested[field]
                    if field in ("company_name", "company_description") and value == "":
                        value = None
                    updates[field] = value

        if not updates:
            return user

        user = await UserCRUD.update(self.db, user, **updates)
        logger.info(f"Updated profile for user {user.id}: {sorted(updates)}")
        return user

    async def list_company_users(
        self,
        user: User,
        page: int = 1,
        page_size: int = 10,
        search: str | None = None
    ) -> dict[str, Any]:
        """
        Paginated members of the caller's company, newest first.

        Raises:
            AuthorizationError: Caller is not an owner
        """
        require_user_manager(user)
        page, page_size = normalize_paging(page, page_size)

        users, total = await UserCRUD.list_company_users(
            self.db, user.company_id, page, page_size, (search or "").strip() or None
        )
        return {
            "items": users,
            "total": total,
            "page": page,
            "page_size": page_size,
            "total_pages": max(1, math.ceil(total / page_size)),
        }

    async def update_user_role(
        self,
        actor: User,
        target_external_id: str,
        role: str
    ) -> User:
        """
        Change a company member's role.

        Raises:
            AuthorizationError, NotFoundError or ValidationError
        """
        require_user_manager(actor)

        target = await UserCRUD.get_by_external_id(self.db, target_external_id, actor.company_id)
        if target is None:
            raise NotFoundError("User not found")

        check_role_change(actor, target, role)

        previous = target.role
        target = await UserCRUD.update(self.db, target, role=role)
        logger.info(
            f"User {actor.id} changed role of {target.id} from {previous} to {role}"
        )
        return target
