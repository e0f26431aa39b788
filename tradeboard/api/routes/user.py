"""
Current user endpoints - profile, stats and profile updates.
"""

from fastapi import APIRouter

from tradeboard.api.deps import CurrentUser, DbSession
from tradeboard.schemas.stats import StatsResponse, UserStatsResponse
from tradeboard.schemas.users import UserProfileResponse, UserProfileUpdate
from tradeboard.services.user_service import UserService

router = APIRouter(prefix="/user", tags=["user"])


@router.get("", response_model=UserStatsResponse)
async def get_user(db: DbSession, current_user: CurrentUser):
    """
    Get the caller's profile with personal stats.
    Owners also get company stats aggregated across owners and admins.
    """
    profile = await UserService(db).get_profile(current_user)
    company = profile["company_stats"]
    return UserStatsResponse(
        user=UserProfileResponse.model_validate(profile["user"]),
        personal_stats=StatsResponse.model_validate(profile["personal_stats"]),
        company_stats=StatsResponse.model_validate(company) if company else None,
    )


@router.patch("", response_model=UserProfileResponse)
async def update_user(changes: UserProfileUpdate, db: DbSession, current_user: CurrentUser):
    """
    Update the caller's profile.
    Company settings are reserved for the company owner.
    """
    user = await UserService(db).update_profile(current_user, changes)
    return UserProfileResponse.model_validate(user)
