"""
Company user management endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Query

from tradeboard.api.deps import CurrentUser, DbSession
from tradeboard.schemas.common import PaginatedResponse
from tradeboard.schemas.users import CompanyUserResponse, RoleUpdateRequest
from tradeboard.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=PaginatedResponse[CompanyUserResponse])
async def list_users(
    db: DbSession,
    current_user: CurrentUser,
    page: int = Query(1),
    page_size: int = Query(10),
    search: Optional[str] = Query(None),
):
    """
    List members of the caller's company. Owners only.
    """
    result = await UserService(db).list_company_users(current_user, page, page_size, search)
    return PaginatedResponse[CompanyUserResponse](
        items=[CompanyUserResponse.model_validate(u) for u in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
        total_pages=result["total_pages"],
    )


@router.patch("", response_model=CompanyUserResponse)
async def update_user_role(request: RoleUpdateRequest, db: DbSession, current_user: CurrentUser):
    """
    Change a member's role. Owners only.
    """
    user = await UserService(db).update_user_role(current_user, request.user_id, request.role)
    return CompanyUserResponse.model_validate(user)
