"""
Role-based capability checks.

Roles, most privileged first: companyOwner, owner, admin, member.
"""

from tradeboard.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from tradeboard.models.user import User, Role

TRADE_MANAGER_ROLES = (Role.COMPANY_OWNER.value, Role.OWNER.value, Role.ADMIN.value)
USER_MANAGER_ROLES = (Role.COMPANY_OWNER.value, Role.OWNER.value)
ASSIGNABLE_ROLES = (Role.OWNER.value, Role.ADMIN.value, Role.MEMBER.value)

# Profile fields only the company owner may change
COMPANY_PROFILE_FIELDS = (
    "company_name",
    "company_description",
    "opt_in",
    "membership_plans",
    "hide_leaderboard_from_members",
)


def require_trade_manager(user: User) -> None:
    """Owners and admins record and settle trades."""
    if user.role not in TRADE_MANAGER_ROLES:
        raise AuthorizationError("Only owners and admins can manage trades")


def require_user_manager(user: User) -> None:
    """Company owners and owners manage member roles."""
    if user.role not in USER_MANAGER_ROLES:
        raise AuthorizationError("Only owners can manage users")


def can_manage_company_profile(user: User) -> bool:
    return user.role == Role.COMPANY_OWNER.value


def check_role_change(actor: User, target: User, new_role: str) -> None:
    """
    Validate a role change.

    Rules:
    - only companyOwner and owner may change roles
    - nobody changes their own role
    - the target must be in the actor's company
    - companyOwner can neither be granted nor removed
    - an owner cannot manage companyOwner or owner, nor grant owner

    Raises:
        AuthorizationError, NotFoundError or ValidationError
    """
    require_user_manager(actor)

    if new_role not in (Role.COMPANY_OWNER.value, *ASSIGNABLE_ROLES):
        raise ValidationError(
            f"Invalid role '{new_role}'. Must be one of: {', '.join(ASSIGNABLE_ROLES)}"
        )
    if actor.id == target.id:
        raise ValidationError("Cannot change your own role")
    if target.company_id != actor.company_id:
        raise NotFoundError("User not found")
    if new_role == Role.COMPANY_OWNER.value:
        raise ValidationError("Cannot grant company owner role")
    if target.role == Role.COMPANY_OWNER.value:
        raise ValidationError("Cannot remove company owner role")

    if actor.role == Role.OWNER.value:
        if target.role == Role.OWNER.value:
            raise AuthorizationError("Cannot manage company owner or owner roles")
        if new_role == Role.OWNER.value:
            raise AuthorizationError("Cannot grant owner role")
