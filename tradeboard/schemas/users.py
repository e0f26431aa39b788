"""
User profile and role management schemas.
"""

import uuid
from datetime import datetime
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator

# Paths that indicate a checkout link rather than a product page
CHECKOUT_PATHS = ("/checkout", "/pay", "/purchase", "/buy", "/payment")


class MembershipPlan(BaseModel):
    """
    A membership plan advertised on the leaderboard.
    """
    id: str
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    price: str = Field(..., max_length=50)
    url: str
    is_premium: bool = False

    @field_validator("url")
    @classmethod
    def validate_product_url(cls, v: str) -> str:
        """Must be a whop.com product page, not a checkout link."""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Must be a valid URL")
        if "whop.com" not in parsed.netloc.lower():
            raise ValueError("Must be a valid Whop product page URL (not a checkout link)")
        path = parsed.path.lower()
        query = parsed.query.lower()
        if any(p in path for p in CHECKOUT_PATHS) or "checkout" in query or "payment" in query:
            raise ValueError("Must be a valid Whop product page URL (not a checkout link)")
        return v


class UserProfileResponse(BaseModel):
    """
    Schema for the caller's own profile.
    """
    id: uuid.UUID
    external_user_id: str
    company_id: str | None
    role: str
    alias: str
    display_name: str | None
    username: str | None
    avatar_url: str | None
    company_name: str | None
    company_description: str | None
    opt_in: bool
    hide_leaderboard_from_members: bool
    membership_plans: list[MembershipPlan] | None
    discord_webhook_url: str | None
    webhook_url: str | None
    notify_on_settlement: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserProfileUpdate(BaseModel):
    """
    Schema for updating the caller's profile. All fields optional.
    Company fields are only honoured for the company owner.
    Empty webhook strings clear the webhook.
    """
    alias: str | None = Field(default=None, min_length=1, max_length=50)
    company_name: str | None = Field(default=None, max_length=100)
    company_description: str | None = Field(default=None, max_length=500)
    opt_in: bool | None = None
    hide_leaderboard_from_members: bool | None = None
    discord_webhook_url: str | None = None
    webhook_url: str | None = None
    notify_on_settlement: bool | None = None
    membership_plans: list[MembershipPlan] | None = None

    @field_validator("discord_webhook_url", "webhook_url", mode="before")
    @classmethod
    def validate_webhook(cls, v):
        """A URL, or an empty string to clear it."""
        if v is None or v == "":
            return v
        parsed = urlparse(str(v))
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Webhook must be a valid URL")
        return str(v)


class CompanyUserResponse(BaseModel):
    """
    A member of the caller's company.
    """
    id: uuid.UUID
    external_user_id: str
    alias: str
    display_name: str | None
    username: str | None
    avatar_url: str | None
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RoleUpdateRequest(BaseModel):
    """
    Schema for changing a company member's role.
    """
    user_id: str = Field(..., min_length=1, description="Target user's external id")
    role: str
