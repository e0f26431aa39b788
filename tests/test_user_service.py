"""
Tests for role checks, profile updates and company user management.
"""

import pytest
from types import SimpleNamespace

from tradeboard.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from tradeboard.models.user import Role
from tradeboard.schemas.users import UserProfileUpdate
from tradeboard.services.authorization import check_role_change, require_trade_manager
from tradeboard.services.user_service import UserService


def person(user_id: str, role: str, company_id: str = "biz_1"):
    return SimpleNamespace(id=user_id, role=role, company_id=company_id)


class TestRoleChangeRules:
    """Tests for who may change which role."""

    def test_company_owner_promotes_member(self):
        check_role_change(person("a", "companyOwner"), person("b", "member"), "owner")

    def test_owner_promotes_member_to_admin(self):
        check_role_change(person("a", "owner"), person("b", "member"), "admin")

    @pytest.mark.parametrize("actor,target,role,error", [
        (person("a", "admin"), person("b", "member"), "admin", AuthorizationError),
        (person("a", "companyOwner"), person("b", "member"), "superuser", ValidationError),
        (person("a", "companyOwner"), person("a", "companyOwner"), "member", ValidationError),
        (person("a", "companyOwner"), person("b", "member", "biz_2"), "admin", NotFoundError),
        (person("a", "companyOwner"), person("b", "member"), "companyOwner", ValidationError),
        (person("a", "owner"), person("b", "companyOwner"), "member", ValidationError),
        (person("a", "owner"), person("b", "owner"), "member", AuthorizationError),
        (person("a", "owner"), person("b", "admin"), "owner", AuthorizationError),
    ])
    def test_refused_changes(self, actor, target, role, error):
        with pytest.raises(error):
            check_role_change(actor, target, role)

    @pytest.mark.parametrize("role,allowed", [
        ("companyOwner", True),
        ("owner", True),
        ("admin", True),
        ("member", False),
    ])
    def test_trade_managers(self, role, allowed):
        if allowed:
            require_trade_manager(person("a", role))
        else:
            with pytest.raises(AuthorizationError):
                require_trade_manager(person("a", role))


class TestUpdateProfile:
    """Tests for role-dependent profile updates."""

    @pytest.mark.asyncio
    async def test_company_owner_sets_company_fields(self, db_session, make_user):
        owner = await make_user("owner_1")
        changes = UserProfileUpdate(
            opt_in=True,
            company_name="Desk",
            membership_plans=[{"id": "p1", "name": "Pro", "price": "$10",
                               "url": "https://whop.com/desk/pro"}],
        )

        user = await UserService(db_session).update_profile(owner, changes)

        assert user.opt_in is True
        assert user.company_name == "Desk"
        assert user.membership_plans[0]["url"] == "https://whop.com/desk/pro"

    @pytest.mark.asyncio
    async def test_admin_company_fields_are_ignored(self, db_session, make_user):
        admin = await make_user("admin_1", role=Role.ADMIN.value)

        user = await UserService(db_session).update_profile(
            admin, UserProfileUpdate(alias="New Alias", company_name="Nope")
        )

        assert user.alias == "New Alias"
        assert user.company_name is None

    @pytest.mark.asyncio
    async def test_admin_cannot_opt_in(self, db_session, make_user):
        admin = await make_user("admin_1", role=Role.ADMIN.value)
        with pytest.raises(AuthorizationError):
            await UserService(db_session).update_profile(admin, UserProfileUpdate(opt_in=True))

    @pytest.mark.asyncio
    async def test_empty_webhook_clears(self, db_session, make_user):
        owner = await make_user("owner_1", discord_webhook_url="https://discord.com/api/webhooks/1")

        user = await UserService(db_session).update_profile(
            owner, UserProfileUpdate(discord_webhook_url="", notify_on_settlement=True)
        )

        assert user.discord_webhook_url is None
        assert user.notify_on_settlement is True


class TestCompanyUsers:

    @pytest.mark.asyncio
    async def test_list_is_scoped_to_company(self, db_session, make_user):
        owner = await make_user("owner_1")
        await make_user("member_1", role=Role.MEMBER.value)
        await make_user("outsider", company_id="biz_2", role=Role.MEMBER.value)

        result = await UserService(db_session).list_company_users(owner)

        assert result["total"] == 2
        assert {u.external_user_id for u in result["items"]} == {"owner_1", "member_1"}

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, db_session, make_user):
        owner = await make_user("owner_1", alias="Desk")
        await make_user("member_1", role=Role.MEMBER.value, alias="100% Calls")

        service = UserService(db_session)
        literal = await service.list_company_users(owner, search="0%")
        wildcard = await service.list_company_users(owner, search="_")

        assert [u.external_user_id for u in literal["items"]] == ["member_1"]
        assert wildcard["total"] == 0

    @pytest.mark.asyncio
    async def test_update_role(self, db_session, make_user):
        owner = await make_user("owner_1")
        await make_user("member_1", role=Role.MEMBER.value)

        updated = await UserService(db_session).update_user_role(owner, "member_1", "admin")

        assert updated.role == "admin"

    @pytest.mark.asyncio
    async def test_unknown_target(self, db_session, make_user):
        owner = await make_user("owner_1")
        with pytest.raises(NotFoundError):
            await UserService(db_session).update_user_role(owner, "ghost", "admin")

    @pytest.mark.asyncio
    async def test_target_in_other_company_is_not_found(self, db_session, make_user):
        owner = await make_user("owner_1")
        await make_user("member_1", company_id="biz_2", role=Role.MEMBER.value)
        with pytest.raises(NotFoundError):
            await UserService(db_session).update_user_role(owner, "member_1", "admin")
