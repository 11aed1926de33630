# tests/test_membership.py
"""
Membership and platform management tests
Tests: membership upsert, deactivation, listing, platform console operations
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from crm_saas.core.exceptions import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    TenantNotFoundError,
)
from crm_saas.models import (
    Tenant,
    TenantRole,
    TenantStatus,
    TenantUsage,
    TenantUser,
    User,
)
from crm_saas.schemas.plan import PlanCreate
from crm_saas.schemas.tenant import TenantLimitsUpdate
from crm_saas.services.membership_service import MembershipService
from crm_saas.services.plan_service import PlanService
from crm_saas.services.platform_service import PlatformService
from crm_saas.services.tenant_service import TenantService
from crm_saas.services.usage_service import UsageService
from crm_saas.services.user_service import UserService
from helpers import add_member, provision


class TestAddUserToTenant:

    async def test_upsert_never_duplicates(self, db_session, acme):
        user = await UserService.create_user(
            db_session, email="jane@acme.example.com", password="JanePass123!"
        )
        first, newly_active = await MembershipService.add_user_to_tenant(
            db_session, acme.tenant.id, user.id, TenantRole.user
        )
        assert newly_active

        second, newly_active = await MembershipService.add_user_to_tenant(
            db_session, acme.tenant.id, user.id, TenantRole.manager
        )
        assert not newly_active
        assert second.id == first.id
        assert second.tenant_role is TenantRole.manager

        result = await db_session.execute(
            select(func.count())
            .select_from(TenantUser)
            .where(TenantUser.tenant_id == acme.tenant.id, TenantUser.user_id == user.id)
        )
        assert result.scalar_one() == 1

    async def test_only_new_members_are_counted(self, db_session, acme):
        user, _ = await add_member(
            db_session, acme.tenant.id, "jane@acme.example.com", TenantRole.user
        )
        await MembershipService.add_user_to_tenant(
            db_session, acme.tenant.id, user.id, TenantRole.admin
        )
        usage = await UsageService.get_usage(db_session, acme.tenant.id)
        assert usage.user_count == 2

    async def test_one_user_many_tenants(self, db_session, acme):
        other = await provision(
            db_session,
            subdomain="globex",
            name="Globex",
            admin_email="hank@globex.example.com",
        )
        await MembershipService.add_user_to_tenant(
            db_session, other.tenant.id, acme.admin_user.id, TenantRole.readonly
        )

        in_acme = await MembershipService.get_active_membership(
            db_session, acme.tenant.id, acme.admin_user.id
        )
        in_globex = await MembershipService.get_active_membership(
            db_session, other.tenant.id, acme.admin_user.id
        )
        assert in_acme.tenant_role is TenantRole.admin
        assert in_globex.tenant_role is TenantRole.readonly


class TestDeactivateMember:

    async def test_deactivates_without_deleting(self, db_session, acme):
        user, membership = await add_member(
            db_session, acme.tenant.id, "jane@acme.example.com", TenantRole.user
        )
        await MembershipService.deactivate_member(db_session, acme.tenant, user.id)

        assert membership.is_active is False
        members = await MembershipService.list_members(db_session, acme.tenant.id)
        assert [u.email for _, u in members] == ["john@acme.example.com"]
        everyone = await MembershipService.list_members(
            db_session, acme.tenant.id, include_inactive=True
        )
        assert len(everyone) == 2

    async def test_owner_cannot_be_deactivated(self, db_session, acme):
        with pytest.raises(ConflictError) as exc_info:
            await MembershipService.deactivate_member(
                db_session, acme.tenant, acme.admin_user.id
            )
        assert exc_info.value.code == "cannot_deactivate_owner"

    async def test_unknown_member(self, db_session, acme):
        with pytest.raises(NotFoundError) as exc_info:
            await MembershipService.deactivate_member(db_session, acme.tenant, "nobody")
        assert exc_info.value.code == "member_not_found"


class TestTenantSettings:

    async def test_settings_are_replaced(self, db_session, acme):
        await TenantService.update_settings(
            db_session, acme.tenant, {"timezone": "UTC", "currency": "EUR"}
        )
        tenant = await TenantService.update_settings(
            db_session, acme.tenant, {"timezone": "Europe/Berlin"}
        )
        assert tenant.settings == {"timezone": "Europe/Berlin"}


class TestPlatformService:

    async def test_list_tenants_with_usage(self, db_session, acme):
        await add_member(
            db_session, acme.tenant.id, "jane@acme.example.com", TenantRole.user
        )
        await provision(
            db_session,
            subdomain="globex",
            name="Globex",
            admin_email="hank@globex.example.com",
        )

        summaries = await PlatformService.list_tenants(db_session)
        by_subdomain = {s.tenant.subdomain: s for s in summaries}
        assert set(by_subdomain) == {"acme", "globex"}
        assert by_subdomain["acme"].member_count == 2
        assert by_subdomain["acme"].admin_email == "john@acme.example.com"
        assert by_subdomain["globex"].member_count == 1

    async def test_list_tenants_by_status(self, db_session, acme):
        await PlatformService.update_status(
            db_session, acme.tenant.id, TenantStatus.suspended
        )
        suspended = await PlatformService.list_tenants(
            db_session, TenantStatus.suspended
        )
        trial = await PlatformService.list_tenants(db_session, TenantStatus.trial)
        assert [s.tenant.id for s in suspended] == [acme.tenant.id]
        assert trial == []

    async def test_unknown_tenant(self, db_session):
        with pytest.raises(TenantNotFoundError):
            await PlatformService.get_tenant_summary(db_session, "missing")

    async def test_update_limits_is_partial(self, db_session, acme):
        tenant = await PlatformService.update_limits(
            db_session, acme.tenant.id, TenantLimitsUpdate(max_users=50)
        )
        assert tenant.max_users == 50
        assert tenant.api_calls_limit == 10000

    async def test_assign_plan_copies_limits(self, db_session, acme):
        plan = await PlanService.create_plan(
            db_session,
            PlanCreate(
                name="Enterprise",
                price=Decimal("299.00"),
                max_users=999,
                storage_limit=1000000,
                api_calls_limit=500000,
            ),
        )
        subscription = await PlanService.assign_plan(db_session, acme.tenant, plan.id)

        assert subscription.status == "active"
        assert acme.tenant.status == TenantStatus.active.value
        assert acme.tenant.max_users == 999
        assert acme.tenant.api_calls_limit == 500000

    async def test_delete_requires_confirmation(self, db_session, acme):
        with pytest.raises(BadRequestError) as exc_info:
            await PlatformService.delete_tenant(db_session, acme.tenant.id)
        assert exc_info.value.code == "confirmation_required"
        assert await TenantService.get_tenant_by_id(db_session, acme.tenant.id)

    async def test_delete_removes_dependents_but_keeps_users(self, db_session, acme):
        tenant_id = acme.tenant.id
        await PlatformService.delete_tenant(db_session, tenant_id, confirm=True)

        for model in (TenantUser, TenantUsage):
            result = await db_session.execute(
                select(func.count()).select_from(model).where(model.tenant_id == tenant_id)
            )
            assert result.scalar_one() == 0
        tenants = await db_session.execute(select(func.count()).select_from(Tenant))
        assert tenants.scalar_one() == 0
        users = await db_session.execute(select(func.count()).select_from(User))
        assert users.scalar_one() == 1

    async def test_stats(self, db_session, acme):
        await provision(
            db_session,
            subdomain="globex",
            name="Globex",
            admin_email="hank@globex.example.com",
        )
        await PlatformService.update_status(
            db_session, acme.tenant.id, TenantStatus.active
        )

        stats = await PlatformService.stats(db_session)
        assert stats.total_tenants == 2
        assert stats.tenants_by_status["active"] == 1
        assert stats.tenants_by_status["trial"] == 1
        assert stats.tenants_by_status["suspended"] == 0
        assert stats.total_users == 2


class TestPlanFeatures:
    """require_feature reads the assigned plan's feature flags"""

    async def _put_on_plan(self, db, provisioned, features):
        plan = await PlanService.create_plan(
            db,
            PlanCreate(name="Professional", price=Decimal("99.00"), features=features),
        )
        await PlanService.assign_plan(db, provisioned.tenant, plan.id)
        return plan

    async def test_tenant_without_plan(self, db_session, acme):
        with pytest.raises(ForbiddenError) as exc_info:
            await PlanService.require_feature(
                db_session, acme.tenant, "advanced_analytics"
            )
        assert exc_info.value.code == "subscription_required"
        assert exc_info.value.details["upgrade_required"] is True

    @pytest.mark.parametrize(
        "features", [{}, {"basic_crm": True}, {"advanced_analytics": False}]
    )
    async def test_feature_missing_or_disabled(self, db_session, acme, features):
        await self._put_on_plan(db_session, acme, features)

        with pytest.raises(ForbiddenError) as exc_info:
            await PlanService.require_feature(
                db_session, acme.tenant, "advanced_analytics"
            )
        assert exc_info.value.code == "feature_not_available"
        assert exc_info.value.details == {
            "feature": "advanced_analytics",
            "current_plan": "Professional",
            "upgrade_required": True,
        }

    async def test_enabled_feature_returns_plan(self, db_session, acme):
        plan = await self._put_on_plan(
            db_session, acme, {"advanced_analytics": True, "integrations": True}
        )
        granted = await PlanService.require_feature(
            db_session, acme.tenant, "advanced_analytics"
        )
        assert granted.id == plan.id
