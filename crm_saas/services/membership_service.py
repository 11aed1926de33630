"""
services/membership_service.py
------------------------------
Tenant membership lookups and role-based permission checks.

Every tenant-scoped endpoint passes through check_permission() with an
explicit tenant and user taken from the request; there is no ambient
"current user".
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
)
from crm_saas.core.logging import get_logger
from crm_saas.db.base import utcnow
from crm_saas.models.tenant import Tenant
from crm_saas.models.tenant_user import TenantRole, TenantUser
from crm_saas.models.usage import UsageResource
from crm_saas.models.user import User
from crm_saas.services.usage_service import UsageService

logger = get_logger(__name__)


class MembershipService:

    @staticmethod
    async def get_membership(
        db: AsyncSession, tenant_id: str, user_id: str
    ) -> TenantUser | None:
        """Membership row for the pair, active or not."""
        result = await db.execute(
            select(TenantUser).where(
                TenantUser.tenant_id == tenant_id,
                TenantUser.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_active_membership(
        db: AsyncSession, tenant_id: str, user_id: str
    ) -> TenantUser | None:
        result = await db.execute(
            select(TenantUser).where(
                TenantUser.tenant_id == tenant_id,
                TenantUser.user_id == user_id,
                TenantUser.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    def require_role(membership: TenantUser, required_role: TenantRole) -> None:
        if not membership.tenant_role.at_least(required_role):
            raise ForbiddenError(
                f"This action requires {required_role.value} role or higher",
                code="role_insufficient",
                details={
                    "required_role": required_role.value,
                    "current_role": membership.role,
                },
            )

    @staticmethod
    async def check_permission(
        db: AsyncSession,
        tenant: Optional[Tenant],
        user: Optional[User],
        required_role: Optional[TenantRole] = None,
    ) -> TenantUser:
        """
        Verify that `user` is an active member of `tenant` holding at least
        `required_role`. Returns the membership for downstream handlers.
        """
        if tenant is None or user is None:
            raise UnauthorizedError(
                "You must be logged in to access this resource"
            )

        membership = await MembershipService.get_active_membership(
            db, tenant.id, user.id
        )
        if membership is None:
            logger.info(
                "Membership check failed", tenant_id=tenant.id, user_id=user.id
            )
            raise ForbiddenError(
                "You don't have access to this organization",
                code="membership_missing",
            )

        if required_role is not None:
            MembershipService.require_role(membership, required_role)
        return membership

    @staticmethod
    async def add_user_to_tenant(
        db: AsyncSession,
        tenant_id: str,
        user_id: str,
        role: TenantRole = TenantRole.user,
        invited_by: Optional[str] = None,
    ) -> tuple[TenantUser, bool]:
        """
        Upsert the (tenant, user) membership.

        An existing row is reactivated and given the new role rather than
        duplicated. Returns (membership, newly_active); a newly active
        member is counted in the month's user usage.
        """
        now = utcnow()
        membership = await MembershipService.get_membership(db, tenant_id, user_id)
        newly_active = membership is None or not membership.is_active

        if membership is None:
            membership = TenantUser(
                tenant_id=tenant_id,
                user_id=user_id,
                role=role.value,
                is_active=True,
                joined_at=now,
                invited_by=invited_by,
                invited_at=now if invited_by else None,
            )
            db.add(membership)
        else:
            membership.role = role.value
            membership.is_active = True
            if newly_active:
                membership.joined_at = now
                membership.invited_by = invited_by or membership.invited_by
        await db.flush()

        if newly_active:
            await UsageService.increment(db, tenant_id, UsageResource.users)
        logger.info(
            "Tenant membership upserted",
            tenant_id=tenant_id,
            user_id=user_id,
            role=role.value,
            newly_active=newly_active,
        )
        return membership, newly_active

    @staticmethod
    async def list_members(
        db: AsyncSession, tenant_id: str, include_inactive: bool = False
    ) -> list[tuple[TenantUser, User]]:
        stmt = (
            select(TenantUser, User)
            .join(User, User.id == TenantUser.user_id)
            .where(TenantUser.tenant_id == tenant_id)
            .order_by(TenantUser.created_at)
        )
        if not include_inactive:
            stmt = stmt.where(TenantUser.is_active.is_(True))
        result = await db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def deactivate_member(
        db: AsyncSession, tenant: Tenant, user_id: str
    ) -> TenantUser:
        """Memberships are switched off, never deleted."""
        if user_id == tenant.admin_user_id:
            raise ConflictError(
                "The organization owner cannot be deactivated",
                code="cannot_deactivate_owner",
            )
        membership = await MembershipService.get_active_membership(
            db, tenant.id, user_id
        )
        if membership is None:
            raise NotFoundError(
                "No active member with this id", code="member_not_found"
            )
        membership.is_active = False
        await db.flush()
        logger.info("Tenant member deactivated", tenant_id=tenant.id, user_id=user_id)
        return membership
