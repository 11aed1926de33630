"""
services/platform_service.py
----------------------------
SaaS console operations across all tenants: listing, status and limit
changes, deletion, and platform statistics.

Usage numbers shown here come from tenant_usage; nothing is estimated.
"""

from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.exceptions import BadRequestError, TenantNotFoundError
from crm_saas.core.logging import get_logger
from crm_saas.db.base import utcnow
from crm_saas.db.session import atomic
from crm_saas.models.invitation import TenantInvitation
from crm_saas.models.subscription import SubscriptionPlan, TenantSubscription
from crm_saas.models.tenant import Tenant, TenantStatus
from crm_saas.models.tenant_user import TenantUser
from crm_saas.models.usage import TenantUsage
from crm_saas.models.user import User
from crm_saas.schemas.tenant import (
    PlatformStats,
    PlatformTenantSummary,
    PlatformUsage,
    TenantLimitsUpdate,
    TenantRead,
)
from crm_saas.services.usage_service import month_key

logger = get_logger(__name__)


class PlatformService:

    @staticmethod
    async def get_tenant(db: AsyncSession, tenant_id: str) -> Tenant:
        result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
        tenant = result.scalar_one_or_none()
        if tenant is None:
            raise TenantNotFoundError(f"Tenant '{tenant_id}' not found")
        return tenant

    @staticmethod
    def _summary_query():
        month = month_key()
        member_counts = (
            select(TenantUser.tenant_id, func.count(TenantUser.id).label("members"))
            .where(TenantUser.is_active.is_(True))
            .group_by(TenantUser.tenant_id)
            .subquery()
        )
        return (
            select(
                Tenant,
                User.email,
                SubscriptionPlan.name,
                func.coalesce(member_counts.c.members, 0),
                func.coalesce(TenantUsage.storage_used, 0),
                func.coalesce(TenantUsage.api_calls, 0),
            )
            .outerjoin(User, User.id == Tenant.admin_user_id)
            .outerjoin(SubscriptionPlan, SubscriptionPlan.id == Tenant.plan_id)
            .outerjoin(member_counts, member_counts.c.tenant_id == Tenant.id)
            .outerjoin(
                TenantUsage,
                (TenantUsage.tenant_id == Tenant.id) & (TenantUsage.month == month),
            )
        )

    @staticmethod
    def _to_summary(row) -> PlatformTenantSummary:
        tenant, admin_email, plan_name, members, storage, api_calls = row
        return PlatformTenantSummary(
            tenant=TenantRead.model_validate(tenant),
            admin_email=admin_email,
            plan_name=plan_name,
            member_count=members,
            storage_used=storage,
            api_calls_used=api_calls,
        )

    @staticmethod
    async def list_tenants(
        db: AsyncSession, status: Optional[TenantStatus] = None
    ) -> list[PlatformTenantSummary]:
        """Tenants newest first, with admin, plan, member count and usage."""
        stmt = PlatformService._summary_query().order_by(Tenant.created_at.desc())
        if status is not None:
            stmt = stmt.where(Tenant.status == status.value)
        result = await db.execute(stmt)
        return [PlatformService._to_summary(row) for row in result.all()]

    @staticmethod
    async def get_tenant_summary(
        db: AsyncSession, tenant_id: str
    ) -> PlatformTenantSummary:
        result = await db.execute(
            PlatformService._summary_query().where(Tenant.id == tenant_id)
        )
        row = result.first()
        if row is None:
            raise TenantNotFoundError(f"Tenant '{tenant_id}' not found")
        return PlatformService._to_summary(row)

    @staticmethod
    async def update_status(
        db: AsyncSession, tenant_id: str, status: TenantStatus
    ) -> Tenant:
        tenant = await PlatformService.get_tenant(db, tenant_id)
        previous = tenant.status
        tenant.status = status.value
        await db.flush()
        await db.refresh(tenant)
        logger.info(
            "Tenant status changed",
            tenant_id=tenant_id,
            previous=previous,
            status=status.value,
        )
        return tenant

    @staticmethod
    async def update_limits(
        db: AsyncSession, tenant_id: str, limits: TenantLimitsUpdate
    ) -> Tenant:
        tenant = await PlatformService.get_tenant(db, tenant_id)
        for field, value in limits.model_dump(exclude_none=True).items():
            setattr(tenant, field, value)
        await db.flush()
        await db.refresh(tenant)
        logger.info("Tenant limits changed", tenant_id=tenant_id)
        return tenant

    @staticmethod
    async def delete_tenant(
        db: AsyncSession, tenant_id: str, confirm: bool = False
    ) -> None:
        """
        Hard-delete a tenant and everything that hangs off it. Requires an
        explicit confirmation flag; platform users themselves are kept.
        """
        if not confirm:
            raise BadRequestError(
                "Tenant deletion requires confirmation",
                code="confirmation_required",
            )
        tenant = await PlatformService.get_tenant(db, tenant_id)

        async with atomic(db):
            await db.execute(delete(TenantUsage).where(TenantUsage.tenant_id == tenant_id))
            await db.execute(
                delete(TenantInvitation).where(TenantInvitation.tenant_id == tenant_id)
            )
            await db.execute(
                delete(TenantSubscription).where(
                    TenantSubscription.tenant_id == tenant_id
                )
            )
            await db.execute(delete(TenantUser).where(TenantUser.tenant_id == tenant_id))
            await db.delete(tenant)
        logger.warning("Tenant deleted", tenant_id=tenant_id)

    @staticmethod
    async def stats(db: AsyncSession) -> PlatformStats:
        by_status = await db.execute(
            select(Tenant.status, func.count(Tenant.id)).group_by(Tenant.status)
        )
        counts = {status.value: 0 for status in TenantStatus}
        counts.update({status: count for status, count in by_status.all()})

        total_users = await db.execute(
            select(func.count(TenantUser.id)).where(TenantUser.is_active.is_(True))
        )
        usage = await db.execute(
            select(
                func.coalesce(func.sum(TenantUsage.api_calls), 0),
                func.coalesce(func.sum(TenantUsage.storage_used), 0),
            ).where(TenantUsage.month == month_key())
        )
        api_calls, storage = usage.one()
        return PlatformStats(
            total_tenants=sum(counts.values()),
            tenants_by_status=counts,
            total_users=total_users.scalar_one(),
            api_calls_this_month=api_calls,
            storage_used_this_month=storage,
        )

    @staticmethod
    async def usage_overview(db: AsyncSession) -> PlatformUsage:
        month = month_key()
        total_users = await db.execute(
            select(func.count(TenantUser.id)).where(TenantUser.is_active.is_(True))
        )
        allocated = await db.execute(
            select(func.coalesce(func.sum(Tenant.storage_limit), 0)).where(
                Tenant.status == TenantStatus.active.value
            )
        )
        used = await db.execute(
            select(
                func.coalesce(func.sum(TenantUsage.storage_used), 0),
                func.coalesce(func.sum(TenantUsage.api_calls), 0),
            ).where(TenantUsage.month == month)
        )
        storage_used, api_calls = used.one()
        return PlatformUsage(
            month=month,
            total_users=total_users.scalar_one(),
            total_storage_allocated=allocated.scalar_one(),
            total_storage_used=storage_used,
            total_api_calls=api_calls,
            last_updated=utcnow(),
        )
