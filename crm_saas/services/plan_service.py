"""
services/plan_service.py
------------------------
Subscription plan catalogue and tenant subscription records.

Payment-provider calls live outside this service; assign_plan() records the
outcome of a billing event locally and copies the plan's limits onto the
tenant, which stays the source of truth for enforcement.
"""

from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.exceptions import ForbiddenError, NotFoundError
from crm_saas.core.logging import get_logger
from crm_saas.db.base import utcnow
from crm_saas.models.subscription import (
    BillingCycle,
    SubscriptionPlan,
    SubscriptionStatus,
    TenantSubscription,
)
from crm_saas.models.tenant import Tenant, TenantStatus
from crm_saas.schemas.plan import PlanCreate

logger = get_logger(__name__)

BILLING_PERIODS = {
    BillingCycle.monthly.value: timedelta(days=30),
    BillingCycle.yearly.value: timedelta(days=365),
}


class PlanService:

    @staticmethod
    async def list_active_plans(db: AsyncSession) -> list[SubscriptionPlan]:
        result = await db.execute(
            select(SubscriptionPlan)
            .where(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.price)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_plan(db: AsyncSession, plan_id: int) -> SubscriptionPlan:
        result = await db.execute(
            select(SubscriptionPlan).where(SubscriptionPlan.id == plan_id)
        )
        plan = result.scalar_one_or_none()
        if plan is None or not plan.is_active:
            raise NotFoundError("Selected plan not found", code="plan_not_found")
        return plan

    @staticmethod
    async def get_plan_by_name(db: AsyncSession, name: str) -> SubscriptionPlan | None:
        result = await db.execute(
            select(SubscriptionPlan).where(SubscriptionPlan.name == name).limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def create_plan(db: AsyncSession, data: PlanCreate) -> SubscriptionPlan:
        plan = SubscriptionPlan(
            name=data.name,
            description=data.description,
            price=data.price,
            currency=data.currency.upper(),
            billing_cycle=data.billing_cycle.value,
            features=data.features,
            max_users=data.max_users,
            storage_limit=data.storage_limit,
            api_calls_limit=data.api_calls_limit,
            is_active=True,
        )
        db.add(plan)
        await db.flush()
        await db.refresh(plan)
        logger.info("Subscription plan created", plan_id=plan.id, name=plan.name)
        return plan

    @staticmethod
    async def get_tenant_subscription(
        db: AsyncSession, tenant_id: str
    ) -> TenantSubscription | None:
        """Most recent subscription record of the tenant."""
        result = await db.execute(
            select(TenantSubscription)
            .where(TenantSubscription.tenant_id == tenant_id)
            .order_by(TenantSubscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def assign_plan(
        db: AsyncSession, tenant: Tenant, plan_id: int
    ) -> TenantSubscription:
        """
        Put the tenant on `plan_id` for one billing period: limits are
        copied from the plan and the tenant becomes active.
        """
        plan = await PlanService.get_plan(db, plan_id)
        now = utcnow()

        tenant.plan_id = plan.id
        tenant.max_users = plan.max_users
        tenant.storage_limit = plan.storage_limit
        tenant.api_calls_limit = plan.api_calls_limit
        tenant.status = TenantStatus.active.value

        subscription = TenantSubscription(
            tenant_id=tenant.id,
            plan_id=plan.id,
            status=SubscriptionStatus.active.value,
            current_period_start=now,
            current_period_end=now + BILLING_PERIODS.get(
                plan.billing_cycle, BILLING_PERIODS[BillingCycle.monthly.value]
            ),
            cancel_at_period_end=False,
        )
        db.add(subscription)
        await db.flush()
        await db.refresh(tenant)
        await db.refresh(subscription)
        logger.info("Plan assigned", tenant_id=tenant.id, plan_id=plan.id)
        return subscription

    @staticmethod
    async def require_feature(
        db: AsyncSession, tenant: Tenant, feature: str
    ) -> SubscriptionPlan:
        """
        The tenant's plan, provided its `features` enable `feature`.

        Raises:
            ForbiddenError: subscription_required when the tenant is on no
                plan, feature_not_available when the plan leaves it out.
        """
        plan = None
        if tenant.plan_id is not None:
            result = await db.execute(
                select(SubscriptionPlan).where(SubscriptionPlan.id == tenant.plan_id)
            )
            plan = result.scalar_one_or_none()

        if plan is None:
            raise ForbiddenError(
                "A subscription plan is required to access this feature",
                code="subscription_required",
                details={"feature": feature, "upgrade_required": True},
            )
        if not (plan.features or {}).get(feature):
            raise ForbiddenError(
                f"The {feature} feature is not included in the {plan.name} plan",
                code="feature_not_available",
                details={
                    "feature": feature,
                    "current_plan": plan.name,
                    "upgrade_required": True,
                },
            )
        return plan
