"""
seed_demo_tenants.py
--------------------
Load the default subscription plans and five demo organisations, each with
its own admin, through the regular provisioning service.

Safe to re-run: plans and subdomains that already exist are skipped.

Usage:
    python create_tables.py
    python seed_demo_tenants.py
"""

import asyncio
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.config import settings
from crm_saas.core.exceptions import TenancyError
from crm_saas.core.logging import configure_logging, get_logger
from crm_saas.db.session import AsyncSessionLocal, engine
from crm_saas.models.subscription import BillingCycle
from crm_saas.schemas.plan import PlanCreate
from crm_saas.schemas.tenant import AdminUserCreate, TenantCreate
from crm_saas.services.membership_service import MembershipService
from crm_saas.services.plan_service import PlanService
from crm_saas.services.provisioning_service import ProvisioningService
from crm_saas.services.tenant_service import TenantService

logger = get_logger(__name__)

DEFAULT_PLANS = [
    PlanCreate(
        name="Starter",
        description="Perfect for small teams getting started",
        price=Decimal("29.00"),
        billing_cycle=BillingCycle.monthly,
        features={"basic_crm": True, "email_support": True, "basic_analytics": True},
        max_users=5,
        storage_limit=5_000,
        api_calls_limit=5_000,
    ),
    PlanCreate(
        name="Professional",
        description="Advanced features for growing businesses",
        price=Decimal("99.00"),
        billing_cycle=BillingCycle.monthly,
        features={
            "advanced_crm": True,
            "priority_support": True,
            "advanced_analytics": True,
            "integrations": True,
            "custom_fields": True,
        },
        max_users=25,
        storage_limit=50_000,
        api_calls_limit=50_000,
    ),
    PlanCreate(
        name="Enterprise",
        description="Full suite for large organizations",
        price=Decimal("299.00"),
        billing_cycle=BillingCycle.monthly,
        features={
            "full_crm": True,
            "dedicated_support": True,
            "advanced_analytics": True,
            "all_integrations": True,
            "custom_development": True,
            "white_label": True,
        },
        max_users=999,
        storage_limit=1_000_000,
        api_calls_limit=500_000,
    ),
]

DEMO_TENANTS = [
    (
        TenantCreate(name="Acme Corporation", subdomain="acme",
                     billing_email="billing@acme.com"),
        AdminUserCreate(first_name="John", last_name="Smith",
                        email="john@acme.com", password="AcmeAdmin123!"),
    ),
    (
        TenantCreate(name="Tech Innovators Inc", subdomain="techinnovators",
                     billing_email="billing@techinnovators.com"),
        AdminUserCreate(first_name="Sarah", last_name="Johnson",
                        email="sarah@techinnovators.com", password="TechAdmin123!"),
    ),
    (
        TenantCreate(name="Global Solutions Ltd", subdomain="globalsolutions",
                     billing_email="billing@globalsolutions.com"),
        AdminUserCreate(first_name="Michael", last_name="Chen",
                        email="michael@globalsolutions.com", password="GlobalAdmin123!"),
    ),
    (
        TenantCreate(name="Startup Dynamics", subdomain="startupdynamics",
                     billing_email="billing@startupdynamics.com"),
        AdminUserCreate(first_name="Emily", last_name="Rodriguez",
                        email="emily@startupdynamics.com", password="StartupAdmin123!"),
    ),
    (
        TenantCreate(name="Enterprise Systems Corp", subdomain="enterprisesystems",
                     billing_email="billing@enterprisesystems.com"),
        AdminUserCreate(first_name="David", last_name="Wilson",
                        email="david@enterprisesystems.com",
                        password="EnterpriseAdmin123!"),
    ),
]


async def seed_plans(db: AsyncSession) -> int:
    created = 0
    for plan in DEFAULT_PLANS:
        if await PlanService.get_plan_by_name(db, plan.name) is not None:
            continue
        await PlanService.create_plan(db, plan)
        created += 1
    await db.commit()
    return created


async def seed_tenants(db: AsyncSession) -> int:
    """Provision each demo tenant in its own transaction."""
    created = 0
    for tenant_data, admin_data in DEMO_TENANTS:
        if await TenantService.get_tenant_by_subdomain(db, tenant_data.subdomain):
            logger.info("Demo tenant exists, skipping", subdomain=tenant_data.subdomain)
            continue
        try:
            provisioned = await ProvisioningService.provision_tenant(
                db, tenant_data, admin_data
            )
            await db.commit()
        except TenancyError as exc:
            await db.rollback()
            logger.error(
                "Demo tenant failed",
                subdomain=tenant_data.subdomain,
                code=exc.code,
                error=exc.message,
            )
            continue

        tenant = provisioned.tenant
        logger.info(
            "Demo tenant created",
            name=tenant.name,
            admin=provisioned.admin_user.email,
            url=f"{tenant.subdomain}.{settings.BASE_DOMAIN}",
            status=tenant.status,
            trial_ends_at=str(tenant.trial_ends_at),
        )
        created += 1
    return created


async def report(db: AsyncSession) -> None:
    for tenant_data, _ in DEMO_TENANTS:
        tenant = await TenantService.get_tenant_by_subdomain(db, tenant_data.subdomain)
        if tenant is None:
            continue
        members = await MembershipService.list_members(db, tenant.id)
        logger.info(
            "Tenant",
            name=tenant.name,
            url=f"{tenant.subdomain}.{settings.BASE_DOMAIN}",
            users=len(members),
            status=tenant.status,
        )


async def main() -> None:
    async with AsyncSessionLocal() as db:
        plans = await seed_plans(db)
        tenants = await seed_tenants(db)
        await report(db)
    await engine.dispose()
    logger.info("Demo data loaded", plans_created=plans, tenants_created=tenants)


if __name__ == "__main__":
    configure_logging()
    asyncio.run(main())
