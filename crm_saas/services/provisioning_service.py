"""
services/provisioning_service.py
--------------------------------
Atomic creation of a tenant together with its first admin.

One unit of work:
  tenant (status=trial, trial_ends_at=now+TRIAL_PERIOD_DAYS)
  → admin user (bcrypt hash)
  → admin membership
  → tenants.admin_user_id back-fill
  → current-month usage row with user_count=1

Any failure rolls the whole session back, so there is never a tenant without
an admin or a user without a membership. Callers (get_db, the seed script)
commit.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.config import settings
from crm_saas.core.exceptions import BadRequestError, ConflictError
from crm_saas.core.logging import get_logger
from crm_saas.db.base import utcnow
from crm_saas.db.session import atomic
from crm_saas.models.tenant import Tenant, TenantStatus
from crm_saas.models.tenant_user import TenantRole, TenantUser
from crm_saas.models.user import User
from crm_saas.schemas.tenant import AdminUserCreate, TenantCreate
from crm_saas.services.membership_service import MembershipService
from crm_saas.services.plan_service import PlanService
from crm_saas.services.tenant_service import TenantService
from crm_saas.services.user_service import UserService

logger = get_logger(__name__)


@dataclass
class ProvisionedTenant:
    tenant: Tenant
    admin_user: User
    membership: TenantUser


class ProvisioningService:

    @staticmethod
    async def _check_preconditions(
        db: AsyncSession, tenant_data: TenantCreate, admin_data: AdminUserCreate
    ) -> None:
        if tenant_data.subdomain in settings.UNAVAILABLE_SUBDOMAINS:
            raise BadRequestError(
                "This subdomain is reserved", code="subdomain_reserved"
            )
        if await TenantService.get_tenant_by_subdomain(db, tenant_data.subdomain):
            raise ConflictError(
                "This subdomain is already taken",
                code="subdomain_taken",
                details={"subdomain": tenant_data.subdomain},
            )
        if await UserService.get_user_by_email(db, admin_data.email):
            raise ConflictError(
                f"Email '{admin_data.email}' is already registered",
                code="email_taken",
            )

    @staticmethod
    async def provision_tenant(
        db: AsyncSession,
        tenant_data: TenantCreate,
        admin_data: AdminUserCreate,
        plan_id: Optional[int] = None,
    ) -> ProvisionedTenant:
        """
        Create a tenant, its admin user and the admin membership as one unit.

        Raises:
            BadRequestError: reserved subdomain.
            ConflictError: subdomain or admin email already taken, or a
                concurrent signup won a unique constraint.
            NotFoundError: plan_id given but unknown.
        """
        await ProvisioningService._check_preconditions(db, tenant_data, admin_data)

        try:
            async with atomic(db):
                tenant = Tenant(
                    name=tenant_data.name,
                    subdomain=tenant_data.subdomain,
                    custom_domain=tenant_data.custom_domain,
                    billing_email=(
                        str(tenant_data.billing_email)
                        if tenant_data.billing_email
                        else admin_data.email.lower()
                    ),
                    status=TenantStatus.trial.value,
                    trial_ends_at=utcnow() + timedelta(days=settings.TRIAL_PERIOD_DAYS),
                    settings={},
                    is_active=True,
                    max_users=settings.DEFAULT_MAX_USERS,
                    storage_limit=settings.DEFAULT_STORAGE_LIMIT_MB,
                    api_calls_limit=settings.DEFAULT_API_CALLS_LIMIT,
                )
                db.add(tenant)
                await db.flush()  # Trigger the subdomain constraint early

                admin_user = await UserService.create_user(
                    db,
                    email=admin_data.email,
                    password=admin_data.password,
                    first_name=admin_data.first_name,
                    last_name=admin_data.last_name,
                    is_verified=True,
                )

                # Also seeds this month's usage row with user_count=1
                membership, _ = await MembershipService.add_user_to_tenant(
                    db, tenant.id, admin_user.id, TenantRole.admin
                )

                tenant.admin_user_id = admin_user.id
                await db.flush()

                if plan_id is not None:
                    # Activates the tenant; the trial no longer applies
                    await PlanService.assign_plan(db, tenant, plan_id)
                    tenant.trial_ends_at = None
                    await db.flush()
        except IntegrityError as exc:
            logger.warning(
                "Tenant provisioning hit a unique constraint",
                subdomain=tenant_data.subdomain,
                error=str(exc.orig),
            )
            raise ConflictError(
                "Subdomain or admin email is already registered",
                code="provisioning_conflict",
            ) from exc

        await db.refresh(tenant)
        await db.refresh(admin_user)
        await db.refresh(membership)
        logger.info(
            "Tenant provisioned",
            tenant_id=tenant.id,
            subdomain=tenant.subdomain,
            admin_user_id=admin_user.id,
            status=tenant.status,
        )
        return ProvisionedTenant(
            tenant=tenant, admin_user=admin_user, membership=membership
        )
