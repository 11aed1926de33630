"""
api/routes/saas_admin.py
------------------------
SaaS console endpoints for platform operators (users.is_platform_admin).

GET    /saas/stats                     Tenant counts and current-month totals.
GET    /saas/usage                     Platform-wide resource usage.
GET    /saas/tenants                   All tenants (optional ?status= filter).
POST   /saas/tenants                   Create a tenant with its admin.
GET    /saas/tenants/{tenant_id}       One tenant with usage.
DELETE /saas/tenants/{tenant_id}       Delete a tenant (?confirm=true).
PUT    /saas/tenants/{tenant_id}/status
PUT    /saas/tenants/{tenant_id}/limits
PUT    /saas/tenants/{tenant_id}/plan
POST   /saas/plans                     Add a subscription plan.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.logging import get_logger
from crm_saas.core.security import generate_temporary_password
from crm_saas.db.session import get_db
from crm_saas.dependencies import get_platform_admin
from crm_saas.models.tenant import TenantStatus
from crm_saas.models.user import User
from crm_saas.schemas.plan import PlanAssign, PlanCreate, PlanRead, SubscriptionRead
from crm_saas.schemas.tenant import (
    AdminUserCreate,
    PlatformStats,
    PlatformTenantCreate,
    PlatformTenantCreated,
    PlatformTenantSummary,
    PlatformUsage,
    TenantCreate,
    TenantLimitsUpdate,
    TenantRead,
    TenantStatusUpdate,
)
from crm_saas.schemas.user import UserRead
from crm_saas.services.plan_service import PlanService
from crm_saas.services.platform_service import PlatformService
from crm_saas.services.provisioning_service import ProvisioningService

logger = get_logger(__name__)

router = APIRouter(prefix="/saas", tags=["SaaS Admin"])

PlatformAdmin = Annotated[User, Depends(get_platform_admin)]
DB = Annotated[AsyncSession, Depends(get_db)]


@router.get("/stats", response_model=PlatformStats, summary="Platform statistics")
async def platform_stats(admin: PlatformAdmin, db: DB) -> PlatformStats:
    return await PlatformService.stats(db)


@router.get("/usage", response_model=PlatformUsage, summary="Platform usage")
async def platform_usage(admin: PlatformAdmin, db: DB) -> PlatformUsage:
    return await PlatformService.usage_overview(db)


@router.get(
    "/tenants",
    response_model=list[PlatformTenantSummary],
    summary="List all tenants",
)
async def list_tenants(
    admin: PlatformAdmin,
    db: DB,
    tenant_status: Annotated[Optional[TenantStatus], Query(alias="status")] = None,
) -> list[PlatformTenantSummary]:
    return await PlatformService.list_tenants(db, tenant_status)


@router.post(
    "/tenants",
    response_model=PlatformTenantCreated,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tenant from the console",
)
async def create_tenant(
    body: PlatformTenantCreate, admin: PlatformAdmin, db: DB
) -> PlatformTenantCreated:
    """
    Same provisioning as public signup. When no admin password is given a
    temporary one is generated and returned in this response only.
    """
    temporary_password = None
    password = body.admin_password
    if password is None:
        temporary_password = password = generate_temporary_password()

    provisioned = await ProvisioningService.provision_tenant(
        db,
        TenantCreate(
            name=body.name,
            subdomain=body.subdomain,
            billing_email=body.billing_email,
        ),
        AdminUserCreate(
            email=body.admin_email,
            password=password,
            first_name=body.admin_first_name,
            last_name=body.admin_last_name,
        ),
        plan_id=body.plan_id,
    )
    logger.info(
        "Tenant created from console",
        tenant_id=provisioned.tenant.id,
        platform_admin_id=admin.id,
    )
    return PlatformTenantCreated(
        tenant=TenantRead.model_validate(provisioned.tenant),
        admin_user=UserRead.model_validate(provisioned.admin_user),
        temporary_password=temporary_password,
    )


@router.get(
    "/tenants/{tenant_id}",
    response_model=PlatformTenantSummary,
    summary="Tenant details",
)
async def get_tenant(
    tenant_id: str, admin: PlatformAdmin, db: DB
) -> PlatformTenantSummary:
    return await PlatformService.get_tenant_summary(db, tenant_id)


@router.delete(
    "/tenants/{tenant_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a tenant and all of its data",
)
async def delete_tenant(
    tenant_id: str,
    admin: PlatformAdmin,
    db: DB,
    confirm: bool = False,
) -> Response:
    await PlatformService.delete_tenant(db, tenant_id, confirm=confirm)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put(
    "/tenants/{tenant_id}/status",
    response_model=TenantRead,
    summary="Change a tenant's status",
)
async def update_status(
    tenant_id: str, body: TenantStatusUpdate, admin: PlatformAdmin, db: DB
) -> TenantRead:
    tenant = await PlatformService.update_status(db, tenant_id, body.status)
    return TenantRead.model_validate(tenant)


@router.put(
    "/tenants/{tenant_id}/limits",
    response_model=TenantRead,
    summary="Override a tenant's limits",
)
async def update_limits(
    tenant_id: str, body: TenantLimitsUpdate, admin: PlatformAdmin, db: DB
) -> TenantRead:
    tenant = await PlatformService.update_limits(db, tenant_id, body)
    return TenantRead.model_validate(tenant)


@router.put(
    "/tenants/{tenant_id}/plan",
    response_model=SubscriptionRead,
    summary="Move a tenant onto a plan",
)
async def assign_plan(
    tenant_id: str, body: PlanAssign, admin: PlatformAdmin, db: DB
) -> SubscriptionRead:
    tenant = await PlatformService.get_tenant(db, tenant_id)
    subscription = await PlanService.assign_plan(db, tenant, body.plan_id)
    return SubscriptionRead.model_validate(subscription)


@router.post(
    "/plans",
    response_model=PlanRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a subscription plan",
)
async def create_plan(body: PlanCreate, admin: PlatformAdmin, db: DB) -> PlanRead:
    plan = await PlanService.create_plan(db, body)
    return PlanRead.model_validate(plan)
