"""
api/routes/tenants.py
---------------------
Public onboarding endpoints.

POST /tenants/register                              Self-service signup.
GET  /tenants/subdomains/{subdomain}/availability   Check a subdomain.
GET  /plans                                         Active subscription plans.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.db.session import get_db
from crm_saas.schemas.plan import PlanRead
from crm_saas.schemas.tenant import (
    SubdomainAvailability,
    TenantRead,
    TenantRegister,
    TenantRegistrationResponse,
)
from crm_saas.schemas.user import UserRead
from crm_saas.services.plan_service import PlanService
from crm_saas.services.provisioning_service import ProvisioningService
from crm_saas.services.tenant_service import TenantService

router = APIRouter(tags=["Tenants"])


@router.post(
    "/tenants/register",
    response_model=TenantRegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Onboard a new organization with its first admin",
)
async def register_tenant(
    body: TenantRegister,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TenantRegistrationResponse:
    """
    Public endpoint, no authentication required.
    The tenant starts a trial; the admin can log in right away and reach the
    workspace at <subdomain>.<base domain>.
    """
    provisioned = await ProvisioningService.provision_tenant(
        db, body.tenant, body.admin
    )
    return TenantRegistrationResponse(
        tenant=TenantRead.model_validate(provisioned.tenant),
        admin_user=UserRead.model_validate(provisioned.admin_user),
    )


@router.get(
    "/tenants/subdomains/{subdomain}/availability",
    response_model=SubdomainAvailability,
    summary="Check whether a subdomain can be claimed",
)
async def subdomain_availability(
    subdomain: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SubdomainAvailability:
    return await TenantService.check_subdomain_availability(db, subdomain)


@router.get(
    "/plans",
    response_model=list[PlanRead],
    summary="List active subscription plans",
)
async def list_plans(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[PlanRead]:
    plans = await PlanService.list_active_plans(db)
    return [PlanRead.model_validate(p) for p in plans]
