"""
api/routes/workspace.py
-----------------------
Endpoints of the tenant addressed by the request host
(acme.yourdomain.com/tenant/...).

GET    /tenant                      Tenant, subscription and limits (any member).
PUT    /tenant/settings             Replace tenant settings (admin).
GET    /tenant/users                List active members (manager).
DELETE /tenant/users/{user_id}      Deactivate a member (admin).
GET    /tenant/usage                Monthly usage history (manager).
GET    /tenant/limits               Current usage against limits (any member).
POST   /tenant/invitations          Invite an email address (admin).

Every call is counted against the tenant's monthly API calls.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.db.session import get_db
from crm_saas.dependencies import require_tenant, require_tenant_role, track_api_usage
from crm_saas.models.tenant import Tenant
from crm_saas.models.tenant_user import TenantRole, TenantUser
from crm_saas.schemas.invitation import (
    InvitationCreate,
    InvitationIssued,
    InvitationRead,
)
from crm_saas.schemas.plan import SubscriptionRead
from crm_saas.schemas.tenant import TenantOverview, TenantRead, TenantSettingsUpdate
from crm_saas.schemas.usage import TenantLimits, UsageRead
from crm_saas.schemas.user import MembershipRead, TenantMemberRead, UserRead
from crm_saas.services.invitation_service import InvitationService, invitation_url
from crm_saas.services.membership_service import MembershipService
from crm_saas.services.plan_service import PlanService
from crm_saas.services.tenant_service import TenantService
from crm_saas.services.usage_service import UsageService

router = APIRouter(
    prefix="/tenant",
    tags=["Workspace"],
    dependencies=[Depends(track_api_usage)],
)

Member = Annotated[TenantUser, Depends(require_tenant_role(TenantRole.readonly))]
Manager = Annotated[TenantUser, Depends(require_tenant_role(TenantRole.manager))]
Admin = Annotated[TenantUser, Depends(require_tenant_role(TenantRole.admin))]
CurrentTenant = Annotated[Tenant, Depends(require_tenant)]
DB = Annotated[AsyncSession, Depends(get_db)]


@router.get("", response_model=TenantOverview, summary="Current tenant overview")
async def get_tenant(
    tenant: CurrentTenant, membership: Member, db: DB
) -> TenantOverview:
    subscription = await PlanService.get_tenant_subscription(db, tenant.id)
    limits = await UsageService.check_limits(db, tenant)
    return TenantOverview(
        tenant=TenantRead.model_validate(tenant),
        subscription=(
            SubscriptionRead.model_validate(subscription) if subscription else None
        ),
        limits=limits,
    )


@router.put(
    "/settings", response_model=TenantRead, summary="Replace tenant settings"
)
async def update_settings(
    body: TenantSettingsUpdate, tenant: CurrentTenant, membership: Admin, db: DB
) -> TenantRead:
    tenant = await TenantService.update_settings(db, tenant, body.settings)
    return TenantRead.model_validate(tenant)


@router.get(
    "/users", response_model=list[TenantMemberRead], summary="List tenant members"
)
async def list_members(
    tenant: CurrentTenant, membership: Manager, db: DB
) -> list[TenantMemberRead]:
    members = await MembershipService.list_members(db, tenant.id)
    return [
        TenantMemberRead(
            membership=MembershipRead.model_validate(m),
            user=UserRead.model_validate(u),
        )
        for m, u in members
    ]


@router.delete(
    "/users/{user_id}",
    response_model=MembershipRead,
    summary="Deactivate a tenant member",
)
async def deactivate_member(
    user_id: str, tenant: CurrentTenant, membership: Admin, db: DB
) -> MembershipRead:
    deactivated = await MembershipService.deactivate_member(db, tenant, user_id)
    return MembershipRead.model_validate(deactivated)


@router.get(
    "/usage", response_model=list[UsageRead], summary="Monthly usage history"
)
async def usage_history(
    tenant: CurrentTenant,
    membership: Manager,
    db: DB,
    months: Annotated[int, Query(ge=1, le=36)] = 12,
) -> list[UsageRead]:
    rows = await UsageService.usage_history(db, tenant.id, months)
    return [UsageRead.model_validate(r) for r in rows]


@router.get(
    "/limits", response_model=TenantLimits, summary="Current usage against limits"
)
async def get_limits(
    tenant: CurrentTenant, membership: Member, db: DB
) -> TenantLimits:
    return await UsageService.check_limits(db, tenant)


@router.post(
    "/invitations",
    response_model=InvitationIssued,
    status_code=status.HTTP_201_CREATED,
    summary="Invite a user into the tenant",
)
async def invite_user(
    body: InvitationCreate, tenant: CurrentTenant, membership: Admin, db: DB
) -> InvitationIssued:
    """
    The returned URL is what the invitation email would carry; sending the
    email is left to the caller.
    """
    invitation = await InvitationService.invite(
        db, tenant, membership, str(body.email), body.role
    )
    return InvitationIssued(
        invitation=InvitationRead.model_validate(invitation),
        invitation_url=invitation_url(tenant, invitation.token),
    )
