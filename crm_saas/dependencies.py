"""
dependencies.py
---------------
FastAPI dependency injection functions for authentication, tenant binding
and authorisation.

Flow:
  1. OAuth2PasswordBearer extracts the Bearer token from the Authorization header.
  2. decode_access_token validates and parses the JWT (no DB round-trip).
  3. get_current_user fetches the full User record from the DB.
  4. get_current_tenant maps the Host header to a tenant and gates on its
     status; require_tenant insists that one was resolved.
  5. require_tenant_role(min_role) checks the user's membership in that
     tenant and hands the membership to the route.
  6. require_plan_feature(name) refuses tenants whose plan does not enable
     the named feature.

The JWT carries no tenant. Which tenant a request touches is decided by the
host it was sent to, and membership is re-checked on every request.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_saas.core.exceptions import BadRequestError
from crm_saas.core.logging import bind_request_context, get_logger
from crm_saas.core.security import decode_access_token
from crm_saas.db.session import get_db, get_session_factory
from crm_saas.models.subscription import SubscriptionPlan
from crm_saas.models.tenant import Tenant
from crm_saas.models.tenant_user import TenantRole, TenantUser
from crm_saas.models.user import User
from crm_saas.services.membership_service import MembershipService
from crm_saas.services.plan_service import PlanService
from crm_saas.services.tenant_service import TenantService
from crm_saas.services.usage_service import UsageService
from crm_saas.services.user_service import UserService

logger = get_logger(__name__)

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/login", auto_error=False)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_optional_user(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User | None:
    """
    The authenticated user, or None when no Authorization header was sent.
    A header that is present but invalid is still rejected with 401.
    """
    if not token:
        return None
    try:
        payload = decode_access_token(token)
        user_id: str = payload.get("sub")
        if not user_id:
            raise _CREDENTIALS_EXCEPTION
    except JWTError as exc:
        logger.warning("JWT decode failed", error=str(exc))
        raise _CREDENTIALS_EXCEPTION

    # Always re-verify against DB so revoked / deleted users are rejected
    user = await UserService.get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        logger.warning("User from valid JWT not found in DB", user_id=user_id)
        raise _CREDENTIALS_EXCEPTION

    bind_request_context(user_id=user.id)
    return user


async def get_current_user(
    user: Annotated[Optional[User], Depends(get_optional_user)],
) -> User:
    """Raises 401 if the request carries no valid token."""
    if user is None:
        raise _CREDENTIALS_EXCEPTION
    return user


async def get_platform_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Extends get_current_user with a platform operator check.
    Raises 403 if the user does not run the SaaS console.
    """
    if not current_user.is_platform_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Platform admin privileges required",
        )
    return current_user


async def get_current_tenant(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Tenant | None:
    """
    Resolve the tenant addressed by the Host header.

    None means resolution was skipped (reserved label or exempt path).
    Unknown hosts raise TenantNotFoundError; suspended and expired tenants
    are refused by ensure_accessible().
    """
    host = request.headers.get("host", "")
    tenant = await TenantService.resolve_host(db, host, request.url.path)
    if tenant is None:
        return None

    TenantService.ensure_accessible(tenant)
    request.state.tenant = tenant
    bind_request_context(tenant_id=tenant.id, subdomain=tenant.subdomain)
    return tenant


async def require_tenant(
    tenant: Annotated[Optional[Tenant], Depends(get_current_tenant)],
) -> Tenant:
    if tenant is None:
        raise BadRequestError(
            "This endpoint must be called on an organization's domain",
            code="tenant_context_required",
        )
    return tenant


def require_tenant_role(min_role: TenantRole = TenantRole.readonly):
    """
    Dependency factory: the caller must be an active member of the request's
    tenant holding at least `min_role`.

        @router.get("/tenant/users")
        async def handler(
            membership: Annotated[TenantUser, Depends(require_tenant_role(TenantRole.manager))],
        ): ...
    """

    async def dependency(
        request: Request,
        tenant: Annotated[Tenant, Depends(require_tenant)],
        user: Annotated[Optional[User], Depends(get_optional_user)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> TenantUser:
        membership = await MembershipService.check_permission(
            db, tenant, user, min_role
        )
        request.state.tenant_user = membership
        return membership

    return dependency


def require_plan_feature(feature: str):
    """
    Dependency factory: the request's tenant must be on a plan whose
    `features` enable `feature`. The plan is handed to the route.

        @router.get("/tenant/reports/advanced")
        async def handler(
            plan: Annotated[SubscriptionPlan, Depends(require_plan_feature("advanced_analytics"))],
        ): ...
    """

    async def dependency(
        request: Request,
        tenant: Annotated[Tenant, Depends(require_tenant)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> SubscriptionPlan:
        plan = await PlanService.require_feature(db, tenant, feature)
        request.state.plan = plan
        return plan

    return dependency


async def track_api_usage(
    tenant: Annotated[Tenant, Depends(require_tenant)],
    session_factory: Annotated[async_sessionmaker, Depends(get_session_factory)],
) -> None:
    """Count the request against the tenant's monthly API calls."""
    await UsageService.track_api_call(session_factory, tenant.id)
