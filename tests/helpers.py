"""Builders shared by the test modules."""

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.models import TenantRole
from crm_saas.schemas.tenant import AdminUserCreate, TenantCreate
from crm_saas.services.membership_service import MembershipService
from crm_saas.services.provisioning_service import (
    ProvisionedTenant,
    ProvisioningService,
)
from crm_saas.services.user_service import UserService

BASE_DOMAIN = "yourdomain.com"
ADMIN_PASSWORD = "AcmeAdmin123!"
MEMBER_PASSWORD = "Member123!"


def tenant_host(subdomain: str) -> dict:
    return {"host": f"{subdomain}.{BASE_DOMAIN}"}


async def provision(
    db: AsyncSession,
    subdomain: str = "acme",
    name: str = "Acme Corporation",
    admin_email: str = "john@acme.example.com",
) -> ProvisionedTenant:
    return await ProvisioningService.provision_tenant(
        db,
        TenantCreate(name=name, subdomain=subdomain),
        AdminUserCreate(
            email=admin_email,
            password=ADMIN_PASSWORD,
            first_name="John",
            last_name="Smith",
        ),
    )


async def add_member(
    db: AsyncSession, tenant_id: str, email: str, role: TenantRole
):
    user = await UserService.create_user(db, email=email, password=MEMBER_PASSWORD)
    membership, _ = await MembershipService.add_user_to_tenant(
        db, tenant_id, user.id, role
    )
    return user, membership


async def login(client: AsyncClient, email: str, password: str) -> dict:
    response = await client.post(
        "/login", data={"username": email, "password": password}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
