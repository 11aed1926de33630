"""
services/tenant_service.py
--------------------------
Tenant directory: host → tenant resolution and account-status gating.

Service layer is responsible for:
  - Constructing queries
  - Enforcing business rules (status gating, subdomain availability)
  - Returning domain objects (ORM models) to the route layer
  - Raising typed errors, never HTTP responses (that's the route's job)
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.config import settings
from crm_saas.core.exceptions import (
    ForbiddenError,
    PaymentRequiredError,
    TenantNotFoundError,
)
from crm_saas.core.logging import get_logger
from crm_saas.models.tenant import Tenant, TenantStatus
from crm_saas.schemas.tenant import (
    SUBDOMAIN_MAX_LENGTH,
    SUBDOMAIN_MIN_LENGTH,
    SUBDOMAIN_PATTERN,
    SubdomainAvailability,
)

logger = get_logger(__name__)


def split_host(host: str) -> tuple[str, str]:
    """
    Normalise a Host header and return (host_without_port, leftmost_label).

        "Acme.Example.com:8000" → ("acme.example.com", "acme")
    """
    hostname = host.strip().lower()
    if hostname.startswith("["):  # IPv6 literal, never a tenant
        return hostname, ""
    hostname = hostname.split(":", 1)[0].rstrip(".")
    return hostname, hostname.split(".", 1)[0]


class TenantService:

    @staticmethod
    async def get_tenant_by_id(db: AsyncSession, tenant_id: str) -> Tenant | None:
        result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_tenant_by_subdomain(
        db: AsyncSession, subdomain: str
    ) -> Tenant | None:
        result = await db.execute(
            select(Tenant).where(Tenant.subdomain == subdomain.lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_tenant_by_custom_domain(
        db: AsyncSession, domain: str
    ) -> Tenant | None:
        result = await db.execute(
            select(Tenant).where(Tenant.custom_domain == domain.lower()).limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_tenant_by_domain(
        db: AsyncSession, subdomain: str, host: Optional[str] = None
    ) -> Tenant | None:
        """Subdomain first, then an exact custom-domain match."""
        tenant = await TenantService.get_tenant_by_subdomain(db, subdomain)
        if tenant is None:
            tenant = await TenantService.get_tenant_by_custom_domain(
                db, host or subdomain
            )
        return tenant

    @staticmethod
    def is_resolution_skipped(label: str, path: str) -> bool:
        if label in settings.RESERVED_SUBDOMAINS:
            return True
        return any(path.startswith(p) for p in settings.TENANT_EXEMPT_PATH_PREFIXES)

    @staticmethod
    async def resolve_host(
        db: AsyncSession, host: str, path: str = "/"
    ) -> Tenant | None:
        """
        Map a request's Host header to its tenant.

        Returns None when resolution is skipped (reserved label such as
        www/api/app, or a health/docs path). Raises TenantNotFoundError when
        neither the subdomain nor the full host as custom domain matches.
        Status is NOT checked here; see ensure_accessible().
        """
        hostname, label = split_host(host)
        if TenantService.is_resolution_skipped(label, path):
            return None

        tenant = None
        if label:
            tenant = await TenantService.get_tenant_by_domain(db, label, hostname)
        if tenant is None:
            logger.info("Tenant not found for host", host=hostname)
            raise TenantNotFoundError(
                "No organization found for this domain",
                details={"host": hostname},
            )
        return tenant

    @staticmethod
    def ensure_accessible(tenant: Tenant) -> Tenant:
        """Gate access on account status: suspended → 403, expired → 402."""
        if tenant.status == TenantStatus.suspended.value:
            raise ForbiddenError(
                "This account has been temporarily suspended. Please contact support.",
                code="tenant_suspended",
            )
        if tenant.status == TenantStatus.expired.value:
            raise PaymentRequiredError(
                "This account's subscription has expired. "
                "Please update your billing information.",
                code="subscription_expired",
            )
        return tenant

    @staticmethod
    async def check_subdomain_availability(
        db: AsyncSession, subdomain: str
    ) -> SubdomainAvailability:
        subdomain = subdomain.strip().lower()

        def unavailable(message: str) -> SubdomainAvailability:
            return SubdomainAvailability(
                subdomain=subdomain, available=False, message=message
            )

        if (
            not SUBDOMAIN_PATTERN.match(subdomain)
            or not SUBDOMAIN_MIN_LENGTH <= len(subdomain) <= SUBDOMAIN_MAX_LENGTH
        ):
            return unavailable(
                "Subdomain must be 3-63 characters long and contain only "
                "lowercase letters, numbers, and hyphens"
            )
        if subdomain in settings.UNAVAILABLE_SUBDOMAINS:
            return unavailable("This subdomain is reserved")
        if await TenantService.get_tenant_by_subdomain(db, subdomain) is not None:
            return unavailable("This subdomain is already taken")
        return SubdomainAvailability(
            subdomain=subdomain, available=True, message="Subdomain is available"
        )

    @staticmethod
    async def update_settings(
        db: AsyncSession, tenant: Tenant, new_settings: dict[str, Any]
    ) -> Tenant:
        # Replace, don't mutate: JSON columns don't track in-place changes
        tenant.settings = dict(new_settings)
        await db.flush()
        await db.refresh(tenant)
        logger.info("Tenant settings updated", tenant_id=tenant.id)
        return tenant
