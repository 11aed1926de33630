# tests/test_tenant_directory.py
"""
Host to tenant resolution and status gating
Tests: subdomain / custom-domain lookup, skipped hosts and paths,
suspended and expired tenants, subdomain availability
"""

import pytest

from crm_saas.core.exceptions import (
    ErrorKind,
    ForbiddenError,
    PaymentRequiredError,
    TenantNotFoundError,
)
from crm_saas.models import TenantStatus
from crm_saas.services.tenant_service import TenantService, split_host


class TestSplitHost:

    @pytest.mark.parametrize(
        "host, expected",
        [
            ("acme.yourdomain.com", ("acme.yourdomain.com", "acme")),
            ("Acme.YourDomain.com:8000", ("acme.yourdomain.com", "acme")),
            ("localhost:8000", ("localhost", "localhost")),
            ("crm.acme-corp.com.", ("crm.acme-corp.com", "crm")),
        ],
    )
    def test_normalises_host(self, host, expected):
        assert split_host(host) == expected


class TestResolveHost:
    """resolve_host maps a Host header to exactly one tenant or fails"""

    async def test_resolves_by_subdomain(self, db_session, acme):
        tenant = await TenantService.resolve_host(db_session, "acme.yourdomain.com")
        assert tenant.id == acme.tenant.id

    async def test_port_and_case_are_ignored(self, db_session, acme):
        tenant = await TenantService.resolve_host(
            db_session, "ACME.yourdomain.com:8443", "/tenant"
        )
        assert tenant.id == acme.tenant.id

    async def test_resolves_by_custom_domain(self, db_session, acme):
        acme.tenant.custom_domain = "crm.acme-corp.com"
        await db_session.flush()

        tenant = await TenantService.resolve_host(db_session, "crm.acme-corp.com")
        assert tenant.id == acme.tenant.id

    async def test_unknown_host_is_not_found(self, db_session, acme):
        with pytest.raises(TenantNotFoundError) as exc_info:
            await TenantService.resolve_host(db_session, "foo.example.com")
        assert exc_info.value.kind is ErrorKind.not_found
        assert exc_info.value.code == "tenant_not_found"

    @pytest.mark.parametrize("label", ["www", "api", "app"])
    async def test_reserved_labels_skip_resolution(self, db_session, label):
        assert await TenantService.resolve_host(
            db_session, f"{label}.yourdomain.com"
        ) is None

    @pytest.mark.parametrize("path", ["/health", "/docs", "/redoc", "/openapi.json"])
    async def test_exempt_paths_skip_resolution(self, db_session, path):
        assert await TenantService.resolve_host(
            db_session, "nobody.yourdomain.com", path
        ) is None

    @pytest.mark.parametrize(
        "status", [TenantStatus.suspended, TenantStatus.expired]
    )
    async def test_status_is_not_checked_during_resolution(
        self, db_session, acme, status
    ):
        acme.tenant.status = status.value
        await db_session.flush()

        tenant = await TenantService.resolve_host(db_session, "acme.yourdomain.com")
        assert tenant.status == status.value


class TestEnsureAccessible:

    @pytest.mark.parametrize("status", [TenantStatus.trial, TenantStatus.active])
    async def test_trial_and_active_pass(self, acme, status):
        acme.tenant.status = status.value
        assert TenantService.ensure_accessible(acme.tenant) is acme.tenant

    async def test_suspended_is_forbidden(self, acme):
        acme.tenant.status = TenantStatus.suspended.value
        with pytest.raises(ForbiddenError) as exc_info:
            TenantService.ensure_accessible(acme.tenant)
        assert exc_info.value.code == "tenant_suspended"

    async def test_expired_requires_payment(self, acme):
        acme.tenant.status = TenantStatus.expired.value
        with pytest.raises(PaymentRequiredError) as exc_info:
            TenantService.ensure_accessible(acme.tenant)
        assert exc_info.value.kind is ErrorKind.payment_required
        assert exc_info.value.code == "subscription_expired"


class TestSubdomainAvailability:

    async def test_free_subdomain(self, db_session):
        result = await TenantService.check_subdomain_availability(db_session, "Initech")
        assert result.subdomain == "initech"
        assert result.available is True

    async def test_taken_subdomain(self, db_session, acme):
        result = await TenantService.check_subdomain_availability(db_session, "acme")
        assert result.available is False
        assert "taken" in result.message

    @pytest.mark.parametrize("subdomain", ["admin", "support", "mail", "www"])
    async def test_reserved_subdomain(self, db_session, subdomain):
        result = await TenantService.check_subdomain_availability(
            db_session, subdomain
        )
        assert result.available is False
        assert "reserved" in result.message

    @pytest.mark.parametrize("subdomain", ["ab", "acme_corp", "acme.corp", "x" * 64])
    async def test_malformed_subdomain(self, db_session, subdomain):
        result = await TenantService.check_subdomain_availability(
            db_session, subdomain
        )
        assert result.available is False
