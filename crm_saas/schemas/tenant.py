"""
schemas/tenant.py
-----------------
Pydantic request/response models for Tenant.

Naming convention:
  TenantCreate  → inbound request body
  TenantRead    → outbound response body (never exposes internal fields)
"""

import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from crm_saas.models.tenant import TenantStatus
from crm_saas.schemas.plan import SubscriptionRead
from crm_saas.schemas.usage import TenantLimits
from crm_saas.schemas.user import UserRead

SUBDOMAIN_PATTERN = re.compile(r"^[a-z0-9-]+$")
SUBDOMAIN_MIN_LENGTH = 3
SUBDOMAIN_MAX_LENGTH = 63


def normalise_subdomain(value: str) -> str:
    value = value.strip().lower()
    if not SUBDOMAIN_PATTERN.match(value):
        raise ValueError(
            "Subdomain may contain only lowercase letters, numbers, and hyphens"
        )
    return value


class TenantCreate(BaseModel):
    name: str = Field(
        ...,
        min_length=2,
        max_length=255,
        examples=["Acme Corp"],
        description="Organisation name",
    )
    subdomain: str = Field(
        ...,
        min_length=SUBDOMAIN_MIN_LENGTH,
        max_length=SUBDOMAIN_MAX_LENGTH,
        examples=["acme"],
        description="Unique label used as <subdomain>.<base domain>",
    )
    billing_email: Optional[EmailStr] = None
    custom_domain: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("subdomain")
    @classmethod
    def check_subdomain(cls, v: str) -> str:
        return normalise_subdomain(v)

    @field_validator("custom_domain")
    @classmethod
    def normalise_domain(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().lower() if v else None


class AdminUserCreate(BaseModel):
    """The first admin of a new tenant."""
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)


class TenantRegister(BaseModel):
    """Public self-service signup body."""
    tenant: TenantCreate
    admin: AdminUserCreate


class TenantRead(BaseModel):
    id: str
    name: str
    subdomain: str
    custom_domain: Optional[str] = None
    status: str
    plan_id: Optional[int] = None
    trial_ends_at: Optional[datetime] = None
    billing_email: Optional[str] = None
    max_users: int
    storage_limit: int
    api_calls_limit: int
    settings: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class TenantRegistrationResponse(BaseModel):
    tenant: TenantRead
    admin_user: UserRead


class TenantOverview(BaseModel):
    tenant: TenantRead
    subscription: Optional[SubscriptionRead] = None
    limits: TenantLimits


class TenantSettingsUpdate(BaseModel):
    settings: dict[str, Any]


class SubdomainAvailability(BaseModel):
    subdomain: str
    available: bool
    message: str


# ── Platform console ─────────────────────────────────────────────────────────

class PlatformTenantCreate(BaseModel):
    """
    Console-initiated tenant. The admin password is optional: when omitted
    a temporary one is generated and returned once.
    """
    name: str = Field(..., min_length=2, max_length=255)
    subdomain: str = Field(
        ..., min_length=SUBDOMAIN_MIN_LENGTH, max_length=SUBDOMAIN_MAX_LENGTH
    )
    billing_email: EmailStr
    admin_first_name: str = Field(..., min_length=1, max_length=100)
    admin_last_name: str = Field(..., min_length=1, max_length=100)
    admin_email: EmailStr
    admin_password: Optional[str] = Field(default=None, min_length=8, max_length=128)
    plan_id: Optional[int] = None

    @field_validator("subdomain")
    @classmethod
    def check_subdomain(cls, v: str) -> str:
        return normalise_subdomain(v)


class PlatformTenantCreated(TenantRegistrationResponse):
    temporary_password: Optional[str] = None


class TenantStatusUpdate(BaseModel):
    status: TenantStatus


class TenantLimitsUpdate(BaseModel):
    max_users: Optional[int] = Field(default=None, ge=0)
    storage_limit: Optional[int] = Field(default=None, ge=0)
    api_calls_limit: Optional[int] = Field(default=None, ge=0)


class PlatformTenantSummary(BaseModel):
    tenant: TenantRead
    admin_email: Optional[str] = None
    plan_name: Optional[str] = None
    member_count: int
    storage_used: int
    api_calls_used: int


class PlatformStats(BaseModel):
    total_tenants: int
    tenants_by_status: dict[str, int]
    total_users: int
    api_calls_this_month: int
    storage_used_this_month: int


class PlatformUsage(BaseModel):
    month: str
    total_users: int
    total_storage_allocated: int
    total_storage_used: int
    total_api_calls: int
    last_updated: datetime
