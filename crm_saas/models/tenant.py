"""
models/tenant.py
----------------
Tenant (customer organisation) ORM model.

A tenant is reached through its subdomain (acme.yourdomain.com) or an
optional custom domain. All data belonging to a tenant is scoped by
tenant_id at the query level; always include tenant_id in WHERE clauses.

Status is driven from outside (billing events, platform admins); nothing in
this codebase derives it from trial_ends_at.
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from crm_saas.db.base import Base, JSONType, TimestampMixin


class TenantStatus(str, PyEnum):
    trial = "trial"
    active = "active"
    suspended = "suspended"
    expired = "expired"


class Tenant(Base, TimestampMixin):
    __tablename__ = "tenants"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    subdomain: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    custom_domain: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=TenantStatus.active.value, index=True
    )
    plan_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("subscription_plans.id")
    )
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    settings: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    billing_email: Mapped[Optional[str]] = mapped_column(String(255))
    # No FK: the admin user is created after the tenant inside one transaction
    admin_user_id: Mapped[Optional[str]] = mapped_column(String(36))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    max_users: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    storage_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=1000)  # MB
    api_calls_limit: Mapped[int] = mapped_column(Integer, nullable=False, default=10000)  # per month

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} subdomain={self.subdomain} status={self.status}>"
