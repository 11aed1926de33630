"""
models/usage.py
---------------
Per-tenant, per-month resource counters.

One row per (tenant_id, month); month is "YYYY-MM". Rows are created lazily
by the first billable action of a month, so a rollover starts from zero.
Counters only ever grow within a month.
"""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from crm_saas.db.base import Base, TimestampMixin


class UsageResource(str, PyEnum):
    users = "users"
    storage = "storage"
    api_calls = "api_calls"
    emails = "emails"
    records = "records"

    @property
    def column(self) -> str:
        return _RESOURCE_COLUMNS[self]


_RESOURCE_COLUMNS = {
    UsageResource.users: "user_count",
    UsageResource.storage: "storage_used",
    UsageResource.api_calls: "api_calls",
    UsageResource.emails: "emails_sent",
    UsageResource.records: "records_created",
}


class TenantUsage(Base, TimestampMixin):
    __tablename__ = "tenant_usage"
    __table_args__ = (
        UniqueConstraint("tenant_id", "month", name="unique_tenant_month"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)

    user_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    storage_used: Mapped[int] = mapped_column(  # MB
        Integer, nullable=False, default=0, server_default="0"
    )
    api_calls: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    emails_sent: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    records_created: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    def __repr__(self) -> str:
        return f"<TenantUsage tenant_id={self.tenant_id} month={self.month}>"
