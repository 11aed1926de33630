"""
models/tenant_user.py
---------------------
Membership of a platform user in a tenant.

Role design:
  Roles form a total order  readonly < user < manager < admin.
  Authorization checks are "at least X" comparisons on that order, never
  string matching, so TenantRole overrides the comparison operators that
  str would otherwise provide (alphabetical order is meaningless here).

Memberships are deactivated, not deleted; (tenant_id, user_id) is unique.
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from crm_saas.db.base import Base, JSONType


class TenantRole(str, PyEnum):
    readonly = "readonly"
    user = "user"
    manager = "manager"
    admin = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_ORDER.index(self)

    def __lt__(self, other):
        if not isinstance(other, TenantRole):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, TenantRole):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, TenantRole):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, TenantRole):
            return NotImplemented
        return self.rank >= other.rank

    def at_least(self, required: "TenantRole") -> bool:
        return self >= required


_ROLE_ORDER = (
    TenantRole.readonly,
    TenantRole.user,
    TenantRole.manager,
    TenantRole.admin,
)


class TenantUser(Base):
    __tablename__ = "tenant_users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", name="unique_tenant_user"),
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
    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=TenantRole.user.value
    )
    permissions: Mapped[dict[str, Any]] = mapped_column(
        JSONType, nullable=False, default=dict
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    invited_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    joined_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    invited_by: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("tenant_users.id", ondelete="SET NULL")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    @property
    def tenant_role(self) -> TenantRole:
        return TenantRole(self.role)

    def __repr__(self) -> str:
        return (
            f"<TenantUser tenant_id={self.tenant_id} user_id={self.user_id} "
            f"role={self.role}>"
        )
