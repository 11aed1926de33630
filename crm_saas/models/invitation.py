"""
models/invitation.py
--------------------
Time-limited invitation binding an email address and a role to a tenant.

Only a pending invitation whose expires_at lies in the future can be
redeemed, and the pending → accepted transition happens at most once.
"""

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column

from crm_saas.db.base import Base
from crm_saas.models.tenant_user import TenantRole


class InvitationStatus(str, PyEnum):
    pending = "pending"
    accepted = "accepted"
    expired = "expired"


class TenantInvitation(Base):
    __tablename__ = "tenant_invitations"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    tenant_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default=TenantRole.user.value
    )
    invited_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("tenant_users.id"), nullable=False
    )
    token: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=InvitationStatus.pending.value
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<TenantInvitation id={self.id} email={self.email} status={self.status}>"
