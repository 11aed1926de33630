"""
schemas/invitation.py
---------------------
Invitation issue / accept request and response models.
"""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from crm_saas.models.tenant_user import TenantRole
from crm_saas.schemas.tenant import TenantRead
from crm_saas.schemas.user import MembershipRead, UserRead


class InvitationCreate(BaseModel):
    email: EmailStr
    role: TenantRole = TenantRole.user


class InvitationRead(BaseModel):
    id: str
    tenant_id: str
    email: str
    role: str
    status: str
    expires_at: datetime

    model_config = {"from_attributes": True}


class InvitationIssued(BaseModel):
    invitation: InvitationRead
    invitation_url: str


class InvitationAccept(BaseModel):
    """Name and password are used only when the email has no account yet."""
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=128)


class InvitationAccepted(BaseModel):
    tenant: TenantRead
    user: UserRead
    membership: MembershipRead
