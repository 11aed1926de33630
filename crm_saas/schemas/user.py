"""
schemas/user.py
---------------
Pydantic models for platform users, login, and tenant membership.

Security note:
  - hashed_password is NEVER included in any response schema.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class UserRead(BaseModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserRead


class MembershipRead(BaseModel):
    id: str
    tenant_id: str
    user_id: str
    role: str
    permissions: dict[str, Any] = {}
    is_active: bool
    joined_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TenantMemberRead(BaseModel):
    membership: MembershipRead
    user: UserRead
