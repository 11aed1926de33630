"""
schemas/usage.py
----------------
Usage counters and limit reports.

TenantLimits reports each resource separately so callers can branch on the
specific resource that ran out instead of a single boolean.
"""

from datetime import datetime

from pydantic import BaseModel


class ResourceLimit(BaseModel):
    current: int
    limit: int
    exceeded: bool

    @classmethod
    def of(cls, current: int, limit: int) -> "ResourceLimit":
        return cls(current=current, limit=limit, exceeded=current >= limit)


class TenantLimits(BaseModel):
    users: ResourceLimit
    storage: ResourceLimit
    api_calls: ResourceLimit


class UsageRead(BaseModel):
    month: str
    user_count: int
    storage_used: int
    api_calls: int
    emails_sent: int
    records_created: int
    updated_at: datetime

    model_config = {"from_attributes": True}
