"""
schemas/plan.py
---------------
Subscription plan and tenant subscription models.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field

from crm_saas.models.subscription import BillingCycle


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    billing_cycle: BillingCycle = BillingCycle.monthly
    features: dict[str, Any] = {}
    max_users: int = Field(default=5, ge=1)
    storage_limit: int = Field(default=1000, ge=0)
    api_calls_limit: int = Field(default=10000, ge=0)


class PlanRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    currency: str
    billing_cycle: str
    features: dict[str, Any] = {}
    max_users: int
    storage_limit: int
    api_calls_limit: int

    model_config = {"from_attributes": True}


class PlanAssign(BaseModel):
    plan_id: int


class SubscriptionRead(BaseModel):
    id: str
    plan_id: int
    status: str
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool

    model_config = {"from_attributes": True}
