"""
models/__init__.py
------------------
Re-export all models so Alembic's env.py and create_tables.py can import
Base and discover all tables via a single import:

    from crm_saas.models import Base
"""

from crm_saas.db.base import Base
from crm_saas.models.subscription import (
    BillingCycle,
    SubscriptionPlan,
    SubscriptionStatus,
    TenantSubscription,
)
from crm_saas.models.tenant import Tenant, TenantStatus
from crm_saas.models.user import User
from crm_saas.models.tenant_user import TenantRole, TenantUser
from crm_saas.models.invitation import InvitationStatus, TenantInvitation
from crm_saas.models.usage import TenantUsage, UsageResource

__all__ = [
    "Base",
    "BillingCycle",
    "InvitationStatus",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "Tenant",
    "TenantInvitation",
    "TenantRole",
    "TenantStatus",
    "TenantSubscription",
    "TenantUsage",
    "TenantUser",
    "UsageResource",
    "User",
]
