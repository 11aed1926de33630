"""
services/usage_service.py
-------------------------
Per-tenant monthly usage accounting and limit checks.

Counters are bumped with a single parameterised statement:

    INSERT INTO tenant_usage (..., <counter>) VALUES (..., :amount)
    ON CONFLICT (tenant_id, month)
    DO UPDATE SET <counter> = tenant_usage.<counter> + :amount

so concurrent increments never lose updates and the first action of a month
creates its row.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_saas.core.exceptions import TenancyError, TenantNotFoundError
from crm_saas.core.logging import get_logger
from crm_saas.db.base import generate_uuid, utcnow
from crm_saas.models.tenant import Tenant
from crm_saas.models.usage import TenantUsage, UsageResource
from crm_saas.schemas.usage import ResourceLimit, TenantLimits

logger = get_logger(__name__)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def month_key(at: Optional[datetime] = None) -> str:
    """Usage bucket for a moment in time, "YYYY-MM"."""
    return (at or utcnow()).strftime("%Y-%m")


def shift_month(month: str, delta: int) -> str:
    year, mon = (int(part) for part in month.split("-"))
    index = year * 12 + (mon - 1) + delta
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


class UsageService:

    @staticmethod
    async def increment(
        db: AsyncSession,
        tenant_id: str,
        resource: UsageResource,
        amount: int = 1,
        month: Optional[str] = None,
    ) -> None:
        """Atomically add `amount` to one counter of the tenant's month row."""
        month = month or month_key()
        column = resource.column
        dialect = db.get_bind().dialect.name
        try:
            insert = _DIALECT_INSERTS[dialect]
        except KeyError:
            raise TenancyError(
                f"Usage upsert not supported on {dialect}",
                code="unsupported_dialect",
            ) from None

        table = TenantUsage.__table__
        stmt = insert(TenantUsage).values(
            id=generate_uuid(),
            tenant_id=tenant_id,
            month=month,
            **{column: amount},
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.tenant_id, table.c.month],
            set_={column: table.c[column] + amount, "updated_at": func.now()},
        )
        await db.execute(stmt)
        logger.debug(
            "Usage incremented",
            tenant_id=tenant_id,
            month=month,
            resource=resource.value,
            amount=amount,
        )

    @staticmethod
    async def get_usage(
        db: AsyncSession, tenant_id: str, month: Optional[str] = None
    ) -> TenantUsage | None:
        result = await db.execute(
            select(TenantUsage)
            .where(
                TenantUsage.tenant_id == tenant_id,
                TenantUsage.month == (month or month_key()),
            )
            # Counters change behind the ORM's back via upserts
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def check_limits(
        db: AsyncSession, tenant: Tenant, month: Optional[str] = None
    ) -> TenantLimits:
        """
        Compare the month's counters with the tenant's configured limits.
        A resource is exceeded once current >= limit.
        """
        usage = await UsageService.get_usage(db, tenant.id, month)
        users = usage.user_count if usage else 0
        storage = usage.storage_used if usage else 0
        api_calls = usage.api_calls if usage else 0
        return TenantLimits(
            users=ResourceLimit.of(users, tenant.max_users),
            storage=ResourceLimit.of(storage, tenant.storage_limit),
            api_calls=ResourceLimit.of(api_calls, tenant.api_calls_limit),
        )

    @staticmethod
    async def check_limits_for(db: AsyncSession, tenant_id: str) -> TenantLimits:
        result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
        tenant = result.scalar_one_or_none()
        if tenant is None:
            raise TenantNotFoundError(f"Tenant '{tenant_id}' not found")
        return await UsageService.check_limits(db, tenant)

    @staticmethod
    async def usage_history(
        db: AsyncSession, tenant_id: str, months: int = 12
    ) -> list[TenantUsage]:
        """Month rows from `months` months ago up to now, oldest first."""
        since = shift_month(month_key(), -months)
        result = await db.execute(
            select(TenantUsage)
            .where(TenantUsage.tenant_id == tenant_id, TenantUsage.month >= since)
            .order_by(TenantUsage.month)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    @staticmethod
    async def track_api_call(
        session_factory: async_sessionmaker, tenant_id: str
    ) -> bool:
        """
        Best-effort API call counter. Runs in its own session so a failure
        never poisons the request transaction; failures are logged and
        swallowed. Returns whether the increment was recorded.
        """
        try:
            async with session_factory() as session:
                await UsageService.increment(
                    session, tenant_id, UsageResource.api_calls
                )
                await session.commit()
            return True
        except Exception as exc:
            logger.warning(
                "API usage tracking failed",
                tenant_id=tenant_id,
                error=str(exc),
            )
            return False
