"""
services/invitation_service.py
------------------------------
Invite an email address into a tenant and redeem the invitation later.

Redemption guarantees at-most-once semantics with a compare-and-swap:

    UPDATE tenant_invitations SET status = 'accepted'
    WHERE id = :id AND status = 'pending'

Only the request whose UPDATE touches exactly one row may continue; a
concurrent redeemer blocks on the row lock, re-evaluates the predicate after
the winner commits and sees zero rows.
"""

from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from crm_saas.core.config import settings
from crm_saas.core.exceptions import (
    ConflictError,
    LimitExceededError,
    NotFoundError,
    TenantNotFoundError,
)
from crm_saas.core.logging import get_logger
from crm_saas.core.security import generate_invitation_token
from crm_saas.db.base import ensure_aware, utcnow
from crm_saas.db.session import atomic
from crm_saas.models.invitation import InvitationStatus, TenantInvitation
from crm_saas.models.tenant import Tenant
from crm_saas.models.tenant_user import TenantRole, TenantUser
from crm_saas.models.user import User
from crm_saas.services.membership_service import MembershipService
from crm_saas.services.tenant_service import TenantService
from crm_saas.services.usage_service import UsageService
from crm_saas.services.user_service import UserService

logger = get_logger(__name__)


@dataclass
class AcceptedInvitation:
    tenant: Tenant
    user: User
    membership: TenantUser


def invitation_url(tenant: Tenant, token: str) -> str:
    return (
        f"https://{tenant.subdomain}.{settings.BASE_DOMAIN}"
        f"/accept-invitation?token={token}"
    )


class InvitationService:

    @staticmethod
    async def _ensure_seat(db: AsyncSession, tenant: Tenant) -> None:
        limits = await UsageService.check_limits(db, tenant)
        if limits.users.exceeded:
            raise LimitExceededError(
                f"Your plan allows a maximum of {limits.users.limit} users",
                code="user_limit_exceeded",
                details={
                    "current": limits.users.current,
                    "limit": limits.users.limit,
                },
            )

    @staticmethod
    async def invite(
        db: AsyncSession,
        tenant: Tenant,
        inviter: TenantUser,
        email: str,
        role: TenantRole = TenantRole.user,
    ) -> TenantInvitation:
        """
        Issue a pending invitation valid for INVITATION_EXPIRE_DAYS.

        Raises:
            ForbiddenError: inviter is not an admin of the tenant.
            ConflictError: email already belongs to an active member.
            LimitExceededError: the tenant is at its user limit; nothing is
                written in that case.
        """
        MembershipService.require_role(inviter, TenantRole.admin)
        email = email.lower()

        existing_user = await UserService.get_user_by_email(db, email)
        if existing_user is not None:
            member = await MembershipService.get_active_membership(
                db, tenant.id, existing_user.id
            )
            if member is not None:
                raise ConflictError(
                    f"'{email}' is already a member of this organization",
                    code="already_member",
                )

        await InvitationService._ensure_seat(db, tenant)

        invitation = TenantInvitation(
            tenant_id=tenant.id,
            email=email,
            role=role.value,
            invited_by=inviter.id,
            token=generate_invitation_token(),
            status=InvitationStatus.pending.value,
            expires_at=utcnow() + timedelta(days=settings.INVITATION_EXPIRE_DAYS),
        )
        db.add(invitation)
        await db.flush()
        await db.refresh(invitation)
        logger.info(
            "Invitation issued",
            tenant_id=tenant.id,
            invitation_id=invitation.id,
            role=role.value,
        )
        return invitation

    @staticmethod
    async def get_by_token(db: AsyncSession, token: str) -> TenantInvitation | None:
        result = await db.execute(
            select(TenantInvitation).where(TenantInvitation.token == token)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def _claim(db: AsyncSession, invitation: TenantInvitation) -> None:
        result = await db.execute(
            update(TenantInvitation)
            .where(
                TenantInvitation.id == invitation.id,
                TenantInvitation.status == InvitationStatus.pending.value,
            )
            .values(status=InvitationStatus.accepted.value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError(
                "This invitation has already been used",
                code="invitation_already_used",
            )
        set_committed_value(invitation, "status", InvitationStatus.accepted.value)

    @staticmethod
    async def accept(
        db: AsyncSession,
        token: str,
        first_name: str,
        last_name: str,
        password: str,
    ) -> AcceptedInvitation:
        """
        Redeem an invitation: claim it, reuse or create the user, and upsert
        the membership with the invited role, all in one transaction.

        Raises:
            NotFoundError: unknown token (code invitation_invalid) or the
                tenant no longer exists.
            ConflictError: invitation_expired / invitation_already_used.
            LimitExceededError: the tenant filled its seats after the
                invitation was issued; the invitation stays pending.
        """
        invitation = await InvitationService.get_by_token(db, token)
        if invitation is None:
            raise NotFoundError(
                "Invalid invitation token", code="invitation_invalid"
            )
        if invitation.status != InvitationStatus.pending.value:
            raise ConflictError(
                "This invitation has already been used",
                code="invitation_already_used",
            )
        if ensure_aware(invitation.expires_at) < utcnow():
            raise ConflictError(
                "Invitation has expired", code="invitation_expired"
            )

        try:
            async with atomic(db):
                await InvitationService._claim(db, invitation)

                tenant = await TenantService.get_tenant_by_id(db, invitation.tenant_id)
                if tenant is None:
                    raise TenantNotFoundError("Tenant not found")

                user = await UserService.get_user_by_email(db, invitation.email)
                already_active = user is not None and (
                    await MembershipService.get_active_membership(db, tenant.id, user.id)
                    is not None
                )
                if not already_active:
                    # Seats may have filled up since the invitation was issued
                    await InvitationService._ensure_seat(db, tenant)

                if user is None:
                    user = await UserService.create_user(
                        db,
                        email=invitation.email,
                        password=password,
                        first_name=first_name,
                        last_name=last_name,
                        is_verified=True,
                    )

                membership, _ = await MembershipService.add_user_to_tenant(
                    db,
                    tenant.id,
                    user.id,
                    TenantRole(invitation.role),
                    invited_by=invitation.invited_by,
                )
        except IntegrityError as exc:
            raise ConflictError(
                "Invitation could not be accepted", code="invitation_conflict"
            ) from exc

        await db.refresh(user)
        await db.refresh(membership)
        logger.info(
            "Invitation accepted",
            tenant_id=tenant.id,
            invitation_id=invitation.id,
            user_id=user.id,
        )
        return AcceptedInvitation(tenant=tenant, user=user, membership=membership)
