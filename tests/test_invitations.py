# tests/test_invitations.py
"""
Invitation flow tests
Tests: issuing, user limit, duplicate members, redemption at most once,
expiry, reuse of existing accounts
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from crm_saas.core.exceptions import (
    ConflictError,
    ForbiddenError,
    LimitExceededError,
    NotFoundError,
)
from crm_saas.core.security import verify_password
from crm_saas.db.base import ensure_aware, utcnow
from crm_saas.models import InvitationStatus, TenantInvitation, TenantRole, TenantUser
from crm_saas.services.invitation_service import InvitationService, invitation_url
from crm_saas.services.membership_service import MembershipService
from crm_saas.services.usage_service import UsageService
from helpers import MEMBER_PASSWORD, add_member, provision


async def admin_membership(db, provisioned):
    return await MembershipService.get_active_membership(
        db, provisioned.tenant.id, provisioned.admin_user.id
    )


async def invitation_count(db) -> int:
    result = await db.execute(select(func.count()).select_from(TenantInvitation))
    return result.scalar_one()


class TestInvite:

    async def test_issues_pending_invitation(self, db_session, acme):
        inviter = await admin_membership(db_session, acme)

        invitation = await InvitationService.invite(
            db_session, acme.tenant, inviter, "Jane@Acme.example.com", TenantRole.manager
        )

        assert invitation.status == InvitationStatus.pending.value
        assert invitation.email == "jane@acme.example.com"
        assert invitation.role == TenantRole.manager.value
        assert invitation.invited_by == inviter.id
        assert len(invitation.token) == 64
        int(invitation.token, 16)
        remaining = ensure_aware(invitation.expires_at) - utcnow()
        assert timedelta(days=6, hours=23) < remaining <= timedelta(days=7)

    async def test_tokens_are_unique(self, db_session, acme):
        inviter = await admin_membership(db_session, acme)
        first = await InvitationService.invite(
            db_session, acme.tenant, inviter, "a@acme.example.com"
        )
        second = await InvitationService.invite(
            db_session, acme.tenant, inviter, "b@acme.example.com"
        )
        assert first.token != second.token

    async def test_url_points_at_tenant_subdomain(self, db_session, acme):
        url = invitation_url(acme.tenant, "abc123")
        assert url == "https://acme.yourdomain.com/accept-invitation?token=abc123"

    @pytest.mark.parametrize(
        "role", [TenantRole.readonly, TenantRole.user, TenantRole.manager]
    )
    async def test_non_admin_cannot_invite(self, db_session, acme, role):
        _, membership = await add_member(
            db_session, acme.tenant.id, "member@acme.example.com", role
        )
        with pytest.raises(ForbiddenError):
            await InvitationService.invite(
                db_session, acme.tenant, membership, "new@acme.example.com"
            )

    async def test_existing_member_is_rejected(self, db_session, acme):
        inviter = await admin_membership(db_session, acme)
        with pytest.raises(ConflictError) as exc_info:
            await InvitationService.invite(
                db_session, acme.tenant, inviter, "john@acme.example.com"
            )
        assert exc_info.value.code == "already_member"

    async def test_user_limit_blocks_before_writing(self, db_session, acme):
        inviter = await admin_membership(db_session, acme)
        for i in range(4):
            await add_member(
                db_session, acme.tenant.id, f"user{i}@acme.example.com", TenantRole.user
            )
        limits = await UsageService.check_limits(db_session, acme.tenant)
        assert limits.users.current == 5
        assert limits.users.exceeded

        with pytest.raises(LimitExceededError) as exc_info:
            await InvitationService.invite(
                db_session, acme.tenant, inviter, "sixth@acme.example.com"
            )
        assert exc_info.value.code == "user_limit_exceeded"
        assert exc_info.value.details == {"current": 5, "limit": 5}
        assert await invitation_count(db_session) == 0


class TestAccept:

    async def _invite(self, db, provisioned, email="jane@acme.example.com",
                      role=TenantRole.manager):
        inviter = await admin_membership(db, provisioned)
        invitation = await InvitationService.invite(
            db, provisioned.tenant, inviter, email, role
        )
        await db.commit()
        return invitation

    async def test_creates_user_and_membership(self, db_session, acme):
        invitation = await self._invite(db_session, acme)

        accepted = await InvitationService.accept(
            db_session, invitation.token, "Jane", "Doe", "JanePass123!"
        )

        assert accepted.tenant.id == acme.tenant.id
        assert accepted.user.email == "jane@acme.example.com"
        assert accepted.user.first_name == "Jane"
        assert verify_password("JanePass123!", accepted.user.hashed_password)
        assert accepted.membership.tenant_role is TenantRole.manager
        assert accepted.membership.invited_by == invitation.invited_by
        assert invitation.status == InvitationStatus.accepted.value

        usage = await UsageService.get_usage(db_session, acme.tenant.id)
        assert usage.user_count == 2

    async def test_second_redemption_fails(self, db_session, acme):
        invitation = await self._invite(db_session, acme)
        await InvitationService.accept(
            db_session, invitation.token, "Jane", "Doe", "JanePass123!"
        )
        await db_session.commit()

        with pytest.raises(ConflictError) as exc_info:
            await InvitationService.accept(
                db_session, invitation.token, "Jane", "Doe", "JanePass123!"
            )
        assert exc_info.value.code == "invitation_already_used"

    async def test_concurrent_redemption_claims_once(
        self, db_session, session_factory, acme
    ):
        invitation = await self._invite(db_session, acme)

        async with session_factory() as first, session_factory() as second:
            stale = await InvitationService.get_by_token(second, invitation.token)
            assert stale.status == InvitationStatus.pending.value

            await InvitationService.accept(
                first, invitation.token, "Jane", "Doe", "JanePass123!"
            )
            await first.commit()

            # The stale copy still reads pending; the conditional update must not
            with pytest.raises(ConflictError) as exc_info:
                await InvitationService._claim(second, stale)
            assert exc_info.value.code == "invitation_already_used"
            await second.rollback()

        result = await db_session.execute(
            select(func.count())
            .select_from(TenantUser)
            .where(TenantUser.tenant_id == acme.tenant.id)
        )
        assert result.scalar_one() == 2

    async def test_unknown_token(self, db_session, acme):
        with pytest.raises(NotFoundError) as exc_info:
            await InvitationService.accept(
                db_session, "0" * 64, "Jane", "Doe", "JanePass123!"
            )
        assert exc_info.value.code == "invitation_invalid"

    async def test_expired_invitation(self, db_session, acme):
        invitation = await self._invite(db_session, acme)
        invitation.expires_at = utcnow() - timedelta(minutes=1)
        await db_session.flush()

        with pytest.raises(ConflictError) as exc_info:
            await InvitationService.accept(
                db_session, invitation.token, "Jane", "Doe", "JanePass123!"
            )
        assert exc_info.value.code == "invitation_expired"
        assert invitation.status == InvitationStatus.pending.value

    async def test_existing_account_keeps_password(self, db_session, acme):
        other = await provision(
            db_session,
            subdomain="globex",
            name="Globex",
            admin_email="hank@globex.example.com",
        )
        await db_session.commit()
        invitation = await self._invite(
            db_session, acme, email="hank@globex.example.com", role=TenantRole.user
        )

        accepted = await InvitationService.accept(
            db_session, invitation.token, "Ignored", "Name", "SomethingElse1!"
        )

        assert accepted.user.id == other.admin_user.id
        assert not verify_password("SomethingElse1!", accepted.user.hashed_password)
        assert accepted.membership.tenant_role is TenantRole.user

    async def test_reinvited_former_member_is_reactivated(self, db_session, acme):
        user, membership = await add_member(
            db_session, acme.tenant.id, "back@acme.example.com", TenantRole.readonly
        )
        await MembershipService.deactivate_member(db_session, acme.tenant, user.id)
        await db_session.commit()

        invitation = await self._invite(
            db_session, acme, email="back@acme.example.com", role=TenantRole.user
        )
        accepted = await InvitationService.accept(
            db_session, invitation.token, "Back", "Again", MEMBER_PASSWORD
        )

        assert accepted.membership.id == membership.id
        assert accepted.membership.is_active is True
        assert accepted.membership.tenant_role is TenantRole.user

    async def test_seats_filled_after_issue_blocks_accept(self, db_session, acme):
        tenant_id = acme.tenant.id
        acme.tenant.max_users = 2
        await db_session.commit()
        first = await self._invite(db_session, acme, email="a@acme.example.com")
        second = await self._invite(db_session, acme, email="b@acme.example.com")
        second_token = second.token

        await InvitationService.accept(
            db_session, first.token, "Ann", "First", MEMBER_PASSWORD
        )
        await db_session.commit()

        with pytest.raises(LimitExceededError) as exc_info:
            await InvitationService.accept(
                db_session, second_token, "Bob", "Second", MEMBER_PASSWORD
            )
        assert exc_info.value.code == "user_limit_exceeded"
        assert exc_info.value.details == {"current": 2, "limit": 2}

        still_pending = await InvitationService.get_by_token(db_session, second_token)
        await db_session.refresh(still_pending)
        assert still_pending.status == InvitationStatus.pending.value
        result = await db_session.execute(
            select(func.count())
            .select_from(TenantUser)
            .where(TenantUser.tenant_id == tenant_id, TenantUser.is_active.is_(True))
        )
        assert result.scalar_one() == 2

    async def test_existing_member_does_not_need_a_seat(self, db_session, acme):
        acme.tenant.max_users = 1
        await db_session.commit()
        inviter = await admin_membership(db_session, acme)
        invitation = TenantInvitation(
            tenant_id=acme.tenant.id,
            email="john@acme.example.com",
            role=TenantRole.manager.value,
            invited_by=inviter.id,
            token="f" * 64,
            status=InvitationStatus.pending.value,
            expires_at=utcnow() + timedelta(days=1),
        )
        db_session.add(invitation)
        await db_session.commit()

        accepted = await InvitationService.accept(
            db_session, invitation.token, "John", "Smith", "Ignored123!"
        )
        assert accepted.user.id == acme.admin_user.id
        assert accepted.membership.tenant_role is TenantRole.manager
