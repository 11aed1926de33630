"""
api/routes/invitations.py
-------------------------
POST /invitations/{token}/accept   Redeem an invitation (public).

Accepting works from any host; the invitation itself names its tenant.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.db.session import get_db
from crm_saas.schemas.invitation import InvitationAccept, InvitationAccepted
from crm_saas.schemas.tenant import TenantRead
from crm_saas.schemas.user import MembershipRead, UserRead
from crm_saas.services.invitation_service import InvitationService

router = APIRouter(prefix="/invitations", tags=["Invitations"])


@router.post(
    "/{token}/accept",
    response_model=InvitationAccepted,
    summary="Accept an invitation",
)
async def accept_invitation(
    token: str,
    body: InvitationAccept,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> InvitationAccepted:
    """
    Name and password create the account when the invited email has none;
    an existing account keeps its credentials.
    """
    accepted = await InvitationService.accept(
        db, token, body.first_name, body.last_name, body.password
    )
    return InvitationAccepted(
        tenant=TenantRead.model_validate(accepted.tenant),
        user=UserRead.model_validate(accepted.user),
        membership=MembershipRead.model_validate(accepted.membership),
    )
