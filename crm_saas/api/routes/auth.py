"""
api/routes/auth.py
------------------
Authentication endpoints.

POST /login     Exchange credentials for a JWT access token (OAuth2 form data).
GET  /me        Return the authenticated user's profile.

Login is platform-wide: the token identifies a user, and every tenant-scoped
request re-checks that user's membership in the tenant named by the host.
"""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.config import settings
from crm_saas.core.logging import get_logger
from crm_saas.core.security import create_access_token
from crm_saas.db.session import get_db
from crm_saas.dependencies import get_current_user
from crm_saas.models.user import User
from crm_saas.schemas.user import TokenResponse, UserRead
from crm_saas.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login and receive a JWT access token",
)
async def login(
    # The "username" field of the OAuth2 form carries the email address
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    """
    Authenticate with email + password and receive a signed JWT.

    Via curl/Postman send form data, not JSON:
        -d "username=you@email.com&password=yourpassword"
    """
    user = await UserService.authenticate(db, form_data.username, form_data.password)
    if user is None:
        logger.info("Login rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(subject=user.id, expires_delta=expires)

    return TokenResponse(
        access_token=token,
        token_type="bearer",
        expires_in=int(expires.total_seconds()),
        user=UserRead.model_validate(user),
    )


@router.get(
    "/me",
    response_model=UserRead,
    summary="Get the currently authenticated user",
)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserRead:
    return UserRead.model_validate(current_user)
