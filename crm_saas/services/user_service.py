"""
services/user_service.py
------------------------
Platform user lookup, creation, and authentication.

Emails are stored lower-cased; every lookup lower-cases its input.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_saas.core.logging import get_logger
from crm_saas.core.security import hash_password, verify_password
from crm_saas.models.user import User

logger = get_logger(__name__)


class UserService:

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
        result = await db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    @staticmethod
    async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
        result = await db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def create_user(
        db: AsyncSession,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        is_verified: bool = True,
        is_platform_admin: bool = False,
    ) -> User:
        """
        Insert a platform user with a bcrypt-hashed password.
        Uniqueness of the email is enforced by the database; callers decide
        how an IntegrityError maps to their own error.
        """
        user = User(
            email=email.lower(),
            hashed_password=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            is_active=True,
            is_verified=is_verified,
            is_platform_admin=is_platform_admin,
        )
        db.add(user)
        await db.flush()
        logger.info("User created", user_id=user.id)
        return user

    @staticmethod
    async def authenticate(
        db: AsyncSession, email: str, password: str
    ) -> User | None:
        """
        Verify credentials and return the User if valid, else None.
        Email lookup is case-insensitive.
        """
        user = await UserService.get_user_by_email(db, email)
        if user is None or not user.is_active:
            return None
        if not verify_password(password, user.hashed_password):
            return None
        return user
