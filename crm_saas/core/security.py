"""
core/security.py
----------------
Password hashing, JWT and invitation-token utilities.

Design decisions:
  - bcrypt work factor from settings (12 in production, lower in tests)
  - JWT payload carries only sub (platform user_id). Tenant membership is
    resolved per request from the host, so one token works across every
    tenant the user belongs to.
  - Invitation tokens are 32 random bytes, hex encoded (64 chars).
"""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt
from passlib.context import CryptContext

from crm_saas.core.config import settings

pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS
)

INVITATION_TOKEN_BYTES = 32


# ── Password Utilities ────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the plain-text password."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Constant-time comparison of plain password against stored hash."""
    return pwd_context.verify(plain, hashed)


def generate_temporary_password() -> str:
    """Password handed to admins created from the platform console."""
    return secrets.token_urlsafe(12)


# ── Invitation Tokens ─────────────────────────────────────────────────────────

def generate_invitation_token() -> str:
    return secrets.token_hex(INVITATION_TOKEN_BYTES)


# ── JWT Utilities ─────────────────────────────────────────────────────────────

def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Mint a JWT access token.

    Args:
        subject: Platform user UUID (stored in 'sub' claim).
        expires_delta: Optional custom expiry; defaults to settings value.

    Returns:
        Signed JWT string.
    """
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload: Dict[str, Any] = {
        "sub": subject,
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
