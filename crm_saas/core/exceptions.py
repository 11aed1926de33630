"""
core/exceptions.py
------------------
Typed error taxonomy for the tenancy layer.

Services raise these; they never build HTTP responses. The exception
handler registered in main.py maps ErrorKind to a status code and renders
the stable `code` so clients can branch without string matching
("subdomain_taken" vs "invitation_expired" vs "role_insufficient").
"""

from enum import Enum as PyEnum
from typing import Any, Dict, Optional


class ErrorKind(str, PyEnum):
    not_found = "not_found"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    payment_required = "payment_required"
    conflict = "conflict"
    limit_exceeded = "limit_exceeded"
    bad_request = "bad_request"
    internal = "internal"


class TenancyError(Exception):
    """Base exception for all tenancy errors."""

    kind: ErrorKind = ErrorKind.internal
    default_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} code={self.code} message={self.message!r}>"


class NotFoundError(TenancyError):
    """The addressed record does not exist."""

    kind = ErrorKind.not_found
    default_code = "not_found"


class TenantNotFoundError(NotFoundError):
    default_code = "tenant_not_found"


class UnauthorizedError(TenancyError):
    """No authenticated user where one is required."""

    kind = ErrorKind.unauthorized
    default_code = "authentication_required"


class ForbiddenError(TenancyError):
    """Authenticated, but not allowed to act on this tenant."""

    kind = ErrorKind.forbidden
    default_code = "access_denied"


class PaymentRequiredError(TenancyError):
    """Trial or subscription has run out."""

    kind = ErrorKind.payment_required
    default_code = "subscription_expired"


class ConflictError(TenancyError):
    """Uniqueness or state conflict (subdomain taken, invitation used)."""

    kind = ErrorKind.conflict
    default_code = "conflict"


class LimitExceededError(TenancyError):
    """The tenant is at one of its plan limits."""

    kind = ErrorKind.limit_exceeded
    default_code = "limit_exceeded"


class BadRequestError(TenancyError):
    """Malformed or unconfirmed request."""

    kind = ErrorKind.bad_request
    default_code = "bad_request"
