"""
Custom Exceptions

Every core operation fails with a subclass of ServiceError. The exception
handler registered in main.py turns it into a JSON response using the
status_code, code and detail carried by the class, so services never deal
with HTTP themselves.

Messages are deliberately generic. None of them may include tenant slugs,
tokens or the reason a credential was rejected.
"""
from typing import Dict, Optional


class ServiceError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code: int = 500
    code: str = "internal_error"
    detail: str = "Internal server error"
    headers: Optional[Dict[str, str]] = None

    def __init__(self, detail: Optional[str] = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class InvalidCredentials(ServiceError):
    """Bad login. Same response for unknown email and wrong password."""

    status_code = 401
    code = "invalid_credentials"
    detail = "Invalid email or password"


class InvalidToken(ServiceError):
    """Missing, malformed or expired access/refresh token."""

    status_code = 401
    code = "invalid_token"
    detail = "Invalid or expired token"
    headers = {"WWW-Authenticate": "Bearer"}


class RefreshRejected(ServiceError):
    """Refresh credential rejected (invalid, expired, revoked or reused)."""

    status_code = 401
    code = "refresh_rejected"
    detail = "Refresh rejected"


class TenantNotFound(ServiceError):
    """
    Unknown, archived or deleted tenant.

    Never parameterized with the identifier: bodies must be identical for a
    tenant that does not exist and one that exists but is inactive.
    """

    status_code = 404
    code = "tenant_not_found"
    detail = "Tenant not found"


class Forbidden(ServiceError):
    """Authenticated and tenant resolved, but no active membership or wrong role."""

    status_code = 403
    code = "forbidden"
    detail = "Forbidden"


class NotFound(ServiceError):
    """Entity id does not resolve within the caller's tenant scope."""

    status_code = 404
    code = "not_found"
    detail = "Not found"


class InviteNotFound(NotFound):
    """Missing invite or one that is no longer pending. Callers cannot tell which."""

    code = "invite_not_found"
    detail = "Invite not found"


class Conflict(ServiceError):
    """State invariant violation."""

    status_code = 409
    code = "conflict"
    detail = "Conflict"


class DuplicateInvite(Conflict):
    code = "duplicate_invite"
    detail = "A pending invite already exists for this email in this tenant"


class EmailAlreadyExists(Conflict):
    code = "email_already_exists"
    detail = "Email already in use"


class LastTenantAdmin(Conflict):
    code = "last_tenant_admin"
    detail = "Cannot demote or remove the last active tenant admin"


class InvalidRequest(ServiceError):
    """Well-formed body whose values the operation cannot accept."""

    status_code = 400
    code = "invalid_request"
    detail = "Invalid request"


class InvalidInvite(ServiceError):
    """Invite absent, not pending, expired or issued to another email."""

    status_code = 400
    code = "invalid_invite"
    detail = "Invite is invalid, expired or already used"


class RateLimitExceeded(ServiceError):
    """Raised when rate limit is exceeded."""

    status_code = 429
    code = "rate_limit_exceeded"
    detail = "Rate limit exceeded. Please try again later."

    def __init__(self, retry_after: int = 60):
        super().__init__()
        self.headers = {"Retry-After": str(retry_after)}


class ConfigurationError(RuntimeError):
    """A required collaborator was not wired at startup."""
