"""
Error kinds raised by the membership and authorization services.

Every service failure is one of these; HTTP handlers never see an
undifferentiated exception from the service layer. The FastAPI exception
handler in app.main renders them into the standard error envelope.
"""

from __future__ import annotations


class MembershipError(Exception):
    """Base class for all typed service errors."""

    code = "INTERNAL_ERROR"
    status_code = 500
    # Message shown to API clients; None means the exception text is safe to show.
    public_message: str | None = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidUserStateError(MembershipError):
    """A User record violates the master-admin / team-user shape rules."""

    code = "INVALID_USER_STATE"
    public_message = "Internal data integrity error."


class InvalidMembershipStateError(MembershipError):
    """A Membership record's status and audit metadata disagree."""

    code = "INVALID_MEMBERSHIP_STATE"
    public_message = "Internal data integrity error."


class AccessDeniedError(MembershipError):
    """Caller's membership state does not allow access to the resource."""

    code = "ACCESS_DENIED"
    status_code = 403
    public_message = "Access denied."


class InvalidInputError(MembershipError):
    """Caller-supplied value breaks a rule the service enforces itself."""

    code = "INVALID_INPUT"
    status_code = 422


class NotFoundError(MembershipError):
    code = "NOT_FOUND"
    status_code = 404


class ForbiddenError(MembershipError):
    """Authenticated, but not allowed to perform an administrative action."""

    code = "FORBIDDEN"
    status_code = 403


class ConflictError(MembershipError):
    """Concurrent or duplicate state transition."""

    code = "CONFLICT"
    status_code = 409


class SetupFailedError(MembershipError):
    """Role provisioning did not produce a usable local admin role."""

    code = "SETUP_FAILED"
    public_message = "Team setup failed."


class UnavailableError(MembershipError):
    """Storage I/O failure. Safe for the caller to retry with backoff."""

    code = "UNAVAILABLE"
    status_code = 503
    public_message = "Service temporarily unavailable."
