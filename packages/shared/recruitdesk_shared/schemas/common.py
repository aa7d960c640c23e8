from enum import Enum

from pydantic import BaseModel


class MembershipStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Valid state transitions for the membership approval workflow.
# Approved and rejected are terminal; a retry is a new membership row.
MEMBERSHIP_TRANSITIONS: dict[MembershipStatus, list[MembershipStatus]] = {
    MembershipStatus.PENDING: [MembershipStatus.APPROVED, MembershipStatus.REJECTED],
    MembershipStatus.APPROVED: [],
    MembershipStatus.REJECTED: [],
}


class AdminTier(str, Enum):
    MASTER_ADMIN = "master_admin"
    LOCAL_ADMIN = "local_admin"
    USER = "user"


class ErrorDetail(BaseModel):
    code: str
    message: str
    status: int


class ErrorResponse(BaseModel):
    """Body of every error response: {"error": {code, message, status}}."""
    error: ErrorDetail
