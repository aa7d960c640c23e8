"""Membership approval workflow schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .common import MembershipStatus


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class MembershipApproveRequest(BaseModel):
    """Approve a pending membership and assign the user's role."""
    role_id: uuid.UUID


class MembershipRejectRequest(BaseModel):
    """Reject a pending membership."""
    reason: str = Field(min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class MembershipResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    team_id: uuid.UUID
    status: MembershipStatus
    requested_at: datetime
    requested_role_id: Optional[uuid.UUID] = None
    message: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[uuid.UUID] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[uuid.UUID] = None
    rejection_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class PendingMembershipListResponse(BaseModel):
    data: list[MembershipResponse]


class MembershipViewResponse(BaseModel):
    """The caller's membership state, as used for access gating."""
    kind: Literal["none", "pending", "approved", "rejected"]
    team_ids: list[uuid.UUID] = Field(default_factory=list)
