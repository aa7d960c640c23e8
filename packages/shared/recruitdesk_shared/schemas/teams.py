"""
Team-related Pydantic schemas.

Covers: team creation (creator becomes local admin), join requests,
discoverable team listing.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .memberships import MembershipResponse
from .users import UserResponse


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class TeamCreateRequest(BaseModel):
    team_name: str = Field(..., min_length=1, max_length=100, description="Team display name")


class TeamJoinRequest(BaseModel):
    requested_role_id: Optional[uuid.UUID] = Field(
        default=None,
        description="Role the requester would like; advisory only, the approver decides",
    )
    message: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Note to the team administrator reviewing the request",
    )


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class TeamResponse(BaseModel):
    id: uuid.UUID
    name: str
    created_at: datetime

    model_config = {"from_attributes": True}


class TeamCreateResponse(BaseModel):
    team: TeamResponse
    user: UserResponse
    membership: MembershipResponse


class TeamJoinResponse(BaseModel):
    user: UserResponse
    membership: MembershipResponse


class DiscoverableTeam(BaseModel):
    id: uuid.UUID
    name: str
    description: Optional[str] = None


class DiscoverableTeamListResponse(BaseModel):
    data: list[DiscoverableTeam]


class TeamSettingsUpdateRequest(BaseModel):
    is_discoverable: Optional[bool] = None
    description: Optional[str] = Field(default=None, max_length=500)


class TeamSettingsResponse(BaseModel):
    team_id: uuid.UUID
    is_discoverable: bool
    description: Optional[str] = None

    model_config = {"from_attributes": True}
