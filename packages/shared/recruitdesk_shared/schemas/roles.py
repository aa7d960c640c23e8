"""Team role schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class RoleCreateRequest(BaseModel):
    """Create a custom role. ``team_id`` defaults to the caller's team."""
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    permission_ids: list[uuid.UUID] = Field(default_factory=list)
    team_id: Optional[uuid.UUID] = None


class RoleUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class RoleResponse(BaseModel):
    id: uuid.UUID
    team_id: Optional[uuid.UUID] = None
    name: str
    description: Optional[str] = None
    is_admin: bool
    is_custom: bool
    based_on_template: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RoleDetailResponse(RoleResponse):
    permissions: list[str] = Field(default_factory=list)


class RoleListResponse(BaseModel):
    data: list[RoleResponse]
