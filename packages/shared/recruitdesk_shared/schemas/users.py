"""User schemas."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class UserResponse(BaseModel):
    """A principal as seen by API clients."""
    id: uuid.UUID
    email: str
    is_master_admin: bool = False
    team_id: Optional[uuid.UUID] = None
    role_id: Optional[uuid.UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}
