"""Role model.

Roles with ``team_id`` set belong to that team. Roles with no team are
system templates, cloned into each new team and never assigned directly.
"""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Role(UUIDMixin, SQLModel, table=True):
    __tablename__ = "roles"

    team_id: Optional[uuid.UUID] = Field(default=None, foreign_key="teams.id", index=True)
    name: str = Field(nullable=False)
    description: Optional[str] = None
    is_admin: bool = Field(default=False, nullable=False)
    is_custom: bool = Field(default=False, nullable=False)
    based_on_template: Optional[uuid.UUID] = Field(default=None, foreign_key="roles.id")
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )

    @property
    def is_template(self) -> bool:
        return self.team_id is None
