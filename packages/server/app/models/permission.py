"""Permission catalog and the role-permission join table."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow


class Permission(UUIDMixin, SQLModel, table=True):
    __tablename__ = "permissions"

    key: str = Field(unique=True, index=True, nullable=False)  # e.g. candidate.read
    name: str = Field(nullable=False)
    module: str = Field(nullable=False, default="Other")


class RolePermission(SQLModel, table=True):
    __tablename__ = "role_permissions"

    role_id: uuid.UUID = Field(foreign_key="roles.id", primary_key=True)
    permission_id: uuid.UUID = Field(foreign_key="permissions.id", primary_key=True)
    granted_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    granted_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
