"""User model.

``team_id``/``role_id`` are the currently effective team and role used for
data-access filtering; the approval workflow lives on Membership. Only the
membership services write these two fields.
"""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class User(TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"
    __table_args__ = (
        sa.CheckConstraint(
            "NOT is_master_admin OR (team_id IS NULL AND role_id IS NULL)",
            name="ck_users_master_admin_unscoped",
        ),
    )

    # Assigned by the identity provider, never generated here.
    id: uuid.UUID = Field(primary_key=True, index=True, nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)  # stored lowercase
    is_master_admin: bool = Field(default=False, nullable=False)
    team_id: Optional[uuid.UUID] = Field(default=None, foreign_key="teams.id", index=True)
    role_id: Optional[uuid.UUID] = Field(default=None, foreign_key="roles.id")
