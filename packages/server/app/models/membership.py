"""Team membership model (approval workflow state)."""

from datetime import datetime
from typing import Optional
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import UUIDMixin, utcnow

_PENDING_ONLY = sa.text("status = 'pending'")


class Membership(UUIDMixin, SQLModel, table=True):
    __tablename__ = "memberships"
    __table_args__ = (
        # At most one open request per user, across all teams.
        sa.Index(
            "uq_memberships_pending_user",
            "user_id",
            unique=True,
            postgresql_where=_PENDING_ONLY,
            sqlite_where=_PENDING_ONLY,
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_memberships_status",
        ),
        sa.CheckConstraint(
            "approved_at IS NULL OR rejected_at IS NULL",
            name="ck_memberships_single_outcome",
        ),
    )

    user_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    team_id: uuid.UUID = Field(foreign_key="teams.id", nullable=False, index=True)
    status: str = Field(nullable=False, default="pending")  # pending | approved | rejected
    requested_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_type=sa.DateTime(timezone=True),
    )
    requested_role_id: Optional[uuid.UUID] = Field(default=None, foreign_key="roles.id")
    message: Optional[str] = None  # note from the requester to the approver
    approved_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    approved_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    rejected_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    rejected_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    rejection_reason: Optional[str] = None
