"""
Invariant guards over User and Membership records.

Pure functions, no I/O. Call them right after any write that produces a
User or Membership, and before trusting records that came from outside the
service layer. Every guard raises a typed error instead of returning a bool;
a failed guard means a bug or tampering and aborts the enclosing operation.

Rules enforced:

- Master admin: ``team_id`` and ``role_id`` are both null.
- Team user: ``team_id`` is set, and ``role_id`` is set unless the user's
  membership for that team is pending (awaiting role assignment) or was
  rejected (the user stays parked on the team without a role).
- Approved membership carries ``approved_at`` and ``approved_by``.
- Rejected membership carries ``rejected_at``.
- A membership never carries both an approval and a rejection timestamp.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional, Union

from app.core.errors import (
    AccessDeniedError,
    InvalidMembershipStateError,
    InvalidUserStateError,
)
from app.models.membership import Membership
from app.models.user import User
from recruitdesk_shared.schemas.common import MembershipStatus


# ---------------------------------------------------------------------------
# Membership views
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NoMembership:
    """No membership rows at all (master admins, or users not yet signed up)."""

    kind = "none"


@dataclass(frozen=True)
class PendingMembership:
    """An open request to join ``team_id``, awaiting an admin decision."""

    team_id: uuid.UUID
    kind = "pending"


@dataclass(frozen=True)
class ApprovedMembership:
    """Approved for every team in ``team_ids``."""

    team_ids: frozenset[uuid.UUID] = field(default_factory=frozenset)
    kind = "approved"


@dataclass(frozen=True)
class RejectedMembership:
    """Latest request, for ``team_id``, was rejected."""

    team_id: uuid.UUID
    kind = "rejected"


MembershipView = Union[NoMembership, PendingMembership, ApprovedMembership, RejectedMembership]


def membership_view_for(
    memberships: Iterable[Membership], team_id: Optional[uuid.UUID] = None
) -> MembershipView:
    """Collapse a user's membership rows into a single view.

    A pending request for ``team_id`` (the user's current team) wins over
    everything else, then any approvals, then a rejection for that team.
    """
    rows = list(memberships)
    pending = [m for m in rows if m.status == MembershipStatus.PENDING.value]
    approved = frozenset(m.team_id for m in rows if m.status == MembershipStatus.APPROVED.value)
    rejected = [m for m in rows if m.status == MembershipStatus.REJECTED.value]

    for m in pending:
        if team_id is None or m.team_id == team_id:
            return PendingMembership(team_id=m.team_id)
    if approved:
        return ApprovedMembership(team_ids=approved)
    for m in rejected:
        if team_id is None or m.team_id == team_id:
            return RejectedMembership(team_id=m.team_id)
    return NoMembership()


# ---------------------------------------------------------------------------
# Record guards
# ---------------------------------------------------------------------------

def validate_user_team_consistency(
    user: User, membership: MembershipView = NoMembership()
) -> None:
    """Check the User shape, given what is known about its membership."""
    if user.is_master_admin:
        set_fields = [
            name for name in ("team_id", "role_id") if getattr(user, name) is not None
        ]
        if set_fields:
            raise InvalidUserStateError(
                f"Master admin user {user.id} has invalid state: "
                f"{' and '.join(set_fields)} set "
                f"(team_id={user.team_id}, role_id={user.role_id}). "
                "Master admins must have team_id=null and role_id=null."
            )
        return

    if user.team_id is None:
        raise InvalidUserStateError(
            f"Team user {user.id} has invalid state: team_id is null. "
            "Team users must always belong to a team."
        )

    if user.role_id is None:
        awaiting_role = isinstance(membership, (PendingMembership, RejectedMembership))
        if awaiting_role and membership.team_id == user.team_id:
            return
        raise InvalidUserStateError(
            f"Team user {user.id} has invalid state: role_id is null "
            f"(team_id={user.team_id}). Team users must have non-null team_id and "
            "role_id unless their membership for that team is pending."
        )


def validate_membership_state(membership: Membership) -> None:
    """Check that status and audit metadata agree."""
    status = membership.status

    if membership.approved_at is not None and membership.rejected_at is not None:
        raise InvalidMembershipStateError(
            f"Membership {membership.id} has both approved_at and rejected_at set"
        )

    if status == MembershipStatus.APPROVED.value:
        if membership.approved_at is None or membership.approved_by is None:
            raise InvalidMembershipStateError(
                "Approved membership missing approval metadata: "
                f"approved_at={membership.approved_at}, approved_by={membership.approved_by}"
            )
    elif status == MembershipStatus.REJECTED.value:
        if membership.rejected_at is None:
            raise InvalidMembershipStateError(
                "Rejected membership missing rejection timestamp"
            )
    elif status == MembershipStatus.PENDING.value:
        pass
    else:
        raise InvalidMembershipStateError(
            f"Invalid membership status: {status!r}. "
            "Status must be one of: pending, approved, rejected."
        )


# ---------------------------------------------------------------------------
# Access guards
# ---------------------------------------------------------------------------

def validate_pending_user_access(membership: MembershipView, resource_name: str) -> None:
    """Block a user whose membership is still pending.

    Only answers "is this user blocked by a pending request"; an approved,
    rejected or absent membership passes.
    """
    if isinstance(membership, PendingMembership):
        raise AccessDeniedError(
            f"User has pending membership, cannot access {resource_name}"
        )


def validate_approved_user_access(membership: MembershipView, team_id: uuid.UUID) -> None:
    """Require an approved membership for ``team_id``."""
    if isinstance(membership, ApprovedMembership) and team_id in membership.team_ids:
        return
    raise AccessDeniedError(f"User not approved for team {team_id}")
