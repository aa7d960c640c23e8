"""
Membership lifecycle service: team creation, join requests, approval workflow.

State machine over Membership.status:

    (create team)  ──────────────────────────────► approved
    (join team)    ──► pending ──► approved | rejected

Approved and rejected are terminal. A rejected user retries by submitting a
new pending membership (``request_membership``); rejected rows never reopen.

Every operation takes the request-scoped session explicitly and writes all
of its rows inside that session's transaction: the caller commits on
success and rolls back on any raised error. Approval and rejection are
conditional updates ("only if still pending"), so two racing admins get one
success and one ConflictError.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import storage_operation
from app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    SetupFailedError,
)
from app.models.base import utcnow
from app.models.membership import Membership
from app.models.role import Role
from app.models.team import Team, TeamSettings
from app.models.user import User
from app.services.guards import (
    ApprovedMembership,
    MembershipView,
    NoMembership,
    PendingMembership,
    membership_view_for,
    validate_membership_state,
    validate_user_team_consistency,
)
from app.services.permissions import find_local_admin_role, require_team_admin
from app.services.provisioning import RoleProvisioner, provision_roles
from recruitdesk_shared.schemas.common import MEMBERSHIP_TRANSITIONS, MembershipStatus

log = structlog.get_logger()

PENDING = MembershipStatus.PENDING.value
APPROVED = MembershipStatus.APPROVED.value
REJECTED = MembershipStatus.REJECTED.value


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _clean_message(message: Optional[str]) -> Optional[str]:
    if message is None:
        return None
    return message.strip() or None


async def _ensure_new_user(session: AsyncSession, user_id: uuid.UUID, email: str) -> None:
    if await session.get(User, user_id) is not None:
        raise ConflictError(f"User {user_id} already exists")
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        raise ConflictError("Email address is already registered")


async def _get_team_or_404(session: AsyncSession, team_id: uuid.UUID) -> Team:
    team = await session.get(Team, team_id)
    if team is None:
        raise NotFoundError(f"Team {team_id} not found")
    return team


async def _get_team_role_or_404(
    session: AsyncSession, role_id: uuid.UUID, team_id: uuid.UUID
) -> Role:
    role = await session.get(Role, role_id)
    if role is None or role.team_id != team_id:
        raise NotFoundError(f"Role {role_id} not found in team {team_id}")
    return role


async def _get_membership_or_404(session: AsyncSession, membership_id: uuid.UUID) -> Membership:
    membership = await session.get(Membership, membership_id)
    if membership is None:
        raise NotFoundError(f"Membership {membership_id} not found")
    return membership


async def _transition(
    session: AsyncSession, membership: Membership, target: MembershipStatus, **values
) -> None:
    """Move ``membership`` to ``target`` if the transition table allows it.

    The update is conditional on the status read here, so a concurrent
    decision makes it match no rows and raises ConflictError.
    """
    validate_membership_state(membership)
    current = MembershipStatus(membership.status)
    if target not in MEMBERSHIP_TRANSITIONS[current]:
        raise ConflictError(f"Membership {membership.id} is already {current.value}")

    result = await session.execute(
        update(Membership)
        .where(Membership.id == membership.id, Membership.status == current.value)
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"Membership {membership.id} was decided concurrently; cannot mark {target.value}"
        )
    await session.refresh(membership)


# ---------------------------------------------------------------------------
# Signup flows
# ---------------------------------------------------------------------------


@storage_operation("create_team")
async def create_team_as_local_admin(
    session: AsyncSession,
    auth_user_id: uuid.UUID,
    email: str,
    team_name: str,
    *,
    provisioner: RoleProvisioner = provision_roles,
) -> tuple[User, Team, Membership]:
    """Create a team; its creator becomes local admin with an approved membership."""
    name = team_name.strip()
    if not name:
        raise InvalidInputError("Team name must not be blank")

    email = normalize_email(email)
    await _ensure_new_user(session, auth_user_id, email)

    team = Team(name=name)
    session.add(team)
    await session.flush()
    session.add(TeamSettings(team_id=team.id, is_discoverable=False))
    await session.flush()

    role_ids = await provisioner(session, team.id)
    if not role_ids:
        raise SetupFailedError(f"Role provisioning created no roles for team {team.id}")

    admin_role = await find_local_admin_role(session, team.id, among=role_ids)
    if admin_role is None:
        raise SetupFailedError(
            f"Local admin role not found after provisioning team {team.id}"
        )

    now = utcnow()
    user = User(
        id=auth_user_id,
        email=email,
        is_master_admin=False,
        team_id=team.id,
        role_id=admin_role.id,
    )
    # Team creators approve themselves.
    membership = Membership(
        user_id=auth_user_id,
        team_id=team.id,
        status=APPROVED,
        requested_at=now,
        approved_at=now,
        approved_by=auth_user_id,
    )
    session.add(user)
    await session.flush()
    session.add(membership)
    await session.flush()

    validate_user_team_consistency(user, ApprovedMembership(team_ids=frozenset({team.id})))
    validate_membership_state(membership)

    log.info(
        "team.created",
        team_id=str(team.id),
        user_id=str(auth_user_id),
        admin_role_id=str(admin_role.id),
        roles=len(role_ids),
    )
    return user, team, membership


@storage_operation("join_team")
async def join_team_as_new_member(
    session: AsyncSession,
    auth_user_id: uuid.UUID,
    email: str,
    team_id: uuid.UUID,
    requested_role_id: Optional[uuid.UUID] = None,
    message: Optional[str] = None,
) -> tuple[User, Membership]:
    """Create a user on ``team_id`` with no role and a pending membership.

    ``requested_role_id`` and ``message`` are stored for the approver only.
    """
    email = normalize_email(email)
    await _get_team_or_404(session, team_id)
    if requested_role_id is not None:
        await _get_team_role_or_404(session, requested_role_id, team_id)
    await _ensure_new_user(session, auth_user_id, email)

    user = User(
        id=auth_user_id,
        email=email,
        is_master_admin=False,
        team_id=team_id,
        role_id=None,
    )
    membership = Membership(
        user_id=auth_user_id,
        team_id=team_id,
        status=PENDING,
        requested_at=utcnow(),
        requested_role_id=requested_role_id,
        message=_clean_message(message),
    )
    session.add(user)
    await session.flush()
    session.add(membership)
    await session.flush()

    validate_user_team_consistency(user, PendingMembership(team_id=team_id))
    validate_membership_state(membership)

    log.info(
        "membership.requested",
        membership_id=str(membership.id),
        user_id=str(auth_user_id),
        team_id=str(team_id),
    )
    return user, membership


@storage_operation("request_membership")
async def request_membership(
    session: AsyncSession,
    user_id: uuid.UUID,
    team_id: uuid.UUID,
    requested_role_id: Optional[uuid.UUID] = None,
    message: Optional[str] = None,
) -> tuple[User, Membership]:
    """Submit a new pending membership for an existing user with no active role.

    This is the retry path after a rejection: the user is repointed to
    ``team_id`` (still without a role) and a fresh membership row is created.
    The one-pending-per-user index turns a racing second request into a
    ConflictError.
    """
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if user.is_master_admin:
        raise ConflictError("Master admins do not hold team memberships")
    if user.role_id is not None:
        raise ConflictError(f"User {user_id} already has an active team role")

    await _get_team_or_404(session, team_id)
    if requested_role_id is not None:
        await _get_team_role_or_404(session, requested_role_id, team_id)

    result = await session.execute(select(Membership).where(Membership.user_id == user_id))
    if any(m.status == PENDING for m in result.scalars().all()):
        raise ConflictError(f"User {user_id} already has a pending membership request")

    user.team_id = team_id
    membership = Membership(
        user_id=user_id,
        team_id=team_id,
        status=PENDING,
        requested_at=utcnow(),
        requested_role_id=requested_role_id,
        message=_clean_message(message),
    )
    session.add(user)
    session.add(membership)
    await session.flush()

    validate_user_team_consistency(user, PendingMembership(team_id=team_id))
    validate_membership_state(membership)

    log.info(
        "membership.re_requested",
        membership_id=str(membership.id),
        user_id=str(user_id),
        team_id=str(team_id),
    )
    return user, membership


@storage_operation("create_master_admin")
async def create_master_admin(
    session: AsyncSession, auth_user_id: uuid.UUID, email: str
) -> User:
    """Create a system administrator: no team, no role, no memberships."""
    email = normalize_email(email)
    await _ensure_new_user(session, auth_user_id, email)

    user = User(id=auth_user_id, email=email, is_master_admin=True, team_id=None, role_id=None)
    session.add(user)
    await session.flush()

    validate_user_team_consistency(user)
    log.info("master_admin.created", user_id=str(auth_user_id))
    return user


# ---------------------------------------------------------------------------
# Approval workflow
# ---------------------------------------------------------------------------


@storage_operation("approve_membership")
async def approve_membership(
    session: AsyncSession,
    admin_user_id: uuid.UUID,
    membership_id: uuid.UUID,
    role_id: uuid.UUID,
) -> tuple[Membership, User]:
    """Approve a pending membership and give the user ``role_id``.

    The membership transition and the role assignment are written in the
    same transaction; a user is never observable as approved without a role.
    The role is only assigned to a user who holds none, so approving a
    stray second request cannot move an active member to another team.
    """
    membership = await _get_membership_or_404(session, membership_id)
    await require_team_admin(session, admin_user_id, membership.team_id)
    role = await _get_team_role_or_404(session, role_id, membership.team_id)

    user = await session.get(User, membership.user_id)
    if user is None:
        raise NotFoundError(f"User {membership.user_id} not found")

    await _transition(
        session,
        membership,
        MembershipStatus.APPROVED,
        approved_at=utcnow(),
        approved_by=admin_user_id,
    )

    result = await session.execute(
        update(User)
        .where(
            User.id == user.id,
            User.is_master_admin.is_(False),
            User.role_id.is_(None),
        )
        .values(team_id=membership.team_id, role_id=role.id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConflictError(
            f"User {user.id} already holds an active role; "
            f"cannot approve membership {membership_id}"
        )
    await session.refresh(user)

    validate_membership_state(membership)
    validate_user_team_consistency(
        user, ApprovedMembership(team_ids=frozenset({membership.team_id}))
    )

    log.info(
        "membership.approved",
        membership_id=str(membership_id),
        user_id=str(user.id),
        team_id=str(membership.team_id),
        role_id=str(role.id),
        approved_by=str(admin_user_id),
    )
    return membership, user


@storage_operation("reject_membership")
async def reject_membership(
    session: AsyncSession,
    admin_user_id: uuid.UUID,
    membership_id: uuid.UUID,
    reason: str,
) -> Membership:
    """Reject a pending membership. The user keeps team_id and stays without a role."""
    membership = await _get_membership_or_404(session, membership_id)
    await require_team_admin(session, admin_user_id, membership.team_id)

    await _transition(
        session,
        membership,
        MembershipStatus.REJECTED,
        rejected_at=utcnow(),
        rejected_by=admin_user_id,
        rejection_reason=reason,
    )
    validate_membership_state(membership)

    log.info(
        "membership.rejected",
        membership_id=str(membership_id),
        user_id=str(membership.user_id),
        team_id=str(membership.team_id),
        rejected_by=str(admin_user_id),
    )
    return membership


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@storage_operation("list_pending_memberships")
async def list_pending_memberships(
    session: AsyncSession,
    admin_user_id: uuid.UUID,
    team_id: Optional[uuid.UUID] = None,
) -> list[Membership]:
    """Pending requests, newest first.

    Local admins see their own team. Master admins see ``team_id`` if given,
    otherwise every team.
    """
    admin = await session.get(User, admin_user_id)
    if admin is None:
        raise ForbiddenError(f"User {admin_user_id} is not an administrator")

    query = select(Membership).where(Membership.status == PENDING)
    if admin.is_master_admin:
        if team_id is not None:
            query = query.where(Membership.team_id == team_id)
    else:
        target = team_id or admin.team_id
        await require_team_admin(session, admin_user_id, target)
        query = query.where(Membership.team_id == target)

    result = await session.execute(query.order_by(Membership.requested_at.desc()))
    return list(result.scalars().all())


@storage_operation("get_membership_view")
async def get_membership_view(session: AsyncSession, user_id: uuid.UUID) -> MembershipView:
    """The user's membership state relative to their current team."""
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if user.is_master_admin:
        return NoMembership()

    result = await session.execute(
        select(Membership)
        .where(Membership.user_id == user_id)
        .order_by(Membership.requested_at.desc())
    )
    return membership_view_for(result.scalars().all(), user.team_id)
