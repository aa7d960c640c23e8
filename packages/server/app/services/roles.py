"""
Team role management: listing, custom roles, renames and deletion.

Provisioned roles (cloned from templates) and admin roles are fixed; teams
add their own ``is_custom`` roles next to them. Grants are replaced through
``permissions.set_role_permissions``.
"""

from __future__ import annotations

import uuid
from typing import Iterable, Optional

import structlog
from sqlalchemy import delete, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import storage_operation
from app.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.models.membership import Membership
from app.models.permission import Permission, RolePermission
from app.models.role import Role
from app.models.user import User
from app.services.permissions import check_permission, load_permissions, require_team_admin

log = structlog.get_logger()

MANAGE_ROLES = "roles.manage"


async def _get_role_or_404(session: AsyncSession, role_id: uuid.UUID) -> Role:
    role = await session.get(Role, role_id)
    if role is None:
        raise NotFoundError(f"Role {role_id} not found")
    return role


async def _require_role_reader(
    session: AsyncSession, actor_id: uuid.UUID, team_id: Optional[uuid.UUID]
) -> None:
    """Team admins, master admins, and members granted ``roles.manage``."""
    if team_id is not None and await check_permission(
        session, actor_id, MANAGE_ROLES, team_id=team_id
    ):
        return
    await require_team_admin(session, actor_id, team_id)


async def _ensure_name_free(
    session: AsyncSession,
    team_id: Optional[uuid.UUID],
    name: str,
    exclude: Optional[uuid.UUID] = None,
) -> None:
    query = select(Role.id).where(
        Role.team_id == team_id, func.lower(Role.name) == name.lower()
    )
    if exclude is not None:
        query = query.where(Role.id != exclude)
    result = await session.execute(query)
    if result.first() is not None:
        raise ConflictError(f"Role name {name!r} is already used in team {team_id}")


def _clean_name(name: str) -> str:
    name = name.strip()
    if not name:
        raise InvalidInputError("Role name must not be blank")
    return name


async def _role_keys(session: AsyncSession, role_id: uuid.UUID) -> list[str]:
    result = await session.execute(
        select(Permission.key)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role_id)
        .order_by(Permission.key)
    )
    return [row[0] for row in result.all()]


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@storage_operation("list_team_roles")
async def list_team_roles(
    session: AsyncSession, actor_id: uuid.UUID, team_id: Optional[uuid.UUID] = None
) -> list[Role]:
    """Roles of ``team_id`` (default: the actor's own team), admin roles first, then by name."""
    if team_id is None:
        actor = await session.get(User, actor_id)
        if actor is None or actor.team_id is None:
            raise InvalidInputError("team_id is required for users without a team")
        team_id = actor.team_id

    await _require_role_reader(session, actor_id, team_id)

    result = await session.execute(
        select(Role).where(Role.team_id == team_id).order_by(Role.is_admin.desc(), Role.name)
    )
    return list(result.scalars().all())


@storage_operation("get_role")
async def get_role(
    session: AsyncSession, actor_id: uuid.UUID, role_id: uuid.UUID
) -> tuple[Role, list[str]]:
    """A role with its granted permission keys, sorted."""
    role = await _get_role_or_404(session, role_id)
    await _require_role_reader(session, actor_id, role.team_id)
    return role, await _role_keys(session, role.id)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@storage_operation("create_custom_role")
async def create_custom_role(
    session: AsyncSession,
    actor_id: uuid.UUID,
    team_id: uuid.UUID,
    name: str,
    description: Optional[str] = None,
    permission_ids: Iterable[uuid.UUID] = (),
) -> tuple[Role, list[str]]:
    """Add a non-admin custom role to ``team_id`` with the given grants."""
    await require_team_admin(session, actor_id, team_id)
    name = _clean_name(name)
    await _ensure_name_free(session, team_id, name)
    perms = await load_permissions(session, permission_ids)

    role = Role(
        team_id=team_id,
        name=name,
        description=description,
        is_admin=False,
        is_custom=True,
    )
    session.add(role)
    await session.flush()
    for perm in perms:
        session.add(RolePermission(role_id=role.id, permission_id=perm.id, granted_by=actor_id))
    await session.flush()

    keys = sorted(p.key for p in perms)
    log.info(
        "role.created",
        role_id=str(role.id),
        team_id=str(team_id),
        actor_id=str(actor_id),
        permissions=len(keys),
    )
    return role, keys


@storage_operation("update_role")
async def update_role(
    session: AsyncSession,
    actor_id: uuid.UUID,
    role_id: uuid.UUID,
    *,
    name: Optional[str] = None,
    description: Optional[str] = None,
) -> Role:
    """Rename or re-describe a role. Fields left as None are unchanged."""
    role = await _get_role_or_404(session, role_id)
    await require_team_admin(session, actor_id, role.team_id)
    if role.is_admin:
        raise ForbiddenError("Cannot modify admin roles")

    if name is not None:
        name = _clean_name(name)
        await _ensure_name_free(session, role.team_id, name, exclude=role.id)
        role.name = name
    if description is not None:
        role.description = description

    session.add(role)
    await session.flush()
    log.info("role.updated", role_id=str(role_id), actor_id=str(actor_id))
    return role


@storage_operation("delete_role")
async def delete_role(session: AsyncSession, actor_id: uuid.UUID, role_id: uuid.UUID) -> None:
    """Delete an unused custom role with its grants.

    Admin roles, provisioned roles and roles still assigned to a user are
    refused with ConflictError. Pending requests that asked for the role
    keep their row with the requested role cleared.
    """
    role = await _get_role_or_404(session, role_id)
    await require_team_admin(session, actor_id, role.team_id)

    if role.is_admin:
        raise ConflictError("Cannot delete admin roles")
    if not role.is_custom:
        raise ConflictError("Cannot delete system roles")

    in_use = await session.execute(
        select(func.count()).select_from(User).where(User.role_id == role_id)
    )
    if in_use.scalar_one():
        raise ConflictError("Cannot delete role: users are still assigned to it")

    await session.execute(
        update(Membership)
        .where(Membership.requested_role_id == role_id)
        .values(requested_role_id=None)
    )
    await session.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
    await session.delete(role)
    await session.flush()

    log.info(
        "role.deleted",
        role_id=str(role_id),
        team_id=str(role.team_id),
        actor_id=str(actor_id),
    )
