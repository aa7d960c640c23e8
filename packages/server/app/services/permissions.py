"""
Permission resolution (RBAC).

A user holds at most one role. Two bypasses sit in front of the
role-permission lookup:

- master admin: every permission, in every team;
- local admin (a role with ``is_admin=True``): every permission, within the
  user's own team.

Admins resolve against the whole catalog, so keys added after their role was
created are covered too. Teams may own several admin roles; any of them
grants the bypass.
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Iterable, Optional

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import storage_operation
from app.core.errors import ForbiddenError, NotFoundError
from app.models.permission import Permission, RolePermission
from app.models.role import Role
from app.models.user import User
from recruitdesk_shared.schemas.common import AdminTier

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _load_user_with_role(
    session: AsyncSession, user_id: uuid.UUID
) -> tuple[Optional[User], Optional[Role]]:
    user = await session.get(User, user_id)
    if user is None or user.role_id is None:
        return user, None
    role = await session.get(Role, user.role_id)
    return user, role


async def _role_permission_keys(session: AsyncSession, role_id: uuid.UUID) -> set[str]:
    result = await session.execute(
        select(Permission.key)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role_id)
    )
    return {row[0] for row in result.all()}


async def _catalog_keys(session: AsyncSession) -> set[str]:
    result = await session.execute(select(Permission.key))
    return {row[0] for row in result.all()}


def _has_bypass(user: User, role: Optional[Role], team_id: Optional[uuid.UUID]) -> bool:
    if user.is_master_admin:
        return True
    if role is None or not role.is_admin:
        return False
    return team_id is None or user.team_id == team_id


@storage_operation("find_local_admin_role")
async def find_local_admin_role(
    session: AsyncSession,
    team_id: uuid.UUID,
    among: Optional[Iterable[uuid.UUID]] = None,
) -> Optional[Role]:
    """First admin role of the team, or None. Uniqueness is not assumed.

    ``among`` restricts the search to the given role ids.
    """
    query = select(Role).where(Role.team_id == team_id, Role.is_admin.is_(True))
    if among is not None:
        query = query.where(Role.id.in_(list(among)))
    result = await session.execute(query.order_by(Role.created_at, Role.name))
    return result.scalars().first()


@storage_operation("require_team_admin")
async def require_team_admin(
    session: AsyncSession, actor_id: uuid.UUID, team_id: Optional[uuid.UUID]
) -> User:
    """Return the actor if they may administer ``team_id``, else ForbiddenError.

    Master admins may administer any team (and system templates, team_id=None).
    Local admins only their own team.
    """
    actor, role = await _load_user_with_role(session, actor_id)
    if actor is None:
        raise ForbiddenError(f"User {actor_id} is not an administrator")
    if actor.is_master_admin:
        return actor
    if (
        team_id is not None
        and role is not None
        and role.is_admin
        and actor.team_id == team_id
    ):
        return actor
    raise ForbiddenError(f"User {actor_id} is not an administrator of team {team_id}")


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


@storage_operation("check_permission")
async def check_permission(
    session: AsyncSession,
    user_id: uuid.UUID,
    permission_key: str,
    *,
    team_id: Optional[uuid.UUID] = None,
) -> bool:
    """Is ``user_id`` allowed ``permission_key`` (optionally within ``team_id``)?"""
    user, role = await _load_user_with_role(session, user_id)
    if user is None:
        return False
    if _has_bypass(user, role, team_id):
        return True
    if role is None:
        return False
    if team_id is not None and user.team_id != team_id:
        return False
    return permission_key in await _role_permission_keys(session, role.id)


@storage_operation("check_permission")
async def check_any_permission(
    session: AsyncSession,
    user_id: uuid.UUID,
    permission_keys: Iterable[str],
    *,
    team_id: Optional[uuid.UUID] = None,
) -> bool:
    """True if at least one key is allowed. Role grants are loaded once."""
    keys = list(permission_keys)
    user, role = await _load_user_with_role(session, user_id)
    if user is None:
        return False
    if _has_bypass(user, role, team_id):
        return True
    if role is None or not keys:
        return False
    if team_id is not None and user.team_id != team_id:
        return False
    granted = await _role_permission_keys(session, role.id)
    return any(key in granted for key in keys)


@storage_operation("check_permission")
async def check_all_permissions(
    session: AsyncSession,
    user_id: uuid.UUID,
    permission_keys: Iterable[str],
    *,
    team_id: Optional[uuid.UUID] = None,
) -> bool:
    """True if every key is allowed (vacuously true for an empty list)."""
    keys = list(permission_keys)
    user, role = await _load_user_with_role(session, user_id)
    if user is None:
        return False
    if _has_bypass(user, role, team_id):
        return True
    if role is None:
        return False
    if team_id is not None and user.team_id != team_id:
        return False
    granted = await _role_permission_keys(session, role.id)
    return all(key in granted for key in keys)


@storage_operation("get_user_permissions")
async def get_user_permissions(session: AsyncSession, user_id: uuid.UUID) -> set[str]:
    """Effective permission keys. Admins get the entire catalog."""
    user, role = await _load_user_with_role(session, user_id)
    if user is None:
        return set()
    if _has_bypass(user, role, None):
        return await _catalog_keys(session)
    if role is None:
        return set()
    return await _role_permission_keys(session, role.id)


@storage_operation("is_master_admin")
async def is_master_admin(session: AsyncSession, user_id: uuid.UUID) -> bool:
    user = await session.get(User, user_id)
    return user is not None and user.is_master_admin


@storage_operation("is_local_admin")
async def is_local_admin(session: AsyncSession, user_id: uuid.UUID) -> bool:
    user, role = await _load_user_with_role(session, user_id)
    if user is None or user.is_master_admin:
        return False
    return role is not None and role.is_admin


@storage_operation("get_admin_tier")
async def get_admin_tier(session: AsyncSession, user_id: uuid.UUID) -> AdminTier:
    if await is_master_admin(session, user_id):
        return AdminTier.MASTER_ADMIN
    if await is_local_admin(session, user_id):
        return AdminTier.LOCAL_ADMIN
    return AdminTier.USER


# ---------------------------------------------------------------------------
# Catalog and grants
# ---------------------------------------------------------------------------


@storage_operation("list_permissions")
async def list_permissions_grouped(session: AsyncSession) -> dict[str, list[Permission]]:
    """All catalog entries grouped by module, sorted by module then key."""
    result = await session.execute(select(Permission).order_by(Permission.module, Permission.key))
    grouped: dict[str, list[Permission]] = defaultdict(list)
    for perm in result.scalars().all():
        grouped[perm.module or "Other"].append(perm)
    return dict(grouped)


async def load_permissions(
    session: AsyncSession, permission_ids: Iterable[uuid.UUID]
) -> list[Permission]:
    """Catalog entries for ``permission_ids``; NotFoundError naming any unknown id."""
    wanted = set(permission_ids)
    if not wanted:
        return []
    result = await session.execute(select(Permission).where(Permission.id.in_(wanted)))
    perms = list(result.scalars().all())
    missing = wanted - {p.id for p in perms}
    if missing:
        raise NotFoundError(
            f"Permissions not found: {', '.join(sorted(str(m) for m in missing))}"
        )
    return perms


@storage_operation("set_role_permissions")
async def set_role_permissions(
    session: AsyncSession,
    actor_id: uuid.UUID,
    role_id: uuid.UUID,
    permission_ids: Iterable[uuid.UUID],
) -> list[str]:
    """Replace a role's grants with exactly ``permission_ids``.

    Everything that can fail is checked before any grant is removed, and
    the delete and insert share the caller's transaction, so a failure
    never leaves the role with fewer permissions than it had.
    """
    role = await session.get(Role, role_id)
    if role is None:
        raise NotFoundError(f"Role {role_id} not found")

    await require_team_admin(session, actor_id, role.team_id)

    if role.is_admin:
        raise ForbiddenError("Cannot modify admin role permissions")

    wanted = set(permission_ids)
    perms = await load_permissions(session, wanted)

    existing = await session.execute(
        select(RolePermission.permission_id).where(RolePermission.role_id == role_id)
    )
    current = {row[0] for row in existing.all()}

    stale = current - wanted
    if stale:
        await session.execute(
            delete(RolePermission).where(
                RolePermission.role_id == role_id,
                RolePermission.permission_id.in_(stale),
            )
        )
    for perm in perms:
        if perm.id not in current:
            session.add(
                RolePermission(role_id=role_id, permission_id=perm.id, granted_by=actor_id)
            )
    await session.flush()

    keys = sorted(p.key for p in perms)
    log.info(
        "role.permissions_replaced",
        role_id=str(role_id),
        actor_id=str(actor_id),
        count=len(keys),
    )
    return keys
