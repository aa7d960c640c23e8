"""
Role provisioning: materialize a new team's standard roles from templates.

Contract: ``provision_roles(session, team_id) -> list[role_id]`` creates the
team's roles, at least one of them with ``is_admin=True``, or raises. The
membership service accepts any coroutine function with this signature.
"""

from __future__ import annotations

import uuid
from typing import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import storage_operation
from app.core.errors import SetupFailedError
from app.models.permission import RolePermission
from app.models.role import Role

log = structlog.get_logger()

RoleProvisioner = Callable[[AsyncSession, uuid.UUID], Awaitable[list[uuid.UUID]]]


@storage_operation("provision_roles")
async def provision_roles(session: AsyncSession, team_id: uuid.UUID) -> list[uuid.UUID]:
    """Clone every system role template, with its grants, into ``team_id``."""
    result = await session.execute(
        select(Role).where(Role.team_id.is_(None)).order_by(Role.name)
    )
    templates = result.scalars().all()
    if not templates:
        raise SetupFailedError("No role templates found")

    created: list[uuid.UUID] = []
    for template in templates:
        role = Role(
            team_id=team_id,
            name=template.name,
            description=template.description,
            is_admin=template.is_admin,
            is_custom=False,
            based_on_template=template.id,
        )
        session.add(role)
        await session.flush()

        grants = await session.execute(
            select(RolePermission.permission_id).where(RolePermission.role_id == template.id)
        )
        for (permission_id,) in grants.all():
            session.add(RolePermission(role_id=role.id, permission_id=permission_id))
        created.append(role.id)

    await session.flush()
    log.info("roles.provisioned", team_id=str(team_id), count=len(created))
    return created
