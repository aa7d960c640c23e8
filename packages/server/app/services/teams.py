"""
Team settings and discovery.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import storage_operation
from app.core.errors import NotFoundError
from app.models.team import Team, TeamSettings
from app.services.permissions import require_team_admin

log = structlog.get_logger()


@storage_operation("list_discoverable_teams")
async def list_discoverable_teams(session: AsyncSession) -> list[tuple[Team, TeamSettings]]:
    """Teams that opted in to being listed for join requests, by name."""
    result = await session.execute(
        select(Team, TeamSettings)
        .join(TeamSettings, TeamSettings.team_id == Team.id)
        .where(TeamSettings.is_discoverable.is_(True))
        .order_by(Team.name)
    )
    return [(team, team_settings) for team, team_settings in result.all()]


@storage_operation("update_team_settings")
async def update_team_settings(
    session: AsyncSession,
    actor_id: uuid.UUID,
    team_id: uuid.UUID,
    *,
    is_discoverable: Optional[bool] = None,
    description: Optional[str] = None,
) -> TeamSettings:
    """Partial update; fields left as None are unchanged."""
    await require_team_admin(session, actor_id, team_id)

    team_settings = await session.get(TeamSettings, team_id)
    if team_settings is None:
        raise NotFoundError(f"Team {team_id} not found")

    if is_discoverable is not None:
        team_settings.is_discoverable = is_discoverable
    if description is not None:
        team_settings.description = description

    session.add(team_settings)
    await session.flush()

    log.info(
        "team.settings_updated",
        team_id=str(team_id),
        actor_id=str(actor_id),
        is_discoverable=team_settings.is_discoverable,
    )
    return team_settings
