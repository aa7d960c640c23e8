"""
Team API endpoints.

POST   /api/v1/teams                      Create a team; caller becomes local admin
GET    /api/v1/teams/discoverable         List teams open to join requests
POST   /api/v1/teams/{team_id}/join       Request to join a team
PATCH  /api/v1/teams/{team_id}/settings   Update discoverability (admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Identity, get_identity, require_admin
from app.core.database import get_session
from app.models.user import User
from app.services import memberships as membership_service
from app.services import teams as team_service
from recruitdesk_shared.schemas.memberships import MembershipResponse
from recruitdesk_shared.schemas.teams import (
    DiscoverableTeam,
    DiscoverableTeamListResponse,
    TeamCreateRequest,
    TeamCreateResponse,
    TeamJoinRequest,
    TeamJoinResponse,
    TeamResponse,
    TeamSettingsResponse,
    TeamSettingsUpdateRequest,
)
from recruitdesk_shared.schemas.users import UserResponse

router = APIRouter()


@router.post("", response_model=TeamCreateResponse, status_code=201)
async def create_team(
    body: TeamCreateRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
):
    """Create a team. The caller becomes its local admin, approved immediately."""
    user, team, membership = await membership_service.create_team_as_local_admin(
        session, identity.user_id, identity.email, body.team_name
    )
    return TeamCreateResponse(
        team=TeamResponse.model_validate(team),
        user=UserResponse.model_validate(user),
        membership=MembershipResponse.model_validate(membership),
    )


@router.get("/discoverable", response_model=DiscoverableTeamListResponse)
async def list_discoverable_teams(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
):
    """Teams that accept join requests. Open to users who have not signed up yet."""
    rows = await team_service.list_discoverable_teams(session)
    return DiscoverableTeamListResponse(
        data=[
            DiscoverableTeam(id=team.id, name=team.name, description=team_settings.description)
            for team, team_settings in rows
        ]
    )


@router.post("/{team_id}/join", response_model=TeamJoinResponse, status_code=201)
async def join_team(
    team_id: uuid.UUID,
    body: TeamJoinRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
):
    """Submit a pending membership request.

    New users are created without a role. Existing users (after a rejection)
    get a fresh request for the new team.
    """
    existing = await session.get(User, identity.user_id)
    if existing is None:
        user, membership = await membership_service.join_team_as_new_member(
            session,
            identity.user_id,
            identity.email,
            team_id,
            body.requested_role_id,
            body.message,
        )
    else:
        user, membership = await membership_service.request_membership(
            session, identity.user_id, team_id, body.requested_role_id, body.message
        )
    return TeamJoinResponse(
        user=UserResponse.model_validate(user),
        membership=MembershipResponse.model_validate(membership),
    )


@router.patch("/{team_id}/settings", response_model=TeamSettingsResponse)
async def update_team_settings(
    team_id: uuid.UUID,
    body: TeamSettingsUpdateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Update team discoverability and description (local admin of the team, or master admin)."""
    team_settings = await team_service.update_team_settings(
        session,
        admin.id,
        team_id,
        is_discoverable=body.is_discoverable,
        description=body.description,
    )
    return TeamSettingsResponse.model_validate(team_settings)
