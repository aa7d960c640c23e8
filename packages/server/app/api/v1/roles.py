"""
Role API endpoints.

GET    /api/v1/roles                        List a team's roles
POST   /api/v1/roles                        Create a custom role (admin)
GET    /api/v1/roles/{role_id}              Role with its permission keys
PATCH  /api/v1/roles/{role_id}              Rename or re-describe a role (admin)
DELETE /api/v1/roles/{role_id}              Delete an unused custom role (admin)
PUT    /api/v1/roles/{role_id}/permissions  Replace a role's permission set (admin)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_admin
from app.core.database import get_session
from app.core.errors import InvalidInputError
from app.models.user import User
from app.services import permissions as permission_service
from app.services import roles as role_service
from recruitdesk_shared.schemas.permissions import (
    RolePermissionsResponse,
    RolePermissionsUpdateRequest,
)
from recruitdesk_shared.schemas.roles import (
    RoleCreateRequest,
    RoleDetailResponse,
    RoleListResponse,
    RoleResponse,
    RoleUpdateRequest,
)

router = APIRouter()


def _detail(role, keys: list[str]) -> RoleDetailResponse:
    return RoleDetailResponse(
        **RoleResponse.model_validate(role).model_dump(),
        permissions=keys,
    )


@router.get("", response_model=RoleListResponse)
async def list_roles(
    team_id: Optional[uuid.UUID] = Query(default=None),
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Roles of the caller's team, or of ``team_id`` for master admins."""
    roles = await role_service.list_team_roles(session, user.id, team_id)
    return RoleListResponse(data=[RoleResponse.model_validate(r) for r in roles])


@router.post("", response_model=RoleDetailResponse, status_code=201)
async def create_role(
    body: RoleCreateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    team_id = body.team_id or admin.team_id
    if team_id is None:
        raise InvalidInputError("team_id is required for master admins")
    role, keys = await role_service.create_custom_role(
        session, admin.id, team_id, body.name, body.description, body.permission_ids
    )
    return _detail(role, keys)


@router.get("/{role_id}", response_model=RoleDetailResponse)
async def get_role(
    role_id: uuid.UUID,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    role, keys = await role_service.get_role(session, user.id, role_id)
    return _detail(role, keys)


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: uuid.UUID,
    body: RoleUpdateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    role = await role_service.update_role(
        session, admin.id, role_id, name=body.name, description=body.description
    )
    return RoleResponse.model_validate(role)


@router.delete("/{role_id}", status_code=204)
async def delete_role(
    role_id: uuid.UUID,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Custom roles only; admin, provisioned and assigned roles are refused (409)."""
    await role_service.delete_role(session, admin.id, role_id)
    return Response(status_code=204)


@router.put("/{role_id}/permissions", response_model=RolePermissionsResponse)
async def replace_role_permissions(
    role_id: uuid.UUID,
    body: RolePermissionsUpdateRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Replace the role's grants. Admin roles cannot be edited."""
    keys = await permission_service.set_role_permissions(
        session, admin.id, role_id, body.permission_ids
    )
    return RolePermissionsResponse(role_id=role_id, permissions=keys)
