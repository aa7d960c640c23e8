"""
Permission API endpoints.

GET    /api/v1/permissions            Catalog grouped by module
GET    /api/v1/permissions/me         Caller's effective permissions
GET    /api/v1/permissions/me/{key}   Check one permission for the caller
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user
from app.core.database import get_session
from app.models.user import User
from app.services import permissions as permission_service
from recruitdesk_shared.schemas.permissions import (
    PermissionCatalogResponse,
    PermissionCheckResponse,
    PermissionResponse,
    UserPermissionsResponse,
)

router = APIRouter()


@router.get("", response_model=PermissionCatalogResponse)
async def list_permissions(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    grouped = await permission_service.list_permissions_grouped(session)
    return PermissionCatalogResponse(
        data={
            module: [PermissionResponse.model_validate(p) for p in perms]
            for module, perms in grouped.items()
        }
    )


@router.get("/me", response_model=UserPermissionsResponse)
async def my_permissions(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    tier = await permission_service.get_admin_tier(session, user.id)
    keys = await permission_service.get_user_permissions(session, user.id)
    return UserPermissionsResponse(tier=tier, permissions=sorted(keys))


@router.get("/me/{key}", response_model=PermissionCheckResponse)
async def check_my_permission(
    key: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    allowed = await permission_service.check_permission(session, user.id, key)
    return PermissionCheckResponse(key=key, allowed=allowed)
