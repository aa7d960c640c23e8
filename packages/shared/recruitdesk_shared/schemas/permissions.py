"""Permission catalog and role-permission schemas."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

from .common import AdminTier


class PermissionResponse(BaseModel):
    id: uuid.UUID
    key: str
    name: str
    module: str

    model_config = {"from_attributes": True}


class PermissionCatalogResponse(BaseModel):
    """Catalog grouped by module name."""
    data: dict[str, list[PermissionResponse]]


class UserPermissionsResponse(BaseModel):
    tier: AdminTier
    permissions: list[str]


class PermissionCheckResponse(BaseModel):
    key: str
    allowed: bool


class RolePermissionsUpdateRequest(BaseModel):
    """Replace the full permission set of a role."""
    permission_ids: list[uuid.UUID] = Field(default_factory=list)


class RolePermissionsResponse(BaseModel):
    role_id: uuid.UUID
    permissions: list[str]
