"""
API v1 Router

Team signup, membership approval and permission endpoints.
"""

from fastapi import APIRouter
from . import memberships, permissions, roles, teams

router = APIRouter()

router.include_router(teams.router, prefix="/teams", tags=["Teams"])
router.include_router(memberships.router, prefix="/memberships", tags=["Memberships"])
router.include_router(permissions.router, prefix="/permissions", tags=["Permissions"])
router.include_router(roles.router, prefix="/roles", tags=["Roles"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/teams",
            "/teams/discoverable",
            "/teams/{team_id}/join",
            "/memberships/pending",
            "/memberships/me",
            "/permissions",
            "/roles",
            "/roles/{role_id}",
            "/roles/{role_id}/permissions",
        ],
    }
