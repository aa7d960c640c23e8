"""
Membership approval API endpoints.

GET    /api/v1/memberships/pending          Pending requests (admin)
GET    /api/v1/memberships/me               Caller's membership state
POST   /api/v1/memberships/{id}/approve     Approve and assign a role (admin)
POST   /api/v1/memberships/{id}/reject      Reject with a reason (admin)
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import get_current_user, require_admin
from app.core.database import get_session
from app.models.user import User
from app.services import memberships as membership_service
from app.services.guards import ApprovedMembership, NoMembership
from recruitdesk_shared.schemas.memberships import (
    MembershipApproveRequest,
    MembershipRejectRequest,
    MembershipResponse,
    MembershipViewResponse,
    PendingMembershipListResponse,
)

router = APIRouter()


@router.get("/pending", response_model=PendingMembershipListResponse)
async def list_pending(
    team_id: Optional[uuid.UUID] = Query(default=None),
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """List pending requests. Master admins may filter by team_id or see all teams."""
    items = await membership_service.list_pending_memberships(session, admin.id, team_id)
    return PendingMembershipListResponse(
        data=[MembershipResponse.model_validate(m) for m in items]
    )


@router.get("/me", response_model=MembershipViewResponse)
async def my_membership(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    view = await membership_service.get_membership_view(session, user.id)
    if isinstance(view, NoMembership):
        team_ids = []
    elif isinstance(view, ApprovedMembership):
        team_ids = sorted(view.team_ids, key=str)
    else:
        team_ids = [view.team_id]
    return MembershipViewResponse(kind=view.kind, team_ids=team_ids)


@router.post("/{membership_id}/approve", response_model=MembershipResponse)
async def approve(
    membership_id: uuid.UUID,
    body: MembershipApproveRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Approve a pending request and assign the user's role."""
    membership, _ = await membership_service.approve_membership(
        session, admin.id, membership_id, body.role_id
    )
    return MembershipResponse.model_validate(membership)


@router.post("/{membership_id}/reject", response_model=MembershipResponse)
async def reject(
    membership_id: uuid.UUID,
    body: MembershipRejectRequest,
    admin: User = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Reject a pending request. The user keeps no role."""
    membership = await membership_service.reject_membership(
        session, admin.id, membership_id, body.reason
    )
    return MembershipResponse.model_validate(membership)
