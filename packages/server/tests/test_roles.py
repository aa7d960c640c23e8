"""
Tests for team role management: listing, custom roles, renames and deletion.
"""

from __future__ import annotations

import uuid

import pytest
from sqlmodel import select

from app.core.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from app.models.membership import Membership
from app.models.permission import Permission, RolePermission
from app.models.role import Role
from app.services import memberships as membership_service
from app.services import permissions as permission_service
from app.services import roles as role_service
from app.services.catalog import LOCAL_ADMIN_TEMPLATE, ROLE_TEMPLATES


async def _permission_ids(session, keys) -> list[uuid.UUID]:
    result = await session.execute(select(Permission).where(Permission.key.in_(list(keys))))
    return [p.id for p in result.scalars().all()]


async def _team_role(session, team_id, name) -> Role:
    result = await session.execute(select(Role).where(Role.team_id == team_id, Role.name == name))
    return result.scalar_one()


@pytest.fixture
async def acme(session, create_team, join_team):
    """Team Acme with an approved Viewer member."""
    admin, team, _ = await create_team("Acme")
    viewer = await _team_role(session, team.id, "Viewer")
    member, membership = await join_team(team.id)
    await membership_service.approve_membership(session, admin.id, membership.id, viewer.id)
    return {"admin": admin, "team": team, "member": member, "viewer": viewer}


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestListRoles:
    @pytest.mark.asyncio
    async def test_admin_lists_own_team(self, session, acme):
        roles = await role_service.list_team_roles(session, acme["admin"].id)

        assert {r.name for r in roles} == set(ROLE_TEMPLATES)
        assert roles[0].name == LOCAL_ADMIN_TEMPLATE
        assert all(r.team_id == acme["team"].id for r in roles)

    @pytest.mark.asyncio
    async def test_plain_member_forbidden(self, session, acme):
        with pytest.raises(ForbiddenError):
            await role_service.list_team_roles(session, acme["member"].id)

    @pytest.mark.asyncio
    async def test_member_with_roles_manage_may_list(self, session, acme):
        await permission_service.set_role_permissions(
            session,
            acme["admin"].id,
            acme["viewer"].id,
            await _permission_ids(session, ["roles.manage"]),
        )
        roles = await role_service.list_team_roles(session, acme["member"].id)
        assert len(roles) == len(ROLE_TEMPLATES)

    @pytest.mark.asyncio
    async def test_other_team_admin_forbidden(self, session, acme, create_team):
        globex_admin, _, _ = await create_team("Globex")
        with pytest.raises(ForbiddenError):
            await role_service.list_team_roles(session, globex_admin.id, acme["team"].id)

    @pytest.mark.asyncio
    async def test_master_admin_must_name_team(self, session, acme):
        master = await membership_service.create_master_admin(
            session, uuid.uuid4(), "root@recruitdesk.test"
        )
        with pytest.raises(InvalidInputError):
            await role_service.list_team_roles(session, master.id)
        roles = await role_service.list_team_roles(session, master.id, acme["team"].id)
        assert len(roles) == len(ROLE_TEMPLATES)

    @pytest.mark.asyncio
    async def test_get_role_with_keys(self, session, acme):
        role, keys = await role_service.get_role(session, acme["admin"].id, acme["viewer"].id)
        assert role.id == acme["viewer"].id
        assert keys == sorted(ROLE_TEMPLATES["Viewer"][2])


# ---------------------------------------------------------------------------
# Custom roles
# ---------------------------------------------------------------------------

class TestCreateCustomRole:
    @pytest.mark.asyncio
    async def test_creates_team_scoped_custom_role(self, session, acme):
        ids = await _permission_ids(session, ["candidate.read", "job.read"])
        role, keys = await role_service.create_custom_role(
            session, acme["admin"].id, acme["team"].id, " Sourcer ", "Finds people", ids
        )

        assert role.name == "Sourcer"
        assert role.team_id == acme["team"].id
        assert role.is_custom
        assert not role.is_admin
        assert role.based_on_template is None
        assert keys == ["candidate.read", "job.read"]

        grant = await session.get(RolePermission, (role.id, ids[0]))
        assert grant.granted_by == acme["admin"].id

    @pytest.mark.asyncio
    async def test_name_taken_case_insensitively(self, session, acme):
        with pytest.raises(ConflictError, match="already used"):
            await role_service.create_custom_role(
                session, acme["admin"].id, acme["team"].id, "VIEWER"
            )

    @pytest.mark.asyncio
    async def test_same_name_in_another_team(self, session, acme, create_team):
        globex_admin, globex, _ = await create_team("Globex")
        await role_service.create_custom_role(session, acme["admin"].id, acme["team"].id, "Sourcer")
        role, _ = await role_service.create_custom_role(
            session, globex_admin.id, globex.id, "Sourcer"
        )
        assert role.team_id == globex.id

    @pytest.mark.asyncio
    async def test_blank_name(self, session, acme):
        with pytest.raises(InvalidInputError):
            await role_service.create_custom_role(session, acme["admin"].id, acme["team"].id, "  ")

    @pytest.mark.asyncio
    async def test_unknown_permission_creates_nothing(self, session, acme):
        with pytest.raises(NotFoundError, match="Permissions not found"):
            await role_service.create_custom_role(
                session, acme["admin"].id, acme["team"].id, "Sourcer", None, [uuid.uuid4()]
            )
        result = await session.execute(select(Role).where(Role.name == "Sourcer"))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_member_forbidden(self, session, acme):
        with pytest.raises(ForbiddenError):
            await role_service.create_custom_role(
                session, acme["member"].id, acme["team"].id, "Sourcer"
            )


class TestUpdateRole:
    @pytest.mark.asyncio
    async def test_rename(self, session, acme):
        role = await role_service.update_role(
            session, acme["admin"].id, acme["viewer"].id, name="Read Only", description="RO"
        )
        assert role.name == "Read Only"
        assert role.description == "RO"

    @pytest.mark.asyncio
    async def test_rename_to_existing_name(self, session, acme):
        with pytest.raises(ConflictError):
            await role_service.update_role(
                session, acme["admin"].id, acme["viewer"].id, name="recruiter"
            )

    @pytest.mark.asyncio
    async def test_admin_role_locked(self, session, acme):
        admin_role = await permission_service.find_local_admin_role(session, acme["team"].id)
        with pytest.raises(ForbiddenError):
            await role_service.update_role(
                session, acme["admin"].id, admin_role.id, name="Boss"
            )


class TestDeleteRole:
    @pytest.mark.asyncio
    async def test_deletes_unused_custom_role(self, session, acme):
        ids = await _permission_ids(session, ["candidate.read"])
        role, _ = await role_service.create_custom_role(
            session, acme["admin"].id, acme["team"].id, "Sourcer", None, ids
        )
        role_id = role.id

        await role_service.delete_role(session, acme["admin"].id, role_id)

        assert await session.get(Role, role_id) is None
        grants = await session.execute(
            select(RolePermission).where(RolePermission.role_id == role_id)
        )
        assert grants.scalars().all() == []

    @pytest.mark.asyncio
    async def test_pending_request_for_role_is_cleared(self, session, acme, join_team):
        role, _ = await role_service.create_custom_role(
            session, acme["admin"].id, acme["team"].id, "Sourcer"
        )
        _, membership = await join_team(acme["team"].id, requested_role_id=role.id)

        await role_service.delete_role(session, acme["admin"].id, role.id)

        stored = await session.get(Membership, membership.id)
        assert stored.status == "pending"
        assert stored.requested_role_id is None

    @pytest.mark.asyncio
    async def test_admin_role_refused(self, session, acme):
        admin_role = await permission_service.find_local_admin_role(session, acme["team"].id)
        with pytest.raises(ConflictError, match="admin roles"):
            await role_service.delete_role(session, acme["admin"].id, admin_role.id)

    @pytest.mark.asyncio
    async def test_provisioned_role_refused(self, session, acme):
        recruiter = await _team_role(session, acme["team"].id, "Recruiter")
        with pytest.raises(ConflictError, match="system roles"):
            await role_service.delete_role(session, acme["admin"].id, recruiter.id)

    @pytest.mark.asyncio
    async def test_assigned_role_refused(self, session, acme, join_team):
        role, _ = await role_service.create_custom_role(
            session, acme["admin"].id, acme["team"].id, "Sourcer"
        )
        _, membership = await join_team(acme["team"].id)
        await membership_service.approve_membership(
            session, acme["admin"].id, membership.id, role.id
        )

        with pytest.raises(ConflictError, match="still assigned"):
            await role_service.delete_role(session, acme["admin"].id, role.id)

    @pytest.mark.asyncio
    async def test_other_team_admin_forbidden(self, session, acme, create_team):
        role, _ = await role_service.create_custom_role(
            session, acme["admin"].id, acme["team"].id, "Sourcer"
        )
        globex_admin, _, _ = await create_team("Globex")
        with pytest.raises(ForbiddenError):
            await role_service.delete_role(session, globex_admin.id, role.id)

    @pytest.mark.asyncio
    async def test_unknown_role(self, session, acme):
        with pytest.raises(NotFoundError):
            await role_service.delete_role(session, acme["admin"].id, uuid.uuid4())
