"""
Tests for permission resolution, admin tiers and role-permission replacement.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import select

from app.core.errors import ForbiddenError, NotFoundError, UnavailableError
from app.models.permission import Permission, RolePermission
from app.models.role import Role
from app.services import memberships as membership_service
from app.services import permissions as permission_service
from app.services.catalog import ALL_PERMISSION_KEYS, ROLE_TEMPLATES
from recruitdesk_shared.schemas.common import AdminTier


async def _team_role(session, team_id, name) -> Role:
    result = await session.execute(select(Role).where(Role.team_id == team_id, Role.name == name))
    return result.scalar_one()


async def _permission_ids(session, keys) -> list[uuid.UUID]:
    result = await session.execute(select(Permission).where(Permission.key.in_(list(keys))))
    return [p.id for p in result.scalars().all()]


async def _role_keys(session, role_id) -> set[str]:
    result = await session.execute(
        select(Permission.key)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role_id)
    )
    return {row[0] for row in result.all()}


@pytest.fixture
async def acme(session, create_team, join_team):
    """Team Acme with an approved Recruiter member."""
    admin, team, _ = await create_team("Acme")
    recruiter_role = await _team_role(session, team.id, "Recruiter")
    member, membership = await join_team(team.id)
    await membership_service.approve_membership(
        session, admin.id, membership.id, recruiter_role.id
    )
    return {"admin": admin, "team": team, "member": member, "recruiter_role": recruiter_role}


# ---------------------------------------------------------------------------
# check_permission / get_user_permissions
# ---------------------------------------------------------------------------

class TestCheckPermission:
    @pytest.mark.asyncio
    async def test_local_admin_has_every_key(self, session, acme):
        for key in ALL_PERMISSION_KEYS:
            assert await permission_service.check_permission(session, acme["admin"].id, key)

    @pytest.mark.asyncio
    async def test_master_admin_has_every_key(self, session):
        master = await membership_service.create_master_admin(
            session, uuid.uuid4(), "root@recruitdesk.test"
        )
        for key in ALL_PERMISSION_KEYS:
            assert await permission_service.check_permission(session, master.id, key)

    @pytest.mark.asyncio
    async def test_admins_cover_keys_added_later(self, session, acme):
        master = await membership_service.create_master_admin(
            session, uuid.uuid4(), "root@recruitdesk.test"
        )
        session.add(Permission(key="payroll.export", name="Export payroll", module="Payroll"))
        await session.flush()

        for user in (acme["admin"], master):
            assert await permission_service.check_permission(session, user.id, "payroll.export")
            assert "payroll.export" in await permission_service.get_user_permissions(
                session, user.id
            )
        assert not await permission_service.check_permission(
            session, acme["member"].id, "payroll.export"
        )

    @pytest.mark.asyncio
    async def test_member_limited_to_role_grants(self, session, acme):
        granted = set(ROLE_TEMPLATES["Recruiter"][2])
        assert await permission_service.get_user_permissions(session, acme["member"].id) == granted
        assert await permission_service.check_permission(session, acme["member"].id, "candidate.read")
        assert not await permission_service.check_permission(
            session, acme["member"].id, "invoice.read"
        )

    @pytest.mark.asyncio
    async def test_unknown_user_has_nothing(self, session):
        assert not await permission_service.check_permission(session, uuid.uuid4(), "candidate.read")
        assert await permission_service.get_user_permissions(session, uuid.uuid4()) == set()

    @pytest.mark.asyncio
    async def test_local_admin_bypass_scoped_to_own_team(self, session, acme, create_team):
        _, globex, _ = await create_team("Globex")
        admin_id = acme["admin"].id
        assert await permission_service.check_permission(
            session, admin_id, "candidate.read", team_id=acme["team"].id
        )
        assert not await permission_service.check_permission(
            session, admin_id, "candidate.read", team_id=globex.id
        )

    @pytest.mark.asyncio
    async def test_member_outside_team_denied(self, session, acme, create_team):
        _, globex, _ = await create_team("Globex")
        assert not await permission_service.check_permission(
            session, acme["member"].id, "candidate.read", team_id=globex.id
        )


class TestCombinators:
    @pytest.mark.asyncio
    async def test_any(self, session, acme):
        member_id = acme["member"].id
        assert await permission_service.check_any_permission(
            session, member_id, ["invoice.read", "candidate.read"]
        )
        assert not await permission_service.check_any_permission(
            session, member_id, ["invoice.read", "vendor.delete"]
        )

    @pytest.mark.asyncio
    async def test_all(self, session, acme):
        member_id = acme["member"].id
        assert await permission_service.check_all_permissions(
            session, member_id, ["candidate.read", "job.read"]
        )
        assert not await permission_service.check_all_permissions(
            session, member_id, ["candidate.read", "invoice.read"]
        )

    @pytest.mark.asyncio
    async def test_empty_key_lists(self, session, acme):
        member_id = acme["member"].id
        assert not await permission_service.check_any_permission(session, member_id, [])
        assert await permission_service.check_all_permissions(session, member_id, [])

        admin_id = acme["admin"].id
        assert await permission_service.check_any_permission(session, admin_id, [])
        assert await permission_service.check_all_permissions(session, admin_id, [])

    @pytest.mark.asyncio
    async def test_pending_user_denied_everything(self, session, acme, join_team):
        pending, _ = await join_team(acme["team"].id)
        assert not await permission_service.check_any_permission(
            session, pending.id, ALL_PERMISSION_KEYS
        )
        assert not await permission_service.check_all_permissions(
            session, pending.id, ["candidate.read"]
        )


class TestAdminTiers:
    @pytest.mark.asyncio
    async def test_tiers(self, session, acme):
        master = await membership_service.create_master_admin(
            session, uuid.uuid4(), "root@recruitdesk.test"
        )
        assert await permission_service.get_admin_tier(session, master.id) == AdminTier.MASTER_ADMIN
        assert await permission_service.get_admin_tier(session, acme["admin"].id) == AdminTier.LOCAL_ADMIN
        assert await permission_service.get_admin_tier(session, acme["member"].id) == AdminTier.USER

    @pytest.mark.asyncio
    async def test_master_admin_is_not_local_admin(self, session):
        master = await membership_service.create_master_admin(
            session, uuid.uuid4(), "root@recruitdesk.test"
        )
        assert await permission_service.is_master_admin(session, master.id)
        assert not await permission_service.is_local_admin(session, master.id)

    @pytest.mark.asyncio
    async def test_find_local_admin_role(self, session, acme):
        role = await permission_service.find_local_admin_role(session, acme["team"].id)
        assert role.is_admin
        assert role.team_id == acme["team"].id
        assert await permission_service.find_local_admin_role(session, uuid.uuid4()) is None


# ---------------------------------------------------------------------------
# set_role_permissions
# ---------------------------------------------------------------------------

class TestSetRolePermissions:
    @pytest.mark.asyncio
    async def test_replaces_grants(self, session, acme):
        role = acme["recruiter_role"]
        wanted = ["candidate.read", "invoice.read"]
        keys = await permission_service.set_role_permissions(
            session, acme["admin"].id, role.id, await _permission_ids(session, wanted)
        )

        assert keys == sorted(wanted)
        assert await _role_keys(session, role.id) == set(wanted)
        assert await permission_service.check_permission(session, acme["member"].id, "invoice.read")
        assert not await permission_service.check_permission(
            session, acme["member"].id, "submission.create"
        )

    @pytest.mark.asyncio
    async def test_records_granting_admin(self, session, acme):
        role = acme["recruiter_role"]
        await permission_service.set_role_permissions(
            session, acme["admin"].id, role.id, await _permission_ids(session, ["audit.view"])
        )
        grant = await session.get(
            RolePermission,
            (role.id, (await _permission_ids(session, ["audit.view"]))[0]),
        )
        assert grant.granted_by == acme["admin"].id

    @pytest.mark.asyncio
    async def test_empty_set_clears_role(self, session, acme):
        role = acme["recruiter_role"]
        assert await permission_service.set_role_permissions(
            session, acme["admin"].id, role.id, []
        ) == []
        assert await _role_keys(session, role.id) == set()

    @pytest.mark.asyncio
    async def test_unknown_permission_leaves_role_untouched(self, session, acme):
        role = acme["recruiter_role"]
        before = await _role_keys(session, role.id)
        ids = await _permission_ids(session, ["invoice.read"]) + [uuid.uuid4()]

        with pytest.raises(NotFoundError, match="Permissions not found"):
            await permission_service.set_role_permissions(session, acme["admin"].id, role.id, ids)

        assert await _role_keys(session, role.id) == before

    @pytest.mark.asyncio
    async def test_admin_role_cannot_be_edited(self, session, acme):
        admin_role = await permission_service.find_local_admin_role(session, acme["team"].id)
        with pytest.raises(ForbiddenError, match="admin role"):
            await permission_service.set_role_permissions(
                session, acme["admin"].id, admin_role.id, []
            )

    @pytest.mark.asyncio
    async def test_unknown_role(self, session, acme):
        with pytest.raises(NotFoundError):
            await permission_service.set_role_permissions(
                session, acme["admin"].id, uuid.uuid4(), []
            )

    @pytest.mark.asyncio
    async def test_member_cannot_edit_roles(self, session, acme):
        with pytest.raises(ForbiddenError):
            await permission_service.set_role_permissions(
                session, acme["member"].id, acme["recruiter_role"].id, []
            )

    @pytest.mark.asyncio
    async def test_failure_after_stale_delete_rolls_back(self, session, acme, monkeypatch):
        await session.commit()
        admin_id = acme["admin"].id
        role_id = acme["recruiter_role"].id
        before = await _role_keys(session, role_id)
        # Keeps one grant, drops the rest, adds one new key.
        wanted = await _permission_ids(session, ["candidate.read", "invoice.create"])

        async def failing_flush(*args, **kwargs):
            raise OperationalError(
                "INSERT INTO role_permissions", {}, Exception("disk I/O error")
            )

        monkeypatch.setattr(session, "flush", failing_flush)
        with pytest.raises(UnavailableError):
            await permission_service.set_role_permissions(session, admin_id, role_id, wanted)
        monkeypatch.undo()

        await session.rollback()
        assert await _role_keys(session, role_id) == before

    @pytest.mark.asyncio
    async def test_other_team_admin_cannot_edit(self, session, acme, create_team):
        globex_admin, _, _ = await create_team("Globex")
        with pytest.raises(ForbiddenError):
            await permission_service.set_role_permissions(
                session, globex_admin.id, acme["recruiter_role"].id, []
            )

    @pytest.mark.asyncio
    async def test_only_master_admin_edits_templates(self, session, acme):
        result = await session.execute(
            select(Role).where(Role.team_id.is_(None), Role.name == "Viewer")
        )
        template = result.scalar_one()
        ids = await _permission_ids(session, ["candidate.read"])

        with pytest.raises(ForbiddenError):
            await permission_service.set_role_permissions(
                session, acme["admin"].id, template.id, ids
            )

        master = await membership_service.create_master_admin(
            session, uuid.uuid4(), "root@recruitdesk.test"
        )
        keys = await permission_service.set_role_permissions(session, master.id, template.id, ids)
        assert keys == ["candidate.read"]


class TestCatalogListing:
    @pytest.mark.asyncio
    async def test_grouped_by_module(self, session):
        grouped = await permission_service.list_permissions_grouped(session)
        assert "Candidates" in grouped
        assert [p.key for p in grouped["Candidates"]] == sorted(
            ["candidate.create", "candidate.read", "candidate.update", "candidate.delete"]
        )
        assert sum(len(perms) for perms in grouped.values()) == len(ALL_PERMISSION_KEYS)
