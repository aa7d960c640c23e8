"""
Tests for catalog seeding and role provisioning from templates.
"""

from __future__ import annotations

import pytest
from sqlmodel import select

from app.core.errors import SetupFailedError
from app.models.permission import Permission, RolePermission
from app.models.role import Role
from app.models.team import Team
from app.services.catalog import (
    ALL_PERMISSION_KEYS,
    LOCAL_ADMIN_TEMPLATE,
    ROLE_TEMPLATES,
    seed_catalog,
)
from app.services.provisioning import provision_roles


async def _grant_count(session, role_id) -> int:
    result = await session.execute(select(RolePermission).where(RolePermission.role_id == role_id))
    return len(result.scalars().all())


class TestSeedCatalog:
    @pytest.mark.asyncio
    async def test_seeded_once(self, session):
        result = await session.execute(select(Permission.key))
        assert sorted(row[0] for row in result.all()) == sorted(ALL_PERMISSION_KEYS)

        result = await session.execute(select(Role).where(Role.team_id.is_(None)))
        templates = {r.name: r for r in result.scalars().all()}
        assert set(templates) == set(ROLE_TEMPLATES)
        assert templates[LOCAL_ADMIN_TEMPLATE].is_admin
        assert all(t.is_template for t in templates.values())

    @pytest.mark.asyncio
    async def test_idempotent(self, session):
        assert await seed_catalog(session) == (0, 0)

    def test_keys_are_unique_across_modules(self):
        assert len(ALL_PERMISSION_KEYS) == len(set(ALL_PERMISSION_KEYS))

    def test_templates_reference_catalog_keys(self):
        for _, _, keys in ROLE_TEMPLATES.values():
            assert set(keys) <= set(ALL_PERMISSION_KEYS)


class TestProvisionRoles:
    @pytest.mark.asyncio
    async def test_clones_templates_with_grants(self, session):
        team = Team(name="Acme")
        session.add(team)
        await session.flush()

        role_ids = await provision_roles(session, team.id)
        assert len(role_ids) == len(ROLE_TEMPLATES)

        for role_id in role_ids:
            role = await session.get(Role, role_id)
            template = await session.get(Role, role.based_on_template)
            assert role.team_id == team.id
            assert role.name == template.name
            assert role.is_admin == template.is_admin
            assert role.is_custom is False
            assert await _grant_count(session, role.id) == len(ROLE_TEMPLATES[role.name][2])

    @pytest.mark.asyncio
    async def test_at_least_one_admin_role(self, session):
        team = Team(name="Acme")
        session.add(team)
        await session.flush()

        role_ids = await provision_roles(session, team.id)
        roles = [await session.get(Role, rid) for rid in role_ids]
        assert any(r.is_admin for r in roles)

    @pytest.mark.asyncio
    async def test_without_templates_fails(self, session_factory):
        # No seeding: the database has no templates at all.
        async with session_factory() as bare:
            team = Team(name="Acme")
            bare.add(team)
            await bare.flush()
            with pytest.raises(SetupFailedError, match="No role templates"):
                await provision_roles(bare, team.id)
