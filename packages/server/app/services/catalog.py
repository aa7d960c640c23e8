"""
Default permission catalog and system role templates.

Templates are Role rows with no team. Provisioning clones them, with their
permission grants, into every newly created team.
"""

from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.database import storage_operation
from app.models.permission import Permission, RolePermission
from app.models.role import Role

log = structlog.get_logger()

# module -> [(key, human name)]
PERMISSIONS_BY_MODULE: dict[str, list[tuple[str, str]]] = {
    "Candidates": [
        ("candidate.create", "Create new candidates"),
        ("candidate.read", "View candidates"),
        ("candidate.update", "Edit candidate information"),
        ("candidate.delete", "Delete candidates"),
    ],
    "Vendors": [
        ("vendor.create", "Create new vendors"),
        ("vendor.read", "View vendors"),
        ("vendor.update", "Edit vendor information"),
        ("vendor.delete", "Delete vendors"),
    ],
    "Clients": [
        ("client.create", "Create new clients"),
        ("client.read", "View clients"),
        ("client.update", "Edit client information"),
        ("client.delete", "Delete clients"),
    ],
    "Jobs": [
        ("job.create", "Create job requirements"),
        ("job.read", "View job requirements"),
        ("job.update", "Edit job requirements"),
        ("job.delete", "Delete job requirements"),
    ],
    "Submissions": [
        ("submission.create", "Submit candidates for jobs"),
        ("submission.read", "View submissions"),
        ("submission.update", "Edit submissions"),
        ("submission.delete", "Delete submissions"),
    ],
    "Interviews": [
        ("interview.create", "Schedule interviews"),
        ("interview.read", "View interviews"),
        ("interview.update", "Update interview details"),
        ("interview.delete", "Delete interviews"),
    ],
    "Projects": [
        ("project.create", "Create new projects"),
        ("project.read", "View projects"),
        ("project.update", "Edit project details"),
        ("project.delete", "Delete projects"),
    ],
    "Timesheets": [
        ("timesheet.create", "Create timesheets"),
        ("timesheet.read", "View timesheets"),
        ("timesheet.update", "Edit timesheets"),
        ("timesheet.approve", "Approve timesheets"),
    ],
    "Invoices": [
        ("invoice.create", "Create invoices"),
        ("invoice.read", "View invoices"),
        ("invoice.update", "Edit invoices"),
        ("invoice.delete", "Delete invoices"),
    ],
    "Immigration": [
        ("immigration.create", "Create immigration records"),
        ("immigration.read", "View immigration records"),
        ("immigration.update", "Update immigration records"),
    ],
    "Users & Roles": [
        ("user.create", "Create new users"),
        ("user.read", "View users"),
        ("user.update", "Edit user information"),
        ("user.delete", "Delete users"),
        ("roles.manage", "Create and configure roles"),
    ],
    "Settings": [
        ("settings.manage", "Manage team settings"),
        ("audit.view", "View audit logs"),
        ("reports.view", "View reports"),
    ],
}

ALL_PERMISSION_KEYS: list[str] = [
    key for perms in PERMISSIONS_BY_MODULE.values() for key, _ in perms
]

LOCAL_ADMIN_TEMPLATE = "Local Admin"

# name -> (description, is_admin, permission keys)
ROLE_TEMPLATES: dict[str, tuple[str, bool, list[str]]] = {
    LOCAL_ADMIN_TEMPLATE: (
        "Admin for their team with full team-scoped access",
        True,
        ALL_PERMISSION_KEYS,
    ),
    "Sales Manager": (
        "Manage candidates, vendors, clients, and job placements",
        False,
        [
            "candidate.create", "candidate.read", "candidate.update",
            "vendor.read", "vendor.update",
            "client.read", "client.update",
            "job.read",
            "submission.create", "submission.read", "submission.update",
            "interview.read", "interview.update",
            "project.read",
            "reports.view",
        ],
    ),
    "Manager": (
        "General access to candidates, vendors, clients and projects",
        False,
        [
            "candidate.create", "candidate.read", "candidate.update",
            "vendor.read", "client.read", "job.read", "submission.read",
            "interview.read", "project.read", "timesheet.read", "reports.view",
        ],
    ),
    "Recruiter": (
        "Manage candidates and submissions",
        False,
        [
            "candidate.create", "candidate.read", "candidate.update",
            "job.read",
            "submission.create", "submission.read", "submission.update",
            "interview.create", "interview.read", "interview.update",
        ],
    ),
    "Finance": (
        "Manage invoices, timesheets, and financial reports",
        False,
        [
            "timesheet.read", "timesheet.approve",
            "invoice.create", "invoice.read", "invoice.update",
            "project.read", "reports.view",
        ],
    ),
    "Viewer": (
        "Read-only access to team data",
        False,
        [key for key in ALL_PERMISSION_KEYS if key.endswith(".read")],
    ),
}


@storage_operation("seed_catalog")
async def seed_catalog(session: AsyncSession) -> tuple[int, int]:
    """Insert any missing catalog permissions and role templates.

    Idempotent: existing permissions (by key) and templates (by name) are
    left as they are. Returns (permissions_created, templates_created).
    """
    result = await session.execute(select(Permission))
    by_key = {p.key: p for p in result.scalars().all()}

    created_perms = 0
    for module, perms in PERMISSIONS_BY_MODULE.items():
        for key, name in perms:
            if key in by_key:
                continue
            perm = Permission(key=key, name=name, module=module)
            session.add(perm)
            by_key[key] = perm
            created_perms += 1
    await session.flush()

    result = await session.execute(select(Role).where(Role.team_id.is_(None)))
    existing_templates = {r.name for r in result.scalars().all()}

    created_templates = 0
    for name, (description, is_admin, keys) in ROLE_TEMPLATES.items():
        if name in existing_templates:
            continue
        template = Role(team_id=None, name=name, description=description, is_admin=is_admin)
        session.add(template)
        await session.flush()
        for key in keys:
            session.add(RolePermission(role_id=template.id, permission_id=by_key[key].id))
        created_templates += 1
    await session.flush()

    log.info(
        "catalog.seeded",
        permissions_created=created_perms,
        templates_created=created_templates,
    )
    return created_perms, created_templates
