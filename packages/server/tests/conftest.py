"""
Shared fixtures: a fresh SQLite database per test, seeded with the catalog.
"""

import os
import tempfile
import uuid

# Settings are cached on first use; point the app at throwaway storage
# before anything imports it.
_DB_DIR = tempfile.mkdtemp(prefix="recruitdesk-tests-")
os.environ["RD_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'app.db')}"
os.environ["RD_JWT_SECRET"] = "test-secret"
os.environ["RD_LOG_FORMAT"] = "text"

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app.core.database import init_db
from app.services import memberships as membership_service
from app.services.catalog import seed_catalog


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    event.listen(eng.sync_engine, "connect", _enable_foreign_keys)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def seeded(session_factory):
    """Catalog and role templates committed to the test database."""
    async with session_factory() as s:
        await seed_catalog(s)
        await s.commit()


@pytest.fixture
async def session(session_factory, seeded):
    async with session_factory() as s:
        yield s


@pytest.fixture
def create_team(session):
    """Factory: create a team whose creator is its local admin."""

    async def _create(name: str = "Acme", email: str | None = None):
        user_id = uuid.uuid4()
        email = email or f"owner-{user_id.hex[:8]}@{name.lower()}.test"
        return await membership_service.create_team_as_local_admin(
            session, user_id, email, name
        )

    return _create


@pytest.fixture
def join_team(session):
    """Factory: a brand-new user asks to join ``team_id``."""

    async def _join(
        team_id: uuid.UUID,
        email: str | None = None,
        requested_role_id=None,
        message: str | None = None,
    ):
        user_id = uuid.uuid4()
        email = email or f"member-{user_id.hex[:8]}@example.test"
        return await membership_service.join_team_as_new_member(
            session, user_id, email, team_id, requested_role_id, message
        )

    return _join
