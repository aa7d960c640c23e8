"""
Database connection and session management.
"""

import functools
from collections.abc import AsyncGenerator, Awaitable, Callable, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from app.core.config import get_settings
from app.core.errors import ConflictError, MembershipError, UnavailableError

log = structlog.get_logger()
settings = get_settings()

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
)

async_session_factory = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db(bind: AsyncEngine = engine):
    """Create all tables (development and tests; production uses Alembic)."""
    import app.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions.

    One transaction per request: committed when the handler returns,
    rolled back when anything raises.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_session_context():
    """Context manager for use outside of FastAPI request lifecycle."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Translate driver errors raised inside the block into service errors.

    Unique/foreign-key/check violations become ConflictError; any other DBAPI
    failure, or a socket error while connecting, becomes UnavailableError.
    Service errors raised inside the block pass through unchanged.
    """
    try:
        yield
    except (DBAPIError, OSError) as exc:
        raise translate_storage_error(operation, exc) from exc


def translate_storage_error(operation: str, exc: Exception) -> MembershipError:
    if isinstance(exc, IntegrityError):
        log.warning("storage.integrity_error", operation=operation, error=str(exc.orig))
        return ConflictError(f"{operation}: conflicting record already exists")
    log.error("storage.unavailable", operation=operation, error=str(exc))
    return UnavailableError(f"{operation}: storage unavailable")


T = TypeVar("T")


def storage_operation(
    operation: str,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator form of storage_errors for async service functions.

    Covers every read and write the function makes, so callers only ever
    see typed service errors.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            with storage_errors(operation):
                return await func(*args, **kwargs)

        return wrapper

    return decorator
