"""Database engine and async session factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from functools import lru_cache

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dern_support.config import get_settings
from dern_support.core.models import Base, User, UserType

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    return get_settings().database_url


@lru_cache
def _get_engine():
    url = get_database_url()
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=False,
    )


@lru_cache
def _get_session_factory():
    return async_sessionmaker(_get_engine(), class_=AsyncSession, expire_on_commit=False)


def reset_engine() -> None:
    """Forget the cached engine and session factory (after settings change)."""
    _get_session_factory.cache_clear()
    _get_engine.cache_clear()


async def dispose_engine() -> None:
    """Close pooled connections and drop the cached engine."""
    await _get_engine().dispose()
    reset_engine()


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session for work outside a request; commits on success."""
    async with _get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async session."""
    async with _get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def ping_db() -> bool:
    """Return True when the database answers a trivial query."""
    async with _get_session_factory()() as session:
        await session.execute(text("SELECT 1"))
    return True


async def init_db() -> None:
    """Create all tables (dev only; production uses migrations)."""
    engine = _get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_admin()


async def seed_admin() -> None:
    """Create the first admin user if configured and not yet present."""
    settings = get_settings()
    if not settings.seeds_admin:
        return

    from dern_support.core.auth import hash_password

    async with _get_session_factory()() as session:
        result = await session.execute(
            select(User).where(User.email == settings.first_admin_email)
        )
        if result.scalar_one_or_none():
            return

        admin = User(
            first_name="Admin",
            last_name="User",
            email=settings.first_admin_email,
            user_type=UserType.admin.value,
            password_hash=hash_password(settings.first_admin_password),
        )
        session.add(admin)
        await session.commit()
        logger.info("Seeded admin user: %s", settings.first_admin_email)
