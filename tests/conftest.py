"""Shared fixtures: an in-memory store session and the health API wired to it."""

import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fitsync.api import health
from fitsync.core.database import Base, get_db
from fitsync.core.errors import register_exception_handlers
import fitsync.models.database  # noqa: F401


@pytest_asyncio.fixture
async def async_session():
    """Session on a fresh in-memory SQLite store with the health tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def health_app(async_session):
    """
    Health router with the app's error handlers, serving requests from
    ``async_session`` instead of a lifespan-managed Database.
    """
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(health.router)

    async def override_get_db():
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    return app
