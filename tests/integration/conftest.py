"""Application fixtures for HTTP-level tests."""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from asgi_lifespan import LifespanManager
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from workforce_api.db import Base, db
from workforce_api.main import create_app
from workforce_api.settings import Settings

from tests.factories import OrgFactory


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an HTTPX async client bound to the FastAPI app with a fresh schema."""

    async with LifespanManager(app):
        async with db.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            yield client


@pytest_asyncio.fixture()
async def session(async_client: AsyncClient) -> AsyncIterator[AsyncSession]:
    """Return a database session bound to the test application's database."""

    async with db.sessionmaker() as session:
        yield session


@pytest.fixture()
def org(session: AsyncSession) -> OrgFactory:
    return OrgFactory(session)
