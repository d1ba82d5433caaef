"""
Fixtures comunes: base de datos SQLite en memoria y cliente HTTP contra la app.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api import deps
from app.db.database import init_models
from app.db.models.category_model import Category
from app.main import app

API = "/api/v1/categories"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def reload(db: AsyncSession, category_id: str) -> Category:
    """Relee la categoría desde la base de datos, ignorando el estado en memoria."""
    return await db.get(Category, category_id, populate_existing=True)


def category_payload(name: str, parent_id=None, **overrides) -> dict:
    payload = {
        "name": name,
        "description": f"{name} category description",
        "status": "active",
        "parentId": parent_id,
    }
    payload.update(overrides)
    return payload
