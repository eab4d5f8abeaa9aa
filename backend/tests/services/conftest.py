"""Service test fixtures: async DB, FastAPI test client, seeded subjects.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched so code that uses it directly sees the test engine
    - Vision client and storage dependencies overridden: route tests never build a
      real SDK or boto3 client

Design Decisions:
    - SQLite in-memory with StaticPool: every session (route, worker, reaper) shares the
      one connection, so rows written by one scope are visible to the next
    - session_scope is the session factory itself: async_sessionmaker() is an async
      context manager, same contract as db_manager.session
"""

from uuid import UUID

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from sqlalchemy.pool import StaticPool
from httpx import ASGITransport, AsyncClient

from jewelpreview.api.dependencies import get_storage, get_vision_client
from jewelpreview.db.base import Base
from jewelpreview.infrastructure.database import get_db, DatabaseSessionManager
from jewelpreview.models.design_configuration import DesignConfiguration
from jewelpreview.models.upgrade_analysis import UpgradeAnalysis
import jewelpreview.infrastructure.database as db_module
from jewelpreview.main import app

from tests.services.fakes import (
    OWNER_USER_ID, FakeStorage, MockVisionClient, analysis_payload,
)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def session_scope(test_session_factory):
    return test_session_factory


@pytest.fixture
def mock_vision():
    return MockVisionClient()


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
async def client(test_engine, test_session_factory, mock_vision, fake_storage):
    """FastAPI test client with DB, vision, and storage dependencies overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_vision_client] = lambda: mock_vision
    app.dependency_overrides[get_storage] = lambda: fake_storage

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
async def seed_configuration(test_db):
    """A ring configuration owned by OWNER_USER_ID."""
    config = DesignConfiguration(
        user_id=UUID(OWNER_USER_ID),
        name="Solitaire",
        category="Ring",
        base_model="solitaire-classic",
        material="18k Yellow Gold",
        metal_type="yellow_gold",
        karat=18,
        stones=[
            {"stone_type": "diamond", "count": 1},
            {"stone_type": "diamond", "count": 11},
        ],
    )
    test_db.add(config)
    await test_db.commit()
    return config


@pytest.fixture
async def seed_analysis(test_db):
    """A completed, guest-owned upgrade analysis with two suggestions."""
    analysis = UpgradeAnalysis(
        guest_client_id="guest-analysis",
        original_image_url="https://img.example/ring.jpg",
        status="completed",
        analysis=analysis_payload(),
    )
    test_db.add(analysis)
    await test_db.commit()
    return analysis
