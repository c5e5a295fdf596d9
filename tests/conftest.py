"""Shared fixtures: a fresh in-memory database per test."""

import pytest
from httpx import ASGITransport, AsyncClient

from tourledger.core.db import build_engine, build_session_factory, get_db, init_database
from tourledger.main import create_app
from tourledger.schemas.trip_batch import TripBatchCreate
from tourledger.services.batch_locks import BatchLockRegistry
from tourledger.services.trip_batch import TripBatchService


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return BatchLockRegistry()


@pytest.fixture
def batch_service(db, locks):
    return TripBatchService(db, locks=locks)


@pytest.fixture
async def batch(batch_service):
    return await batch_service.create_batch(TripBatchCreate(name="Week 41", description="Oct 6 - Oct 12"))


@pytest.fixture
async def client(session_factory):
    app = create_app()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


@pytest.fixture
async def file_engine(tmp_path):
    """A file-backed database so several sessions hold their own connections."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def file_sessions(file_engine):
    return build_session_factory(file_engine)
