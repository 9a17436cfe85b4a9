"""Shared test fixtures."""

from datetime import datetime, timezone

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from listing_tracker.config import Settings
from listing_tracker.db.models import Base
from listing_tracker.db.repository import BusinessRepository, RunStateRepository
from listing_tracker.worker.orchestrator import CheckOrchestrator

from fakes import FakeAuth, FakeDrive, FakeExtractor, FakeSession, FakeSheets

# 2026-03-10 23:30 UTC is already 2026-03-10 in Dublin (UTC+0 until late March)
FIXED_NOW = datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / "data"),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        status_settle_delay_seconds=0,
        settle_delay_seconds=0,
        screenshot_settle_seconds=0,
        login_poll_interval_seconds=5,
        login_max_wait_seconds=20,
        check_all_concurrency=2,
        scheduler_enabled=False,
    )


@pytest.fixture
async def session_factory(test_settings):
    engine = create_async_engine(test_settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def repository(session_factory):
    return BusinessRepository(session_factory)


@pytest.fixture
def run_state(session_factory):
    return RunStateRepository(session_factory)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def fake_extractor():
    return FakeExtractor()


@pytest.fixture
def fake_auth():
    return FakeAuth()


@pytest.fixture
def fake_sheets():
    return FakeSheets()


@pytest.fixture
def fake_drive():
    return FakeDrive()


@pytest.fixture
def clock():
    current = {"now": FIXED_NOW}

    def now():
        return current["now"]

    now.current = current
    return now


@pytest.fixture
def orchestrator(repository, fake_session, fake_extractor, fake_auth, fake_sheets, fake_drive, test_settings, clock):
    return CheckOrchestrator(
        repository=repository,
        session=fake_session,
        extractor=fake_extractor,
        auth=fake_auth,
        sheets=fake_sheets,
        drive=fake_drive,
        settings=test_settings,
        clock=clock,
    )
