"""Shared fixtures: in-memory database, fake Congress.gov API, wired services."""

import httpx
import pytest

from congress_sync.config import CongressApiConfig, DatabaseConfig, Settings, SyncConfig
from congress_sync.db.session import Database
from congress_sync.services.container import build_services

from .factories import FakeCongressApi, FakeSleep


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def fake_api() -> FakeCongressApi:
    return FakeCongressApi()


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(delay_between_seconds=0.0)


@pytest.fixture
def api_config() -> CongressApiConfig:
    return CongressApiConfig(key="test-key", requests_per_second=1000.0)


@pytest.fixture
async def database():
    db = Database(DatabaseConfig(database_url="sqlite+aiosqlite:///:memory:"))
    await db.initialize()
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
async def services(database, fake_api, fake_sleep, api_config, sync_config):
    settings = Settings(congress_api=api_config, sync=sync_config)
    wired = await build_services(
        settings,
        database=database,
        transport=httpx.MockTransport(fake_api.handler),
        sleep=fake_sleep,
    )
    yield wired
    await wired.client.close()
