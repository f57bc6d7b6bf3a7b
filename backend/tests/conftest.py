"""
Jotter Backend — Test Configuration (conftest.py)
=================================================

What:  Shared fixtures: settings for both storage backends, real stores on
       temporary paths, a mocked store, and an HTTP client bound to a fresh
       app with its lifespan running.

Fixture Hierarchy (all function-scoped):
    ├── file_settings / db_settings: Settings pointing into tmp_path
    ├── file_store / sql_store: connected stores, closed after the test
    ├── mock_store: AsyncMock with the EntryStore interface
    ├── api_client: parametrized over both backends
    └── client_for: running_client for custom Settings
"""

import os
import tempfile
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Environment for the module-level `app.main:app`, set BEFORE any app import
os.environ["STORAGE_BACKEND"] = "file"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="jotter_test_")
os.environ["NORM_POLICY"] = "fold"
os.environ["LOG_LEVEL"] = "WARNING"

from app.config import Settings  # noqa: E402
from app.main import create_app  # noqa: E402
from app.services.store_base import EntryStore  # noqa: E402


@pytest.fixture
def file_settings(tmp_path) -> Settings:
    return Settings(
        storage_backend="file",
        data_dir=str(tmp_path / "data"),
        norm_policy="fold",
        log_level="WARNING",
    )


@pytest.fixture
def db_settings(tmp_path) -> Settings:
    return Settings(
        storage_backend="database",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'jotter.db'}",
        norm_policy="fold",
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def file_store(file_settings):
    from app.services.file_store import FileEntryStore

    store = FileEntryStore(file_settings.entries_path)
    await store.connect()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def sql_store(db_settings):
    from app.services.db_store import SqlEntryStore

    store = SqlEntryStore(db_settings)
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def mock_store():
    """
    An EntryStore double; tests set return values per call.

    Defaults describe an empty store without a connection flag.
    """
    store = AsyncMock(spec=EntryStore)
    store.reports_connection = False
    store.find_by_norm.return_value = None
    store.list_latest.return_value = []
    store.delete.return_value = True
    return store


@asynccontextmanager
async def running_client(settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """
    An AsyncClient talking to a fresh app.

    ASGITransport does not send lifespan events, so the lifespan is entered
    here explicitly; that is what connects the store.
    """
    app = create_app(settings)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            client.app = app
            yield client


@pytest_asyncio.fixture(params=["file", "database"])
async def api_client(request, file_settings, db_settings):
    """HTTP client against each storage backend in turn."""
    settings = file_settings if request.param == "file" else db_settings
    async with running_client(settings) as client:
        yield client


@pytest.fixture
def client_for():
    """`running_client` for tests that build their own Settings."""
    return running_client
