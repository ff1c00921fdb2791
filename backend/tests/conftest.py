"""
Pytest configuration and shared fixtures for file service tests.

The coordinator is exercised against real adapters: SQLite through aiosqlite
for metadata, a temp-dir LocalObjectStore for bytes, and a stub summary
provider that records what it was asked to summarize.
"""
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

from file_service.config import Settings
from file_service.database import build_session_factory, create_tables
from file_service.main import create_app
from file_service.repositories.file_repository import FileRepository
from file_service.routes.files import get_file_service
from file_service.services.file_service import FileService
from file_service.services.file_storage import LocalObjectStore
from file_service.services.summarizer import BaseSummaryProvider

TEST_BUCKET = "test-files"


class StubSummaryProvider(BaseSummaryProvider):
    """Records every input; returns queued responses, then a generic one."""

    def __init__(self, responses: Optional[list] = None, error: Optional[Exception] = None):
        super().__init__(model_name="stub-model", timeout=5)
        self.calls: list[str] = []
        self.responses = list(responses or [])
        self.error = error

    def _sync_summarize(self, text: str) -> Optional[str]:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return f"A file of {len(text)} characters."


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'files.db'}",
        FILE_STORAGE_TYPE="local",
        FILE_STORAGE_PATH=str(tmp_path / "objects"),
        S3_BUCKET=TEST_BUCKET,
        OPENAI_API_KEY="test-key",
        LOG_LEVEL="DEBUG",
    )


@pytest_asyncio.fixture
async def engine(settings):
    # File-backed so concurrent sessions get their own connections
    engine = create_async_engine(settings.DATABASE_URL)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def repository(engine) -> FileRepository:
    return FileRepository(build_session_factory(engine))


@pytest_asyncio.fixture
async def storage(settings) -> LocalObjectStore:
    store = LocalObjectStore(settings.FILE_STORAGE_PATH, TEST_BUCKET)
    await store.ensure_bucket(TEST_BUCKET)
    return store


@pytest.fixture
def summarizer() -> StubSummaryProvider:
    return StubSummaryProvider()


@pytest.fixture
def file_service(repository, storage, summarizer) -> FileService:
    return FileService(repository, storage, summarizer)


@pytest.fixture
def app(settings, file_service):
    app = create_app(settings)
    app.dependency_overrides[get_file_service] = lambda: file_service
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
