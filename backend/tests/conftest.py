"""
NoteSync Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (in-memory gateways, a disk
       store in a temp dir, sample image bytes, an API client).
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── records / storage: in-memory gateway fakes (tests/fakes.py)
    ├── synchronizer: NoteSynchronizer for IDENTITY over the fakes
    ├── temp_storage: Temporary directory for LocalStorageGateway
    ├── sample_image_bytes: Minimal JPEG header bytes
    ├── api_app / test_client: FastAPI app wired to the fakes + HTTPX client
"""

import os
import tempfile

# Settings are read at import time: configure the environment before any
# notesync import so tests never touch a real database or storage root.
_TEST_DIR = tempfile.mkdtemp(prefix="notesync_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/notesync.db"
os.environ["STORAGE_ROOT"] = os.path.join(_TEST_DIR, "storage")
os.environ["URL_SIGNING_SECRET"] = "test-signing-secret"
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["LOG_LEVEL"] = "WARNING"  # Reduce noise during tests

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from fakes import IDENTITY, InMemoryRecordGateway, InMemoryStorageGateway
from notesync.services.note_synchronizer import NoteSynchronizer
from notesync.services.sessions import SynchronizerRegistry
from notesync.services.storage_gateway import LocalStorageGateway


@pytest.fixture
def records():
    return InMemoryRecordGateway()


@pytest.fixture
def storage():
    return InMemoryStorageGateway()


@pytest.fixture
def synchronizer(records, storage):
    """A synchronizer for IDENTITY with no call timeout."""
    return NoteSynchronizer(records=records, storage=storage, identity=IDENTITY)


@pytest.fixture
def temp_storage(tmp_path):
    """
    Provides a temporary directory for file storage tests.

    Uses pytest's tmp_path fixture (automatically cleaned up).
    """
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_image_bytes():
    """
    Provides minimal JPEG bytes for upload tests.

    Start of Image (FFD8) + JFIF marker + End of Image (FFD9). Not a real
    picture, but enough for extension, size and signature checks.
    """
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest.fixture
def api_app(records, temp_storage):
    """
    FastAPI app whose synchronizers run over the in-memory record fake and a
    real LocalStorageGateway in a temp dir (so /api/files can be exercised).
    """
    from notesync.main import create_app

    disk = LocalStorageGateway(
        root=temp_storage,
        signing_secret="test-signing-secret",
        public_base_url="http://test",
    )
    registry = SynchronizerRegistry(records=records, storage=disk)
    return create_app(registry=registry, storage=disk)


@pytest_asyncio.fixture
async def test_client(api_app):
    """
    Provides an async HTTP test client for endpoint testing.

    Uses ASGITransport to route requests directly to the app (no server,
    no lifespan).

    Usage:
        async def test_list(test_client):
            response = await test_client.get("/api/notes", headers=AUTH)
            assert response.status_code == 200
    """
    transport = ASGITransport(app=api_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
