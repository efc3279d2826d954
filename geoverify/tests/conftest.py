"""Shared test fixtures for the GeoVerify test suite.

Uses an in-memory SQLite database with StaticPool so all sessions share the
same connection (committed data is visible across sessions), and a per-test
temporary directory for stored photos.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import geoverify.models  # noqa: F401  ensure all models are loaded for create_all
from geoverify.config import Settings
from geoverify.database import Base, get_db
from geoverify.services.record_builder import VerificationMetadata, build_record
from geoverify.services.validation_service import validate_submission
from geoverify.services.verification_store import VerificationStore
from geoverify.storage.base import PhotoUpload
from geoverify.storage.disk import DiskPhotoBackend
from geoverify.storage.inline import InlinePhotoBackend


# ---------------------------------------------------------------------------
# In-memory SQLite test engine (shared via StaticPool)
# ---------------------------------------------------------------------------

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)
TestSession = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Photo helpers
# ---------------------------------------------------------------------------

JPEG_HEADER = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00"


def jpeg_bytes(size: int) -> bytes:
    """Bytes that start like a JPEG and are exactly ``size`` long."""
    if size <= len(JPEG_HEADER):
        return JPEG_HEADER[:size]
    return JPEG_HEADER + b"\x00" * (size - len(JPEG_HEADER))


def make_upload(size: int = 2048, filename: str = "capture.jpg", content_type: str = "image/jpeg") -> PhotoUpload:
    return PhotoUpload(content=jpeg_bytes(size), filename=filename, content_type=content_type)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def jpeg():
    return jpeg_bytes


@pytest.fixture
def upload():
    return make_upload


@pytest.fixture
def photo_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(photo_dir) -> Settings:
    return Settings(
        environment="test",
        database_url="sqlite+aiosqlite:///:memory:",
        photo_store_path=str(photo_dir),
        cors_origins="http://test",
        orphan_sweep_enabled=False,
        webhook_url="",
    )


@pytest.fixture
async def db():
    """Yield a fresh AsyncSession for direct store-layer tests."""
    async with TestSession() as session:
        yield session


@pytest.fixture
def disk(photo_dir) -> DiskPhotoBackend:
    return DiskPhotoBackend(str(photo_dir))


@pytest.fixture
def store(db, disk) -> VerificationStore:
    return VerificationStore(db, disk)


@pytest.fixture
def inline_store(db, disk) -> VerificationStore:
    return VerificationStore(db, InlinePhotoBackend(), disk=disk)


@pytest.fixture
def make_draft():
    """Factory fixture: build a VerificationDraft through the validator."""

    def _make(
        latitude="12.9716",
        longitude="77.5946",
        size: int = 2048,
        status: str = "verified",
        timestamp=None,
        **metadata,
    ):
        submission = validate_submission(
            latitude,
            longitude,
            make_upload(size),
            timestamp=timestamp,
            max_bytes=10 * 1024 * 1024,
        )
        return build_record(submission, VerificationMetadata(**metadata), status=status)

    return _make


@pytest.fixture
async def app(test_settings):
    from geoverify.main import create_app

    application = create_app(test_settings)

    async def _override_get_db():
        async with TestSession() as session:
            yield session

    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()
    await application.state.engine.dispose()


@pytest.fixture
async def client(app):
    """httpx AsyncClient wired to the FastAPI app with the test DB."""
    import httpx

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    await app.state.background_tasks.drain()


@pytest.fixture
def submit(client):
    """Factory fixture: POST a multipart verification and return the response."""

    async def _submit(
        path: str = "/api/verify",
        size: int = 2048,
        filename: str = "capture.jpg",
        content_type: str = "image/jpeg",
        include_photo: bool = True,
        **fields,
    ):
        data = {"latitude": "12.9716", "longitude": "77.5946"}
        data.update({k: str(v) for k, v in fields.items() if v is not None})
        data = {k: v for k, v in data.items() if v != "__omit__"}
        files = None
        if include_photo:
            files = {"photo": (filename, jpeg_bytes(size), content_type)}
        return await client.post(path, data=data, files=files)

    return _submit
