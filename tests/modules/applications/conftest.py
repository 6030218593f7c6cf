"""
Fixtures for applications tests.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from recruitment_api.core.database import Base
from recruitment_api.core.rate_limit import get_memory_limiter
from recruitment_api.core.storage import StorageError
from recruitment_api.modules.applications.models import Application, ApplicationStatus
from recruitment_api.modules.applications.service import SubmittedAttachment

VALID_CPF = "529.982.247-25"
VALID_CPF_DIGITS = "52998224725"

PDF = "application/pdf"


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Every test starts with an empty process-local throttle."""
    get_memory_limiter().clear()
    yield
    get_memory_limiter().clear()


@pytest.fixture
def mock_db():
    """Create a mock database session."""
    db = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.flush = AsyncMock()
    db.get = AsyncMock()
    db.execute = AsyncMock()
    db.add = MagicMock()
    return db


@pytest.fixture
def mock_storage():
    """Create a mock blob store."""
    storage = AsyncMock()
    storage.put = AsyncMock(return_value="stored-key")
    storage.remove_many = AsyncMock()
    storage.sign = AsyncMock(return_value="https://storage.example/signed")
    return storage


@pytest.fixture
def sample_submission():
    """Raw form fields of a valid submission."""
    return {
        "name": "Maria da Silva",
        "national_id": VALID_CPF,
        "phone": "(11) 98765-4321",
        "email": "maria@example.com",
        "postal_code": "01310-100",
        "city": "São Paulo",
        "neighborhood": "Bela Vista",
        "street": "Av. Paulista, 1000",
        "commute_mode": "Bus",
        "target_role": "Warehouse Assistant",
        "submitted_at": None,
    }


@pytest.fixture
def sample_attachment():
    """A small PDF attachment."""
    return SubmittedAttachment(
        filename="cv.pdf",
        content_type=PDF,
        data=b"%PDF-1.4 test document",
    )


@pytest.fixture
def sample_application_model():
    """Create a sample Application model instance."""
    app = MagicMock(spec=Application)
    app.id = uuid4()
    app.name = "Maria da Silva"
    app.national_id = VALID_CPF
    app.national_id_normalized = VALID_CPF_DIGITS
    app.target_role = "Warehouse Assistant"
    app.role_normalized = "warehouse assistant"
    app.submitted_at = datetime(2026, 9, 1, 12, 0, tzinfo=UTC)
    app.attachment_path = f"warehouse-assistant/{VALID_CPF_DIGITS}-maria-1-abcdef.pdf"
    app.attachment_url = None
    app.current_status = ApplicationStatus.NEW
    app.status_changed_by = None
    app.status_changed_at = None
    return app


# ============================================
# In-memory stores for integration tests
# ============================================


class InMemoryBlobStore:
    """Blob store double keeping objects in a dict."""

    def __init__(self):
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.fail_removes = False

    async def put(self, key, data, content_type, upsert=False):
        if key in self.objects and not upsert:
            raise StorageError(f"Object {key} already exists", status_code=409)
        self.objects[key] = (data, content_type)
        return key

    async def remove_many(self, keys):
        if self.fail_removes:
            raise StorageError("remove failed", status_code=500)
        for key in keys:
            self.objects.pop(key, None)

    async def sign(self, key, ttl_seconds):
        return f"https://storage.example/{key}?ttl={ttl_seconds}"


@pytest.fixture
def blob_store():
    return InMemoryBlobStore()


@pytest_asyncio.fixture
async def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
