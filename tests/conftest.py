"""
PyTest configuration and fixtures for Mystery Shopper Portal tests
"""
from datetime import timedelta
from io import BytesIO
from typing import Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image as PILImage
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.exceptions import StorageError
from app.db.session import get_db
from app.main import app
from app.models import (
    ChecklistItem,
    Mission,
    MissionStatus,
    Organization,
)
from app.models.base import Base
from app.models.checklist import AnswerType
from app.services.report_service import ReportService, get_report_service
from app.services.s3_service import S3Service, get_s3_service
from app.utils.time import utcnow


# Test database setup - Using async SQLite with aiosqlite
SQLALCHEMY_TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_png(color=(200, 30, 30), size=(24, 16)) -> bytes:
    """Small valid PNG"""
    buffer = BytesIO()
    PILImage.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeStorage(S3Service):
    """In-memory S3Service double keyed by (bucket, key)"""

    def __init__(self, fail_uploads: bool = False):
        self.bucket_name = "mission-media"
        self.objects: Dict[tuple, bytes] = {}
        self.content_types: Dict[tuple, Optional[str]] = {}
        self.deleted_prefixes: List[tuple] = []
        self.fail_uploads = fail_uploads

    def upload_bytes(self, data, s3_key, content_type=None, bucket_name=None):
        if self.fail_uploads:
            raise StorageError("S3 upload failed: simulated outage")
        bucket = bucket_name or self.bucket_name
        self.objects[(bucket, s3_key)] = data
        self.content_types[(bucket, s3_key)] = content_type
        return s3_key

    def generate_presigned_url(self, s3_key, expiration=3600, bucket_name=None):
        bucket = bucket_name or self.bucket_name
        return f"https://signed.example.test/{bucket}/{s3_key}?expires={expiration}"

    def list_objects(self, prefix, bucket_name=None, limit=1000):
        bucket = bucket_name or self.bucket_name
        return [key for (b, key) in self.objects if b == bucket and key.startswith(prefix)][:limit]

    def object_exists(self, s3_key, bucket_name=None):
        return (bucket_name or self.bucket_name, s3_key) in self.objects

    def delete_prefix(self, prefix, bucket_name=None):
        bucket = bucket_name or self.bucket_name
        self.deleted_prefixes.append((bucket, prefix))
        keys = self.list_objects(prefix, bucket_name=bucket)
        for key in keys:
            del self.objects[(bucket, key)]
        return len(keys)

    def keys(self, bucket: str) -> List[str]:
        return [key for (b, key) in self.objects if b == bucket]


class ImageServer:
    """MockTransport handler serving PNGs; paths containing 'missing' answer 404"""

    def __init__(self):
        self.png = make_png()
        self.requested: List[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requested.append(str(request.url))
        if "missing" in request.url.path:
            return httpx.Response(404)
        return httpx.Response(200, content=self.png, headers={"Content-Type": "image/png"})


@pytest_asyncio.fixture(scope="function")
async def db_session():
    """
    Create a fresh in-memory database for each test.
    """
    engine = create_async_engine(
        SQLALCHEMY_TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def image_server():
    return ImageServer()


@pytest.fixture
def renderer(image_server):
    return ReportService(
        font_path="/nonexistent/font.ttf",
        bold_font_path="/nonexistent/font-bold.ttf",
        transport=httpx.MockTransport(image_server),
    )


@pytest_asyncio.fixture(scope="function")
async def client(db_session, storage, renderer):
    """
    Async HTTP client against the app with database, storage and renderer overridden.
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_s3_service] = lambda: storage
    app.dependency_overrides[get_report_service] = lambda: renderer

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def org(db_session):
    organization = Organization(name="Acme Retail")
    db_session.add(organization)
    await db_session.commit()
    await db_session.refresh(organization)
    return organization


@pytest_asyncio.fixture
async def mission(db_session, org):
    """Live mission with a four-item checklist (two yes/no, one rating, one timer)"""
    now = utcnow()
    row = Mission(
        org_id=org.id,
        title="Fast Food Visit",
        store="Store #12",
        status=MissionStatus.SCHEDULED.value,
        starts_at=now - timedelta(hours=1),
        expires_at=now + timedelta(days=2),
        location={"address": "Tahrir, Cairo", "lat": 30.0444, "lng": 31.2357, "radiusM": 150},
        budget=100,
        fee=25,
    )
    db_session.add(row)
    await db_session.flush()

    definitions = [
        ("Greeting friendly", AnswerType.YES_NO.value),
        ("Order accurate", AnswerType.YES_NO.value),
        ("Service quality", AnswerType.RATING.value),
        ("Queue time", AnswerType.RICH.value),
    ]
    for position, (text, answer_type) in enumerate(definitions):
        db_session.add(ChecklistItem(
            mission_id=row.id,
            order_index=position,
            text=text,
            answer_type=answer_type,
            yes_no=answer_type == AnswerType.YES_NO.value,
            requires_timer=answer_type == AnswerType.RICH.value,
        ))
    await db_session.commit()
    await db_session.refresh(row)
    return row


@pytest_asyncio.fixture
async def checklist_ids(db_session, mission):
    """Checklist item ids of the mission fixture, in order"""
    result = await db_session.execute(
        select(ChecklistItem.id)
        .where(ChecklistItem.mission_id == mission.id)
        .order_by(ChecklistItem.order_index)
    )
    return list(result.scalars().all())
