"""
Cascade Connect - Test Fixtures
================================

Shared pytest fixtures for all tests.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator
from typing import Any, BinaryIO, Mapping, Optional
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from fastapi.encoders import jsonable_encoder
from httpx import ASGITransport, AsyncClient
from passlib.hash import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cascade_connect.api.deps import create_access_token
from cascade_connect.api.main import app
from cascade_connect.core.database import Base, get_db
from cascade_connect.core.mailer import EmailClient, EmailMessage, get_email_client
from cascade_connect.core.models import BuilderGroup, Homeowner, User, UserRole
from cascade_connect.core.platform import get_netlify_client
from cascade_connect.core.realtime import RealtimeClient, get_realtime_client
from cascade_connect.core.sms import get_sms_gateway
from cascade_connect.core.storage import UploadedFile, get_file_storage
from cascade_connect.core.vapi import VapiClient, get_vapi_client


# ==========================================================================
# Test Database Setup
# ==========================================================================

# Use in-memory SQLite for tests (fast)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


# ==========================================================================
# Integration Fakes
# ==========================================================================

class RecordingRealtime(RealtimeClient):
    """Realtime client in logging-only mode that keeps every event."""

    def __init__(self):
        super().__init__(app_id="", key="", secret="")
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    async def trigger(self, channel: str, event: str, data: dict[str, Any]) -> bool:
        self.events.append((channel, event, jsonable_encoder(data)))
        return True

    def events_named(self, event: str) -> list[tuple[str, str, dict[str, Any]]]:
        return [e for e in self.events if e[1] == event]


class FakeSmsGateway:
    def __init__(self):
        self.enabled = True
        self.sent: list[tuple[str, str]] = []
        self.error: Optional[Exception] = None
        self.signature_valid = True

    async def send(self, to: str, body: str) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append((to, body))
        return f"SM{len(self.sent):032d}"

    def validate_request(self, url: str, params: Mapping[str, str], signature: Optional[str]) -> bool:
        return self.signature_valid


class RecordingEmail(EmailClient):
    """Real notification templates, captured instead of posted."""

    def __init__(self):
        self.api_key = None
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> bool:
        self.sent.append(message)
        return True


class FakeVapi(VapiClient):
    """Vapi client whose REST lookups come from a dict."""

    def __init__(self):
        self.secret = "vapi-api-key"
        self.calls: dict[str, dict] = {}
        self.fetched: list[str] = []

    async def fetch_call(self, call_id: str) -> dict:
        self.fetched.append(call_id)
        if call_id not in self.calls:
            raise httpx.HTTPError(f"call {call_id} not found")
        return self.calls[call_id]


class FakeStorage:
    def __init__(self):
        self.enabled = True
        self.uploads: list[tuple[str, str]] = []
        self.error: Optional[Exception] = None

    async def upload(self, file: BinaryIO, folder: str, filename: str) -> UploadedFile:
        if self.error is not None:
            raise self.error
        self.uploads.append((folder, filename))
        return UploadedFile(
            url=f"https://res.cloudinary.com/test/{folder}/{filename}",
            public_id=f"{folder}/{filename}",
            resource_type="raw",
            bytes=len(file.read()),
        )


class FakeNetlify:
    def __init__(self):
        self.enabled = False
        self.deploys: list[dict] = []
        self.error: Optional[Exception] = None

    async def list_deploys(self, limit: int = 10) -> list[dict]:
        if self.error is not None:
            raise self.error
        return self.deploys[:limit]


# ==========================================================================
# Database Fixtures
# ==========================================================================

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a clean database session for each test.

    Creates all tables before test, drops after.
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestingSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Sessions on the test database, for code that opens its own."""
    return TestingSessionLocal


@pytest.fixture
def fake_realtime() -> RecordingRealtime:
    return RecordingRealtime()


@pytest.fixture
def fake_sms() -> FakeSmsGateway:
    return FakeSmsGateway()


@pytest.fixture
def fake_email() -> RecordingEmail:
    return RecordingEmail()


@pytest.fixture
def fake_vapi() -> FakeVapi:
    return FakeVapi()


@pytest.fixture
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def fake_netlify() -> FakeNetlify:
    return FakeNetlify()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    fake_realtime: RecordingRealtime,
    fake_sms: FakeSmsGateway,
    fake_email: RecordingEmail,
    fake_vapi: FakeVapi,
    fake_storage: FakeStorage,
    fake_netlify: FakeNetlify,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide test HTTP client with database and integration overrides.
    """
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_realtime_client] = lambda: fake_realtime
    app.dependency_overrides[get_sms_gateway] = lambda: fake_sms
    app.dependency_overrides[get_email_client] = lambda: fake_email
    app.dependency_overrides[get_vapi_client] = lambda: fake_vapi
    app.dependency_overrides[get_file_storage] = lambda: fake_storage
    app.dependency_overrides[get_netlify_client] = lambda: fake_netlify

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ==========================================================================
# Builder Groups & Homeowners
# ==========================================================================

@pytest_asyncio.fixture
async def builder_group(db_session: AsyncSession) -> BuilderGroup:
    group = BuilderGroup(
        id=uuid4(),
        name="Evergreen Homes",
        email="office@evergreenhomes.com",
        enrollment_slug="evergreen-homes",
    )
    db_session.add(group)
    await db_session.commit()
    return group


@pytest_asyncio.fixture
async def other_builder_group(db_session: AsyncSession) -> BuilderGroup:
    group = BuilderGroup(
        id=uuid4(),
        name="Summit Builders",
        enrollment_slug="summit-builders",
    )
    db_session.add(group)
    await db_session.commit()
    return group


@pytest_asyncio.fixture
async def homeowner(db_session: AsyncSession, builder_group: BuilderGroup) -> Homeowner:
    record = Homeowner(
        id=uuid4(),
        name="Jane Buyer",
        first_name="Jane",
        last_name="Buyer",
        email="jane@example.com",
        phone="+15035550100",
        street="123 Main Street",
        city="Portland",
        state="OR",
        zip="97201",
        address="123 Main Street, Portland, OR 97201",
        builder=builder_group.name,
        builder_group_id=builder_group.id,
        job_name="Lot 12",
    )
    db_session.add(record)
    await db_session.commit()
    return record


@pytest_asyncio.fixture
async def other_homeowner(db_session: AsyncSession, other_builder_group: BuilderGroup) -> Homeowner:
    record = Homeowner(
        id=uuid4(),
        name="Sam Owner",
        email="sam@example.com",
        phone="+12065550199",
        address="88 Cedar Lane, Seattle, WA 98101",
        builder=other_builder_group.name,
        builder_group_id=other_builder_group.id,
        job_name="Cedar Ridge 4",
    )
    db_session.add(record)
    await db_session.commit()
    return record


# ==========================================================================
# User Fixtures
# ==========================================================================

async def create_user(
    db: AsyncSession,
    email: str,
    name: str,
    role: UserRole,
    password: str = "TestPass123!",
    **extra: Any,
) -> User:
    user = User(
        id=uuid4(),
        email=email,
        password_hash=bcrypt.hash(password),
        name=name,
        role=role,
        is_active=extra.pop("is_active", True),
        **extra,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_admin(db_session: AsyncSession) -> User:
    """
    Create a test admin user.

    Password: AdminPass123!
    """
    return await create_user(
        db_session, "admin@example.com", "Admin User", UserRole.ADMIN, password="AdminPass123!"
    )


@pytest_asyncio.fixture
async def second_admin(db_session: AsyncSession) -> User:
    return await create_user(
        db_session, "alex@example.com", "Alex Coordinator", UserRole.ADMIN, internal_role="Coordinator"
    )


@pytest_asyncio.fixture
async def builder_user(db_session: AsyncSession, builder_group: BuilderGroup) -> User:
    return await create_user(
        db_session,
        "builder@evergreenhomes.com",
        "Bob Builder",
        UserRole.BUILDER,
        builder_group_id=builder_group.id,
    )


@pytest_asyncio.fixture
async def homeowner_user(db_session: AsyncSession, homeowner: Homeowner) -> User:
    """
    Create a homeowner account linked to the homeowner fixture.

    Password: TestPass123!
    """
    return await create_user(
        db_session,
        "jane@example.com",
        "Jane Buyer",
        UserRole.HOMEOWNER,
        homeowner_id=homeowner.id,
    )


@pytest_asyncio.fixture
async def inactive_user(db_session: AsyncSession) -> User:
    """Create an inactive test user."""
    return await create_user(
        db_session, "inactive@example.com", "Inactive User", UserRole.ADMIN, is_active=False
    )


# ==========================================================================
# Auth Fixtures
# ==========================================================================

def headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin_headers(test_admin: User) -> dict[str, str]:
    """Get authorization headers for admin user."""
    return headers_for(test_admin)


@pytest.fixture
def second_admin_headers(second_admin: User) -> dict[str, str]:
    return headers_for(second_admin)


@pytest.fixture
def builder_headers(builder_user: User) -> dict[str, str]:
    return headers_for(builder_user)


@pytest.fixture
def homeowner_headers(homeowner_user: User) -> dict[str, str]:
    return headers_for(homeowner_user)


# ==========================================================================
# Helper Functions
# ==========================================================================

@pytest.fixture
def unique_email():
    """Factory for unique emails."""
    def make() -> str:
        return f"test_{uuid4().hex[:8]}@example.com"
    return make
