import os
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core.auth import get_current_user
from app.db.mongo import create_indexes
from app.main import app
from app.models.user import UserResponse
from app.routes.deps import get_attachment_service, get_obligation_service, get_payment_service
from app.services.attachment_service import AttachmentService
from app.services.obligation_service import ObligationService
from app.services.payment_service import PaymentService
from tests.fakes import (
    FakeAttachmentRepository,
    FakeObligationRepository,
    FakePaymentRepository,
    FakeUserRepository,
    InMemoryStore,
)

# Integration tests need a MongoDB replica set (transactions)
TEST_MONGODB_URI = os.getenv("MONGODB_URI")
TEST_MONGODB_DB = "tally_test"

TODAY = date(2024, 6, 15)


@pytest_asyncio.fixture
async def test_db() -> AsyncIOMotorDatabase:
    """Fixture for test MongoDB database (for async repository tests)."""
    if not TEST_MONGODB_URI:
        pytest.skip("MONGODB_URI is not set")

    client = AsyncIOMotorClient(TEST_MONGODB_URI, tz_aware=True)
    db = client[TEST_MONGODB_DB]

    # Drop database before test to ensure clean state
    await client.drop_database(TEST_MONGODB_DB)
    await create_indexes(db)

    yield db

    await client.drop_database(TEST_MONGODB_DB)
    client.close()


@asynccontextmanager
async def _no_transaction(db):
    yield None


@pytest.fixture
def no_transaction():
    """Run service transactions as plain blocks (for the in-memory repositories)."""
    with patch("app.services.payment_service.start_transaction", _no_transaction), \
            patch("app.services.obligation_service.start_transaction", _no_transaction):
        yield


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def owner_id():
    return str(ObjectId())


@pytest.fixture
def other_owner_id():
    return str(ObjectId())


@pytest.fixture
def obligation_repo(store):
    return FakeObligationRepository(store)


@pytest.fixture
def payment_repo(store):
    return FakePaymentRepository(store)


@pytest.fixture
def attachment_repo(store):
    return FakeAttachmentRepository(store)


@pytest.fixture
def obligation_service(obligation_repo, payment_repo, no_transaction):
    return ObligationService(MagicMock(), obligation_repo=obligation_repo, payment_repo=payment_repo)


@pytest.fixture
def payment_service(obligation_repo, payment_repo, attachment_repo, no_transaction):
    return PaymentService(
        MagicMock(),
        obligation_repo=obligation_repo,
        payment_repo=payment_repo,
        attachment_repo=attachment_repo
    )


@pytest.fixture
def attachment_service(store, attachment_repo, tmp_path):
    return AttachmentService(
        MagicMock(),
        upload_dir=str(tmp_path),
        attachment_repo=attachment_repo,
        user_repo=FakeUserRepository(store)
    )


@pytest.fixture
def current_user(owner_id):
    now = datetime.now(timezone.utc)
    return UserResponse(
        id=owner_id,
        name="Jane Doe",
        email="jane@example.com",
        created_at=now,
        updated_at=now
    )


@pytest_asyncio.fixture
async def client(current_user, obligation_service, payment_service, attachment_service):
    """HTTP client for the API, wired to the in-memory services."""
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_obligation_service] = lambda: obligation_service
    app.dependency_overrides[get_payment_service] = lambda: payment_service
    app.dependency_overrides[get_attachment_service] = lambda: attachment_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
