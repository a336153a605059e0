"""Pytest fixtures for testing"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generator

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from organitto_ops.api.dependencies import get_blob_store, get_identity_client
from organitto_ops.api.main import create_app
from organitto_ops.domain.models import Actor, RecordStatus, Role
from organitto_ops.infrastructure.clients.identity import IdentityClient
from organitto_ops.infrastructure.clients.storage import BlobStoreClient
from organitto_ops.infrastructure.database import models as orm
from organitto_ops.infrastructure.database.changes import ChangeFeed
from organitto_ops.infrastructure.database.models import Base
from organitto_ops.infrastructure.database.repositories import RecordStore
from organitto_ops.infrastructure.database.session import build_engine, get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

IDENTITY_BASE = "http://identity.test/auth/v1"
STORAGE_BASE = "http://storage.test/storage/v1"
PASSWORD = "secret"

# (id, name, role, approval_status)
SEEDED_USERS = [
    ("admin-1", "Asha", Role.ADMIN, RecordStatus.APPROVED),
    ("admin-2", "Ravi", Role.ADMIN, RecordStatus.APPROVED),
    ("partner-1", "Meera", Role.PARTNER, RecordStatus.APPROVED),
    ("pending-1", "Kiran", Role.PARTNER, RecordStatus.PENDING),
]


class FakeClock:
    """Deterministic clock that moves one minute forward on every reading"""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


def identity_handler(request: httpx.Request) -> httpx.Response:
    """
    Stand-in for the hosted identity provider.

    Access tokens look like 'token-<user id>' and the user id is the local
    part of the email address. Every account's password is PASSWORD.
    """
    path = request.url.path
    if path.endswith("/user"):
        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer token-"):
            return httpx.Response(401, json={"msg": "invalid JWT"})
        user_id = auth[len("Bearer token-"):]
        return httpx.Response(200, json={"id": user_id, "email": f"{user_id}@example.com"})

    if path.endswith("/token"):
        body = json.loads(request.content)
        if body.get("password") != PASSWORD:
            return httpx.Response(400, json={"error_description": "Invalid login credentials"})
        user_id = body["email"].split("@")[0]
        return httpx.Response(
            200,
            json={
                "access_token": f"token-{user_id}",
                "refresh_token": "refresh",
                "expires_in": 3600,
                "user": {"id": user_id, "email": body["email"]},
            },
        )

    if path.endswith("/signup"):
        body = json.loads(request.content)
        return httpx.Response(200, json={"id": body["email"].split("@")[0], "email": body["email"]})

    if path.endswith("/logout"):
        return httpx.Response(204)

    return httpx.Response(404, json={"msg": "not found"})


def storage_handler(request: httpx.Request) -> httpx.Response:
    """Stand-in for the hosted object store: accepts every upload"""
    if request.method == "POST" and "/object/" in request.url.path:
        return httpx.Response(200, json={"Key": request.url.path.split("/object/", 1)[1]})
    return httpx.Response(404)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def feed() -> ChangeFeed:
    return ChangeFeed()


@pytest.fixture
def store(db: Session, feed: ChangeFeed) -> RecordStore:
    """Record store over the test session with a private change feed"""
    return RecordStore(db, feed)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id="admin-1", name="Asha", role=Role.ADMIN)


@pytest.fixture
def other_admin() -> Actor:
    return Actor(user_id="admin-2", name="Ravi", role=Role.ADMIN)


@pytest.fixture
def partner() -> Actor:
    return Actor(user_id="partner-1", name="Meera", role=Role.PARTNER)


@pytest.fixture
def seeded_users(db: Session) -> None:
    """Profiles for the test actors plus one registration awaiting review"""
    for user_id, name, role, status in SEEDED_USERS:
        db.add(
            orm.User(
                id=user_id,
                email=f"{user_id}@example.com",
                name=name,
                role=role.value,
                approval_status=status.value,
            )
        )
    db.commit()


@pytest.fixture
def identity_client() -> IdentityClient:
    return IdentityClient(base_url=IDENTITY_BASE, api_key="anon", transport=httpx.MockTransport(identity_handler))


@pytest.fixture
def blob_store() -> BlobStoreClient:
    return BlobStoreClient(base_url=STORAGE_BASE, api_key="service", transport=httpx.MockTransport(storage_handler))


@pytest.fixture
def client(
    db: Session,
    seeded_users: None,
    identity_client: IdentityClient,
    blob_store: BlobStoreClient,
) -> TestClient:
    """Create FastAPI test client with test database and stubbed hosted services"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_client] = lambda: identity_client
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Callable[[str], Dict[str, str]]:
    """Bearer headers for a seeded user id"""

    def headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer token-{user_id}"}

    return headers
