"""Pytest fixtures for Hichers tests."""

import json
from datetime import datetime

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hichers.api.deps import get_transport
from hichers.database import Base, get_db
from hichers.main import app
from hichers.schemas.session import Session
from hichers.services.gateway import LoyaltyGateway

BASE_URL = "https://api.test/api/v1"

# Fixed "now" for everything time-dependent: 15 Jan 2025, midday.
NOW = datetime(2025, 1, 15, 12, 0)


class FakeHichersApi:
    """In-process stand-in for the remote Hichers API.

    Routes are keyed by (method, endpoint). Queued responses are served in
    order and the last one repeats. A route may also be a callable taking
    the httpx.Request (sync or async) for raising transport errors.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method, endpoint, *, json=None, status_code=200, text=None, handler=None):
        entry = handler or (status_code, json, text)
        self.routes.setdefault((method.upper(), endpoint), []).append(entry)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.split("/api/v1/", 1)[-1]
        queue = self.routes.get((request.method, endpoint))
        if not queue:
            return httpx.Response(404, json={"message": f"No fake route for {endpoint}"})

        entry = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(entry):
            result = entry(request)
            if hasattr(result, "__await__"):
                result = await result
            return result

        status_code, body, text = entry
        if text is not None:
            return httpx.Response(status_code, text=text)
        if body is None:
            return httpx.Response(status_code, content=b"")
        return httpx.Response(status_code, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def calls(self, endpoint: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/" + endpoint)]

    def body(self, request: httpx.Request) -> dict:
        return json.loads(request.content) if request.content else {}


@pytest.fixture
def base_url():
    return BASE_URL


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def remote_api():
    return FakeHichersApi()


@pytest.fixture
def session():
    return Session(auth_token="test-token", user_id=42)


@pytest.fixture
def gateway(remote_api, session):
    return LoyaltyGateway(
        session,
        base_url=BASE_URL,
        timeout=1.0,
        scheme_timeout=1.0,
        transport=remote_api.transport,
        clock=lambda: NOW,
    )


# Test database (in-memory, shared across connections)
test_engine = create_async_engine(
    "sqlite+aiosqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
test_session_maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session():
    """Create a fresh database session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_maker() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session, remote_api):
    """Test client with the database and the remote API overridden."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transport] = lambda: remote_api.transport

    # https so the Secure session cookie is sent back.
    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def signed_in_client(client, remote_api):
    """Client that went through the OTP sign-in against the fake API."""
    remote_api.add(
        "POST",
        "auth/generate-otp",
        json={"response": "Success", "userID": 42, "otp": "1234"},
    )
    remote_api.add(
        "POST",
        "auth/validate-otp",
        json={
            "response": "OTP matched",
            "token": "signed-token",
            "user": {"userid": 42, "businessname": "Corner Cafe", "mobilenumber": "7700900123"},
        },
    )
    sent = await client.post(
        "/api/auth/generate-otp",
        json={"country_code": "+44", "mobile_number": "7700900123"},
    )
    assert sent.status_code == 200
    verified = await client.post("/api/auth/validate-otp", json={"otp": "1234"})
    assert verified.status_code == 200
    return client
