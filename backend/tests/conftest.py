"""
Shared test fixtures.

Every test gets its own in-memory SQLite database. Strava is never
contacted: OAuth and API clients run on httpx.MockTransport.
"""

import json
import time
from collections.abc import AsyncGenerator, Callable

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.models import Base, register_models
from app.features.users.models import User
from app.features.strava.client import StravaActivityClient
from app.features.strava.oauth import StravaOAuth

register_models()


# =============================================================================
# Database
# =============================================================================

@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(db) -> Callable:
    """Create a connected user; token expiry is relative to now."""

    async def _make(
        athlete_id: int = 1001,
        expires_in: int = 3600,
        firstname: str = "Ada",
        **fields,
    ) -> User:
        values = {
            "strava_athlete_id": athlete_id,
            "firstname": firstname,
            "lastname": "Runner",
            "access_token": f"access-{athlete_id}",
            "refresh_token": f"refresh-{athlete_id}",
            "token_expires_at": int(time.time()) + expires_in,
            "scope": "read,activity:read_all",
            "is_strava_authorized": True,
        }
        values.update(fields)
        user = User(**values)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    return _make


# =============================================================================
# Strava fakes
# =============================================================================

def activity_payload(activity_id: int = 555, **overrides) -> dict:
    """Detailed activity JSON as returned by GET /activities/{id}."""
    payload = {
        "id": activity_id,
        "name": "Morning Run",
        "distance": 8000.0,
        "moving_time": 2700,
        "elapsed_time": 2900,
        "total_elevation_gain": 42.0,
        "type": "Run",
        "sport_type": "Run",
        "start_date": "2024-08-20T04:30:00Z",
        "start_date_local": "2024-08-20T10:30:00Z",
        "timezone": "(GMT+06:00) Asia/Almaty",
        "average_speed": 2.96,
        "max_speed": 4.1,
        "average_heartrate": 148.0,
        "max_heartrate": 171.0,
        "kudos_count": 3,
        "comment_count": 1,
        "total_photo_count": 0,
        "map": {"summary_polyline": "abc123"},
        "visibility": "everyone",
        "gear_id": "g42",
    }
    payload.update(overrides)
    return payload


class FakeStrava:
    """
    Programmable stand-in for Strava's token and API endpoints.

    Records every request; responses are looked up per path.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.activities: dict[int, dict] = {}
        self.activity_status: dict[int, int] = {}
        self.activity_pages: list[list[dict]] = []
        self.token_status = 200
        self.token_body: dict | str = {
            "access_token": "new-access",
            "refresh_token": "new-refresh",
            "expires_at": int(time.time()) + 21600,
        }
        self.token_error: Exception | None = None

    @property
    def token_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/oauth/token"]

    @property
    def activity_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/api/v3/")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth/token":
            if self.token_error is not None:
                raise self.token_error
            if isinstance(self.token_body, str):
                return httpx.Response(self.token_status, text=self.token_body)
            return httpx.Response(self.token_status, json=self.token_body)

        if path == "/api/v3/athlete/activities":
            page = int(request.url.params.get("page", "1"))
            items = self.activity_pages[page - 1] if page <= len(self.activity_pages) else []
            return httpx.Response(200, json=items)

        if path.startswith("/api/v3/activities/"):
            activity_id = int(path.rsplit("/", 1)[-1])
            status = self.activity_status.get(activity_id)
            if status is not None:
                return httpx.Response(status, json={"message": "error"})
            if activity_id not in self.activities:
                return httpx.Response(404, json={"message": "Record Not Found"})
            return httpx.Response(200, content=json.dumps(self.activities[activity_id]))

        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def oauth(self) -> StravaOAuth:
        return StravaOAuth(client_id="123", client_secret="secret", transport=self.transport)

    def client(self) -> StravaActivityClient:
        return StravaActivityClient(transport=self.transport)


@pytest.fixture
def fake_strava() -> FakeStrava:
    return FakeStrava()


@pytest.fixture
def make_payload() -> Callable[..., dict]:
    return activity_payload
