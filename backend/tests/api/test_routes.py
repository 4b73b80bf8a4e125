"""
HTTP tests for the webhook, OAuth and challenge routes.

The app runs in-process through httpx.ASGITransport; database, Strava and
the background dispatcher are swapped via dependency overrides.
"""

from collections.abc import AsyncGenerator
from datetime import datetime
from urllib.parse import parse_qs, urlparse

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.config import settings
from app.main import app
from app.api.v1.routes import strava as strava_routes
from app.api.v1.routes.challenge import get_score_cache
from app.api.v1.routes.strava import get_dispatcher, get_oauth, get_sync_service
from app.api.v1.routes.webhook import get_webhook_service
from app.db.session import get_async_db
from app.features.strava.models import Activity
from app.features.strava.sync import ActivitySyncService
from app.features.strava.webhook import EventDispatcher, WebhookService

WEBHOOK_URL = "/api/v1/webhook/strava"


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher(timeout_seconds=5)


@pytest_asyncio.fixture
async def client(session_factory, fake_strava, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    async def _db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_async_db] = _db
    app.dependency_overrides[get_webhook_service] = lambda: WebhookService(
        session_factory,
        dispatcher,
        verify_token="s3cret",
        oauth=fake_strava.oauth(),
        client=fake_strava.client(),
    )
    app.dependency_overrides[get_oauth] = fake_strava.oauth
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    app.dependency_overrides[get_sync_service] = lambda: ActivitySyncService(
        session_factory,
        window_start=datetime(2024, 8, 15).date(),
        window_end=datetime(2024, 11, 22).date(),
        oauth=fake_strava.oauth(),
        client=fake_strava.client(),
    )
    app.dependency_overrides[get_score_cache] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await dispatcher.drain()
    app.dependency_overrides.clear()


# =============================================================================
# Webhook
# =============================================================================

class TestWebhookRoutes:
    """Tests for /webhook/strava."""

    @pytest.mark.asyncio
    async def test_verification_success(self, client):
        response = await client.get(WEBHOOK_URL, params={
            "hub.mode": "subscribe",
            "hub.verify_token": "s3cret",
            "hub.challenge": "15f7d1a91c1f40f8a748fd134752feb3",
        })

        assert response.status_code == 200
        assert response.json() == {"hub.challenge": "15f7d1a91c1f40f8a748fd134752feb3"}

    @pytest.mark.asyncio
    async def test_verification_failure_is_403(self, client):
        response = await client.get(WEBHOOK_URL, params={
            "hub.mode": "subscribe",
            "hub.verify_token": "nope",
            "hub.challenge": "x",
        })

        assert response.status_code == 403

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        b"{not json",
        b"",
        b'{"object_type": "activity"}',
        b'["list"]',
    ])
    async def test_invalid_post_still_acknowledged(self, client, body):
        response = await client.post(WEBHOOK_URL, content=body,
                                      headers={"Content-Type": "application/json"})

        assert response.status_code == 200
        assert response.json()["status"] == "EVENT_RECEIVED_BUT_INVALID_PAYLOAD"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["PUT", "DELETE", "PATCH"])
    async def test_wrong_method_is_405(self, client, method):
        response = await client.request(method, WEBHOOK_URL)

        assert response.status_code == 405

    @pytest.mark.asyncio
    async def test_event_processed_after_ack(self, client, dispatcher, make_user, fake_strava, make_payload, db):
        user = await make_user(athlete_id=1001)
        fake_strava.activities[555] = make_payload(555)

        response = await client.post(WEBHOOK_URL, json={
            "object_type": "activity",
            "aspect_type": "create",
            "object_id": 555,
            "owner_id": 1001,
            "updates": {},
        })
        assert response.status_code == 200
        assert response.json() == {"status": "EVENT_RECEIVED", "action": "create"}

        await dispatcher.drain()
        activity = await db.get(Activity, 1)
        assert activity is not None
        assert activity.user_id == user.id

    @pytest.mark.asyncio
    async def test_failing_reconciliation_still_200(self, client, dispatcher, make_user, fake_strava):
        await make_user(athlete_id=1001)
        fake_strava.activity_status[555] = 500

        response = await client.post(WEBHOOK_URL, json={
            "object_type": "activity", "aspect_type": "update", "object_id": 555, "owner_id": 1001,
        })
        await dispatcher.drain()

        assert response.status_code == 200
        assert dispatcher.failed == 1


# =============================================================================
# OAuth
# =============================================================================

class TestStravaAuthRoutes:
    """Tests for /auth/strava and the callback."""

    @pytest.mark.asyncio
    async def test_login_redirects_to_strava(self, client, monkeypatch):
        monkeypatch.setattr(settings, "strava_redirect_uri", "https://example.com/cb")

        response = await client.get("/api/v1/auth/strava", follow_redirects=False)

        assert response.status_code == 307
        location = urlparse(response.headers["location"])
        params = parse_qs(location.query)
        assert location.netloc == "www.strava.com"
        assert params["state"][0] in strava_routes._oauth_states

    @pytest.mark.asyncio
    async def test_callback_rejects_unknown_state(self, client):
        response = await client.get("/api/v1/auth/strava/callback",
                                    params={"code": "c", "state": "forged"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_callback_creates_user_and_backfills(self, client, dispatcher, fake_strava, make_payload, db):
        state = strava_routes._issue_state()
        fake_strava.token_body = {
            "access_token": "a1",
            "refresh_token": "r1",
            "expires_at": 4102444800,
            "athlete": {"id": 31337, "firstname": "Grace", "lastname": "H", "profile_medium": "https://img/m.jpg"},
        }
        fake_strava.activity_pages = [[make_payload(1), make_payload(2)]]

        response = await client.get("/api/v1/auth/strava/callback", params={
            "code": "abc", "state": state, "scope": "read,activity:read_all",
        })
        await dispatcher.drain()

        assert response.status_code == 200
        body = response.json()
        assert body["strava_athlete_id"] == 31337
        assert body["firstname"] == "Grace"
        assert body["profile_image_url"] == "https://img/m.jpg"
        assert body["is_strava_authorized"] is True
        assert body["scope"] == "read,activity:read_all"
        assert "access_token" not in body
        assert dispatcher.completed == 1

        activity = await db.get(Activity, 2)
        assert activity is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("scope", ["read", None])
    async def test_callback_without_activity_scope_skips_backfill(self, client, dispatcher, fake_strava, scope):
        state = strava_routes._issue_state()
        fake_strava.token_body = {
            "access_token": "a1",
            "refresh_token": "r1",
            "expires_at": 4102444800,
            "athlete": {"id": 31337, "firstname": "Grace"},
        }
        params = {"code": "abc", "state": state}
        if scope is not None:
            params["scope"] = scope

        response = await client.get("/api/v1/auth/strava/callback", params=params)
        await dispatcher.drain()

        assert response.status_code == 200
        assert response.json()["is_strava_authorized"] is True
        assert dispatcher.completed == 0
        assert fake_strava.activity_calls == []

    @pytest.mark.asyncio
    async def test_callback_rejected_client_credentials_is_503(self, client, fake_strava):
        state = strava_routes._issue_state()
        fake_strava.token_status = 401
        fake_strava.token_body = {
            "message": "Authorization Error",
            "errors": [{"resource": "Application", "field": "client_secret", "code": "invalid"}],
        }

        response = await client.get("/api/v1/auth/strava/callback",
                                    params={"code": "abc", "state": state})

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_callback_transient_exchange_failure_is_502(self, client, fake_strava):
        state = strava_routes._issue_state()
        fake_strava.token_status = 500

        response = await client.get("/api/v1/auth/strava/callback",
                                    params={"code": "abc", "state": state})

        assert response.status_code == 502

    @pytest.mark.asyncio
    async def test_callback_error_param(self, client):
        response = await client.get("/api/v1/auth/strava/callback",
                                    params={"error": "access_denied"})

        assert response.status_code == 400


# =============================================================================
# Challenge
# =============================================================================

class TestChallengeRoutes:
    """Tests for /challenge, /leaderboard and /users/{id}/score."""

    @pytest.mark.asyncio
    async def test_challenge_description(self, client):
        response = await client.get("/api/v1/challenge")

        assert response.status_code == 200
        body = response.json()
        assert body["start_date"] == "2024-08-15"
        assert body["end_date"] == "2024-11-22"
        assert [s["number"] for s in body["stages"]] == [1, 2, 3, 4, 5]
        assert [s["provisional"] for s in body["stages"]] == [False, False, True, True, False]

    @pytest.mark.asyncio
    async def test_leaderboard_ranks_and_skips_zero(self, client, db, make_user):
        leader = await make_user(athlete_id=1, firstname="Lead")
        await make_user(athlete_id=2, firstname="Idle")
        db.add(Activity(
            user_id=leader.id,
            strava_activity_id=9,
            activity_type="Run",
            sport_type="Run",
            start_date=datetime(2024, 8, 16, 6, 0),
            start_date_local=datetime(2024, 8, 16, 12, 0),
            distance_m=8000,
        ))
        await db.commit()

        response = await client.get("/api/v1/leaderboard")

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 1
        assert body[0]["rank"] == 1
        assert body[0]["athlete_id"] == 1
        assert body[0]["name"] == "Lead Runner"
        assert body[0]["total_points"] == 500.0  # stage 1 extreme

    @pytest.mark.asyncio
    async def test_user_score(self, client, make_user):
        await make_user(athlete_id=7)

        response = await client.get("/api/v1/users/7/score")

        assert response.status_code == 200
        body = response.json()
        assert body["total_points"] == 0
        assert set(body["breakdown"]) == {"1", "2", "3", "4", "5"}
        assert body["breakdown"]["1"] == {
            "daily": 0, "advanced": 0, "extreme": 0, "distance": 0, "total_stage_points": 0,
        }

    @pytest.mark.asyncio
    async def test_unknown_athlete_404(self, client):
        response = await client.get("/api/v1/users/999/score")

        assert response.status_code == 404
