"""
Tests for WebhookService: handshake, event validation, routing and the
detached processing unit.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from app.features.strava.models import Activity
from app.features.strava.webhook import (
    EVENT_RECEIVED,
    EVENT_RECEIVED_BUT_INVALID_PAYLOAD,
    EventAction,
    EventDispatcher,
    ReconcileOutcome,
    WebhookEvent,
    WebhookService,
    WebhookVerificationError,
    route_event,
)


def _event(**overrides) -> dict:
    body = {
        "object_type": "activity",
        "aspect_type": "create",
        "object_id": 555,
        "owner_id": 1001,
        "updates": {},
        "event_time": 1724140800,
        "subscription_id": 7,
    }
    body.update(overrides)
    return body


@pytest.fixture
def service(session_factory, fake_strava) -> WebhookService:
    return WebhookService(
        session_factory,
        EventDispatcher(timeout_seconds=5),
        verify_token="s3cret",
        oauth=fake_strava.oauth(),
        client=fake_strava.client(),
    )


# =============================================================================
# Verification
# =============================================================================

class TestVerify:
    """Tests for the subscription handshake."""

    def test_echoes_challenge(self, service):
        assert service.verify("subscribe", "s3cret", "abc") == "abc"

    @pytest.mark.parametrize("mode,token", [
        ("subscribe", "wrong"),
        ("unsubscribe", "s3cret"),
        (None, None),
    ])
    def test_rejects_mismatch(self, service, mode, token):
        with pytest.raises(WebhookVerificationError):
            service.verify(mode, token, "abc")

    def test_unconfigured_token_never_matches(self, session_factory):
        service = WebhookService(session_factory, EventDispatcher(), verify_token="")
        with pytest.raises(WebhookVerificationError):
            service.verify("subscribe", "", "abc")


# =============================================================================
# Routing
# =============================================================================

class TestRouteEvent:
    """Tests for route_event."""

    @pytest.mark.parametrize("aspect,action", [
        ("create", EventAction.CREATE),
        ("update", EventAction.UPDATE),
        ("delete", EventAction.DELETE),
        ("archive", EventAction.IGNORE),
    ])
    def test_activity_aspects(self, aspect, action):
        assert route_event(WebhookEvent(**_event(aspect_type=aspect))) is action

    @pytest.mark.parametrize("authorized", ["false", "False", False])
    def test_athlete_deauthorization(self, authorized):
        event = WebhookEvent(**_event(object_type="athlete", aspect_type="update",
                                      updates={"authorized": authorized}))
        assert route_event(event) is EventAction.DEAUTHORIZE

    def test_athlete_update_without_revocation_ignored(self):
        event = WebhookEvent(**_event(object_type="athlete", aspect_type="update",
                                      updates={"authorized": "true"}))
        assert route_event(event) is EventAction.IGNORE

    @pytest.mark.parametrize("updates", [None, "x", ["authorized"]])
    def test_athlete_update_with_unusable_updates_ignored(self, updates):
        event = WebhookEvent(**_event(object_type="athlete", aspect_type="update", updates=updates))

        assert event.updates == {}
        assert route_event(event) is EventAction.IGNORE


# =============================================================================
# Accept
# =============================================================================

class TestAccept:
    """Tests for acknowledgement and dispatch."""

    @pytest.mark.parametrize("payload", [
        None,
        [],
        "text",
        {"object_type": "activity", "aspect_type": "create", "object_id": 1},
        _event(object_id="not-a-number"),
    ])
    def test_invalid_payload_acknowledged_not_dispatched(self, payload):
        dispatcher = MagicMock()
        service = WebhookService(MagicMock(), dispatcher, verify_token="x")

        ack = service.accept(payload)

        assert ack.status == EVENT_RECEIVED_BUT_INVALID_PAYLOAD
        dispatcher.submit.assert_not_called()

    def test_valid_event_dispatched_with_activity_key(self):
        dispatcher = MagicMock()
        service = WebhookService(MagicMock(), dispatcher, verify_token="x")

        ack = service.accept(_event(aspect_type="update"))

        assert ack.status == EVENT_RECEIVED
        assert ack.action is EventAction.UPDATE
        dispatcher.submit.assert_called_once()
        assert dispatcher.submit.call_args.args[0] == (1001, 555)

    @pytest.mark.parametrize("extra", [
        {"updates": None},
        {"event_time": "2024-08-20T10:00:00Z"},
        {"subscription_id": None, "event_time": 1724140800.5},
    ])
    def test_loose_optional_fields_still_dispatched(self, extra):
        dispatcher = MagicMock()
        service = WebhookService(MagicMock(), dispatcher, verify_token="x")

        ack = service.accept(_event(**extra))

        assert ack.status == EVENT_RECEIVED
        assert ack.action is EventAction.CREATE
        dispatcher.submit.assert_called_once()

    def test_ignored_event_not_dispatched(self):
        dispatcher = MagicMock()
        service = WebhookService(MagicMock(), dispatcher, verify_token="x")

        ack = service.accept(_event(object_type="athlete", aspect_type="create"))

        assert ack.status == EVENT_RECEIVED
        assert ack.to_dict() == {"status": EVENT_RECEIVED, "action": "ignore"}
        dispatcher.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_acknowledges_before_processing(self, service, make_user, fake_strava, make_payload, db):
        user = await make_user(athlete_id=1001)
        fake_strava.activities[555] = make_payload(555)

        ack = service.accept(_event())

        # Nothing has run yet: the unit is only scheduled
        assert ack.status == EVENT_RECEIVED
        assert fake_strava.requests == []

        await service.dispatcher.drain()
        rows = (await db.execute(select(Activity).where(Activity.user_id == user.id))).scalars().all()
        assert len(rows) == 1


# =============================================================================
# Process
# =============================================================================

class TestProcess:
    """Tests for the detached unit."""

    @pytest.mark.asyncio
    async def test_unknown_owner_dropped(self, service, fake_strava):
        event = WebhookEvent(**_event(owner_id=999999))

        assert await service.process(event, EventAction.CREATE) is None
        assert fake_strava.requests == []

    @pytest.mark.asyncio
    async def test_deauthorize_event_clears_tokens(self, service, make_user, db):
        user = await make_user(athlete_id=1001)
        event = WebhookEvent(**_event(object_type="athlete", aspect_type="update",
                                      object_id=1001, updates={"authorized": "false"}))

        outcome = await service.process(event, EventAction.DEAUTHORIZE)
        await db.refresh(user)

        assert outcome is ReconcileOutcome.DEAUTHORIZED
        assert user.is_strava_authorized is False
        assert user.access_token is None

    @pytest.mark.asyncio
    async def test_revoked_grant_aborts_quietly(self, service, make_user, fake_strava, db):
        user = await make_user(athlete_id=1001, expires_in=0)
        fake_strava.token_status = 400
        fake_strava.token_body = {"error": "invalid_grant"}

        outcome = await service.process(WebhookEvent(**_event()), EventAction.CREATE)
        await db.refresh(user)

        assert outcome is None
        assert user.is_strava_authorized is False
        assert fake_strava.activity_calls == []

    @pytest.mark.asyncio
    async def test_api_failure_surfaces_to_dispatcher(self, service, make_user, fake_strava):
        await make_user(athlete_id=1001)
        fake_strava.activity_status[555] = 500

        service.accept(_event())
        await service.dispatcher.drain()

        assert service.dispatcher.failed == 1
        assert service.dispatcher.completed == 0
