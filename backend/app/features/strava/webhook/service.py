"""
Strava webhook service.

Two entry points:
- verify(): subscription handshake (GET), synchronous
- accept(): event notification (POST); validates, decides the action,
  hands the work to the dispatcher and returns the acknowledgement at once

process() is the detached unit of work. It opens its own session because
the request session is closed by the time it runs.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.features.users.repository import UserRepository
from ..client import StravaActivityClient
from ..oauth import StravaOAuth
from ..tokens import AuthError, TokenManager
from .dispatcher import EventDispatcher
from .events import EventAction, WebhookEvent, route_event
from .reconcile import ActivityReconciler, ReconcileOutcome

logger = logging.getLogger(__name__)


SUBSCRIBE_MODE = "subscribe"
EVENT_RECEIVED = "EVENT_RECEIVED"
EVENT_RECEIVED_BUT_INVALID_PAYLOAD = "EVENT_RECEIVED_BUT_INVALID_PAYLOAD"


class WebhookVerificationError(AuthError):
    """Subscription handshake rejected (wrong mode or verify token)."""
    pass


class WebhookPayloadError(ValueError):
    """Event body is not a valid webhook event."""
    pass


@dataclass(frozen=True)
class WebhookAck:
    """Acknowledgement returned to Strava. Always sent with HTTP 200."""

    status: str
    action: Optional[EventAction] = None

    def to_dict(self) -> dict:
        body = {"status": self.status}
        if self.action is not None:
            body["action"] = self.action.value
        return body


class WebhookService:
    """Handles Strava webhook verification and event notifications."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: EventDispatcher,
        verify_token: Optional[str] = None,
        oauth: Optional[StravaOAuth] = None,
        client: Optional[StravaActivityClient] = None,
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.verify_token = (
            verify_token if verify_token is not None else settings.strava_webhook_verify_token
        )
        self.oauth = oauth or StravaOAuth()
        self.client = client or StravaActivityClient()

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    def verify(self, mode: Optional[str], verify_token: Optional[str], challenge: Optional[str]) -> str:
        """
        Echo the challenge if the handshake is ours.

        Raises:
            WebhookVerificationError: If mode is not "subscribe", the token
                does not match, or no verify token is configured
        """
        if not self.verify_token:
            logger.error("Webhook verification attempted but no verify token is configured")
            raise WebhookVerificationError("Webhook verify token not configured")
        if mode != SUBSCRIBE_MODE or verify_token != self.verify_token:
            logger.warning(f"Webhook verification failed: mode={mode}")
            raise WebhookVerificationError("Verification failed")
        if challenge is None:
            raise WebhookVerificationError("Missing hub.challenge")
        logger.info("Webhook verification successful")
        return challenge

    # -------------------------------------------------------------------------
    # Event notification
    # -------------------------------------------------------------------------

    @staticmethod
    def parse_event(payload: Any) -> WebhookEvent:
        """
        Raises:
            WebhookPayloadError: If required fields are missing or mistyped
        """
        if not isinstance(payload, dict):
            raise WebhookPayloadError("Webhook body is not a JSON object")
        try:
            return WebhookEvent.model_validate(payload)
        except ValidationError as e:
            raise WebhookPayloadError(str(e)) from e

    def accept(self, payload: Any) -> WebhookAck:
        """Validate, route and dispatch one event. Never raises."""
        try:
            event = self.parse_event(payload)
        except WebhookPayloadError as e:
            logger.warning(f"Dropping invalid webhook payload: {e}")
            return WebhookAck(status=EVENT_RECEIVED_BUT_INVALID_PAYLOAD)

        action = route_event(event)
        logger.info(
            f"Webhook event: {event.object_type}/{event.aspect_type} "
            f"object_id={event.object_id} owner_id={event.owner_id} -> {action.value}"
        )

        if action is EventAction.IGNORE:
            return WebhookAck(status=EVENT_RECEIVED, action=action)

        self.dispatcher.submit(
            (event.owner_id, event.object_id),
            lambda: self.process(event, action),
            name=f"{action.value} {event.object_type} {event.object_id}",
        )
        return WebhookAck(status=EVENT_RECEIVED, action=action)

    async def process(self, event: WebhookEvent, action: EventAction) -> Optional[ReconcileOutcome]:
        """
        Apply one routed event. Runs detached from the request.

        Returns None when the event was dropped (unknown owner, auth failure).
        Other errors propagate to the dispatcher, which logs them.
        """
        async with self.session_factory() as db:
            user = await UserRepository(db).get_by_athlete_id(event.owner_id)
            if not user:
                logger.warning(f"Webhook owner {event.owner_id} is not a local user, dropping event")
                return None

            reconciler = ActivityReconciler(
                db,
                token_manager=TokenManager(db, oauth=self.oauth),
                client=self.client,
            )

            if action is EventAction.DEAUTHORIZE:
                return await reconciler.deauthorize(user)
            if action is EventAction.DELETE:
                return await reconciler.reconcile_delete(user, event.object_id)

            try:
                if action is EventAction.CREATE:
                    return await reconciler.reconcile_create(user, event.object_id)
                return await reconciler.reconcile_update(user, event.object_id)
            except AuthError as e:
                logger.warning(
                    f"Skipping {action.value} of activity {event.object_id} "
                    f"for user {user.id}: {type(e).__name__}: {e}"
                )
                return None
