"""
Strava webhook handling.

Usage:
    from app.features.strava.webhook import WebhookService, event_dispatcher

Components:
- WebhookService: handshake verification + event acknowledgement
- EventDispatcher: detached, per-activity serialized units of work
- ActivityReconciler: idempotent create/update/delete/deauthorize
"""

from .events import EventAction, WebhookEvent, route_event
from .dispatcher import EventDispatcher, event_dispatcher
from .reconcile import ActivityReconciler, ReconcileOutcome
from .service import (
    EVENT_RECEIVED,
    EVENT_RECEIVED_BUT_INVALID_PAYLOAD,
    WebhookAck,
    WebhookPayloadError,
    WebhookService,
    WebhookVerificationError,
)

__all__ = [
    "EventAction",
    "WebhookEvent",
    "route_event",
    "EventDispatcher",
    "event_dispatcher",
    "ActivityReconciler",
    "ReconcileOutcome",
    "EVENT_RECEIVED",
    "EVENT_RECEIVED_BUT_INVALID_PAYLOAD",
    "WebhookAck",
    "WebhookPayloadError",
    "WebhookService",
    "WebhookVerificationError",
]
