"""
Strava Webhook Routes

Single endpoint, method-dispatched:
- GET  /webhook/strava - subscription handshake
- POST /webhook/strava - event notification (always acknowledged with 200)

Any other method gets 405 from the router.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.db.session import AsyncSessionLocal
from app.features.strava.webhook import (
    EVENT_RECEIVED_BUT_INVALID_PAYLOAD,
    WebhookService,
    WebhookVerificationError,
    event_dispatcher,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_webhook_service() -> WebhookService:
    return WebhookService(AsyncSessionLocal, event_dispatcher)


@router.get("/webhook/strava")
async def verify_webhook(
    hub_mode: Optional[str] = Query(None, alias="hub.mode"),
    hub_verify_token: Optional[str] = Query(None, alias="hub.verify_token"),
    hub_challenge: Optional[str] = Query(None, alias="hub.challenge"),
    service: WebhookService = Depends(get_webhook_service),
):
    """
    Verify webhook subscription with Strava.

    Strava calls this once when the subscription is created and expects
    the challenge echoed back.
    """
    try:
        challenge = service.verify(hub_mode, hub_verify_token, hub_challenge)
    except WebhookVerificationError:
        raise HTTPException(status_code=403, detail="Verification failed")
    return {"hub.challenge": challenge}


@router.post("/webhook/strava")
async def receive_webhook_event(
    request: Request,
    service: WebhookService = Depends(get_webhook_service),
):
    """
    Acknowledge a Strava event and process it in the background.

    Strava retries anything but a quick 200, so even unreadable bodies are
    acknowledged; reconciliation outcomes only show up in logs.
    """
    body = await request.body()
    try:
        payload = json.loads(body) if body else None
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON, dropping")
        return {"status": EVENT_RECEIVED_BUT_INVALID_PAYLOAD}

    return service.accept(payload).to_dict()
