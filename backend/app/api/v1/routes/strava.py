"""
Strava OAuth Routes

Endpoints for Strava sign-in:
- /auth/strava - Initiate OAuth flow
- /auth/strava/callback - Exchange the code, upsert the athlete, start backfill
"""

import secrets
import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import AsyncSessionLocal, get_async_db
from app.features.challenge import get_scoring_engine
from app.features.strava import ClientCredentialsError, InvalidGrantError, StravaOAuth, StravaOAuthError
from app.features.strava.sync import ActivitySyncService
from app.features.strava.webhook import EventDispatcher, event_dispatcher
from app.features.users import UserRepository, UserResponse
from app.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter()

# In-memory state storage (for CSRF protection)
# In production, use Redis or database
_oauth_states: dict[str, datetime] = {}
STATE_TTL = timedelta(minutes=10)
ACTIVITY_READ_SCOPE = "activity:read"


# =============================================================================
# Dependencies
# =============================================================================

def get_oauth() -> StravaOAuth:
    return StravaOAuth()


def get_sync_service() -> ActivitySyncService:
    try:
        timeline = get_scoring_engine().timeline
    except ConfigurationError as e:
        logger.error(f"Challenge configuration invalid: {e}")
        raise HTTPException(status_code=503, detail="Challenge is not configured correctly")
    return ActivitySyncService(AsyncSessionLocal, timeline.start_date, timeline.end_date)


def get_dispatcher() -> EventDispatcher:
    return event_dispatcher


def _issue_state() -> str:
    now = datetime.utcnow()
    for stale in [s for s, created in _oauth_states.items() if now - created > STATE_TTL]:
        _oauth_states.pop(stale, None)
    state = secrets.token_urlsafe(32)
    _oauth_states[state] = now
    return state


def _consume_state(state: Optional[str]) -> bool:
    if not state:
        return False
    created = _oauth_states.pop(state, None)
    return created is not None and datetime.utcnow() - created <= STATE_TTL


def has_activity_scope(scope: Optional[str]) -> bool:
    """True if the granted scope allows reading activities (activity:read or activity:read_all)."""
    return bool(scope) and any(part.strip().startswith(ACTIVITY_READ_SCOPE) for part in scope.split(","))


# =============================================================================
# OAuth Flow
# =============================================================================

@router.get("/auth/strava")
async def strava_auth(oauth: StravaOAuth = Depends(get_oauth)):
    """Redirect the athlete to Strava's consent screen."""
    try:
        auth_url = oauth.get_authorization_url(state=_issue_state())
    except ConfigurationError as e:
        logger.error(f"Strava OAuth not configured: {e}")
        raise HTTPException(status_code=503, detail="Strava integration not configured")

    logger.info("Strava OAuth initiated")
    return RedirectResponse(url=auth_url)


@router.get("/auth/strava/callback", response_model=UserResponse)
async def strava_callback(
    code: Optional[str] = Query(None),
    scope: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_async_db),
    oauth: StravaOAuth = Depends(get_oauth),
    sync_service: ActivitySyncService = Depends(get_sync_service),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """
    Handle Strava OAuth callback.

    Exchanges the code, creates or refreshes the user and schedules the
    initial activity backfill.
    """
    if error:
        logger.warning(f"Strava OAuth error: {error}")
        raise HTTPException(status_code=400, detail=f"Strava authorization denied: {error}")
    if not _consume_state(state):
        logger.warning("Invalid OAuth state")
        raise HTTPException(status_code=400, detail="Invalid or expired OAuth state")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    try:
        exchange = await oauth.exchange_code(code, scope=scope)
    except (ConfigurationError, ClientCredentialsError):
        raise HTTPException(status_code=503, detail="Strava integration not configured")
    except InvalidGrantError:
        raise HTTPException(status_code=400, detail="Authorization code rejected by Strava")
    except StravaOAuthError as e:
        logger.error(f"Strava token exchange failed: {e}")
        raise HTTPException(status_code=502, detail="Strava token exchange failed")

    users = UserRepository(db)
    user, created = await users.upsert_from_athlete(
        exchange.athlete,
        access_token=exchange.tokens.access_token,
        refresh_token=exchange.tokens.refresh_token,
        expires_at=exchange.tokens.expires_at,
        scope=exchange.tokens.scope,
    )
    await users.commit()
    logger.info(
        f"Strava connected: user {user.id} athlete {user.strava_athlete_id} "
        f"({'new' if created else 'returning'})"
    )

    user_id = user.id
    if has_activity_scope(user.scope):
        dispatcher.submit(
            ("backfill", user_id),
            lambda: sync_service.backfill_user(user_id),
            name=f"backfill user {user_id}",
        )
    else:
        logger.warning(f"Skipping backfill for user {user_id}: activity:read not granted (scope={user.scope})")
    return UserResponse.model_validate(user)
