"""
Strava integration module.

Usage:
    from app.features.strava import StravaOAuth, StravaActivityClient, TokenManager
    from app.features.strava.webhook import WebhookService
    from app.features.strava.sync import ActivitySyncService

Components:
- StravaOAuth: OAuth flow (auth URL, code exchange, refresh)
- StravaActivityClient: API client (activity detail, activity list)
- TokenManager: keeps a user's access token valid, deauthorizes on revoked grants
- ActivityRepository: upsert/delete/find by (user, strava activity id)

Models:
- Activity: Synced activity data
"""

from .models import Activity
from .mapping import ActivityRecord, ActivityPayloadError, activity_fields_from_payload
from .oauth import (
    StravaOAuth,
    StravaOAuthError,
    InvalidGrantError,
    ClientCredentialsError,
    TokenSet,
    TokenExchange,
)
from .client import (
    StravaActivityClient,
    StravaError,
    StravaAPIError,
    StravaAuthError,
    StravaNotFoundError,
)
from .tokens import (
    TokenManager,
    AuthError,
    TransientAuthError,
    DeauthorizedError,
)
from .repository import ActivityRepository

__all__ = [
    # Models
    "Activity",
    # Mapping
    "ActivityRecord",
    "ActivityPayloadError",
    "activity_fields_from_payload",
    # OAuth
    "StravaOAuth",
    "StravaOAuthError",
    "InvalidGrantError",
    "ClientCredentialsError",
    "TokenSet",
    "TokenExchange",
    # Client
    "StravaActivityClient",
    "StravaError",
    "StravaAPIError",
    "StravaAuthError",
    "StravaNotFoundError",
    # Tokens
    "TokenManager",
    "AuthError",
    "TransientAuthError",
    "DeauthorizedError",
    # Repositories
    "ActivityRepository",
]
