"""
Strava API client.

Fetches activities with a valid bearer token. Token lifecycle is handled
by TokenManager; this client never refreshes on its own.

Strava API Limits:
- 200 requests per 15 minutes
- 2,000 requests per day
"""

import logging
from typing import Any, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


# =============================================================================
# Exceptions
# =============================================================================

class StravaError(Exception):
    """Base Strava error."""
    pass


class StravaAPIError(StravaError):
    """Strava API error (non-2xx status, transport failure, bad body)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StravaAuthError(StravaError):
    """Authentication/authorization error (401/403)."""
    pass


class StravaNotFoundError(StravaError):
    """Activity does not exist remotely or is not visible to this token."""
    pass


# =============================================================================
# Strava Client
# =============================================================================

class StravaActivityClient:
    """
    Async client for the Strava activities API.

    Usage:
        client = StravaActivityClient()
        activity = await client.get_activity(access_token, 12345)
        page = await client.list_activities(access_token, after=..., before=...)
    """

    API_URL = "https://www.strava.com/api/v3"

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout if timeout is not None else settings.strava_api_timeout_seconds
        self._transport = transport

    async def _api_request(
        self,
        endpoint: str,
        access_token: str,
        params: Optional[dict] = None,
    ) -> Any:
        """
        Make an authenticated GET request.

        Raises:
            StravaNotFoundError: On 404
            StravaAuthError: On 401/403
            StravaAPIError: On any other non-200 status or transport failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.API_URL}{endpoint}",
                    headers={"Authorization": f"Bearer {access_token}"},
                    params=params,
                )
        except httpx.HTTPError as e:
            raise StravaAPIError(f"Request to {endpoint} failed: {e!r}") from e

        # Log rate limit headers from Strava
        if "X-RateLimit-Limit" in response.headers:
            logger.debug(
                f"Strava rate limit: {response.headers.get('X-RateLimit-Usage')} "
                f"/ {response.headers.get('X-RateLimit-Limit')}"
            )

        if response.status_code == 404:
            raise StravaNotFoundError(f"{endpoint} not found")
        elif response.status_code in (401, 403):
            raise StravaAuthError(f"{endpoint} rejected token: {response.status_code}")
        elif response.status_code != 200:
            raise StravaAPIError(
                f"API error: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise StravaAPIError(f"{endpoint} returned invalid JSON") from e

    async def get_activity(self, access_token: str, activity_id: int) -> dict:
        """Get the detailed representation of one activity."""
        data = await self._api_request(f"/activities/{activity_id}", access_token)
        if not isinstance(data, dict):
            raise StravaAPIError(f"Activity {activity_id} returned unexpected body")
        return data

    async def list_activities(
        self,
        access_token: str,
        after: Optional[int] = None,
        before: Optional[int] = None,
        page: int = 1,
        per_page: int = 100,
    ) -> list[dict]:
        """
        Get one page of the athlete's activities.

        Args:
            access_token: Valid access token
            after: Only activities after this unix time
            before: Only activities before this unix time
            page: Page number (1-based)
            per_page: Results per page (max 200)
        """
        params: dict[str, int] = {"page": page, "per_page": min(per_page, 200)}
        if after is not None:
            params["after"] = after
        if before is not None:
            params["before"] = before

        data = await self._api_request("/athlete/activities", access_token, params)
        if not isinstance(data, list):
            raise StravaAPIError("Activity list returned unexpected body")
        return data
