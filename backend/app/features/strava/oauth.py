"""
Strava OAuth flow.

Handles:
- Authorization URL generation
- Code exchange for tokens
- Token refresh

Status codes are inspected explicitly; an invalid grant (HTTP 400/401 or
an "invalid_grant" error body) is reported separately from transient
failures so callers can tell a revoked authorization from a hiccup. A
400/401 whose errors name the application (resource "Application", field
client_id or client_secret) is a credentials problem on our side and never
counts as an invalid grant.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from app.config import settings
from app.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class StravaOAuthError(Exception):
    """OAuth-related error (timeout, transport failure, 5xx, malformed body)."""
    pass


class InvalidGrantError(StravaOAuthError):
    """Strava rejected the code or refresh token; the grant is gone."""
    pass


class ClientCredentialsError(StravaOAuthError):
    """Strava rejected this application's client id or secret; user grants are intact."""
    pass


# errors[].resource / errors[].field values naming the application itself
_APPLICATION_RESOURCES = {"application"}
_APPLICATION_FIELDS = {"client_id", "client_secret"}


def _error_details(response: httpx.Response) -> list[dict[str, Any]]:
    """The "errors" list of a Strava fault body, empty when absent or unreadable."""
    try:
        body = response.json()
    except ValueError:
        return []
    errors = body.get("errors") if isinstance(body, dict) else None
    if not isinstance(errors, list):
        return []
    return [e for e in errors if isinstance(e, dict)]


def _blames_application(errors: list[dict[str, Any]]) -> bool:
    for error in errors:
        resource = str(error.get("resource") or "").lower()
        field = str(error.get("field") or "").lower()
        if resource in _APPLICATION_RESOURCES or field in _APPLICATION_FIELDS:
            return True
    return False


@dataclass(frozen=True)
class TokenSet:
    access_token: str
    refresh_token: str
    expires_at: int  # Unix timestamp
    scope: Optional[str] = None


@dataclass(frozen=True)
class TokenExchange:
    """Result of exchanging an authorization code."""

    tokens: TokenSet
    athlete: dict[str, Any]


class StravaOAuth:
    """
    Strava OAuth handler.

    Usage:
        oauth = StravaOAuth()
        auth_url = oauth.get_authorization_url(state="...")
        exchange = await oauth.exchange_code(code)
        tokens = await oauth.refresh_token(refresh_token)
    """

    AUTHORIZE_URL = "https://www.strava.com/oauth/authorize"
    TOKEN_URL = "https://www.strava.com/oauth/token"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id if client_id is not None else settings.strava_client_id
        self.client_secret = (
            client_secret if client_secret is not None else settings.strava_client_secret
        )
        self.timeout = timeout if timeout is not None else settings.strava_token_timeout_seconds
        self._transport = transport

    def _require_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("Strava client id/secret are not configured")

    def get_authorization_url(
        self,
        redirect_uri: Optional[str] = None,
        state: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> str:
        """
        Generate Strava OAuth authorization URL.

        Args:
            redirect_uri: URL to redirect after authorization
                (default: settings.strava_redirect_uri)
            state: Optional state parameter for CSRF protection
            scope: OAuth scope (default: settings.strava_scope,
                "read,activity:read_all" so private activities count too)

        Raises:
            ConfigurationError: If client id or redirect URI is missing
        """
        redirect_uri = redirect_uri or settings.strava_redirect_uri
        if not self.client_id or not redirect_uri:
            raise ConfigurationError("Strava client id or redirect URI is not configured")

        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "approval_prompt": "auto",
            "scope": scope or settings.strava_scope,
        }
        if state:
            params["state"] = state

        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def _post_token(self, data: dict[str, str], action: str) -> dict[str, Any]:
        self._require_credentials()
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **data,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.TOKEN_URL, data=payload)
        except httpx.HTTPError as e:
            logger.warning(f"Strava token {action} transport error: {e!r}")
            raise StravaOAuthError(f"Token {action} failed: {e!r}") from e

        if response.status_code in (400, 401) and _blames_application(_error_details(response)):
            logger.error(
                f"Strava token {action} rejected the application credentials: "
                f"{response.status_code} {response.text[:200]}"
            )
            raise ClientCredentialsError(f"Token {action} rejected client credentials: {response.status_code}")

        if response.status_code in (400, 401) or "invalid_grant" in response.text:
            logger.warning(
                f"Strava token {action} rejected: {response.status_code} {response.text[:200]}"
            )
            raise InvalidGrantError(f"Token {action} rejected: {response.status_code}")

        if response.status_code != 200:
            logger.error(f"Strava token {action} failed: {response.status_code} {response.text[:200]}")
            raise StravaOAuthError(f"Token {action} failed: {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise StravaOAuthError(f"Token {action} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise StravaOAuthError(f"Token {action} returned unexpected body")
        return body

    @staticmethod
    def _token_set(body: dict[str, Any], scope: Optional[str] = None) -> TokenSet:
        try:
            return TokenSet(
                access_token=str(body["access_token"]),
                refresh_token=str(body["refresh_token"]),
                expires_at=int(body["expires_at"]),
                scope=body.get("scope") or scope,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StravaOAuthError(f"Token response is missing fields: {e}") from e

    async def exchange_code(self, code: str, scope: Optional[str] = None) -> TokenExchange:
        """
        Exchange authorization code for tokens.

        Args:
            code: Authorization code from Strava callback
            scope: Scope reported on the callback URL (Strava does not
                echo it in the token response)

        Raises:
            ConfigurationError: If credentials are missing
            InvalidGrantError: If the code was rejected
            StravaOAuthError: On any other failure or incomplete response
        """
        body = await self._post_token(
            {"code": code, "grant_type": "authorization_code"},
            action="exchange",
        )
        athlete = body.get("athlete")
        if not isinstance(athlete, dict) or athlete.get("id") is None:
            raise StravaOAuthError("Token exchange response has no athlete")
        return TokenExchange(tokens=self._token_set(body, scope), athlete=athlete)

    async def refresh_token(self, refresh_token: str) -> TokenSet:
        """
        Refresh an expired access token.

        Strava may rotate the refresh token; always store the returned one.

        Raises:
            ConfigurationError: If credentials are missing
            InvalidGrantError: If the refresh token is no longer valid
            StravaOAuthError: On timeout, transport error, 5xx or bad body
        """
        body = await self._post_token(
            {"refresh_token": refresh_token, "grant_type": "refresh_token"},
            action="refresh",
        )
        return self._token_set(body)
