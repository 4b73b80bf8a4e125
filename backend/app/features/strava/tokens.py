"""
Access token lifecycle.

TokenManager is the only writer of a user's token set. It hands out a token
that stays valid for at least the refresh buffer, refreshing through
StravaOAuth when needed and deauthorizing the user when Strava says the
grant is gone.
"""

import logging
import time
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.features.users.models import User
from app.features.users.repository import UserRepository
from .oauth import InvalidGrantError, StravaOAuth, StravaOAuthError

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base class for authorization failures."""
    pass


class TransientAuthError(AuthError):
    """Token refresh failed for a recoverable reason; stored tokens untouched."""
    pass


class DeauthorizedError(AuthError):
    """The user's Strava grant is gone; tokens have been cleared."""
    pass


class TokenManager:
    """
    Ensures a valid access token before any Strava API call.

    Usage:
        manager = TokenManager(db)
        access_token = await manager.ensure_valid_token(user)
    """

    def __init__(
        self,
        db: AsyncSession,
        oauth: Optional[StravaOAuth] = None,
        clock: Callable[[], float] = time.time,
        refresh_buffer_seconds: Optional[int] = None,
    ):
        self.db = db
        self.users = UserRepository(db)
        self.oauth = oauth or StravaOAuth()
        self.clock = clock
        self.refresh_buffer_seconds = (
            refresh_buffer_seconds
            if refresh_buffer_seconds is not None
            else settings.token_refresh_buffer_seconds
        )

    def needs_refresh(self, user: User) -> bool:
        """True unless the stored token outlives now + buffer."""
        if not user.access_token or not user.token_expires_at:
            return True
        return user.token_expires_at <= self.clock() + self.refresh_buffer_seconds

    async def ensure_valid_token(self, user: User) -> str:
        """
        Return an access token valid for at least the refresh buffer.

        Fast path performs no writes. A refresh overwrites the access token,
        the (possibly rotated) refresh token and the expiry, and marks the
        user authorized.

        Raises:
            DeauthorizedError: Strava rejected the refresh token, or there is
                none to refresh with; token set cleared
            TransientAuthError: Refresh failed for any other reason; nothing
                written
            ConfigurationError: Strava credentials are missing
        """
        if not self.needs_refresh(user):
            return user.access_token

        if not user.refresh_token:
            logger.warning(f"User {user.id} has no refresh token, treating as deauthorized")
            await self._deauthorize(user)
            raise DeauthorizedError(f"User {user.id} has no Strava refresh token")

        logger.info(f"Refreshing Strava token for user {user.id}")
        try:
            tokens = await self.oauth.refresh_token(user.refresh_token)
        except InvalidGrantError as e:
            logger.warning(f"Strava refresh token for user {user.id} is no longer valid")
            await self._deauthorize(user)
            raise DeauthorizedError(f"Strava grant revoked for user {user.id}") from e
        except StravaOAuthError as e:
            logger.warning(f"Strava token refresh for user {user.id} failed: {e}")
            raise TransientAuthError(str(e)) from e

        await self.users.update_tokens(
            user,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
            scope=tokens.scope,
        )
        await self.users.commit()
        return tokens.access_token

    async def _deauthorize(self, user: User) -> None:
        await self.users.clear_tokens(user)
        await self.users.commit()
