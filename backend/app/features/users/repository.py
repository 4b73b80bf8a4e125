"""
User repositories.

Data access layer for the User model, including the token set columns.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.repository import BaseRepository
from .models import User


class UserRepository(BaseRepository[User]):
    """Repository for User operations."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, User)

    async def get_by_athlete_id(self, athlete_id: int) -> User | None:
        """
        Get user by Strava athlete ID.

        Args:
            athlete_id: Strava athlete ID (webhook owner_id)

        Returns:
            User if found, None otherwise
        """
        return await self.get_by(strava_athlete_id=athlete_id)

    async def list_all(self) -> list[User]:
        """All users in id order (stable input for leaderboard ranking)."""
        return await self.get_all()

    async def upsert_from_athlete(
        self,
        athlete: dict[str, Any],
        access_token: str,
        refresh_token: str,
        expires_at: int,
        scope: Optional[str],
    ) -> tuple[User, bool]:
        """
        Create or refresh a user from an OAuth token exchange.

        Args:
            athlete: Athlete summary returned with the token response
            access_token: New access token
            refresh_token: New refresh token
            expires_at: Token expiry (unix seconds)
            scope: Scope the athlete granted on the consent screen

        Returns:
            Tuple of (user, created)
        """
        athlete_id = int(athlete["id"])
        fields = {
            "firstname": athlete.get("firstname"),
            "lastname": athlete.get("lastname"),
            "profile_image_url": athlete.get("profile_medium") or athlete.get("profile"),
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_expires_at": int(expires_at),
            "scope": scope,
            "is_strava_authorized": True,
            "last_login_at": datetime.utcnow(),
        }

        user = await self.get_by_athlete_id(athlete_id)
        if user:
            return await self.update(user, **fields), False
        user = await self.create(strava_athlete_id=athlete_id, **fields)
        return user, True

    async def update_tokens(
        self,
        user: User,
        access_token: str,
        refresh_token: str,
        expires_at: int,
        scope: Optional[str] = None,
    ) -> User:
        """Store a refreshed token set. Scope is kept unless the refresh returned one."""
        fields = {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_expires_at": int(expires_at),
            "is_strava_authorized": True,
        }
        if scope:
            fields["scope"] = scope
        return await self.update(user, **fields)

    async def clear_tokens(self, user: User) -> User:
        """
        Forget the token set and mark the user as not authorized.

        Idempotent: clearing an already cleared user writes the same values.
        """
        return await self.update(
            user,
            access_token=None,
            refresh_token=None,
            token_expires_at=None,
            scope=None,
            is_strava_authorized=False,
        )

    async def bump_activity_revision(self, user_id: int) -> None:
        """Invalidate cached scores for this user."""
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(activity_revision=User.activity_revision + 1)
        )
