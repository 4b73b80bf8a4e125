"""
Initial activity sync.

After an athlete connects Strava, pull every activity inside the challenge
window so scoring does not depend on webhook events that happened before
the subscription saw this athlete. Re-running is safe: rows are upserted
by (user, strava activity id).
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.users.repository import UserRepository
from app.shared.exceptions import PersistenceError
from ..client import StravaActivityClient
from ..mapping import ActivityPayloadError, activity_fields_from_payload
from ..oauth import StravaOAuth
from ..repository import ActivityRepository
from ..tokens import AuthError, TokenManager
from .config import SyncConfig

logger = logging.getLogger(__name__)


class ActivitySyncService:
    """
    Bulk backfill of one user's activities.

    Usage:
        service = ActivitySyncService(AsyncSessionLocal, start_date, end_date)
        stored = await service.backfill_user(user_id)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        window_start,
        window_end,
        oauth: Optional[StravaOAuth] = None,
        client: Optional[StravaActivityClient] = None,
        per_page: int = SyncConfig.ACTIVITIES_PER_PAGE,
    ):
        self.session_factory = session_factory
        self.window_start = window_start
        self.window_end = window_end
        self.oauth = oauth or StravaOAuth()
        self.client = client or StravaActivityClient()
        self.per_page = per_page

    def _window_epoch_bounds(self) -> tuple[int, int]:
        # Local dates can be a day off UTC; widen by the largest offset.
        slack = timedelta(hours=SyncConfig.WINDOW_SLACK_HOURS)
        after = datetime.combine(self.window_start, time.min, tzinfo=timezone.utc) - slack
        before = datetime.combine(self.window_end + timedelta(days=1), time.min, tzinfo=timezone.utc) + slack
        return int(after.timestamp()), int(before.timestamp())

    async def backfill_user(self, user_id: int) -> int:
        """
        Fetch and upsert every activity in the challenge window.

        Returns:
            Number of activities stored (0 if the user vanished or the
            token could not be obtained)

        Raises:
            StravaAPIError: If a page request fails
            PersistenceError: If the final commit fails
        """
        async with self.session_factory() as db:
            users = UserRepository(db)
            user = await users.get_by_id(user_id)
            if not user:
                logger.warning(f"Backfill skipped: user {user_id} not found")
                return 0

            try:
                access_token = await TokenManager(db, oauth=self.oauth).ensure_valid_token(user)
            except AuthError as e:
                logger.warning(f"Backfill skipped for user {user_id}: {type(e).__name__}: {e}")
                return 0

            activities = ActivityRepository(db)
            after, before = self._window_epoch_bounds()
            stored = 0
            page = 1

            while page <= SyncConfig.MAX_PAGES:
                items = await self.client.list_activities(
                    access_token, after=after, before=before, page=page, per_page=self.per_page
                )
                for item in items:
                    try:
                        fields = activity_fields_from_payload(item)
                    except ActivityPayloadError as e:
                        logger.warning(f"Backfill for user {user_id} skipped an item: {e}")
                        continue
                    try:
                        await activities.upsert_by_key(user.id, fields, bump_revision=False)
                    except SQLAlchemyError as e:
                        await db.rollback()
                        raise PersistenceError(f"Backfill for user {user_id} failed") from e
                    stored += 1

                if len(items) < self.per_page:
                    break
                page += 1

            await users.bump_activity_revision(user.id)
            await activities.commit()

        logger.info(f"Backfill stored {stored} activities for user {user_id} ({page} page(s))")
        return stored
