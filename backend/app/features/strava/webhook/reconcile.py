"""
Activity reconciliation.

Applies one webhook event for (user, activity id) to local storage. Events
may arrive duplicated or out of order, so every operation is idempotent
and always re-reads the activity from Strava instead of trusting the event.

State per (user, activity id): Unknown -> Present -> Updated(n) -> Deleted.
"""

import logging
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.users.models import User
from app.features.users.repository import UserRepository
from app.shared.exceptions import PersistenceError
from ..client import StravaActivityClient, StravaNotFoundError
from ..mapping import activity_fields_from_payload
from ..repository import ActivityRepository
from ..tokens import TokenManager

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"  # delete of an absent row, remote 404
    DEAUTHORIZED = "deauthorized"


class ActivityReconciler:
    """
    Reconciles local activities with Strava.

    Token failures (AuthError) and Strava API failures other than 404
    propagate: the unit is aborted with nothing written. Database failures
    are rolled back and raised as PersistenceError.
    """

    def __init__(
        self,
        db: AsyncSession,
        token_manager: TokenManager,
        client: StravaActivityClient,
    ):
        self.db = db
        self.tokens = token_manager
        self.client = client
        self.activities = ActivityRepository(db)
        self.users = UserRepository(db)

    async def _fetch(self, user: User, activity_id: int) -> dict:
        access_token = await self.tokens.ensure_valid_token(user)
        return await self.client.get_activity(access_token, activity_id)

    async def _store(self, user: User, payload: dict) -> bool:
        """Upsert mapped fields and commit. Returns True when a row was inserted."""
        fields = activity_fields_from_payload(payload)
        try:
            _, created = await self.activities.upsert_by_key(user.id, fields)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(
                f"Storing activity {fields['strava_activity_id']} for user {user.id} failed"
            ) from e
        await self.activities.commit()
        return created

    async def reconcile_create(self, user: User, activity_id: int) -> ReconcileOutcome:
        """Insert a new activity; a replayed create becomes an update."""
        if await self.activities.get_by_key(user.id, activity_id):
            logger.info(f"Activity {activity_id} already stored for user {user.id}, updating instead")
            return await self._refresh_existing(user, activity_id)
        return await self._insert(user, activity_id)

    async def reconcile_update(self, user: User, activity_id: int) -> ReconcileOutcome:
        """Overwrite an activity from Strava; a missing row is a missed create."""
        if not await self.activities.get_by_key(user.id, activity_id):
            logger.info(f"Activity {activity_id} unknown for user {user.id}, creating instead")
            return await self._insert(user, activity_id)
        return await self._refresh_existing(user, activity_id)

    async def _insert(self, user: User, activity_id: int) -> ReconcileOutcome:
        try:
            payload = await self._fetch(user, activity_id)
        except StravaNotFoundError:
            logger.warning(f"Activity {activity_id} of user {user.id} not found on Strava, skipping create")
            return ReconcileOutcome.UNCHANGED
        created = await self._store(user, payload)
        logger.info(f"Activity {activity_id} stored for user {user.id}")
        return ReconcileOutcome.CREATED if created else ReconcileOutcome.UPDATED

    async def _refresh_existing(self, user: User, activity_id: int) -> ReconcileOutcome:
        try:
            payload = await self._fetch(user, activity_id)
        except StravaNotFoundError:
            # May be private or briefly unavailable; keep the local copy.
            logger.warning(f"Activity {activity_id} of user {user.id} not found on Strava, keeping local copy")
            return ReconcileOutcome.UNCHANGED
        created = await self._store(user, payload)
        logger.info(f"Activity {activity_id} updated for user {user.id}")
        return ReconcileOutcome.CREATED if created else ReconcileOutcome.UPDATED

    async def reconcile_delete(self, user: User, activity_id: int) -> ReconcileOutcome:
        """Remove the activity if present; absence is success."""
        try:
            deleted = await self.activities.delete_by_key(user.id, activity_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Deleting activity {activity_id} for user {user.id} failed") from e
        if not deleted:
            logger.info(f"Activity {activity_id} of user {user.id} already absent")
            return ReconcileOutcome.UNCHANGED
        await self.activities.commit()
        logger.info(f"Activity {activity_id} deleted for user {user.id}")
        return ReconcileOutcome.DELETED

    async def deauthorize(self, user: User) -> ReconcileOutcome:
        """Clear the token set and authorization flag. Safe to repeat."""
        try:
            await self.users.clear_tokens(user)
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceError(f"Deauthorizing user {user.id} failed") from e
        await self.users.commit()
        logger.info(f"User {user.id} (athlete {user.strava_athlete_id}) deauthorized")
        return ReconcileOutcome.DEAUTHORIZED
