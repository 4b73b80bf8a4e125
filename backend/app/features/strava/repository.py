"""
Strava repositories.

Data access layer for synchronized activities. Every mutation bumps the
owner's activity_revision inside the same transaction so cached scores
are invalidated together with the data they were computed from.
"""

from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.repository import BaseRepository
from app.features.users.repository import UserRepository
from .mapping import ActivityRecord
from .models import Activity

_INSERT_BY_DIALECT = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class ActivityRepository(BaseRepository[Activity]):
    """Repository for synchronized activities."""

    def __init__(self, db: AsyncSession):
        super().__init__(db, Activity)
        self._users = UserRepository(db)

    async def get_by_key(self, user_id: int, strava_activity_id: int) -> Activity | None:
        """
        Get activity by its natural key.

        Args:
            user_id: Owner's local user ID
            strava_activity_id: Strava activity ID

        Returns:
            Activity if found, None otherwise
        """
        return await self.get_by(user_id=user_id, strava_activity_id=strava_activity_id)

    async def upsert_by_key(
        self,
        user_id: int,
        fields: dict[str, Any],
        bump_revision: bool = True,
    ) -> tuple[Activity, bool]:
        """
        Insert the activity or overwrite every mapped field of the existing row.

        Runs as a single INSERT .. ON CONFLICT (user_id, strava_activity_id)
        DO UPDATE, so a row committed by another session between the lookup
        and the write is overwritten instead of failing the transaction.

        Args:
            user_id: Owner's local user ID
            fields: Column values from activity_fields_from_payload()
            bump_revision: Invalidate the owner's cached score

        Returns:
            Tuple of (activity, created); created reflects the lookup
            made in this session
        """
        existing = await self.get_by_key(user_id, fields["strava_activity_id"])
        now = datetime.utcnow()

        insert = _INSERT_BY_DIALECT[self.db.get_bind().dialect.name]
        stmt = insert(Activity).values(user_id=user_id, created_at=now, updated_at=now, **fields)
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "strava_activity_id"],
            set_={**{key: stmt.excluded[key] for key in fields}, "updated_at": now},
        ).returning(Activity.id)
        activity_id = (await self.db.execute(stmt)).scalar_one()

        activity = await self.db.get(Activity, activity_id, populate_existing=True)
        if bump_revision:
            await self._users.bump_activity_revision(user_id)
        return activity, existing is None

    async def delete_by_key(self, user_id: int, strava_activity_id: int) -> bool:
        """
        Delete the activity if present.

        Returns:
            True if a row was removed, False if there was nothing to delete
        """
        existing = await self.get_by_key(user_id, strava_activity_id)
        if not existing:
            return False
        await self.delete(existing)
        await self._users.bump_activity_revision(user_id)
        return True

    async def find_by_owner(
        self,
        user_id: int,
        activity_types: Optional[Iterable[str]] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> list[ActivityRecord]:
        """
        Activities of one user, optionally filtered by type and local date.

        Date bounds are inclusive and compared against start_date_local
        (falling back to start_date), matching how scoring dates activities.
        """
        local_start = func.coalesce(Activity.start_date_local, Activity.start_date)
        query = select(Activity).where(Activity.user_id == user_id)
        if activity_types is not None:
            query = query.where(Activity.activity_type.in_(list(activity_types)))
        if start is not None:
            query = query.where(local_start >= datetime.combine(start, time.min))
        if end is not None:
            query = query.where(local_start < datetime.combine(end + timedelta(days=1), time.min))
        query = query.order_by(Activity.start_date, Activity.strava_activity_id)

        result = await self.db.execute(query)
        return [ActivityRecord.from_model(row) for row in result.scalars().all()]
