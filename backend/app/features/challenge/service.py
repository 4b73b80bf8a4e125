"""
Challenge service.

Loads a user's activities and scores them. Results are cached per user
and keyed by users.activity_revision, which every activity mutation
bumps, so a cached score is reused only while the data behind it is
unchanged.

Reads are not isolated from concurrent reconciliation: a score may
reflect a webhook that is still being applied.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.features.strava.repository import ActivityRepository
from app.features.users.models import User
from .engine import ChallengeScoringEngine, ScoreResult
from .timeline import ChallengeTimeline, timeline_from_settings

logger = logging.getLogger(__name__)


class ScoreCache:
    """In-process cache: user id -> (activity revision, score)."""

    def __init__(self):
        self._entries: dict[int, tuple[int, ScoreResult]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, user_id: int, revision: int) -> Optional[ScoreResult]:
        entry = self._entries.get(user_id)
        if entry and entry[0] == revision:
            self.hits += 1
            return entry[1]
        self.misses += 1
        return None

    def put(self, user_id: int, revision: int, result: ScoreResult) -> None:
        self._entries[user_id] = (revision, result)

    def clear(self) -> None:
        self._entries.clear()


class ChallengeService:
    """
    Scores users against the deployment's challenge.

    Usage:
        service = ChallengeService(db, engine, cache=score_cache)
        result = await service.score_user(user)
    """

    def __init__(
        self,
        db: AsyncSession,
        engine: ChallengeScoringEngine,
        cache: Optional[ScoreCache] = None,
    ):
        self.db = db
        self.engine = engine
        self.cache = cache
        self.activities = ActivityRepository(db)

    @property
    def timeline(self) -> ChallengeTimeline:
        return self.engine.timeline

    async def score_user(self, user: User) -> ScoreResult:
        revision = user.activity_revision or 0
        if self.cache is not None:
            cached = self.cache.get(user.id, revision)
            if cached is not None:
                return cached

        records = await self.activities.find_by_owner(
            user.id,
            activity_types=self.timeline.activity_types,
            start=self.timeline.start_date,
            end=self.timeline.end_date,
        )
        result = self.engine.score_activities(records)
        logger.debug(
            f"Scored user {user.id}: {len(records)} activities, {result.total_points} points "
            f"(revision {revision})"
        )

        if self.cache is not None:
            self.cache.put(user.id, revision, result)
        return result


# =============================================================================
# Deployment singletons
# =============================================================================

_engine: Optional[ChallengeScoringEngine] = None
score_cache = ScoreCache()


def get_scoring_engine() -> ChallengeScoringEngine:
    """
    Engine for the configured timeline, built once.

    Raises:
        ConfigurationError: If the configured challenge is invalid
    """
    global _engine
    if _engine is None:
        _engine = ChallengeScoringEngine(timeline_from_settings(settings))
        logger.info(
            f"Challenge '{_engine.timeline.name}' {_engine.timeline.start_date} -> "
            f"{_engine.timeline.end_date}, {len(_engine.timeline.stages)} stages"
        )
    return _engine


def get_score_cache() -> Optional[ScoreCache]:
    return score_cache if settings.score_cache_enabled else None
