"""
Challenge Routes

Read-only scoring endpoints:
- /challenge - timeline and rules
- /leaderboard - ranked participants
- /users/{athlete_id}/score - one participant's total and breakdown
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.db.session import get_async_db
from app.features.challenge import (
    ChallengeService,
    ChallengeScoringEngine,
    LeaderboardAssembler,
    ScoreCache,
    get_score_cache,
    get_scoring_engine,
)
from app.features.users import UserRepository
from app.shared.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class StagePoints(BaseModel):
    daily: float
    advanced: float
    extreme: float
    distance: float
    total_stage_points: float


class UserScoreResponse(BaseModel):
    user_id: int
    athlete_id: int
    name: str
    total_points: float
    breakdown: dict[int, StagePoints]


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: int
    athlete_id: int
    name: str
    profile_image_url: Optional[str] = None
    total_points: float


# =============================================================================
# Dependencies
# =============================================================================

def get_engine() -> ChallengeScoringEngine:
    try:
        return get_scoring_engine()
    except ConfigurationError as e:
        logger.error(f"Challenge configuration invalid: {e}")
        raise HTTPException(status_code=503, detail="Challenge is not configured correctly")


def get_challenge_service(
    db: AsyncSession = Depends(get_async_db),
    engine: ChallengeScoringEngine = Depends(get_engine),
    cache: Optional[ScoreCache] = Depends(get_score_cache),
) -> ChallengeService:
    return ChallengeService(db, engine, cache=cache)


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/challenge")
async def get_challenge(engine: ChallengeScoringEngine = Depends(get_engine)):
    """Challenge timeline with every stage's rules."""
    return engine.timeline.to_dict()


@router.get("/leaderboard", response_model=list[LeaderboardEntryResponse])
async def get_leaderboard(
    db: AsyncSession = Depends(get_async_db),
    service: ChallengeService = Depends(get_challenge_service),
):
    """All participants with points, highest total first."""
    users = await UserRepository(db).list_all()
    assembler = LeaderboardAssembler(
        service,
        include_zero=settings.leaderboard_include_zero_scores,
    )
    entries = await assembler.rank(users)
    return [
        LeaderboardEntryResponse(
            rank=entry.rank,
            user_id=entry.user.id,
            athlete_id=entry.user.strava_athlete_id,
            name=entry.user.display_name,
            profile_image_url=entry.user.profile_image_url,
            total_points=entry.total_points,
        )
        for entry in entries
    ]


@router.get("/users/{athlete_id}/score", response_model=UserScoreResponse)
async def get_user_score(
    athlete_id: int,
    db: AsyncSession = Depends(get_async_db),
    service: ChallengeService = Depends(get_challenge_service),
):
    """Total points and per-stage breakdown for one athlete."""
    user = await UserRepository(db).get_by_athlete_id(athlete_id)
    if not user:
        raise HTTPException(status_code=404, detail="Athlete not found")

    result = await service.score_user(user)
    return UserScoreResponse(
        user_id=user.id,
        athlete_id=user.strava_athlete_id,
        name=user.display_name,
        total_points=result.total_points,
        breakdown=result.breakdown,
    )
