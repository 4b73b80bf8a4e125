"""
Leaderboard assembly.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from app.features.users.models import User
from .engine import ScoreResult
from .service import ChallengeService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int
    user: User
    score: ScoreResult

    @property
    def total_points(self) -> float:
        return self.score.total_points


class LeaderboardAssembler:
    """
    Ranks users by total points, highest first.

    The sort is stable: users with equal totals keep the order in which
    they were passed in. Zero totals are left out unless include_zero.
    """

    def __init__(self, service: ChallengeService, include_zero: bool = False):
        self.service = service
        self.include_zero = include_zero

    async def rank(self, users: Iterable[User]) -> list[LeaderboardEntry]:
        scored = []
        for user in users:
            result = await self.service.score_user(user)
            if result.total_points <= 0 and not self.include_zero:
                continue
            scored.append((user, result))

        scored.sort(key=lambda item: item[1].total_points, reverse=True)
        logger.debug(f"Leaderboard ranked {len(scored)} user(s)")
        return [
            LeaderboardEntry(rank=position, user=user, score=result)
            for position, (user, result) in enumerate(scored, start=1)
        ]
