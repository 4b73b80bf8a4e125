"""
Stage challenge scoring.

Usage:
    from app.features.challenge import ChallengeService, get_scoring_engine

Components:
- ChallengeTimeline / Stage / SubChallengeRule: immutable challenge definition
- ChallengeScoringEngine: pure scoring of activity records
- ChallengeService: repository read + revision-keyed score cache
- LeaderboardAssembler: stable ranking by total points
"""

from .timeline import (
    RuleKind,
    SubChallengeRule,
    Stage,
    ChallengeTimeline,
    build_timeline,
    validate_timeline,
    timeline_from_settings,
)
from .engine import ChallengeScoringEngine, ScoreResult, StageScore
from .service import ChallengeService, ScoreCache, get_scoring_engine, get_score_cache, score_cache
from .leaderboard import LeaderboardAssembler, LeaderboardEntry

__all__ = [
    # Timeline
    "RuleKind",
    "SubChallengeRule",
    "Stage",
    "ChallengeTimeline",
    "build_timeline",
    "validate_timeline",
    "timeline_from_settings",
    # Engine
    "ChallengeScoringEngine",
    "ScoreResult",
    "StageScore",
    # Service
    "ChallengeService",
    "ScoreCache",
    "get_scoring_engine",
    "get_score_cache",
    "score_cache",
    # Leaderboard
    "LeaderboardAssembler",
    "LeaderboardEntry",
]
