"""
Challenge scoring engine.

Pure computation: activities + timeline -> points. No I/O, no hidden
state, so the same input always produces the same ScoreResult.

Every activity is dated by its local start date (falling back to the
UTC date), both for the challenge window and for stage assignment.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Optional

from app.features.strava.mapping import ActivityRecord
from app.shared.constants import DistanceClass, distance_class_for
from .timeline import ChallengeTimeline, RuleKind, Stage, SubChallengeRule, validate_timeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageScore:
    stage_number: int
    daily: float = 0.0
    advanced: float = 0.0
    extreme: float = 0.0
    distance: float = 0.0

    @property
    def total(self) -> float:
        return self.daily + self.advanced + self.extreme + self.distance

    def to_dict(self) -> dict:
        return {
            "daily": self.daily,
            "advanced": self.advanced,
            "extreme": self.extreme,
            "distance": self.distance,
            "total_stage_points": self.total,
        }


@dataclass(frozen=True)
class ScoreResult:
    total_points: float
    stages: tuple[StageScore, ...]

    @property
    def breakdown(self) -> dict[int, dict]:
        return {stage.stage_number: stage.to_dict() for stage in self.stages}

    def to_dict(self) -> dict:
        return {"total_points": self.total_points, "breakdown": self.breakdown}


def _class_threshold(rule: SubChallengeRule, distance_class: Optional[DistanceClass]) -> Optional[float]:
    if distance_class is DistanceClass.WALK_RUN:
        return rule.min_distance_walk_run_m
    if distance_class is DistanceClass.RIDE:
        return rule.min_distance_ride_m
    return None


class ChallengeScoringEngine:
    """
    Scores one user's activities against the challenge timeline.

    Usage:
        engine = ChallengeScoringEngine(timeline)
        result = engine.score_activities(records)
        result.total_points, result.breakdown
    """

    def __init__(self, timeline: ChallengeTimeline):
        self.timeline = validate_timeline(timeline)

    # -------------------------------------------------------------------------
    # Filtering
    # -------------------------------------------------------------------------

    def relevant_activities(self, activities: Iterable[ActivityRecord]) -> list[ActivityRecord]:
        """Challenge-type activities inside the window, oldest first."""
        selected = [
            a for a in activities
            if a.activity_type in self.timeline.activity_types
            and self.timeline.contains(a.local_date)
        ]
        return sorted(selected, key=lambda a: (a.start_date, a.strava_activity_id))

    @staticmethod
    def activities_in_stage(stage: Stage, activities: Iterable[ActivityRecord]) -> list[ActivityRecord]:
        return [a for a in activities if stage.contains(a.local_date)]

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    @staticmethod
    def qualifying_days(rule: SubChallengeRule, activities: Sequence[ActivityRecord]) -> set[date]:
        """
        Distinct local dates with at least one qualifying activity.

        A type without a class threshold (or whose class threshold is not
        configured) qualifies on type alone.
        """
        days: set[date] = set()
        for activity in activities:
            if activity.activity_type not in rule.activity_types:
                continue
            day = activity.local_date
            if day in days:
                continue
            threshold = _class_threshold(rule, distance_class_for(activity.activity_type))
            if threshold is None or activity.distance_m >= threshold:
                days.add(day)
        return days

    def score_days_rule(self, rule: SubChallengeRule, activities: Sequence[ActivityRecord]) -> float:
        if rule.min_days is None:
            logger.warning(f"{rule.kind.value} rule without min_days awards nothing")
            return 0.0
        count = len(self.qualifying_days(rule, activities))
        logger.debug(f"{rule.kind.value}: {count} qualifying day(s), need {rule.min_days}")
        return rule.points if count >= rule.min_days else 0.0

    @staticmethod
    def score_extreme_rule(rule: SubChallengeRule, activities: Sequence[ActivityRecord]) -> float:
        """Any single allowed activity meeting its class threshold."""
        for activity in activities:
            if activity.activity_type not in rule.activity_types:
                continue
            threshold = _class_threshold(rule, distance_class_for(activity.activity_type))
            if threshold is not None and activity.distance_m >= threshold:
                return rule.points
        return 0.0

    @staticmethod
    def score_distance_rule(rule: SubChallengeRule, activities: Sequence[ActivityRecord]) -> float:
        """Per-class distance sums; every configured class must reach its threshold."""
        thresholds = {
            DistanceClass.WALK_RUN: rule.min_distance_walk_run_m,
            DistanceClass.RIDE: rule.min_distance_ride_m,
        }
        required = {cls: value for cls, value in thresholds.items() if value is not None}
        if not required:
            return 0.0

        totals = {DistanceClass.WALK_RUN: 0.0, DistanceClass.RIDE: 0.0}
        for activity in activities:
            distance_class = distance_class_for(activity.activity_type)
            if distance_class is not None:
                totals[distance_class] += activity.distance_m

        met = all(totals[cls] >= value for cls, value in required.items())
        return rule.points if met else 0.0

    def score_rule(self, rule: SubChallengeRule, activities: Sequence[ActivityRecord]) -> float:
        if rule.kind.counts_days:
            return self.score_days_rule(rule, activities)
        if rule.kind is RuleKind.EXTREME:
            return self.score_extreme_rule(rule, activities)
        return self.score_distance_rule(rule, activities)

    # -------------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------------

    def score_stage(self, stage: Stage, activities: Sequence[ActivityRecord]) -> StageScore:
        in_stage = self.activities_in_stage(stage, activities)
        points = {
            kind.value: self.score_rule(rule, in_stage)
            for kind, rule in stage.rules.items()
        }
        return StageScore(stage_number=stage.number, **points)

    def score_activities(self, activities: Iterable[ActivityRecord]) -> ScoreResult:
        relevant = self.relevant_activities(activities)
        stages = tuple(self.score_stage(stage, relevant) for stage in self.timeline.stages)
        total = round(sum(stage.total for stage in stages), 2)
        return ScoreResult(total_points=total, stages=stages)
