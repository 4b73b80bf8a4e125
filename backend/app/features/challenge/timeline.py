"""
Challenge timeline.

One global timeline per deployment: a start date, a total duration and
contiguous stages, each with its own sub-challenge rules. All objects are
immutable; an invalid table raises ConfigurationError when the timeline
is built, never while scoring.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional

from app.shared.constants import CHALLENGE_ACTIVITY_TYPES
from app.shared.exceptions import ConfigurationError
from .rules import rules_for_stage


class RuleKind(str, Enum):
    DAILY = "daily"
    ADVANCED = "advanced"
    EXTREME = "extreme"
    DISTANCE = "distance"

    @property
    def counts_days(self) -> bool:
        return self in (RuleKind.DAILY, RuleKind.ADVANCED)


@dataclass(frozen=True)
class SubChallengeRule:
    """
    One rule of a stage.

    max_days is informational (shown to athletes); scoring only checks
    min_days.
    """

    kind: RuleKind
    activity_types: frozenset[str]
    points: float
    min_days: Optional[int] = None
    max_days: Optional[int] = None
    min_distance_walk_run_m: Optional[float] = None
    min_distance_ride_m: Optional[float] = None
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "activity_types": sorted(self.activity_types),
            "min_days": self.min_days,
            "max_days": self.max_days,
            "min_distance_walk_run_m": self.min_distance_walk_run_m,
            "min_distance_ride_m": self.min_distance_ride_m,
            "points": self.points,
            "description": self.description,
        }


@dataclass(frozen=True)
class Stage:
    number: int
    start_date: date
    end_date: date  # inclusive
    rules: Mapping[RuleKind, SubChallengeRule]
    provisional: bool = False

    @property
    def name(self) -> str:
        return f"Stage {self.number}"

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "name": self.name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "duration_days": self.duration_days,
            "provisional": self.provisional,
            "rules": {kind.value: rule.to_dict() for kind, rule in self.rules.items()},
        }


@dataclass(frozen=True)
class ChallengeTimeline:
    name: str
    start_date: date
    total_days: int
    stages: tuple[Stage, ...]
    activity_types: frozenset[str] = field(default=CHALLENGE_ACTIVITY_TYPES)

    @property
    def end_date(self) -> date:
        """Last day of the challenge (inclusive)."""
        return self.start_date + timedelta(days=self.total_days - 1)

    def contains(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date

    def stage_for(self, day: date) -> Optional[Stage]:
        for stage in self.stages:
            if stage.contains(day):
                return stage
        return None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "total_days": self.total_days,
            "activity_types": sorted(self.activity_types),
            "stages": [stage.to_dict() for stage in self.stages],
        }


# =============================================================================
# Construction & validation
# =============================================================================

def _non_negative(value: Any, label: str) -> None:
    if value is not None and value < 0:
        raise ConfigurationError(f"{label} must not be negative (got {value})")


def build_rule(kind: RuleKind, values: Mapping[str, Any], stage_number: int) -> SubChallengeRule:
    """Build and validate one rule from a table row."""
    label = f"stage {stage_number} {kind.value}"
    try:
        rule = SubChallengeRule(
            kind=kind,
            activity_types=frozenset(values.get("activity_types") or ()),
            points=float(values["points"]),
            min_days=values.get("min_days"),
            max_days=values.get("max_days"),
            min_distance_walk_run_m=values.get("min_distance_walk_run_m"),
            min_distance_ride_m=values.get("min_distance_ride_m"),
            description=values.get("description", ""),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"{label}: invalid rule definition ({e})") from e

    _non_negative(rule.points, f"{label} points")
    _non_negative(rule.min_days, f"{label} min_days")
    _non_negative(rule.max_days, f"{label} max_days")
    _non_negative(rule.min_distance_walk_run_m, f"{label} walk/run threshold")
    _non_negative(rule.min_distance_ride_m, f"{label} ride threshold")
    if kind.counts_days and rule.min_days is None:
        raise ConfigurationError(f"{label}: min_days is required")
    if rule.min_days is not None and rule.max_days is not None and rule.max_days < rule.min_days:
        raise ConfigurationError(f"{label}: max_days is below min_days")
    return rule


def validate_timeline(timeline: ChallengeTimeline) -> ChallengeTimeline:
    """
    Check that stages are contiguous, ordered and cover exactly total_days.

    Raises:
        ConfigurationError: On any inconsistency
    """
    if timeline.total_days <= 0:
        raise ConfigurationError("Challenge duration must be positive")
    if not timeline.stages:
        raise ConfigurationError("Challenge has no stages")

    expected_start = timeline.start_date
    for index, stage in enumerate(timeline.stages, start=1):
        if stage.number != index:
            raise ConfigurationError(f"Stage numbers must run 1..n (got {stage.number} at {index})")
        if stage.start_date != expected_start:
            raise ConfigurationError(
                f"Stage {stage.number} starts {stage.start_date}, expected {expected_start}"
            )
        if stage.end_date < stage.start_date:
            raise ConfigurationError(f"Stage {stage.number} ends before it starts")
        expected_start = stage.end_date + timedelta(days=1)

    if timeline.stages[-1].end_date != timeline.end_date:
        raise ConfigurationError(
            f"Stages end {timeline.stages[-1].end_date}, challenge ends {timeline.end_date}"
        )
    return timeline


def build_timeline(
    name: str,
    start_date: date,
    total_days: int,
    stage_count: int,
    stage_days: int,
    rules_resolver: Callable[[int], tuple[Mapping[str, Mapping[str, Any]], bool]] = rules_for_stage,
    activity_types: Iterable[str] = CHALLENGE_ACTIVITY_TYPES,
) -> ChallengeTimeline:
    """
    Build equal-length stages from a rule table.

    Raises:
        ConfigurationError: If the stages do not cover the challenge exactly
            or a rule is invalid
    """
    if stage_count <= 0 or stage_days <= 0:
        raise ConfigurationError("Stage count and stage length must be positive")
    if stage_count * stage_days != total_days:
        raise ConfigurationError(
            f"{stage_count} stages of {stage_days} days do not cover {total_days} days"
        )

    stages = []
    stage_start = start_date
    for number in range(1, stage_count + 1):
        table, provisional = rules_resolver(number)
        rules = {}
        for kind_name, values in table.items():
            try:
                kind = RuleKind(kind_name)
            except ValueError as e:
                raise ConfigurationError(f"Stage {number}: unknown rule kind {kind_name!r}") from e
            rules[kind] = build_rule(kind, values, number)

        stage_end = stage_start + timedelta(days=stage_days - 1)
        stages.append(Stage(
            number=number,
            start_date=stage_start,
            end_date=stage_end,
            rules=rules,
            provisional=provisional,
        ))
        stage_start = stage_end + timedelta(days=1)

    return validate_timeline(ChallengeTimeline(
        name=name,
        start_date=start_date,
        total_days=total_days,
        stages=tuple(stages),
        activity_types=frozenset(activity_types),
    ))


def timeline_from_settings(settings) -> ChallengeTimeline:
    """Build the deployment's timeline from Settings."""
    return build_timeline(
        name=settings.challenge_name,
        start_date=settings.challenge_start_date,
        total_days=settings.challenge_total_days,
        stage_count=settings.challenge_stage_count,
        stage_days=settings.challenge_stage_days,
    )
