"""
Tests for the challenge timeline and rule tables.
"""

from datetime import date

import pytest

from app.features.challenge import RuleKind, build_timeline, validate_timeline
from app.features.challenge.rules import DEFAULT_RULES, UNSET, rules_for_stage
from app.features.challenge.timeline import ChallengeTimeline, Stage
from app.shared.exceptions import ConfigurationError


def _default_timeline(**overrides):
    values = dict(
        name="Test",
        start_date=date(2024, 8, 15),
        total_days=100,
        stage_count=5,
        stage_days=20,
    )
    values.update(overrides)
    return build_timeline(**values)


# =============================================================================
# Rule tables
# =============================================================================

class TestRulesForStage:
    """Tests for rules_for_stage."""

    def test_stage_one_uses_defaults(self):
        rules, provisional = rules_for_stage(1)

        assert provisional is False
        assert rules["daily"]["min_days"] == 12
        assert rules["extreme"]["min_distance_walk_run_m"] == 7500

    def test_stage_two_overrides_only_patched_fields(self):
        rules, _ = rules_for_stage(2)

        assert rules["daily"]["points"] == 110
        assert rules["daily"]["min_distance_walk_run_m"] == 6000
        assert rules["daily"]["min_days"] == 12
        assert rules["distance"]["min_distance_ride_m"] == 100000

    @pytest.mark.parametrize("number", [3, 4])
    def test_unset_stages_are_provisional(self, number):
        rules, provisional = rules_for_stage(number)

        assert provisional is True
        assert rules["extreme"]["points"] == DEFAULT_RULES["extreme"]["points"]

    def test_unknown_stage_is_provisional(self):
        _, provisional = rules_for_stage(99)
        assert provisional is True

    def test_defaults_not_mutated(self):
        rules, _ = rules_for_stage(5)
        rules["extreme"]["points"] = 1

        assert DEFAULT_RULES["extreme"]["points"] == 500
        assert repr(UNSET) == "UNSET"


# =============================================================================
# Timeline
# =============================================================================

class TestBuildTimeline:
    """Tests for build_timeline."""

    def test_default_stage_dates(self):
        timeline = _default_timeline()

        assert timeline.end_date == date(2024, 11, 22)
        assert [s.start_date for s in timeline.stages] == [
            date(2024, 8, 15),
            date(2024, 9, 4),
            date(2024, 9, 24),
            date(2024, 10, 14),
            date(2024, 11, 3),
        ]
        assert timeline.stages[0].end_date == date(2024, 9, 3)
        assert all(s.duration_days == 20 for s in timeline.stages)

    def test_every_stage_has_all_rule_kinds(self):
        timeline = _default_timeline()

        for stage in timeline.stages:
            assert set(stage.rules) == set(RuleKind)

    def test_stage_five_extreme_override(self):
        stage = _default_timeline().stages[4]

        assert stage.rules[RuleKind.EXTREME].points == 600
        assert stage.rules[RuleKind.EXTREME].min_distance_walk_run_m == 20000

    def test_provisional_flags(self):
        timeline = _default_timeline()

        assert [s.provisional for s in timeline.stages] == [False, False, True, True, False]

    def test_stage_for(self):
        timeline = _default_timeline()

        assert timeline.stage_for(date(2024, 9, 3)).number == 1
        assert timeline.stage_for(date(2024, 9, 4)).number == 2
        assert timeline.stage_for(date(2024, 11, 22)).number == 5
        assert timeline.stage_for(date(2024, 11, 23)) is None
        assert timeline.stage_for(date(2024, 8, 14)) is None

    def test_to_dict(self):
        data = _default_timeline().to_dict()

        assert data["end_date"] == "2024-11-22"
        assert data["activity_types"] == ["Ride", "Run", "Walk"]
        assert data["stages"][0]["rules"]["daily"]["min_days"] == 12

    def test_stages_must_cover_total_days(self):
        with pytest.raises(ConfigurationError):
            _default_timeline(stage_days=19)

    def test_non_positive_stage_count(self):
        with pytest.raises(ConfigurationError):
            _default_timeline(stage_count=0)

    def test_negative_threshold_rejected(self):
        def resolver(number):
            rules, _ = rules_for_stage(number)
            rules["daily"]["min_distance_walk_run_m"] = -1
            return rules, False

        with pytest.raises(ConfigurationError, match="walk/run threshold"):
            _default_timeline(rules_resolver=resolver)

    def test_unknown_rule_kind_rejected(self):
        with pytest.raises(ConfigurationError, match="unknown rule kind"):
            _default_timeline(rules_resolver=lambda n: ({"weekly": {"points": 1}}, False))

    def test_days_rule_requires_min_days(self):
        with pytest.raises(ConfigurationError, match="min_days is required"):
            _default_timeline(rules_resolver=lambda n: ({"daily": {"points": 1}}, False))

    def test_max_below_min_rejected(self):
        table = {"advanced": {"points": 1, "min_days": 5, "max_days": 4}}
        with pytest.raises(ConfigurationError, match="max_days"):
            _default_timeline(rules_resolver=lambda n: (table, False))


class TestValidateTimeline:
    """Tests for validate_timeline on hand-built timelines."""

    def test_gap_between_stages(self):
        timeline = ChallengeTimeline(
            name="Gappy",
            start_date=date(2024, 1, 1),
            total_days=10,
            stages=(
                Stage(1, date(2024, 1, 1), date(2024, 1, 4), rules={}),
                Stage(2, date(2024, 1, 6), date(2024, 1, 10), rules={}),
            ),
        )

        with pytest.raises(ConfigurationError, match="Stage 2 starts"):
            validate_timeline(timeline)

    def test_short_coverage(self):
        timeline = ChallengeTimeline(
            name="Short",
            start_date=date(2024, 1, 1),
            total_days=10,
            stages=(Stage(1, date(2024, 1, 1), date(2024, 1, 9), rules={}),),
        )

        with pytest.raises(ConfigurationError, match="challenge ends"):
            validate_timeline(timeline)

    def test_no_stages(self):
        timeline = ChallengeTimeline(name="Empty", start_date=date(2024, 1, 1), total_days=1, stages=())

        with pytest.raises(ConfigurationError):
            validate_timeline(timeline)
