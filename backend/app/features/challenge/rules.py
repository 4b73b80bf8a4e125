"""
Challenge rule tables.

DEFAULT_RULES applies to every stage; STAGE_OVERRIDES patches individual
fields per stage number. A stage mapped to UNSET has not been tuned yet:
the defaults apply and the stage is reported as provisional.

Distances are meters, points are per rule per stage.
"""

from typing import Any

from app.shared.constants import CHALLENGE_ACTIVITY_TYPES


class _Unset:
    """Marker for a stage whose overrides have not been decided."""

    def __repr__(self):
        return "UNSET"


UNSET = _Unset()


DEFAULT_RULES: dict[str, dict[str, Any]] = {
    "daily": {
        "activity_types": CHALLENGE_ACTIVITY_TYPES,
        "min_days": 12,
        "max_days": 16,
        "min_distance_walk_run_m": 5000,
        "min_distance_ride_m": 20000,
        "points": 100,
        "description": "Min 12 / Max 16 days activity (>5km Walk/Run OR >20km Ride)",
    },
    "advanced": {
        "activity_types": CHALLENGE_ACTIVITY_TYPES,
        "min_days": 6,
        "max_days": 8,
        "min_distance_walk_run_m": 6000,
        "min_distance_ride_m": 24000,
        "points": 200,
        "description": "Min 6 / Max 8 days advanced activity (>6km Walk/Run OR >24km Ride)",
    },
    "extreme": {
        "activity_types": CHALLENGE_ACTIVITY_TYPES,
        "min_days": 1,
        "max_days": 1,
        "min_distance_walk_run_m": 7500,
        "min_distance_ride_m": 30000,
        "points": 500,
        "description": "1 day extreme activity (>7.5km Walk/Run OR >30km Ride)",
    },
    "distance": {
        "activity_types": CHALLENGE_ACTIVITY_TYPES,
        "min_distance_walk_run_m": 20000,
        "min_distance_ride_m": 80000,
        "points": 1000,
        "description": "Minimum total distance challenge",
    },
}


STAGE_OVERRIDES: dict[int, Any] = {
    1: {},
    2: {
        "daily": {"points": 110, "min_distance_walk_run_m": 6000, "min_distance_ride_m": 24000},
        "advanced": {"points": 220, "min_distance_walk_run_m": 6500, "min_distance_ride_m": 26000},
        "extreme": {"points": 420, "min_distance_walk_run_m": 8000, "min_distance_ride_m": 32000},
        "distance": {"points": 1200, "min_distance_walk_run_m": 25000, "min_distance_ride_m": 100000},
    },
    3: UNSET,
    4: UNSET,
    5: {
        "extreme": {"points": 600, "min_distance_walk_run_m": 20000, "min_distance_ride_m": 80000},
    },
}


def rules_for_stage(stage_number: int) -> tuple[dict[str, dict[str, Any]], bool]:
    """
    Resolve the rule table of one stage.

    Returns:
        Tuple of (rules by kind, provisional)
    """
    overrides = STAGE_OVERRIDES.get(stage_number, UNSET)
    provisional = overrides is UNSET
    rules = {kind: dict(values) for kind, values in DEFAULT_RULES.items()}
    if not provisional:
        for kind, patch in overrides.items():
            rules.setdefault(kind, {}).update(patch)
    return rules, provisional
