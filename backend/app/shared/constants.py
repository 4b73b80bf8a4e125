"""
Unified constants for Strava activity types.

Single source of truth for which Strava types the challenge understands and
how they group into distance threshold classes.
"""

from enum import Enum


class StravaActivityType(str, Enum):
    """
    Activity types from Strava API that the challenge cares about.

    Strava sends many more (Swim, Hike, ...); those are stored verbatim
    and simply never count toward points.
    """
    WALK = "Walk"
    RUN = "Run"
    RIDE = "Ride"


# Stored when the payload carries no type at all
UNKNOWN_ACTIVITY_TYPE = "Unknown"


class DistanceClass(str, Enum):
    """Threshold class: Walk and Run share one threshold, Ride has its own."""
    WALK_RUN = "walk_run"
    RIDE = "ride"


STRAVA_TYPE_TO_DISTANCE_CLASS: dict[str, DistanceClass] = {
    StravaActivityType.WALK.value: DistanceClass.WALK_RUN,
    StravaActivityType.RUN.value: DistanceClass.WALK_RUN,
    StravaActivityType.RIDE.value: DistanceClass.RIDE,
}

WALK_RUN_TYPES: frozenset[str] = frozenset({
    StravaActivityType.WALK.value,
    StravaActivityType.RUN.value,
})

RIDE_TYPES: frozenset[str] = frozenset({
    StravaActivityType.RIDE.value,
})

# Types that can ever earn points
CHALLENGE_ACTIVITY_TYPES: frozenset[str] = WALK_RUN_TYPES | RIDE_TYPES


def distance_class_for(activity_type: str) -> DistanceClass | None:
    """Return the threshold class of a Strava type, None for unclassified types."""
    return STRAVA_TYPE_TO_DISTANCE_CLASS.get(activity_type)
