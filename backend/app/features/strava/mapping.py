"""
Strava activity payload mapping.

Turns the JSON of GET /activities/{id} (or an item of /athlete/activities)
into Activity column values, and Activity rows into the plain
ActivityRecord that scoring consumes.
"""

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Optional

from app.shared.constants import UNKNOWN_ACTIVITY_TYPE
from .models import Activity


class ActivityPayloadError(ValueError):
    """Remote activity JSON lacks a field we cannot do without."""
    pass


@dataclass(frozen=True)
class ActivityRecord:
    """Read-only view of an activity for scoring."""

    strava_activity_id: int
    name: Optional[str]
    activity_type: str
    start_date: datetime
    start_date_local: Optional[datetime]
    distance_m: float

    @property
    def local_date(self) -> date:
        """Calendar date in the athlete's timezone, UTC date when unknown."""
        return (self.start_date_local or self.start_date).date()

    @classmethod
    def from_model(cls, activity: Activity) -> "ActivityRecord":
        return cls(
            strava_activity_id=activity.strava_activity_id,
            name=activity.name,
            activity_type=activity.activity_type,
            start_date=activity.start_date,
            start_date_local=activity.start_date_local,
            distance_m=activity.distance_m or 0.0,
        )


def parse_strava_datetime(value: Optional[str], to_utc: bool = True) -> Optional[datetime]:
    """
    Parse a Strava ISO-8601 timestamp into a naive datetime.

    start_date is a real UTC instant (to_utc=True). start_date_local is the
    athlete's wall clock that Strava also suffixes with "Z", so its clock
    value is kept as-is (to_utc=False).
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed
    if to_utc:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.replace(tzinfo=None)


def _non_negative_float(value: Any) -> float:
    try:
        return max(float(value or 0), 0.0)
    except (TypeError, ValueError):
        return 0.0


def _non_negative_int(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def _optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def activity_fields_from_payload(data: dict[str, Any]) -> dict[str, Any]:
    """
    Map a Strava activity payload to Activity column values.

    Missing numbers become 0, negative distances/times are clamped to 0,
    missing type/sport_type become "Unknown" and visibility defaults to
    "everyone".

    Raises:
        ActivityPayloadError: If the payload has no id or no start_date
    """
    if data.get("id") is None:
        raise ActivityPayloadError("activity payload has no id")
    start_date = parse_strava_datetime(data.get("start_date"))
    if start_date is None:
        raise ActivityPayloadError(f"activity {data.get('id')} has no start_date")

    activity_type = data.get("type") or UNKNOWN_ACTIVITY_TYPE
    summary_map = data.get("map") or {}

    return {
        "strava_activity_id": int(data["id"]),
        "name": data.get("name"),
        "activity_type": activity_type,
        "sport_type": data.get("sport_type") or activity_type,
        "start_date": start_date,
        "start_date_local": parse_strava_datetime(data.get("start_date_local"), to_utc=False),
        "timezone": data.get("timezone"),
        "distance_m": _non_negative_float(data.get("distance")),
        "moving_time_s": _non_negative_int(data.get("moving_time")),
        "elapsed_time_s": _non_negative_int(data.get("elapsed_time")),
        "elevation_gain_m": _optional_float(data.get("total_elevation_gain")),
        "avg_speed_mps": _optional_float(data.get("average_speed")),
        "max_speed_mps": _optional_float(data.get("max_speed")),
        "avg_heartrate": _optional_float(data.get("average_heartrate")),
        "max_heartrate": _optional_float(data.get("max_heartrate")),
        "kudos_count": _non_negative_int(data.get("kudos_count")),
        "comment_count": _non_negative_int(data.get("comment_count")),
        "photo_count": _non_negative_int(data.get("total_photo_count")),
        "map_polyline": summary_map.get("summary_polyline"),
        "visibility": data.get("visibility") or "everyone",
        "gear_id": data.get("gear_id"),
    }
