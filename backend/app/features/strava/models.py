"""
Strava-related database models.

Models:
- Activity: Local mirror of one Strava activity, keyed by
  (user_id, strava_activity_id)
"""

from datetime import datetime

from sqlalchemy import (
    Column, String, DateTime, Integer, Float, ForeignKey, BigInteger, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.models.base import Base


class Activity(Base):
    """
    Synchronized Strava activity.

    At most one row per (user, Strava activity id). Rows are written only by
    webhook reconciliation and the post-login backfill.
    """

    __tablename__ = "activities"
    __table_args__ = (
        UniqueConstraint("user_id", "strava_activity_id", name="uq_activity_owner_strava_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    strava_activity_id = Column(BigInteger, nullable=False, index=True)

    # Basic info
    name = Column(String(255), nullable=True)
    activity_type = Column(String(50), nullable=False)  # Strava "type"
    sport_type = Column(String(50), nullable=False)
    start_date = Column(DateTime, nullable=False)  # UTC, naive
    start_date_local = Column(DateTime, nullable=True)  # athlete wall clock, naive
    timezone = Column(String(100), nullable=True)

    # Metrics
    distance_m = Column(Float, nullable=False, default=0.0)
    moving_time_s = Column(Integer, nullable=False, default=0)
    elapsed_time_s = Column(Integer, nullable=False, default=0)
    elevation_gain_m = Column(Float, nullable=True)
    avg_speed_mps = Column(Float, nullable=True)
    max_speed_mps = Column(Float, nullable=True)
    avg_heartrate = Column(Float, nullable=True)
    max_heartrate = Column(Float, nullable=True)

    # Social
    kudos_count = Column(Integer, nullable=False, default=0)
    comment_count = Column(Integer, nullable=False, default=0)
    photo_count = Column(Integer, nullable=False, default=0)

    map_polyline = Column(Text, nullable=True)
    visibility = Column(String(30), nullable=False, default="everyone")
    gear_id = Column(String(50), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationship
    user = relationship("User", back_populates="activities")

    @property
    def distance_km(self) -> float:
        return (self.distance_m or 0) / 1000

    def __repr__(self):
        return f"<Activity {self.strava_activity_id} {self.activity_type} {self.distance_km:.1f}km>"
