"""
User-related models.

Models:
- User: Challenge participant, identified by Strava athlete id, with the
  Strava OAuth token set stored on the same row
"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, Boolean, Integer, BigInteger, Text
from sqlalchemy.orm import relationship

from app.models.base import Base


class User(Base):
    """
    Challenge participant.

    Users sign in with Strava only. The token set lives here so that a
    deauthorization clears it in the same row that carries the
    is_strava_authorized flag.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    strava_athlete_id = Column(BigInteger, unique=True, index=True, nullable=False)

    # Profile
    firstname = Column(String(100), nullable=True)
    lastname = Column(String(100), nullable=True)
    profile_image_url = Column(String(500), nullable=True)

    # Strava OAuth token set (should be encrypted in production)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(Integer, nullable=True)  # Unix timestamp
    scope = Column(String(255), nullable=True)
    is_strava_authorized = Column(Boolean, default=False, nullable=False)

    # Bumped on every activity insert/update/delete for this user
    activity_revision = Column(Integer, default=0, nullable=False)

    # Timestamps
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    activities = relationship(
        "Activity",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    @property
    def display_name(self) -> str:
        name = " ".join(part for part in (self.firstname, self.lastname) if part)
        return name or f"Athlete {self.strava_athlete_id}"

    def __repr__(self):
        return f"<User {self.id} athlete={self.strava_athlete_id}>"
