"""
User-related Pydantic schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserResponse(BaseModel):
    """Public view of a participant (never exposes tokens)."""

    id: int
    strava_athlete_id: int
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    profile_image_url: Optional[str] = None
    is_strava_authorized: bool
    scope: Optional[str] = None
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
