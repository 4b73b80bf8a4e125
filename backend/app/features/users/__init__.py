"""
User management module.

Usage:
    from app.features.users import User, UserRepository

Models:
- User: Challenge participant with co-located Strava token set

Repositories:
- UserRepository: Data access for users and their tokens
"""

from .models import User
from .schemas import UserResponse
from .repository import UserRepository

__all__ = [
    # Models
    "User",
    # Schemas
    "UserResponse",
    # Repositories
    "UserRepository",
]
