"""
Shared utilities (NOT business logic).

Usage:
    from app.shared import BaseRepository, ConfigurationError
    from app.shared.constants import WALK_RUN_TYPES
"""
from .constants import (
    StravaActivityType,
    DistanceClass,
    UNKNOWN_ACTIVITY_TYPE,
    WALK_RUN_TYPES,
    RIDE_TYPES,
    CHALLENGE_ACTIVITY_TYPES,
    distance_class_for,
)
from .exceptions import ConfigurationError, PersistenceError
from .repository import BaseRepository

__all__ = [
    # constants
    "StravaActivityType",
    "DistanceClass",
    "UNKNOWN_ACTIVITY_TYPE",
    "WALK_RUN_TYPES",
    "RIDE_TYPES",
    "CHALLENGE_ACTIVITY_TYPES",
    "distance_class_for",
    # exceptions
    "ConfigurationError",
    "PersistenceError",
    # repository
    "BaseRepository",
]
