"""
Strava synchronization module.

Usage:
    from app.features.strava.sync import ActivitySyncService
"""

from .config import SyncConfig
from .service import ActivitySyncService

__all__ = [
    "SyncConfig",
    "ActivitySyncService",
]
