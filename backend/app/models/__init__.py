"""
Database Models

Feature models live in their feature packages (app/features/*/models.py).
Call register_models() before metadata operations (init_db, alembic) so every
table is attached to Base.metadata.

Note: feature models are imported lazily to avoid circular imports.
"""

from app.models.base import Base


def register_models() -> None:
    """Import every feature model module."""
    from app.features.users import models as _users  # noqa: F401
    from app.features.strava import models as _strava  # noqa: F401


__all__ = [
    "Base",
    "register_models",
]
