"""
Strava webhook event schema and routing decision.

Event body sent by Strava:

    {
        "object_type": "activity",
        "aspect_type": "update",
        "object_id": 1360128428,
        "owner_id": 134815,
        "updates": {"title": "Messy"},
        "event_time": 1516126040,
        "subscription_id": 120475
    }
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventAction(str, Enum):
    """What the detached unit of work will do with an event."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    DEAUTHORIZE = "deauthorize"
    IGNORE = "ignore"


class WebhookEvent(BaseModel):
    """Validated webhook payload. Only the four routing fields are strict."""

    object_type: str
    aspect_type: str
    object_id: int
    owner_id: int
    updates: dict[str, Any] = Field(default_factory=dict)
    event_time: Optional[Any] = None
    subscription_id: Optional[Any] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("updates", mode="before")
    @classmethod
    def _updates_as_dict(cls, value: Any) -> dict[str, Any]:
        # null or a non-object still acknowledges the event
        return value if isinstance(value, dict) else {}

    @property
    def revokes_authorization(self) -> bool:
        """Strava sends authorized as the string "false"; accept a bool too."""
        value = self.updates.get("authorized")
        if isinstance(value, bool):
            return value is False
        return isinstance(value, str) and value.strip().lower() == "false"


_ACTIVITY_ACTIONS = {
    "create": EventAction.CREATE,
    "update": EventAction.UPDATE,
    "delete": EventAction.DELETE,
}


def route_event(event: WebhookEvent) -> EventAction:
    """Map (object_type, aspect_type) to an action."""
    if event.object_type == "activity":
        return _ACTIVITY_ACTIONS.get(event.aspect_type, EventAction.IGNORE)
    if event.object_type == "athlete" and event.aspect_type == "update":
        if event.revokes_authorization:
            return EventAction.DEAUTHORIZE
    return EventAction.IGNORE
