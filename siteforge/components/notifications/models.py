"""Notifications component models."""

from dataclasses import dataclass, field
from typing import Any

NEW_POST_CREATED = "new_post_created"
POST_STATUS_CHANGED = "post_status_changed"

DEFAULT_ROOMS: tuple[str, ...] = ("editor", "admin", "super_admin")


@dataclass(frozen=True)
class NotificationEvent:
    """A decided, not yet delivered, notification."""

    event: str
    rooms: tuple[str, ...]
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DispatchInput:
    event: NotificationEvent


@dataclass(frozen=True)
class DispatchOutput:
    delivered: bool
    error: str | None = None
