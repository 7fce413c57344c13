"""Notifications component - role-room fan-out for content events."""

from siteforge.components.notifications.component import (
    dispatch,
    plan_post_created,
    plan_status_changed,
    run,
    run_dispatch,
)
from siteforge.components.notifications.models import (
    DEFAULT_ROOMS,
    NEW_POST_CREATED,
    POST_STATUS_CHANGED,
    DispatchInput,
    DispatchOutput,
    NotificationEvent,
)
from siteforge.components.notifications.ports import NotifierPort

__all__ = [
    "run",
    "run_dispatch",
    "dispatch",
    "plan_post_created",
    "plan_status_changed",
    "DEFAULT_ROOMS",
    "NEW_POST_CREATED",
    "POST_STATUS_CHANGED",
    "DispatchInput",
    "DispatchOutput",
    "NotificationEvent",
    "NotifierPort",
]
