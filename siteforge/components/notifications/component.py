"""
Notifications component - decides which content events fan out to which rooms.

Delivery is best effort: a transport failure is logged and dropped, never retried
and never propagated to the operation that triggered it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from siteforge.components.notifications.models import (
    DEFAULT_ROOMS,
    NEW_POST_CREATED,
    POST_STATUS_CHANGED,
    DispatchInput,
    DispatchOutput,
    NotificationEvent,
)
from siteforge.components.notifications.ports import NotifierPort
from siteforge.domain.entities import Post

logger = logging.getLogger(__name__)


def _post_payload(post: Post) -> dict[str, str]:
    return {
        "post_id": str(post.id),
        "site_id": str(post.site_id),
        "author_id": str(post.author_id),
        "title": post.title,
        "slug": post.slug,
        "status": post.status,
    }


def plan_post_created(
    post: Post, rooms: Sequence[str] = DEFAULT_ROOMS
) -> NotificationEvent:
    return NotificationEvent(NEW_POST_CREATED, tuple(rooms), _post_payload(post))


def plan_status_changed(
    post: Post,
    previous_status: str,
    rooms: Sequence[str] = DEFAULT_ROOMS,
) -> NotificationEvent | None:
    """None when the status did not actually change."""
    if post.status == previous_status:
        return None
    payload = _post_payload(post)
    payload["previous_status"] = previous_status
    return NotificationEvent(POST_STATUS_CHANGED, tuple(rooms), payload)


def run_dispatch(inp: DispatchInput, *, notifier: NotifierPort | None) -> DispatchOutput:
    if notifier is None:
        return DispatchOutput(delivered=False, error="no notifier configured")
    event = inp.event
    try:
        notifier.notify(list(event.rooms), event.event, dict(event.payload))
    except Exception as e:
        logger.warning("Notification %s to %s failed: %s", event.event, event.rooms, e)
        return DispatchOutput(delivered=False, error=str(e))
    return DispatchOutput(delivered=True)


def dispatch(event: NotificationEvent | None, notifier: NotifierPort | None) -> bool:
    """Convenience wrapper for callers holding an optional planned event."""
    if event is None:
        return False
    return run_dispatch(DispatchInput(event), notifier=notifier).delivered


run = run_dispatch
