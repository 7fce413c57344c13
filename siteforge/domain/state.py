from datetime import datetime
from typing import Any

from siteforge.domain.entities import Post, PostStatus, as_utc
from siteforge.domain.errors import InvalidTransitionError

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"published", "scheduled", "archived"}),
    "scheduled": frozenset({"published", "draft", "archived"}),
    "published": frozenset({"draft", "scheduled", "archived"}),
    "archived": frozenset({"draft", "scheduled"}),
}


def can_transition(
    current: PostStatus,
    new: PostStatus,
    scheduled_date: datetime | None = None,
    now: datetime | None = None,
) -> bool:
    """
    Determine if a lifecycle move is allowed.
    Entering 'scheduled' requires a scheduled_date strictly in the future.
    """
    if new == "scheduled":
        if not scheduled_date or not now:
            return False
        if as_utc(scheduled_date) <= as_utc(now):
            return False

    if current == new:
        return True

    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(
    post: Post,
    new_status: PostStatus,
    now: datetime,
    scheduled_date: datetime | None = None,
) -> Post:
    """
    Return a NEW Post with the updated status and timestamps.
    Raises InvalidTransitionError if the move is not permitted.

    published_at is stamped the first time a post enters 'published' and never
    overwritten afterwards, including after unpublish/republish cycles.
    """
    target_date = scheduled_date if scheduled_date is not None else post.scheduled_date

    if post.status == new_status and new_status != "scheduled":
        return post.model_copy()

    if not can_transition(post.status, new_status, target_date, now):
        reason = ""
        if new_status == "scheduled":
            reason = "scheduled_date must be in the future"
        raise InvalidTransitionError(post.status, new_status, reason)

    updates: dict[str, Any] = {"status": new_status, "updated_at": now}

    if new_status == "published" and post.published_at is None:
        updates["published_at"] = now

    if new_status == "scheduled":
        updates["scheduled_date"] = as_utc(target_date)

    return post.model_copy(update=updates)
