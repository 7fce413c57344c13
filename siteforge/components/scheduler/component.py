"""
Scheduler component - time-driven maintenance.

run_sweep promotes every due scheduled post to published. Each promotion is a
conditional write, so a post published manually in the meantime is skipped and
keeps its original published_at. One post failing never stops the rest.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import timedelta
from uuid import UUID

from siteforge.components.notifications import DEFAULT_ROOMS, dispatch, plan_status_changed
from siteforge.components.scheduler.models import (
    PurgeUnverifiedInput,
    PurgeUnverifiedOutput,
    SchedulerError,
    SweepInput,
    SweepOutput,
)
from siteforge.components.scheduler.ports import (
    NotifierPort,
    PostRepoPort,
    TimePort,
    UserRepoPort,
)
from siteforge.domain.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_HOURS = 24


def run_sweep(
    inp: SweepInput,
    *,
    post_repo: PostRepoPort,
    time: TimePort,
    notifier: NotifierPort | None = None,
    rooms: Sequence[str] = DEFAULT_ROOMS,
) -> SweepOutput:
    """Publish all posts whose scheduled_date has passed. Returns the promoted count."""
    _ = inp
    now = time.now_utc()
    published: list[UUID] = []
    errors: list[SchedulerError] = []

    for post in post_repo.list_due_scheduled(now):
        try:
            promoted = post_repo.promote_scheduled(post.id, now)
        except StorageError as e:
            logger.error("Failed to publish scheduled post %s: %s", post.id, e)
            errors.append(
                SchedulerError(
                    code="PROMOTE_FAILED",
                    message=f"Failed to publish post {post.id}: {e}",
                    field="post_id",
                )
            )
            continue

        if promoted is None:
            # Already moved on by another writer
            continue

        published.append(promoted.id)
        dispatch(plan_status_changed(promoted, "scheduled", rooms), notifier)

    if published:
        logger.info("Published %d scheduled posts", len(published))
    return SweepOutput(
        count=len(published), published_ids=published, errors=errors, success=not errors
    )


def run_purge_unverified(
    inp: PurgeUnverifiedInput,
    *,
    user_repo: UserRepoPort,
    time: TimePort,
) -> PurgeUnverifiedOutput:
    hours = inp.retention_hours if inp.retention_hours is not None else DEFAULT_RETENTION_HOURS
    cutoff = time.now_utc() - timedelta(hours=hours)
    deleted = user_repo.delete_unverified_before(cutoff)
    if deleted:
        logger.info("Purged %d unverified accounts older than %dh", deleted, hours)
    return PurgeUnverifiedOutput(deleted=deleted)
