import logging
from typing import Literal

from fastapi import APIRouter, Depends

from siteforge.adapters.clock import SystemClock
from siteforge.adapters.sqlite.repos import SQLitePostRepo, SQLiteUserRepo
from siteforge.api.deps import (
    Settings,
    get_clock,
    get_current_user,
    get_notifier,
    get_policy,
    get_post_repo,
    get_rules,
    get_settings,
    get_user_repo,
)
from siteforge.api.errors import raise_for_errors
from siteforge.components.notifications.ports import NotifierPort
from siteforge.components.scheduler import (
    PurgeUnverifiedInput,
    SchedulerError,
    SweepInput,
    run_purge_unverified,
    run_sweep,
)
from siteforge.domain.entities import User
from siteforge.domain.policy import RoleIn

logger = logging.getLogger(__name__)

router = APIRouter()


def require_admin(
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
) -> User:
    decision = get_policy(settings).check(current_user, RoleIn(frozenset({"admin"})))
    if not decision:
        raise_for_errors(
            [SchedulerError("ACCESS_DENIED", "Access denied", "user", "authorization")]
        )
    return current_user


@router.post("/scheduler/run")
def run_scheduler_task(
    task: Literal["sweep", "purge_unverified"] = "sweep",
    admin: User = Depends(require_admin),
    settings: Settings = Depends(get_settings),
    post_repo: SQLitePostRepo = Depends(get_post_repo),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    clock: SystemClock = Depends(get_clock),
    notifier: NotifierPort = Depends(get_notifier),
) -> dict[str, object]:
    """Run a maintenance task immediately instead of waiting for its interval."""
    logger.info("Admin %s triggered %s", admin.id, task)
    rules = get_rules(settings)
    if task == "sweep":
        sweep = run_sweep(
            SweepInput(),
            post_repo=post_repo,
            time=clock,
            notifier=notifier,
            rooms=tuple(rules.notifications.rooms),
        )
        return {
            "task": task,
            "count": sweep.count,
            "published_ids": [str(i) for i in sweep.published_ids],
            "errors": [e.message for e in sweep.errors],
        }

    purge = run_purge_unverified(
        PurgeUnverifiedInput(retention_hours=rules.auth.unverified_retention_hours),
        user_repo=user_repo,
        time=clock,
    )
    return {"task": task, "count": purge.deleted, "errors": []}
