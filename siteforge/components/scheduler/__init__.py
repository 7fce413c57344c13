"""Scheduler component - scheduled-publish sweep and account purge."""

from siteforge.components.scheduler.component import run_purge_unverified, run_sweep
from siteforge.components.scheduler.models import (
    PurgeUnverifiedInput,
    PurgeUnverifiedOutput,
    SchedulerError,
    SweepInput,
    SweepOutput,
)

__all__ = [
    "run_sweep",
    "run_purge_unverified",
    "SweepInput",
    "SweepOutput",
    "PurgeUnverifiedInput",
    "PurgeUnverifiedOutput",
    "SchedulerError",
]
