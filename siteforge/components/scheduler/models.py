"""Scheduler component models - frozen dataclass inputs and outputs."""

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True)
class SchedulerError:
    """A single post the sweep could not promote."""

    code: str
    message: str
    field: str
    kind: str = "storage"


@dataclass(frozen=True)
class SweepInput:
    """Input for the scheduled-publish sweep - empty input."""

    pass


@dataclass(frozen=True)
class SweepOutput:
    count: int
    published_ids: list[UUID] = field(default_factory=list)
    errors: list[SchedulerError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class PurgeUnverifiedInput:
    """Remove accounts that never verified their email within the retention window."""

    retention_hours: int | None = None


@dataclass(frozen=True)
class PurgeUnverifiedOutput:
    deleted: int
    errors: list[SchedulerError] = field(default_factory=list)
    success: bool = True
