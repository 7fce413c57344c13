"""Subscriptions component models - frozen dataclass inputs and outputs."""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from siteforge.domain.entities import Site, Subscription, User


@dataclass(frozen=True)
class SubscriptionError:
    code: str
    message: str
    field: str
    kind: str = "validation"


@dataclass(frozen=True)
class PlanView:
    id: str
    name: str
    price: float
    features: dict[str, Any]


@dataclass(frozen=True)
class GetPlansInput:
    pass


@dataclass(frozen=True)
class PlansOutput:
    plans: list[PlanView]


@dataclass(frozen=True)
class GetSubscriptionInput:
    user: User
    site_id: UUID


@dataclass(frozen=True)
class UpgradePlanInput:
    user: User
    site_id: UUID
    plan: str
    interval: str = "monthly"


@dataclass(frozen=True)
class CancelSubscriptionInput:
    user: User
    site_id: UUID


@dataclass(frozen=True)
class SubscriptionOutput:
    subscription: Subscription | None
    errors: list[SubscriptionError]
    success: bool
    site: Site | None = None


@dataclass(frozen=True)
class GetUsageInput:
    user: User
    site_id: UUID


@dataclass(frozen=True)
class UsageStat:
    used: int
    limit: int
    percentage: float


@dataclass(frozen=True)
class UsageOutput:
    plan: str | None
    usage: dict[str, UsageStat] = field(default_factory=dict)
    errors: list[SubscriptionError] = field(default_factory=list)
    success: bool = True
