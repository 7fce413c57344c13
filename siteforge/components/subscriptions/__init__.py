"""Subscriptions component - plans, upgrades, cancellation and usage."""

from siteforge.components.subscriptions.component import (
    run_cancel,
    run_get_plans,
    run_get_subscription,
    run_get_usage,
    run_upgrade,
)
from siteforge.components.subscriptions.models import (
    CancelSubscriptionInput,
    GetPlansInput,
    GetSubscriptionInput,
    GetUsageInput,
    PlansOutput,
    PlanView,
    SubscriptionError,
    SubscriptionOutput,
    UpgradePlanInput,
    UsageOutput,
    UsageStat,
)

__all__ = [
    "run_get_plans",
    "run_get_subscription",
    "run_upgrade",
    "run_cancel",
    "run_get_usage",
    "CancelSubscriptionInput",
    "GetPlansInput",
    "GetSubscriptionInput",
    "GetUsageInput",
    "PlansOutput",
    "PlanView",
    "SubscriptionError",
    "SubscriptionOutput",
    "UpgradePlanInput",
    "UsageOutput",
    "UsageStat",
]
