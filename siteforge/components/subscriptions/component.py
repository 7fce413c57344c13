"""
Subscriptions component - plan catalog and per-site billing state.

Only the site owner (or a platform super_admin) may read or change a site's
subscription. Billing itself is out of scope: amounts and dates are recorded,
never charged.
"""

from __future__ import annotations

import logging
from datetime import timedelta

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
from siteforge.components.subscriptions.ports import (
    MembershipRepoPort,
    SiteRepoPort,
    SubscriptionRepoPort,
    TimePort,
)
from siteforge.domain.entities import Billing, PlanFeatures, Site, SitePlan, Subscription, User
from siteforge.rules.models import PlanRules

logger = logging.getLogger(__name__)

BILLING_PERIOD_DAYS = {"monthly": 30, "yearly": 365}


def _err(code: str, message: str, field: str, kind: str = "validation") -> SubscriptionError:
    return SubscriptionError(code=code, message=message, field=field, kind=kind)


def _owned_site(
    site_repo: SiteRepoPort, site_id, user: User
) -> tuple[Site | None, SubscriptionError | None]:
    site = site_repo.get_by_id(site_id)
    if site is None:
        return None, _err("SITE_NOT_FOUND", "Site not found", "site_id", "not_found")
    if str(site.owner_user_id) != str(user.id) and user.platform_role != "super_admin":
        return None, _err(
            "NOT_OWNER", "Only the site owner can manage its subscription", "user", "authorization"
        )
    return site, None


def _features(plans: PlanRules, plan: str) -> PlanFeatures:
    return PlanFeatures(**plans.catalog[plan].features.model_dump())


def run_get_plans(inp: GetPlansInput, *, plans: PlanRules) -> PlansOutput:
    _ = inp
    return PlansOutput(
        plans=[
            PlanView(id=key, name=p.name, price=p.price, features=p.features.model_dump())
            for key, p in plans.catalog.items()
        ]
    )


def run_get_subscription(
    inp: GetSubscriptionInput,
    *,
    site_repo: SiteRepoPort,
    subscription_repo: SubscriptionRepoPort,
) -> SubscriptionOutput:
    site, error = _owned_site(site_repo, inp.site_id, inp.user)
    if error:
        return SubscriptionOutput(subscription=None, errors=[error], success=False)
    assert site is not None

    subscription = subscription_repo.get_by_site(site.id)
    if subscription is None:
        return SubscriptionOutput(
            subscription=None,
            errors=[_err("SUBSCRIPTION_NOT_FOUND", "Subscription not found", "site_id", "not_found")],
            success=False,
            site=site,
        )
    return SubscriptionOutput(subscription=subscription, errors=[], success=True, site=site)


def run_upgrade(
    inp: UpgradePlanInput,
    *,
    site_repo: SiteRepoPort,
    subscription_repo: SubscriptionRepoPort,
    plans: PlanRules,
    time: TimePort,
) -> SubscriptionOutput:
    """Move a site to another plan; yearly billing is charged at a multiple of the monthly price."""
    if inp.plan not in plans.catalog:
        return SubscriptionOutput(
            subscription=None,
            errors=[_err("PLAN_INVALID", f"Unknown plan '{inp.plan}'", "plan")],
            success=False,
        )
    if inp.interval not in BILLING_PERIOD_DAYS:
        return SubscriptionOutput(
            subscription=None,
            errors=[_err("INTERVAL_INVALID", f"Unknown billing interval '{inp.interval}'", "interval")],
            success=False,
        )

    site, error = _owned_site(site_repo, inp.site_id, inp.user)
    if error:
        return SubscriptionOutput(subscription=None, errors=[error], success=False)
    assert site is not None

    now = time.now_utc()
    price = plans.catalog[inp.plan].price
    amount = round(price * plans.yearly_multiplier, 2) if inp.interval == "yearly" else price
    billing = Billing(
        interval=inp.interval,  # type: ignore[arg-type]
        amount=amount,
        currency="USD",
        next_billing_date=now + timedelta(days=BILLING_PERIOD_DAYS[inp.interval]),
        last_billing_date=now,
    )

    existing = subscription_repo.get_by_site(site.id)
    if existing is None:
        subscription = subscription_repo.insert(
            Subscription(
                site_id=site.id,
                user_id=site.owner_user_id,
                plan=inp.plan,  # type: ignore[arg-type]
                status="active",
                billing=billing,
                created_at=now,
                updated_at=now,
            )
        )
    else:
        subscription = subscription_repo.update(
            existing.model_copy(
                update={
                    "plan": inp.plan,
                    "status": "active",
                    "billing": billing,
                    "cancelled_at": None,
                    "updated_at": now,
                }
            )
        )

    site = site_repo.update(
        site.model_copy(
            update={
                "subscription": SitePlan(
                    plan=inp.plan,  # type: ignore[arg-type]
                    status="active",
                    features=_features(plans, inp.plan),
                ),
                "updated_at": now,
            }
        )
    )
    logger.info("Site %s moved to plan %s (%s)", site.id, inp.plan, inp.interval)
    return SubscriptionOutput(subscription=subscription, errors=[], success=True, site=site)


def run_cancel(
    inp: CancelSubscriptionInput,
    *,
    site_repo: SiteRepoPort,
    subscription_repo: SubscriptionRepoPort,
    plans: PlanRules,
    time: TimePort,
) -> SubscriptionOutput:
    """Mark the subscription cancelled and drop the site back to the free plan."""
    site, error = _owned_site(site_repo, inp.site_id, inp.user)
    if error:
        return SubscriptionOutput(subscription=None, errors=[error], success=False)
    assert site is not None

    subscription = subscription_repo.get_by_site(site.id)
    if subscription is None:
        return SubscriptionOutput(
            subscription=None,
            errors=[_err("SUBSCRIPTION_NOT_FOUND", "Subscription not found", "site_id", "not_found")],
            success=False,
        )
    if subscription.status == "cancelled":
        return SubscriptionOutput(
            subscription=None,
            errors=[_err("ALREADY_CANCELLED", "Subscription is already cancelled", "site_id", "conflict")],
            success=False,
        )

    now = time.now_utc()
    subscription = subscription_repo.update(
        subscription.model_copy(
            update={"status": "cancelled", "cancelled_at": now, "updated_at": now}
        )
    )
    site = site_repo.update(
        site.model_copy(
            update={
                "subscription": SitePlan(
                    plan="free", status="active", features=_features(plans, "free")
                ),
                "custom_domain": None,
                "updated_at": now,
            }
        )
    )
    logger.info("Subscription for site %s cancelled", site.id)
    return SubscriptionOutput(subscription=subscription, errors=[], success=True, site=site)


def _stat(used: int, limit: int) -> UsageStat:
    percentage = round(used / limit * 100, 1) if limit > 0 else 0.0
    return UsageStat(used=used, limit=limit, percentage=percentage)


def run_get_usage(
    inp: GetUsageInput,
    *,
    site_repo: SiteRepoPort,
    subscription_repo: SubscriptionRepoPort,
    membership_repo: MembershipRepoPort,
) -> UsageOutput:
    site, error = _owned_site(site_repo, inp.site_id, inp.user)
    if error:
        return UsageOutput(plan=None, errors=[error], success=False)
    assert site is not None

    subscription = subscription_repo.get_by_site(site.id)
    features = site.subscription.features
    ai_used = subscription.usage.ai_credits_used if subscription else 0
    members = [m for m in membership_repo.list_for_site(site.id) if m.status == "active"]

    return UsageOutput(
        plan=site.subscription.plan,
        usage={
            "ai_credits": _stat(ai_used, features.ai_credits),
            "storage": _stat(site.stats.storage_used, features.max_storage),
            "users": _stat(len(members), features.max_users),
        },
    )
