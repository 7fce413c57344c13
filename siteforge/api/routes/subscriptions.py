from uuid import UUID

from fastapi import APIRouter, Depends

from siteforge.adapters.clock import SystemClock
from siteforge.adapters.sqlite.repos import (
    SQLiteMembershipRepo,
    SQLiteSiteRepo,
    SQLiteSubscriptionRepo,
)
from siteforge.api.deps import (
    Settings,
    get_clock,
    get_current_user,
    get_membership_repo,
    get_rules,
    get_settings,
    get_site_repo,
    get_subscription_repo,
)
from siteforge.api.errors import raise_for_errors
from siteforge.api.schemas import PlanResponse, UpgradeRequest, UsageResponse, UsageStatResponse
from siteforge.components.subscriptions import (
    CancelSubscriptionInput,
    GetPlansInput,
    GetSubscriptionInput,
    GetUsageInput,
    UpgradePlanInput,
    run_cancel,
    run_get_plans,
    run_get_subscription,
    run_get_usage,
    run_upgrade,
)
from siteforge.domain.entities import Subscription, User

router = APIRouter()


@router.get("/plans", response_model=list[PlanResponse])
def list_plans(settings: Settings = Depends(get_settings)) -> list[PlanResponse]:
    result = run_get_plans(GetPlansInput(), plans=get_rules(settings).plans)
    return [
        PlanResponse(id=p.id, name=p.name, price=p.price, features=p.features) for p in result.plans
    ]


@router.get("/{site_id}", response_model=Subscription)
def get_subscription(
    site_id: UUID,
    current_user: User = Depends(get_current_user),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    subscription_repo: SQLiteSubscriptionRepo = Depends(get_subscription_repo),
) -> Subscription:
    result = run_get_subscription(
        GetSubscriptionInput(user=current_user, site_id=site_id),
        site_repo=site_repo,
        subscription_repo=subscription_repo,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.subscription is not None
    return result.subscription


@router.post("/{site_id}/upgrade", response_model=Subscription)
def upgrade(
    site_id: UUID,
    req: UpgradeRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    subscription_repo: SQLiteSubscriptionRepo = Depends(get_subscription_repo),
    clock: SystemClock = Depends(get_clock),
) -> Subscription:
    """Switch the site to another plan. No payment is taken."""
    result = run_upgrade(
        UpgradePlanInput(user=current_user, site_id=site_id, plan=req.plan, interval=req.interval),
        site_repo=site_repo,
        subscription_repo=subscription_repo,
        plans=get_rules(settings).plans,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.subscription is not None
    return result.subscription


@router.post("/{site_id}/cancel", response_model=Subscription)
def cancel(
    site_id: UUID,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    subscription_repo: SQLiteSubscriptionRepo = Depends(get_subscription_repo),
    clock: SystemClock = Depends(get_clock),
) -> Subscription:
    result = run_cancel(
        CancelSubscriptionInput(user=current_user, site_id=site_id),
        site_repo=site_repo,
        subscription_repo=subscription_repo,
        plans=get_rules(settings).plans,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.subscription is not None
    return result.subscription


@router.get("/{site_id}/usage", response_model=UsageResponse)
def usage(
    site_id: UUID,
    current_user: User = Depends(get_current_user),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    subscription_repo: SQLiteSubscriptionRepo = Depends(get_subscription_repo),
    membership_repo: SQLiteMembershipRepo = Depends(get_membership_repo),
) -> UsageResponse:
    result = run_get_usage(
        GetUsageInput(user=current_user, site_id=site_id),
        site_repo=site_repo,
        subscription_repo=subscription_repo,
        membership_repo=membership_repo,
    )
    if not result.success:
        raise_for_errors(result.errors)
    return UsageResponse(
        plan=result.plan,
        usage={
            key: UsageStatResponse(used=s.used, limit=s.limit, percentage=s.percentage)
            for key, s in result.usage.items()
        },
    )
