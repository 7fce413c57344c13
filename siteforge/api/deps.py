import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import OAuth2PasswordBearer

from siteforge.adapters.auth.crypto import DEV_SECRET_KEY, JWTAuthAdapter
from siteforge.adapters.clock import SystemClock
from siteforge.adapters.dev_email import DevEmailAdapter
from siteforge.adapters.jobs import BackgroundScheduler, PeriodicTask
from siteforge.adapters.notifier import LoggingNotifier
from siteforge.adapters.sqlite.repos import (
    SQLiteMembershipRepo,
    SQLitePostRepo,
    SQLiteRoleRepo,
    SQLiteSiteRepo,
    SQLiteSubscriptionRepo,
    SQLiteUserRepo,
)
from siteforge.api.errors import raise_for_errors
from siteforge.components.accounts import is_token_revoked
from siteforge.components.notifications.ports import NotifierPort
from siteforge.components.posts import PostsComponent
from siteforge.components.roles.registry import RoleRegistry
from siteforge.components.scheduler import (
    PurgeUnverifiedInput,
    SweepInput,
    run_purge_unverified,
    run_sweep,
)
from siteforge.components.sites import SiteLookupInput, resolve_site
from siteforge.domain.entities import Site, User
from siteforge.domain.policy import PolicyEngine
from siteforge.rules.loader import load_rules
from siteforge.rules.models import Rules

TRUTHY = {"1", "true", "yes", "on"}


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.base_dir = Path(os.getcwd())
        self.data_dir = Path(os.environ.get("SITEFORGE_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "siteforge.db")
        self.rules_path = Path(os.environ.get("SITEFORGE_RULES_PATH", self.base_dir / "rules.yaml"))
        self.migrations_dir = Path(
            os.environ.get("SITEFORGE_MIGRATIONS_DIR", self.base_dir / "migrations")
        )
        self.scheduler_enabled = (
            os.environ.get("SITEFORGE_SCHEDULER_ENABLED", "false").lower() in TRUTHY
        )
        self.log_level = os.environ.get("SITEFORGE_LOG_LEVEL", "INFO").upper()
        self.secret_key = os.environ.get("SITEFORGE_SECRET_KEY", DEV_SECRET_KEY)


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules(settings: Settings = Depends(get_settings)) -> Rules:
    return load_rules(settings.rules_path)


@lru_cache
def get_registry(settings: Settings = Depends(get_settings)) -> RoleRegistry:
    return RoleRegistry.from_rules(get_rules(settings))


@lru_cache
def get_policy(settings: Settings = Depends(get_settings)) -> PolicyEngine:
    return PolicyEngine.from_rules(get_registry(settings), get_rules(settings))


# --- Repos ---
def get_role_repo(settings: Settings = Depends(get_settings)) -> SQLiteRoleRepo:
    return SQLiteRoleRepo(settings.db_path)


def get_user_repo(settings: Settings = Depends(get_settings)) -> SQLiteUserRepo:
    return SQLiteUserRepo(settings.db_path)


def get_site_repo(settings: Settings = Depends(get_settings)) -> SQLiteSiteRepo:
    return SQLiteSiteRepo(settings.db_path)


def get_membership_repo(settings: Settings = Depends(get_settings)) -> SQLiteMembershipRepo:
    return SQLiteMembershipRepo(settings.db_path)


def get_subscription_repo(settings: Settings = Depends(get_settings)) -> SQLiteSubscriptionRepo:
    return SQLiteSubscriptionRepo(settings.db_path)


def get_post_repo(settings: Settings = Depends(get_settings)) -> SQLitePostRepo:
    return SQLitePostRepo(settings.db_path)


# --- Adapters ---
def get_auth_adapter(settings: Settings = Depends(get_settings)) -> JWTAuthAdapter:
    return JWTAuthAdapter(settings.secret_key)


_clock_instance: SystemClock | None = None


def get_clock() -> SystemClock:
    """Get clock singleton."""
    global _clock_instance
    if _clock_instance is None:
        _clock_instance = SystemClock()
    return _clock_instance


_email_instance: DevEmailAdapter | None = None


def get_email_adapter() -> DevEmailAdapter:
    """Get email adapter singleton. Mail is logged, not delivered."""
    global _email_instance
    if _email_instance is None:
        _email_instance = DevEmailAdapter()
    return _email_instance


_notifier_instance: NotifierPort | None = None


def get_notifier() -> NotifierPort:
    """Get notifier singleton."""
    global _notifier_instance
    if _notifier_instance is None:
        _notifier_instance = LoggingNotifier()
    return _notifier_instance


# --- Components ---
def get_posts_component(
    settings: Settings = Depends(get_settings),
    post_repo: SQLitePostRepo = Depends(get_post_repo),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    membership_repo: SQLiteMembershipRepo = Depends(get_membership_repo),
    clock: SystemClock = Depends(get_clock),
    notifier: NotifierPort = Depends(get_notifier),
) -> PostsComponent:
    return PostsComponent(
        post_repo=post_repo,
        site_repo=site_repo,
        membership_repo=membership_repo,
        policy=get_policy(settings),
        rules=get_rules(settings),
        time=clock,
        notifier=notifier,
    )


def build_background_scheduler(settings: Settings, notifier: NotifierPort) -> BackgroundScheduler:
    """Scheduled-publish sweep and unverified-account purge as periodic tasks."""
    rules = get_rules(settings)
    clock = get_clock()
    post_repo = SQLitePostRepo(settings.db_path)
    user_repo = SQLiteUserRepo(settings.db_path)
    rooms = tuple(rules.notifications.rooms)
    return BackgroundScheduler(
        [
            PeriodicTask(
                name="sweep",
                interval_seconds=rules.scheduling.sweep_interval_seconds,
                run=lambda: run_sweep(
                    SweepInput(), post_repo=post_repo, time=clock, notifier=notifier, rooms=rooms
                ),
            ),
            PeriodicTask(
                name="purge_unverified",
                interval_seconds=rules.scheduling.purge_interval_seconds,
                run=lambda: run_purge_unverified(
                    PurgeUnverifiedInput(retention_hours=rules.auth.unverified_retention_hours),
                    user_repo=user_repo,
                    time=clock,
                ),
            ),
        ]
    )


# --- Auth ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_token(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> str | None:
    # Cookie (HttpOnly) wins over the Authorization header
    cookie_token = request.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        return cookie_token.split(" ", 1)[1]
    return token


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_from_token(token: str, user_repo: SQLiteUserRepo, auth: JWTAuthAdapter) -> User:
    user_id = auth.validate_token(token)
    if user_id is None or not isinstance(user_id, str):
        raise _unauthorized("Invalid token")

    try:
        user = user_repo.get_by_id(UUID(user_id))
    except ValueError:
        raise _unauthorized("Invalid token payload") from None
    if not user:
        raise _unauthorized("User not found")

    if is_token_revoked(user, token, auth=auth):
        raise _unauthorized("Token has been revoked")

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return user


def get_current_user(
    token: str | None = Depends(get_token),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
) -> User:
    if not token:
        raise _unauthorized("Not authenticated")
    return _user_from_token(token, user_repo, auth)


def get_optional_user(
    token: str | None = Depends(get_token),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
) -> User | None:
    if not token:
        return None
    return _user_from_token(token, user_repo, auth)


# --- Site context ---
def _lookup(request: Request, x_site_id: str | None, site_id: str | None) -> SiteLookupInput:
    return SiteLookupInput(site_id=x_site_id or site_id, host=request.headers.get("host"))


def get_request_site(
    request: Request,
    x_site_id: Annotated[str | None, Header()] = None,
    site_id: Annotated[str | None, Query()] = None,
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
) -> Site:
    """Site the request targets: X-Site-Id header, site_id query parameter, or host subdomain."""
    result = resolve_site(
        _lookup(request, x_site_id, site_id),
        site_repo=site_repo,
        rules=get_rules(settings).sites,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.site is not None
    return result.site


def get_optional_site(
    request: Request,
    x_site_id: Annotated[str | None, Header()] = None,
    site_id: Annotated[str | None, Query()] = None,
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
) -> Site | None:
    """Like get_request_site, but a request with no site context at all yields None."""
    result = resolve_site(
        _lookup(request, x_site_id, site_id),
        site_repo=site_repo,
        rules=get_rules(settings).sites,
    )
    if result.success:
        return result.site
    if result.errors and result.errors[0].code == "SITE_CONTEXT_REQUIRED":
        return None
    raise_for_errors(result.errors)
