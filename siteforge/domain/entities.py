import re
from datetime import UTC, date, datetime
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

# --- Enums / Literals ---
PlatformRoleName = Literal[
    "visitor", "subscriber", "contributor", "author", "editor", "admin", "super_admin"
]
SiteRoleName = Literal["site_admin", "editor", "writer", "subscriber"]
RoleScope = Literal["platform", "site"]
PlatformFlag = Literal["user", "super_admin"]
PostStatus = Literal["draft", "published", "scheduled", "archived"]
SiteType = Literal["blog", "portfolio", "business", "news", "personal"]
MembershipStatus = Literal["active", "inactive", "pending"]
PlanName = Literal["free", "pro", "business"]
SubscriptionStatus = Literal["active", "inactive", "cancelled", "past_due", "trialing"]
BillingInterval = Literal["monthly", "yearly"]


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(dt: datetime | None) -> datetime | None:
    """Naive datetimes (e.g. from a datetime-local field) are taken to be UTC."""
    if dt is None or dt.tzinfo is not None:
        return dt
    return dt.replace(tzinfo=UTC)


# --- Roles ---

class Role(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID
    name: str
    display_name: str
    description: str = ""
    level: int = Field(ge=0, le=8)
    permissions: frozenset[str] = frozenset()
    scope: RoleScope = "platform"
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)


# --- Users ---

class BlacklistedToken(BaseModel):
    token_hash: str
    blacklisted_at: datetime = Field(default_factory=utc_now)


class MemberSiteRef(BaseModel):
    site_id: UUID
    role: SiteRoleName
    joined_at: datetime


class User(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    email: str
    password_hash: str
    role_id: UUID | None = None
    legacy_role: str | None = "subscriber"
    platform_role: PlatformFlag = "user"
    owned_sites: list[UUID] = Field(default_factory=list)
    member_sites: list[MemberSiteRef] = Field(default_factory=list)
    avatar: str | None = None
    bio: str = ""
    is_active: bool = True
    is_email_verified: bool = False
    email_verification_otp: str | None = None
    email_verification_expire: datetime | None = None
    reset_password_token: str | None = None
    reset_password_expire: datetime | None = None
    token_blacklist: list[BlacklistedToken] = Field(default_factory=list)
    last_login: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def with_blacklisted_token(self, token_hash: str, now: datetime, cap: int) -> "User":
        """Append a revoked token hash, keeping only the newest `cap` entries."""
        kept = [t for t in self.token_blacklist if t.token_hash != token_hash]
        kept.append(BlacklistedToken(token_hash=token_hash, blacklisted_at=now))
        return self.model_copy(update={"token_blacklist": kept[-cap:], "updated_at": now})


# --- Sites ---

class SiteSettings(BaseModel):
    title: str
    tagline: str = ""
    description: str = ""
    logo: str | None = None
    favicon: str | None = None
    language: str = "en"
    timezone: str = "UTC"
    date_format: str = "MM/DD/YYYY"
    posts_per_page: int = 10
    allow_comments: bool = True
    moderate_comments: bool = True
    is_public: bool = True
    seo: dict[str, Any] = Field(default_factory=dict)


class PlanFeatures(BaseModel):
    custom_domain: bool = False
    ai_credits: int = 10
    max_users: int = 1
    max_storage: int = 100
    analytics: bool = False
    backups: bool = False


class SitePlan(BaseModel):
    plan: PlanName = "free"
    status: SubscriptionStatus = "active"
    features: PlanFeatures = Field(default_factory=PlanFeatures)


class SiteStats(BaseModel):
    total_posts: int = 0
    total_pages: int = 0
    total_views: int = 0
    total_comments: int = 0
    storage_used: int = 0
    last_activity: datetime | None = None


class Site(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    subdomain: str
    custom_domain: str | None = None
    owner_user_id: UUID
    type: SiteType = "blog"
    template: str = "minimal"
    theme: str = "default"
    settings: SiteSettings
    subscription: SitePlan = Field(default_factory=SitePlan)
    stats: SiteStats = Field(default_factory=SiteStats)
    is_active: bool = True
    is_initialized: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class SiteUser(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    site_id: UUID
    user_id: UUID
    role: SiteRoleName
    permissions: list[str] = Field(default_factory=list)
    status: MembershipStatus = "active"
    invited_by_user_id: UUID | None = None
    joined_at: datetime = Field(default_factory=utc_now)


# --- Subscriptions ---

class Billing(BaseModel):
    interval: BillingInterval = "monthly"
    amount: float = 0
    currency: str = "USD"
    next_billing_date: datetime | None = None
    last_billing_date: datetime | None = None


class Usage(BaseModel):
    ai_credits_used: int = 0
    storage_used: int = 0
    bandwidth_used: int = 0


class Subscription(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    site_id: UUID
    user_id: UUID
    plan: PlanName = "free"
    status: SubscriptionStatus = "active"
    billing: Billing = Field(default_factory=Billing)
    usage: Usage = Field(default_factory=Usage)
    trial_ends_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# --- Posts ---

class PostVersion(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    content: str
    created_at: datetime
    created_by: UUID


class Translation(BaseModel):
    language: str
    post_id: UUID


class ViewBucket(BaseModel):
    day: date
    count: int = 0


class Post(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    site_id: UUID
    author_id: UUID
    title: str
    slug: str
    content: str = ""
    excerpt: str = ""
    status: PostStatus = "draft"
    scheduled_date: datetime | None = None
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    language: str = "en"
    translations: list[Translation] = Field(default_factory=list)
    versions: list[PostVersion] = Field(default_factory=list)
    published_at: datetime | None = None
    views: int = 0
    view_history: list[ViewBucket] = Field(default_factory=list)
    meta_description: str = ""
    focus_keyword: str = ""
    featured_image: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def word_count(self) -> int:
        return count_words(self.content)


_TAG_STRIP = re.compile(r"<[^>]+>")


def count_words(html_content: str) -> int:
    """Count words in rich text, ignoring markup."""
    text = _TAG_STRIP.sub(" ", html_content)
    return len(text.split())


def reading_time_minutes(html_content: str, words_per_minute: int = 200) -> int:
    """Estimated reading time, rounded up, at least one minute for non-empty text."""
    words = count_words(html_content)
    if words == 0:
        return 0
    return max(1, -(-words // words_per_minute))
