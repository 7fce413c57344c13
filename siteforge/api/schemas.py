from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from siteforge.domain.entities import (
    MemberSiteRef,
    Post,
    PostStatus,
    Site,
    SiteUser,
    User,
    reading_time_minutes,
)

BillingInterval = Literal["monthly", "yearly"]


# --- Auth ---
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    role: str | None = None


class VerifyEmailRequest(BaseModel):
    email: str
    otp: str


class EmailRequest(BaseModel):
    email: str


class ForgotPasswordRequest(BaseModel):
    email: str
    reset_url_base: str = ""


class ResetPasswordRequest(BaseModel):
    password: str


class ProfileUpdateRequest(BaseModel):
    name: str | None = None
    bio: str | None = None
    avatar: str | None = None


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class MessageResponse(BaseModel):
    message: str


# --- Users ---
class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: str | None
    role_id: UUID | None
    platform_role: str
    avatar: str | None = None
    bio: str = ""
    is_active: bool
    is_email_verified: bool
    owned_sites: list[UUID] = []
    member_sites: list[MemberSiteRef] = []
    last_login: datetime | None = None
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.legacy_role,
            role_id=user.role_id,
            platform_role=user.platform_role,
            avatar=user.avatar,
            bio=user.bio,
            is_active=user.is_active,
            is_email_verified=user.is_email_verified,
            owned_sites=user.owned_sites,
            member_sites=user.member_sites,
            last_login=user.last_login,
            created_at=user.created_at,
        )


class AuthResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class RoleChangeRequest(BaseModel):
    role: str


# --- Roles ---
class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    display_name: str
    description: str
    level: int
    scope: str
    permissions: list[str]


# --- Sites ---
class SiteCreateRequest(BaseModel):
    name: str
    subdomain: str
    type: str = "blog"
    description: str = ""
    template: str | None = None
    theme: str | None = None
    language: str | None = None
    timezone: str | None = None


class SiteUpdateRequest(BaseModel):
    name: str | None = None
    type: str | None = None
    template: str | None = None
    theme: str | None = None
    custom_domain: str | None = None
    is_active: bool | None = None
    settings: dict[str, Any] | None = None


class SubdomainCheckResponse(BaseModel):
    subdomain: str
    available: bool
    reason: str | None = None


class SiteResponse(BaseModel):
    site: Site
    membership: SiteUser | None = None


class MemberSiteResponse(BaseModel):
    site: Site
    membership: SiteUser


class UserSitesResponse(BaseModel):
    owned: list[Site]
    member: list[MemberSiteResponse]


class MemberAddRequest(BaseModel):
    user_id: UUID
    role: str
    permissions: list[str] | None = None


# --- Subscriptions ---
class UpgradeRequest(BaseModel):
    plan: str
    interval: BillingInterval = "monthly"


class PlanResponse(BaseModel):
    id: str
    name: str
    price: float
    features: dict[str, Any]


class UsageStatResponse(BaseModel):
    used: int
    limit: int
    percentage: float


class UsageResponse(BaseModel):
    plan: str | None
    usage: dict[str, UsageStatResponse]


# --- Posts ---
class PostCreateRequest(BaseModel):
    title: str
    content: str = ""
    excerpt: str = ""
    status: PostStatus = "draft"
    scheduled_date: datetime | None = None
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    language: str | None = None
    meta_description: str = ""
    focus_keyword: str = ""
    featured_image: str | None = None


class PostUpdateRequest(BaseModel):
    title: str | None = None
    slug: str | None = None
    content: str | None = None
    excerpt: str | None = None
    status: PostStatus | None = None
    scheduled_date: datetime | None = None
    categories: list[str] | None = None
    tags: list[str] | None = None
    meta_description: str | None = None
    focus_keyword: str | None = None
    featured_image: str | None = None


class TranslateRequest(BaseModel):
    language: str
    title: str | None = None
    content: str | None = None
    excerpt: str | None = None


class PostResponse(Post):
    words: int = 0
    reading_time: int = 0

    @classmethod
    def from_post(cls, post: Post, words_per_minute: int = 200) -> "PostResponse":
        return cls(
            **post.model_dump(),
            words=post.word_count,
            reading_time=reading_time_minutes(post.content, words_per_minute),
        )


class PostListResponse(BaseModel):
    posts: list[PostResponse]
    total: int
    page: int
    pages: int


class ViewResponse(BaseModel):
    views: int
