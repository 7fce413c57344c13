"""Posts component models - frozen dataclass inputs and outputs."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from siteforge.domain.entities import Post, PostStatus, PostVersion, User


@dataclass(frozen=True)
class PostError:
    """Error details for post operations."""

    code: str
    message: str
    field: str
    kind: str = "validation"


@dataclass(frozen=True)
class CreatePostInput:
    user: User | None
    site_id: UUID
    title: str
    content: str = ""
    excerpt: str = ""
    status: PostStatus = "draft"
    scheduled_date: datetime | None = None
    categories: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    language: str | None = None
    meta_description: str = ""
    focus_keyword: str = ""
    featured_image: str | None = None


@dataclass(frozen=True)
class UpdatePostInput:
    """Only fields that are not None are changed."""

    user: User | None
    post_id: UUID
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


@dataclass(frozen=True)
class PostOutput:
    post: Post | None
    errors: list[PostError]
    success: bool


@dataclass(frozen=True)
class DeletePostInput:
    user: User | None
    post_id: UUID


@dataclass(frozen=True)
class DeletePostOutput:
    errors: list[PostError]
    success: bool


@dataclass(frozen=True)
class RestoreVersionInput:
    user: User | None
    post_id: UUID
    version_id: UUID


@dataclass(frozen=True)
class TranslatePostInput:
    user: User | None
    post_id: UUID
    language: str
    title: str | None = None
    content: str | None = None
    excerpt: str | None = None


@dataclass(frozen=True)
class GetPostInput:
    user: User | None
    post_id: UUID


@dataclass(frozen=True)
class GetPostBySlugInput:
    site_id: UUID
    slug: str


@dataclass(frozen=True)
class ListPublishedInput:
    site_id: UUID
    language: str | None = None
    category: str | None = None
    tag: str | None = None
    search: str | None = None
    page: int = 1
    limit: int | None = None


@dataclass(frozen=True)
class ListMyPostsInput:
    user: User | None
    site_id: UUID | None = None
    status: PostStatus | None = None
    page: int = 1
    limit: int | None = None


@dataclass(frozen=True)
class ListAllPostsInput:
    user: User | None
    site_id: UUID | None = None
    status: PostStatus | None = None
    page: int = 1
    limit: int | None = None


@dataclass(frozen=True)
class ListScheduledInput:
    user: User | None
    site_id: UUID | None = None


@dataclass(frozen=True)
class PostListOutput:
    posts: list[Post] = field(default_factory=list)
    total: int = 0
    page: int = 1
    pages: int = 0
    errors: list[PostError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class ListVersionsInput:
    user: User | None
    post_id: UUID


@dataclass(frozen=True)
class VersionsOutput:
    versions: list[PostVersion]
    errors: list[PostError]
    success: bool


@dataclass(frozen=True)
class TrackViewInput:
    post_id: UUID


@dataclass(frozen=True)
class TrackViewOutput:
    views: int
    errors: list[PostError]
    success: bool
