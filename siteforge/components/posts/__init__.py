"""Posts component - post lifecycle, version ledger and translations."""

from siteforge.components.posts.component import PostsComponent, sanitizer_config_from_rules
from siteforge.components.posts.models import (
    CreatePostInput,
    DeletePostInput,
    DeletePostOutput,
    GetPostBySlugInput,
    GetPostInput,
    ListAllPostsInput,
    ListMyPostsInput,
    ListPublishedInput,
    ListScheduledInput,
    ListVersionsInput,
    PostError,
    PostListOutput,
    PostOutput,
    RestoreVersionInput,
    TrackViewInput,
    TrackViewOutput,
    TranslatePostInput,
    UpdatePostInput,
    VersionsOutput,
)
from siteforge.components.posts.ports import PostQuery, PostRepoPort

__all__ = [
    # Component
    "PostsComponent",
    "sanitizer_config_from_rules",
    # Models
    "CreatePostInput",
    "UpdatePostInput",
    "DeletePostInput",
    "DeletePostOutput",
    "RestoreVersionInput",
    "TranslatePostInput",
    "GetPostInput",
    "GetPostBySlugInput",
    "ListPublishedInput",
    "ListMyPostsInput",
    "ListAllPostsInput",
    "ListScheduledInput",
    "ListVersionsInput",
    "PostError",
    "PostListOutput",
    "PostOutput",
    "TrackViewInput",
    "TrackViewOutput",
    "VersionsOutput",
    # Ports
    "PostQuery",
    "PostRepoPort",
]
