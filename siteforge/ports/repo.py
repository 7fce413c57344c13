from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Protocol
from uuid import UUID

from siteforge.domain.entities import Post, Role, Site, SiteUser, Subscription, Translation, User


@dataclass(frozen=True)
class PostQuery:
    site_id: UUID | None = None
    status: str | None = None
    author_id: UUID | None = None
    language: str | None = None
    category: str | None = None
    tag: str | None = None
    search: str | None = None
    page: int = 1
    limit: int = 10
    sort: str = "-published_at"


class RoleRepoPort(Protocol):
    def replace_all(self, roles: list[Role]) -> None: ...
    def list_all(self) -> list[Role]: ...


class UserRepoPort(Protocol):
    def get_by_id(self, user_id: UUID) -> User | None: ...
    def get_by_email(self, email: str) -> User | None: ...
    def get_by_reset_token(self, token_hash: str) -> User | None: ...
    def insert(self, user: User) -> User:
        """Raises DuplicateKeyError('email') on a taken address."""
        ...
    def update(self, user: User) -> User: ...
    def blacklist_token(
        self, user_id: UUID, token_hash: str, now: datetime, cap: int
    ) -> User | None:
        """Append and trim in one write transaction."""
        ...
    def delete(self, user_id: UUID) -> bool: ...
    def list_all(self) -> list[User]: ...
    def delete_unverified_before(self, cutoff: datetime) -> int: ...


class SiteRepoPort(Protocol):
    def get_by_id(self, site_id: UUID) -> Site | None: ...
    def get_by_subdomain(self, subdomain: str) -> Site | None: ...
    def insert(self, site: Site) -> Site:
        """Raises DuplicateKeyError('subdomain') on a taken subdomain."""
        ...
    def update(self, site: Site) -> Site: ...
    def delete(self, site_id: UUID) -> bool:
        """Removes the site and cascades memberships, subscription and posts."""
        ...
    def list_owned(self, user_id: UUID) -> list[Site]: ...
    def list_member_sites(self, user_id: UUID) -> list[tuple[Site, SiteUser]]: ...


class MembershipRepoPort(Protocol):
    def get(self, site_id: UUID, user_id: UUID) -> SiteUser | None: ...
    def insert(self, membership: SiteUser) -> SiteUser:
        """Raises DuplicateKeyError('site_user') when the pair already exists."""
        ...
    def update(self, membership: SiteUser) -> SiteUser: ...
    def delete(self, site_id: UUID, user_id: UUID) -> bool: ...
    def list_for_site(self, site_id: UUID) -> list[SiteUser]: ...


class SubscriptionRepoPort(Protocol):
    def get_by_site(self, site_id: UUID) -> Subscription | None: ...
    def insert(self, subscription: Subscription) -> Subscription: ...
    def update(self, subscription: Subscription) -> Subscription: ...


class PostRepoPort(Protocol):
    def get_by_id(self, post_id: UUID) -> Post | None: ...
    def get_by_slug(self, site_id: UUID, slug: str) -> Post | None: ...
    def slug_exists(self, site_id: UUID, slug: str) -> bool: ...
    def insert(self, post: Post) -> Post:
        """Raises DuplicateKeyError('slug') when (site_id, slug) is taken."""
        ...
    def apply_update(
        self,
        post_id: UUID,
        changes: dict[str, Any],
        editor_id: UUID,
        now: datetime,
        max_versions: int,
    ) -> Post | None:
        """
        Atomically apply `changes`. A changed `content` pushes the outgoing text onto
        the version ledger; entering 'published' keeps an existing published_at.
        """
        ...
    def restore_version(
        self,
        post_id: UUID,
        version_id: UUID,
        editor_id: UUID,
        now: datetime,
        max_versions: int,
    ) -> Post | None: ...
    def add_translation(self, post_id: UUID, translation: Translation) -> Post | None: ...
    def delete(self, post_id: UUID) -> bool: ...
    def list_posts(self, query: PostQuery) -> tuple[list[Post], int]: ...
    def list_due_scheduled(self, now: datetime) -> list[Post]: ...
    def promote_scheduled(self, post_id: UUID, now: datetime) -> Post | None:
        """Publish only if still scheduled and due; None when another writer got there first."""
        ...
    def record_view(self, post_id: UUID, day: date, history_days: int) -> Post | None: ...
