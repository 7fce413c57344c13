"""
Posts component unit tests.

Covers the role matrix for post CRUD, lifecycle transitions, the version ledger,
translations and notification fan-out, using in-memory repositories.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import pytest

from siteforge.adapters.notifier import InMemoryNotifier
from siteforge.components.posts import (
    CreatePostInput,
    DeletePostInput,
    GetPostBySlugInput,
    GetPostInput,
    ListAllPostsInput,
    ListPublishedInput,
    ListScheduledInput,
    ListVersionsInput,
    PostQuery,
    PostsComponent,
    RestoreVersionInput,
    TrackViewInput,
    TranslatePostInput,
    UpdatePostInput,
)
from siteforge.components.roles.registry import RoleRegistry
from siteforge.domain.entities import (
    Post,
    Site,
    SiteSettings,
    SiteUser,
    Translation,
    User,
    ViewBucket,
)
from siteforge.domain.errors import DuplicateKeyError
from siteforge.domain.ledger import apply_content_change, restore_version
from siteforge.domain.policy import PolicyEngine
from siteforge.rules.loader import load_rules

# --- Mock Implementations ---


class MockPostRepo:
    """In-memory post repository mirroring the SQLite adapter's write semantics."""

    def __init__(self) -> None:
        self.posts: dict[UUID, Post] = {}

    def get_by_id(self, post_id: UUID) -> Post | None:
        return self.posts.get(post_id)

    def get_by_slug(self, site_id: UUID, slug: str) -> Post | None:
        for p in self.posts.values():
            if p.site_id == site_id and p.slug == slug:
                return p
        return None

    def slug_exists(self, site_id: UUID, slug: str) -> bool:
        return self.get_by_slug(site_id, slug) is not None

    def insert(self, post: Post) -> Post:
        if self.slug_exists(post.site_id, post.slug):
            raise DuplicateKeyError("slug", post.slug)
        self.posts[post.id] = post
        return post

    def apply_update(
        self,
        post_id: UUID,
        changes: dict[str, Any],
        editor_id: UUID,
        now: datetime,
        max_versions: int,
    ) -> Post | None:
        post = self.posts.get(post_id)
        if post is None:
            return None
        pending = dict(changes)
        if "slug" in pending:
            other = self.get_by_slug(post.site_id, pending["slug"])
            if other is not None and other.id != post.id:
                raise DuplicateKeyError("slug", pending["slug"])
        if "content" in pending:
            post = apply_content_change(post, pending.pop("content"), editor_id, now, max_versions)
        if pending.get("status") == "published" and post.published_at is None:
            pending["published_at"] = now
        post = post.model_copy(update={**pending, "updated_at": now})
        self.posts[post.id] = post
        return post

    def restore_version(
        self,
        post_id: UUID,
        version_id: UUID,
        editor_id: UUID,
        now: datetime,
        max_versions: int,
    ) -> Post | None:
        post = self.posts.get(post_id)
        if post is None:
            return None
        version = next((v for v in post.versions if v.id == version_id), None)
        if version is None:
            return None
        post = restore_version(post, version, editor_id, now, max_versions)
        self.posts[post.id] = post
        return post

    def add_translation(self, post_id: UUID, translation: Translation) -> Post | None:
        post = self.posts.get(post_id)
        if post is None:
            return None
        post = post.model_copy(update={"translations": [*post.translations, translation]})
        self.posts[post.id] = post
        return post

    def delete(self, post_id: UUID) -> bool:
        return self.posts.pop(post_id, None) is not None

    def list_posts(self, query: PostQuery) -> tuple[list[Post], int]:
        found = [
            p
            for p in self.posts.values()
            if (query.site_id is None or p.site_id == query.site_id)
            and (query.status is None or p.status == query.status)
            and (query.author_id is None or p.author_id == query.author_id)
        ]
        if query.limit:
            start = (query.page - 1) * query.limit
            return found[start : start + query.limit], len(found)
        return found, len(found)

    def list_due_scheduled(self, now: datetime) -> list[Post]:
        return [
            p
            for p in self.posts.values()
            if p.status == "scheduled" and p.scheduled_date and p.scheduled_date <= now
        ]

    def promote_scheduled(self, post_id: UUID, now: datetime) -> Post | None:
        return None

    def record_view(self, post_id: UUID, day: date, history_days: int) -> Post | None:
        post = self.posts.get(post_id)
        if post is None:
            return None
        post = post.model_copy(
            update={"views": post.views + 1, "view_history": [ViewBucket(day=day, count=1)]}
        )
        self.posts[post.id] = post
        return post


class RacingPostRepo(MockPostRepo):
    """Another writer claims every free slug between the existence check and the insert."""

    def __init__(self, claims: int) -> None:
        super().__init__()
        self.claims = claims

    def slug_exists(self, site_id: UUID, slug: str) -> bool:
        return False

    def insert(self, post: Post) -> Post:
        if self.claims > 0:
            self.claims -= 1
            rival = post.model_copy(update={"id": uuid4()})
            self.posts[rival.id] = rival
        if self.get_by_slug(post.site_id, post.slug) is not None:
            raise DuplicateKeyError("slug", post.slug)
        self.posts[post.id] = post
        return post


class MockSiteRepo:
    def __init__(self) -> None:
        self.sites: dict[UUID, Site] = {}

    def get_by_id(self, site_id: UUID) -> Site | None:
        return self.sites.get(site_id)


class MockMembershipRepo:
    def __init__(self) -> None:
        self.memberships: dict[tuple[UUID, UUID], SiteUser] = {}

    def get(self, site_id: UUID, user_id: UUID) -> SiteUser | None:
        return self.memberships.get((site_id, user_id))


class MockTimePort:
    """Mock time port for deterministic testing."""

    def __init__(self, fixed_time: datetime | None = None) -> None:
        self._time = fixed_time or datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)

    def now_utc(self) -> datetime:
        return self._time

    def advance(self, delta: timedelta) -> None:
        self._time = self._time + delta


class FailingNotifier:
    def notify(self, rooms: list[str], event: str, payload: dict[str, Any]) -> None:
        raise ConnectionError("socket closed")


# --- Fixtures ---


@pytest.fixture(scope="module")
def rules():
    return load_rules(Path("rules.yaml"))


@pytest.fixture
def post_repo() -> MockPostRepo:
    return MockPostRepo()


@pytest.fixture
def site_repo() -> MockSiteRepo:
    return MockSiteRepo()


@pytest.fixture
def membership_repo() -> MockMembershipRepo:
    return MockMembershipRepo()


@pytest.fixture
def time_port() -> MockTimePort:
    return MockTimePort()


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def component(rules, post_repo, site_repo, membership_repo, time_port, notifier) -> PostsComponent:
    policy = PolicyEngine.from_rules(RoleRegistry.from_rules(rules), rules)
    return PostsComponent(
        post_repo=post_repo,
        site_repo=site_repo,
        membership_repo=membership_repo,
        policy=policy,
        rules=rules,
        time=time_port,
        notifier=notifier,
    )


def make_user(role: str, platform_role: str = "user") -> User:
    return User(
        name=f"{role} user",
        email=f"{role}-{uuid4().hex[:6]}@example.com",
        password_hash="hash",
        legacy_role=role,
        platform_role=platform_role,  # type: ignore[arg-type]
    )


@pytest.fixture
def owner() -> User:
    return make_user("admin")


@pytest.fixture
def site(site_repo, owner) -> Site:
    s = Site(name="Blog", subdomain="blog1", owner_user_id=owner.id, settings=SiteSettings(title="Blog"))
    site_repo.sites[s.id] = s
    return s


def member_of(site: Site, user: User, membership_repo: MockMembershipRepo, role: str = "writer") -> User:
    membership_repo.memberships[(site.id, user.id)] = SiteUser(
        site_id=site.id,
        user_id=user.id,
        role=role,  # type: ignore[arg-type]
        permissions=["create_posts", "edit_posts"],
    )
    return user


def create(component: PostsComponent, user: User, site: Site, **kwargs: Any) -> Post:
    title = kwargs.pop("title", "Hello World")
    result = component.run(CreatePostInput(user=user, site_id=site.id, title=title, **kwargs))
    assert result.success, result.errors
    return result.post


# --- Create ---


class TestCreate:
    def test_author_creates_published_post(self, component, site, membership_repo, notifier) -> None:
        author = member_of(site, make_user("author"), membership_repo)

        post = create(component, author, site, content="<p>Hi</p>", status="published")

        assert post.status == "published"
        assert post.slug == "hello-world"
        assert post.published_at is not None
        assert post.author_id == author.id
        events = notifier.for_room("editor")
        assert [e.event for e in events] == ["new_post_created"]

    def test_contributor_is_clamped_to_draft(self, component, site, membership_repo) -> None:
        contributor = member_of(site, make_user("contributor"), membership_repo)

        post = create(component, contributor, site, status="published")

        assert post.status == "draft"
        assert post.published_at is None

    def test_subscriber_cannot_create(self, component, site, membership_repo) -> None:
        subscriber = member_of(site, make_user("subscriber"), membership_repo)

        result = component.run(CreatePostInput(user=subscriber, site_id=site.id, title="Nope"))

        assert not result.success
        assert result.errors[0].kind == "authorization"

    def test_anonymous_cannot_create(self, component, site) -> None:
        result = component.run(CreatePostInput(user=None, site_id=site.id, title="Nope"))
        assert result.errors[0].kind == "not_authenticated"

    def test_requires_site_access(self, component, site) -> None:
        outsider = make_user("author")

        result = component.run(CreatePostInput(user=outsider, site_id=site.id, title="Nope"))

        assert not result.success
        assert result.errors[0].code == "NO_SITE_ACCESS"

    def test_unknown_site(self, component) -> None:
        result = component.run(CreatePostInput(user=make_user("author"), site_id=uuid4(), title="x"))
        assert result.errors[0].code == "SITE_NOT_FOUND"

    def test_super_admin_needs_no_membership(self, component, site) -> None:
        root = make_user("subscriber", platform_role="super_admin")
        post = create(component, root, site, status="published")
        assert post.status == "published"

    def test_duplicate_titles_get_suffixed_slugs(self, component, site, owner) -> None:
        first = create(component, owner, site)
        second = create(component, owner, site)
        third = create(component, owner, site)

        assert [first.slug, second.slug, third.slug] == ["hello-world", "hello-world-1", "hello-world-2"]

    def test_slug_taken_concurrently_gets_next_suffix(
        self, rules, site_repo, membership_repo, time_port, notifier, site, owner
    ) -> None:
        racing = RacingPostRepo(claims=1)
        component = PostsComponent(
            post_repo=racing,
            site_repo=site_repo,
            membership_repo=membership_repo,
            policy=PolicyEngine.from_rules(RoleRegistry.from_rules(rules), rules),
            rules=rules,
            time=time_port,
            notifier=notifier,
        )

        post = create(component, owner, site)

        assert post.slug == "hello-world-1"
        assert sorted(p.slug for p in racing.posts.values()) == ["hello-world", "hello-world-1"]

    def test_slug_attempts_exhausted(
        self, rules, site_repo, membership_repo, time_port, notifier, site, owner
    ) -> None:
        component = PostsComponent(
            post_repo=RacingPostRepo(claims=rules.content.slug_max_attempts),
            site_repo=site_repo,
            membership_repo=membership_repo,
            policy=PolicyEngine.from_rules(RoleRegistry.from_rules(rules), rules),
            rules=rules,
            time=time_port,
            notifier=notifier,
        )

        result = component.run(CreatePostInput(user=owner, site_id=site.id, title="Hello World"))

        assert result.errors[0].code == "SLUG_EXHAUSTED"
        assert result.errors[0].kind == "conflict"

    def test_content_is_sanitized(self, component, site, owner) -> None:
        post = create(component, owner, site, content='<p onclick="x()">ok</p><script>alert(1)</script>')
        assert "script" not in post.content
        assert "onclick" not in post.content
        assert "ok" in post.content

    def test_title_required(self, component, site, owner) -> None:
        result = component.run(CreatePostInput(user=owner, site_id=site.id, title="   "))
        assert result.errors[0].code == "TITLE_REQUIRED"

    def test_schedule_must_be_future(self, component, site, owner, time_port) -> None:
        result = component.run(
            CreatePostInput(
                user=owner,
                site_id=site.id,
                title="Later",
                status="scheduled",
                scheduled_date=time_port.now_utc() - timedelta(minutes=1),
            )
        )
        assert result.errors[0].code == "SCHEDULE_IN_PAST"

    def test_naive_schedule_date_taken_as_utc(self, component, site, owner, time_port) -> None:
        naive = (time_port.now_utc() + timedelta(days=1)).replace(tzinfo=None)

        post = create(component, owner, site, status="scheduled", scheduled_date=naive)

        assert post.status == "scheduled"
        assert post.scheduled_date == naive.replace(tzinfo=UTC)

    def test_naive_past_schedule_date_rejected(self, component, site, owner, time_port) -> None:
        naive = (time_port.now_utc() - timedelta(hours=1)).replace(tzinfo=None)

        result = component.run(
            CreatePostInput(user=owner, site_id=site.id, title="Later", status="scheduled", scheduled_date=naive)
        )

        assert result.errors[0].code == "SCHEDULE_IN_PAST"

    def test_cannot_create_archived(self, component, site, owner) -> None:
        result = component.run(CreatePostInput(user=owner, site_id=site.id, title="x", status="archived"))
        assert result.errors[0].code == "STATUS_INVALID"


# --- Update ---


class TestUpdate:
    def test_content_change_records_version(self, component, site, owner) -> None:
        post = create(component, owner, site, content="<p>v1</p>")

        result = component.run(UpdatePostInput(user=owner, post_id=post.id, content="<p>v2</p>"))

        assert result.success
        assert result.post.content == "<p>v2</p>"
        assert [v.content for v in result.post.versions] == ["<p>v1</p>"]

    def test_unchanged_content_records_nothing(self, component, site, owner) -> None:
        post = create(component, owner, site, content="<p>same</p>")
        result = component.run(UpdatePostInput(user=owner, post_id=post.id, content="<p>same</p>"))
        assert result.post.versions == []

    def test_ledger_keeps_last_ten(self, component, site, owner) -> None:
        post = create(component, owner, site, content="c0")
        for i in range(1, 13):
            component.run(UpdatePostInput(user=owner, post_id=post.id, content=f"c{i}"))

        versions = component.run(ListVersionsInput(user=owner, post_id=post.id)).versions

        assert len(versions) == 10
        assert versions[0].content == "c2"
        assert versions[-1].content == "c11"

    def test_author_cannot_edit_others_post(self, component, site, owner, membership_repo) -> None:
        post = create(component, owner, site)
        other = member_of(site, make_user("author"), membership_repo)

        result = component.run(UpdatePostInput(user=other, post_id=post.id, title="Mine now"))

        assert result.errors[0].code == "NOT_OWNER"

    def test_editor_edits_any_post(self, component, site, membership_repo) -> None:
        author = member_of(site, make_user("author"), membership_repo)
        post = create(component, author, site)
        editor = make_user("editor")

        result = component.run(UpdatePostInput(user=editor, post_id=post.id, title="Edited"))

        assert result.success
        assert result.post.title == "Edited"

    def test_contributor_locked_out_after_publish(self, component, site, membership_repo, owner) -> None:
        contributor = member_of(site, make_user("contributor"), membership_repo)
        post = create(component, contributor, site)
        component.run(UpdatePostInput(user=owner, post_id=post.id, status="published"))

        result = component.run(UpdatePostInput(user=contributor, post_id=post.id, title="Sneaky"))

        assert result.errors[0].code == "DRAFT_ONLY"

    def test_contributor_status_change_clamped(self, component, site, membership_repo) -> None:
        contributor = member_of(site, make_user("contributor"), membership_repo)
        post = create(component, contributor, site)

        result = component.run(UpdatePostInput(user=contributor, post_id=post.id, status="published"))

        assert result.success
        assert result.post.status == "draft"

    def test_author_cannot_archive(self, component, site, membership_repo) -> None:
        author = member_of(site, make_user("author"), membership_repo)
        post = create(component, author, site, status="published")

        result = component.run(UpdatePostInput(user=author, post_id=post.id, status="archived"))

        assert result.errors[0].kind == "authorization"

    def test_published_at_survives_republish(self, component, site, owner, time_port) -> None:
        post = create(component, owner, site, status="published")
        first = post.published_at

        time_port.advance(timedelta(hours=1))
        component.run(UpdatePostInput(user=owner, post_id=post.id, status="draft"))
        time_port.advance(timedelta(hours=1))
        result = component.run(UpdatePostInput(user=owner, post_id=post.id, status="published"))

        assert result.post.published_at == first

    def test_schedule_in_past_rejected(self, component, site, owner, time_port) -> None:
        post = create(component, owner, site)
        result = component.run(
            UpdatePostInput(
                user=owner,
                post_id=post.id,
                status="scheduled",
                scheduled_date=time_port.now_utc(),
            )
        )
        assert result.errors[0].code == "INVALID_TRANSITION"

    def test_naive_schedule_date_on_update(self, component, site, owner, time_port) -> None:
        post = create(component, owner, site)
        naive = (time_port.now_utc() + timedelta(days=2)).replace(tzinfo=None)

        result = component.run(
            UpdatePostInput(user=owner, post_id=post.id, status="scheduled", scheduled_date=naive)
        )

        assert result.success, result.errors
        assert result.post.status == "scheduled"
        assert result.post.scheduled_date == naive.replace(tzinfo=UTC)

    def test_naive_past_schedule_date_on_update(self, component, site, owner, time_port) -> None:
        post = create(component, owner, site)
        naive = time_port.now_utc().replace(tzinfo=None)

        result = component.run(
            UpdatePostInput(user=owner, post_id=post.id, status="scheduled", scheduled_date=naive)
        )

        assert result.errors[0].code == "INVALID_TRANSITION"

    def test_reschedule_keeps_status(self, component, site, owner, time_port) -> None:
        later = time_port.now_utc() + timedelta(days=1)
        post = create(component, owner, site, status="scheduled", scheduled_date=later)

        result = component.run(
            UpdatePostInput(user=owner, post_id=post.id, scheduled_date=later + timedelta(days=1))
        )

        assert result.post.status == "scheduled"
        assert result.post.scheduled_date == later + timedelta(days=1)

    def test_status_change_notifies(self, component, site, owner, notifier) -> None:
        post = create(component, owner, site)
        notifier.drain()

        component.run(UpdatePostInput(user=owner, post_id=post.id, status="published"))

        sent = notifier.drain()
        assert [b.event for b in sent] == ["post_status_changed"]
        assert sent[0].payload["previous_status"] == "draft"

    def test_notifier_failure_does_not_fail_update(
        self, rules, post_repo, site_repo, membership_repo, time_port, site, owner
    ) -> None:
        component = PostsComponent(
            post_repo=post_repo,
            site_repo=site_repo,
            membership_repo=membership_repo,
            policy=PolicyEngine.from_rules(RoleRegistry.from_rules(rules), rules),
            rules=rules,
            time=time_port,
            notifier=FailingNotifier(),
        )
        post = create(component, owner, site)

        result = component.run(UpdatePostInput(user=owner, post_id=post.id, status="published"))

        assert result.success

    def test_slug_collision_is_conflict(self, component, site, owner) -> None:
        create(component, owner, site, title="Taken")
        post = create(component, owner, site, title="Other")

        result = component.run(UpdatePostInput(user=owner, post_id=post.id, slug="taken"))

        assert result.errors[0].kind == "conflict"


# --- Versions ---


class TestVersions:
    def test_restore_pushes_current_content(self, component, site, owner) -> None:
        post = create(component, owner, site, content="original")
        component.run(UpdatePostInput(user=owner, post_id=post.id, content="changed"))
        version_id = component.run(ListVersionsInput(user=owner, post_id=post.id)).versions[0].id

        result = component.run(RestoreVersionInput(user=owner, post_id=post.id, version_id=version_id))

        assert result.post.content == "original"
        assert [v.content for v in result.post.versions] == ["original", "changed"]

    def test_restore_unknown_version(self, component, site, owner) -> None:
        post = create(component, owner, site)
        result = component.run(RestoreVersionInput(user=owner, post_id=post.id, version_id=uuid4()))
        assert result.errors[0].code == "VERSION_NOT_FOUND"

    def test_versions_hidden_from_other_authors(self, component, site, owner) -> None:
        post = create(component, owner, site)
        result = component.run(ListVersionsInput(user=make_user("author"), post_id=post.id))
        assert not result.success


# --- Delete / read ---


class TestDeleteAndRead:
    def test_author_deletes_own(self, component, site, membership_repo) -> None:
        author = member_of(site, make_user("author"), membership_repo)
        post = create(component, author, site)

        assert component.run(DeletePostInput(user=author, post_id=post.id)).success
        assert not component.run(GetPostInput(user=author, post_id=post.id)).success

    def test_contributor_cannot_delete(self, component, site, membership_repo) -> None:
        contributor = member_of(site, make_user("contributor"), membership_repo)
        post = create(component, contributor, site)

        result = component.run(DeletePostInput(user=contributor, post_id=post.id))

        assert result.errors[0].kind == "authorization"

    def test_draft_hidden_from_anonymous(self, component, site, owner) -> None:
        post = create(component, owner, site)
        result = component.run(GetPostInput(user=None, post_id=post.id))
        assert result.errors[0].kind == "not_authenticated"

    def test_published_visible_to_anonymous(self, component, site, owner) -> None:
        post = create(component, owner, site, status="published")
        assert component.run(GetPostInput(user=None, post_id=post.id)).success

    def test_slug_lookup_only_published(self, component, site, owner) -> None:
        create(component, owner, site, title="Draft one")
        result = component.run(GetPostBySlugInput(site_id=site.id, slug="draft-one"))
        assert result.errors[0].code == "POST_NOT_FOUND"

    def test_published_listing(self, component, site, owner) -> None:
        create(component, owner, site, title="A", status="published")
        create(component, owner, site, title="B")

        result = component.run(ListPublishedInput(site_id=site.id))

        assert result.total == 1
        assert result.pages == 1
        assert result.posts[0].title == "A"

    def test_list_all_needs_editor(self, component) -> None:
        result = component.run(ListAllPostsInput(user=make_user("author")))
        assert not result.success

    def test_list_scheduled_for_editor(self, component, site, owner, time_port) -> None:
        create(
            component,
            owner,
            site,
            status="scheduled",
            scheduled_date=time_port.now_utc() + timedelta(hours=2),
        )
        result = component.run(ListScheduledInput(user=make_user("editor")))
        assert result.total == 1

    def test_view_only_counts_published(self, component, site, owner) -> None:
        draft = create(component, owner, site, title="Draft")
        live = create(component, owner, site, title="Live", status="published")

        assert not component.run(TrackViewInput(post_id=draft.id)).success
        assert component.run(TrackViewInput(post_id=live.id)).views == 1


# --- Translations ---


class TestTranslate:
    def test_translation_linked_both_ways(self, component, site, owner, post_repo) -> None:
        source = create(component, owner, site, status="published")

        result = component.run(TranslatePostInput(user=owner, post_id=source.id, language="FR"))

        assert result.success
        translated = result.post
        assert translated.language == "fr"
        assert translated.status == "draft"
        assert translated.slug == "hello-world-fr"
        assert translated.translations[0].post_id == source.id
        assert post_repo.get_by_id(source.id).translations[0].post_id == translated.id

    def test_same_language_rejected(self, component, site, owner) -> None:
        source = create(component, owner, site)
        result = component.run(TranslatePostInput(user=owner, post_id=source.id, language="en"))
        assert result.errors[0].code == "SAME_LANGUAGE"

    def test_duplicate_language_rejected(self, component, site, owner) -> None:
        source = create(component, owner, site)
        component.run(TranslatePostInput(user=owner, post_id=source.id, language="de"))

        result = component.run(TranslatePostInput(user=owner, post_id=source.id, language="de"))

        assert result.errors[0].code == "TRANSLATION_EXISTS"


def test_unknown_input_type_rejected(component) -> None:
    with pytest.raises(TypeError):
        component.run(object())  # type: ignore[arg-type]
