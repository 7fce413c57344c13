"""
Posts component - post lifecycle, version ledger and translations.

Authorization follows the role matrix:
- contributors create drafts only and may edit their own posts while still draft
- authors create, publish, edit and delete their own posts
- editors and above may edit, publish, archive and delete any post
- a platform super_admin may do anything

Creating a post additionally requires access to the target site.
"""

from __future__ import annotations

import logging
import math
from typing import Any
from uuid import UUID

from siteforge.components.notifications import (
    dispatch,
    plan_post_created,
    plan_status_changed,
)
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
from siteforge.components.posts.ports import (
    MembershipRepoPort,
    NotifierPort,
    PostQuery,
    PostRepoPort,
    SiteRepoPort,
    TimePort,
)
from siteforge.components.sites.component import site_access_for
from siteforge.domain.entities import Post, Translation, User, as_utc
from siteforge.domain.errors import DuplicateKeyError, InvalidTransitionError
from siteforge.domain.ledger import find_version
from siteforge.domain.policy import Decision, Deny, PolicyEngine, deny_kind
from siteforge.domain.sanitize import SanitizerConfig, sanitize_html
from siteforge.domain.slugs import slug_candidates, slugify, translation_slug
from siteforge.domain.state import transition
from siteforge.rules.models import Rules

logger = logging.getLogger(__name__)

CREATABLE_STATUSES = frozenset({"draft", "published", "scheduled"})

PostsInput = (
    CreatePostInput
    | UpdatePostInput
    | DeletePostInput
    | RestoreVersionInput
    | TranslatePostInput
    | GetPostInput
    | GetPostBySlugInput
    | ListPublishedInput
    | ListMyPostsInput
    | ListAllPostsInput
    | ListScheduledInput
    | ListVersionsInput
    | TrackViewInput
)


def _err(code: str, message: str, field: str, kind: str = "validation") -> PostError:
    return PostError(code=code, message=message, field=field, kind=kind)


def _denied(decision: Decision) -> PostError:
    assert isinstance(decision, Deny)
    return _err(decision.reason.upper(), decision.message, "user", deny_kind(decision))


def _post_not_found() -> PostError:
    return _err("POST_NOT_FOUND", "Post not found", "post_id", "not_found")


def sanitizer_config_from_rules(rules: Rules) -> SanitizerConfig:
    s = rules.content.sanitizer
    return SanitizerConfig(
        allow_tags=frozenset(s.allow_tags),
        allow_attrs={tag: frozenset(attrs) for tag, attrs in s.allow_attrs.items()},
        drop_content_tags=frozenset(s.drop_content_tags),
        forbid_protocols=frozenset(s.forbid_protocols),
    )


class PostsComponent:
    """Component for post CRUD, lifecycle transitions and the version ledger."""

    def __init__(
        self,
        post_repo: PostRepoPort,
        site_repo: SiteRepoPort,
        membership_repo: MembershipRepoPort,
        policy: PolicyEngine,
        rules: Rules,
        time: TimePort,
        notifier: NotifierPort | None = None,
    ) -> None:
        self._posts = post_repo
        self._sites = site_repo
        self._memberships = membership_repo
        self._policy = policy
        self._rules = rules.content
        self._rooms = tuple(rules.notifications.rooms)
        self._sanitizer = sanitizer_config_from_rules(rules)
        self._time = time
        self._notifier = notifier

    def run(self, inp: PostsInput) -> Any:
        """Main dispatcher - routes to appropriate handler based on input type."""
        handlers = {
            CreatePostInput: self.run_create,
            UpdatePostInput: self.run_update,
            DeletePostInput: self.run_delete,
            RestoreVersionInput: self.run_restore_version,
            TranslatePostInput: self.run_translate,
            GetPostInput: self.run_get,
            GetPostBySlugInput: self.run_get_by_slug,
            ListPublishedInput: self.run_list_published,
            ListMyPostsInput: self.run_list_mine,
            ListAllPostsInput: self.run_list_all,
            ListScheduledInput: self.run_list_scheduled,
            ListVersionsInput: self.run_list_versions,
            TrackViewInput: self.run_track_view,
        }
        handler = handlers.get(type(inp))
        if handler is None:
            raise TypeError(f"Unknown input type: {type(inp)}")
        return handler(inp)  # type: ignore[operator]

    # --- Validation ---

    def _validate_fields(
        self,
        title: str | None = None,
        excerpt: str | None = None,
        meta_description: str | None = None,
        focus_keyword: str | None = None,
    ) -> list[PostError]:
        r = self._rules
        errors: list[PostError] = []
        if title is not None:
            if not title.strip():
                errors.append(_err("TITLE_REQUIRED", "Title is required", "title"))
            elif len(title) > r.title_max_length:
                errors.append(
                    _err("TITLE_TOO_LONG", f"Title cannot exceed {r.title_max_length} characters", "title")
                )
        if excerpt is not None and len(excerpt) > r.excerpt_max_length:
            errors.append(
                _err("EXCERPT_TOO_LONG", f"Excerpt cannot exceed {r.excerpt_max_length} characters", "excerpt")
            )
        if meta_description is not None and len(meta_description) > r.meta_description_max_length:
            errors.append(
                _err(
                    "META_DESCRIPTION_TOO_LONG",
                    f"Meta description cannot exceed {r.meta_description_max_length} characters",
                    "meta_description",
                )
            )
        if focus_keyword is not None and len(focus_keyword) > r.focus_keyword_max_length:
            errors.append(
                _err(
                    "FOCUS_KEYWORD_TOO_LONG",
                    f"Focus keyword cannot exceed {r.focus_keyword_max_length} characters",
                    "focus_keyword",
                )
            )
        return errors

    def _insert_with_unique_slug(self, post: Post, base: str) -> Post | None:
        """
        Insert under the first free slug derived from `base`.

        The (site_id, slug) unique index is the arbiter: a concurrent writer that
        wins a candidate makes our insert fail and we move to the next suffix.
        """
        for candidate in slug_candidates(base, self._rules.slug_max_attempts):
            if self._posts.slug_exists(post.site_id, candidate):
                continue
            try:
                return self._posts.insert(post.model_copy(update={"slug": candidate}))
            except DuplicateKeyError:
                logger.info("Slug %s taken concurrently in site %s", candidate, post.site_id)
                continue
        return None

    def _check_site_access(self, site_id: UUID, user: User | None) -> PostError | None:
        context, decision = site_access_for(
            site_id,
            user,
            site_repo=self._sites,
            membership_repo=self._memberships,
            policy=self._policy,
            permission="create_posts",
        )
        if context is None:
            return _err("SITE_NOT_FOUND", "Site not found", "site_id", "not_found")
        if not decision:
            return _denied(decision)
        return None

    # --- Mutations ---

    def run_create(self, inp: CreatePostInput) -> PostOutput:
        """Create a post; callers without publish rights always get a draft."""
        user = inp.user
        decision = self._policy.can_create_post(user)
        if not decision:
            return PostOutput(post=None, errors=[_denied(decision)], success=False)
        assert user is not None

        site_error = self._check_site_access(inp.site_id, user)
        if site_error:
            return PostOutput(post=None, errors=[site_error], success=False)

        errors = self._validate_fields(
            inp.title, inp.excerpt, inp.meta_description, inp.focus_keyword
        )
        if inp.status not in CREATABLE_STATUSES:
            errors.append(_err("STATUS_INVALID", f"Cannot create a post as '{inp.status}'", "status"))
        if errors:
            return PostOutput(post=None, errors=errors, success=False)

        now = self._time.now_utc()
        status = inp.status
        scheduled_date = as_utc(inp.scheduled_date)
        if status != "draft" and self._policy.must_stay_draft(user):
            logger.info("User %s may only create drafts; '%s' clamped to draft", user.id, status)
            status = "draft"

        if status == "scheduled" and (scheduled_date is None or scheduled_date <= now):
            return PostOutput(
                post=None,
                errors=[_err("SCHEDULE_IN_PAST", "scheduled_date must be in the future", "scheduled_date")],
                success=False,
            )

        post = Post(
            site_id=inp.site_id,
            author_id=user.id,
            title=inp.title.strip(),
            slug=slugify(inp.title),
            content=sanitize_html(inp.content, self._sanitizer),
            excerpt=inp.excerpt,
            status=status,
            scheduled_date=scheduled_date,
            categories=list(inp.categories),
            tags=list(inp.tags),
            language=inp.language or self._rules.default_language,
            meta_description=inp.meta_description,
            focus_keyword=inp.focus_keyword,
            featured_image=inp.featured_image,
            published_at=now if status == "published" else None,
            created_at=now,
            updated_at=now,
        )

        saved = self._insert_with_unique_slug(post, post.slug)
        if saved is None:
            return PostOutput(
                post=None,
                errors=[_err("SLUG_EXHAUSTED", "Could not allocate a unique slug", "title", "conflict")],
                success=False,
            )

        logger.info("Post %s created in site %s by %s", saved.id, saved.site_id, user.id)
        dispatch(plan_post_created(saved, self._rooms), self._notifier)
        return PostOutput(post=saved, errors=[], success=True)

    def run_update(self, inp: UpdatePostInput) -> PostOutput:
        user = inp.user
        if user is None:
            return PostOutput(
                post=None,
                errors=[_err("NOT_AUTHENTICATED", "Authentication required", "user", "not_authenticated")],
                success=False,
            )

        post = self._posts.get_by_id(inp.post_id)
        if post is None:
            return PostOutput(post=None, errors=[_post_not_found()], success=False)

        decision = self._policy.can_edit_post(user, post)
        if not decision:
            return PostOutput(post=None, errors=[_denied(decision)], success=False)

        errors = self._validate_fields(
            inp.title, inp.excerpt, inp.meta_description, inp.focus_keyword
        )
        if errors:
            return PostOutput(post=None, errors=errors, success=False)

        now = self._time.now_utc()
        changes: dict[str, Any] = {}
        scheduled_date = as_utc(inp.scheduled_date)

        new_status = inp.status
        if new_status is not None and new_status != "draft" and self._policy.must_stay_draft(user):
            logger.info("User %s may only keep drafts; '%s' clamped to draft", user.id, new_status)
            new_status = "draft"

        if new_status == "archived" and post.status != "archived":
            decision = self._policy.can_archive_post(user)
            if not decision:
                return PostOutput(post=None, errors=[_denied(decision)], success=False)

        rescheduling = scheduled_date is not None and (
            new_status == "scheduled" or (new_status is None and post.status == "scheduled")
        )
        if (new_status is not None and new_status != post.status) or rescheduling:
            target = new_status or post.status
            try:
                moved = transition(post, target, now, scheduled_date)
            except InvalidTransitionError as e:
                return PostOutput(
                    post=None,
                    errors=[_err("INVALID_TRANSITION", str(e), "status")],
                    success=False,
                )
            changes["status"] = moved.status
            changes["scheduled_date"] = moved.scheduled_date
        elif scheduled_date is not None:
            changes["scheduled_date"] = scheduled_date

        if inp.title is not None:
            changes["title"] = inp.title.strip()
        if inp.slug is not None:
            changes["slug"] = slugify(inp.slug)
        if inp.content is not None:
            changes["content"] = sanitize_html(inp.content, self._sanitizer)
        for name in ("excerpt", "meta_description", "focus_keyword", "featured_image"):
            value = getattr(inp, name)
            if value is not None:
                changes[name] = value
        if inp.categories is not None:
            changes["categories"] = list(inp.categories)
        if inp.tags is not None:
            changes["tags"] = list(inp.tags)

        try:
            updated = self._posts.apply_update(
                post.id, changes, user.id, now, self._rules.max_versions
            )
        except DuplicateKeyError:
            return PostOutput(
                post=None,
                errors=[_err("SLUG_TAKEN", "Slug already exists in this site", "slug", "conflict")],
                success=False,
            )
        if updated is None:
            return PostOutput(post=None, errors=[_post_not_found()], success=False)

        dispatch(plan_status_changed(updated, post.status, self._rooms), self._notifier)
        return PostOutput(post=updated, errors=[], success=True)

    def run_delete(self, inp: DeletePostInput) -> DeletePostOutput:
        post = self._posts.get_by_id(inp.post_id)
        if post is None:
            return DeletePostOutput(errors=[_post_not_found()], success=False)

        decision = self._policy.can_delete_post(inp.user, post)
        if not decision:
            return DeletePostOutput(errors=[_denied(decision)], success=False)

        if not self._posts.delete(post.id):
            return DeletePostOutput(errors=[_post_not_found()], success=False)
        logger.info("Post %s deleted by %s", post.id, inp.user.id if inp.user else None)
        return DeletePostOutput(errors=[], success=True)

    def run_restore_version(self, inp: RestoreVersionInput) -> PostOutput:
        """Push the current content onto the ledger, then make the chosen version current."""
        post = self._posts.get_by_id(inp.post_id)
        if post is None:
            return PostOutput(post=None, errors=[_post_not_found()], success=False)

        decision = self._policy.can_edit_post(inp.user, post)
        if not decision:
            return PostOutput(post=None, errors=[_denied(decision)], success=False)
        assert inp.user is not None

        if find_version(post, inp.version_id) is None:
            return PostOutput(
                post=None,
                errors=[_err("VERSION_NOT_FOUND", "Version not found", "version_id", "not_found")],
                success=False,
            )

        restored = self._posts.restore_version(
            post.id,
            inp.version_id,
            inp.user.id,
            self._time.now_utc(),
            self._rules.max_versions,
        )
        if restored is None:
            # Evicted or deleted between the read and the write
            return PostOutput(
                post=None,
                errors=[_err("VERSION_NOT_FOUND", "Version not found", "version_id", "not_found")],
                success=False,
            )
        return PostOutput(post=restored, errors=[], success=True)

    def run_translate(self, inp: TranslatePostInput) -> PostOutput:
        """Create a draft translation linked both ways with its source."""
        language = (inp.language or "").strip().lower()
        if not language:
            return PostOutput(
                post=None,
                errors=[_err("LANGUAGE_REQUIRED", "Target language is required", "language")],
                success=False,
            )

        user = inp.user
        decision = self._policy.can_create_post(user)
        if not decision:
            return PostOutput(post=None, errors=[_denied(decision)], success=False)
        assert user is not None

        source = self._posts.get_by_id(inp.post_id)
        if source is None:
            return PostOutput(post=None, errors=[_post_not_found()], success=False)

        site_error = self._check_site_access(source.site_id, user)
        if site_error:
            return PostOutput(post=None, errors=[site_error], success=False)

        if language == source.language:
            return PostOutput(
                post=None,
                errors=[_err("SAME_LANGUAGE", "Post is already in this language", "language")],
                success=False,
            )
        if any(t.language == language for t in source.translations):
            return PostOutput(
                post=None,
                errors=[_err("TRANSLATION_EXISTS", f"A '{language}' translation already exists", "language", "conflict")],
                success=False,
            )

        errors = self._validate_fields(inp.title, inp.excerpt)
        if errors:
            return PostOutput(post=None, errors=errors, success=False)

        now = self._time.now_utc()
        translated = Post(
            site_id=source.site_id,
            author_id=user.id,
            title=(inp.title or source.title).strip(),
            slug=translation_slug(source.slug, language),
            content=sanitize_html(
                inp.content if inp.content is not None else source.content, self._sanitizer
            ),
            excerpt=inp.excerpt if inp.excerpt is not None else source.excerpt,
            status="draft",
            categories=list(source.categories),
            tags=list(source.tags),
            language=language,
            translations=[Translation(language=source.language, post_id=source.id)],
            meta_description=source.meta_description,
            focus_keyword=source.focus_keyword,
            featured_image=source.featured_image,
            created_at=now,
            updated_at=now,
        )

        saved = self._insert_with_unique_slug(translated, translated.slug)
        if saved is None:
            return PostOutput(
                post=None,
                errors=[_err("SLUG_EXHAUSTED", "Could not allocate a unique slug", "language", "conflict")],
                success=False,
            )

        if self._posts.add_translation(source.id, Translation(language=language, post_id=saved.id)) is None:
            logger.warning("Source post %s vanished while linking translation %s", source.id, saved.id)

        logger.info("Post %s translated to %s as %s", source.id, language, saved.id)
        dispatch(plan_post_created(saved, self._rooms), self._notifier)
        return PostOutput(post=saved, errors=[], success=True)

    # --- Reads ---

    def run_get(self, inp: GetPostInput) -> PostOutput:
        """Unpublished posts are visible only to their author and editors and above."""
        post = self._posts.get_by_id(inp.post_id)
        if post is None:
            return PostOutput(post=None, errors=[_post_not_found()], success=False)
        decision = self._policy.can_view_post(inp.user, post)
        if not decision:
            return PostOutput(post=None, errors=[_denied(decision)], success=False)
        return PostOutput(post=post, errors=[], success=True)

    def run_get_by_slug(self, inp: GetPostBySlugInput) -> PostOutput:
        post = self._posts.get_by_slug(inp.site_id, inp.slug)
        if post is None or post.status != "published":
            return PostOutput(post=None, errors=[_post_not_found()], success=False)
        return PostOutput(post=post, errors=[], success=True)

    def _page(self, query: PostQuery) -> PostListOutput:
        posts, total = self._posts.list_posts(query)
        pages = math.ceil(total / query.limit) if query.limit else (1 if total else 0)
        return PostListOutput(posts=posts, total=total, page=query.page, pages=pages)

    def _limit(self, limit: int | None) -> int:
        if not limit or limit < 1:
            return self._rules.page_size_default
        return min(limit, self._rules.page_size_max)

    def run_list_published(self, inp: ListPublishedInput) -> PostListOutput:
        return self._page(
            PostQuery(
                site_id=inp.site_id,
                status="published",
                language=inp.language,
                category=inp.category,
                tag=inp.tag,
                search=inp.search,
                page=max(inp.page, 1),
                limit=self._limit(inp.limit),
            )
        )

    def run_list_mine(self, inp: ListMyPostsInput) -> PostListOutput:
        if inp.user is None:
            return PostListOutput(
                errors=[_err("NOT_AUTHENTICATED", "Authentication required", "user", "not_authenticated")],
                success=False,
            )
        return self._page(
            PostQuery(
                site_id=inp.site_id,
                author_id=inp.user.id,
                status=inp.status,
                page=max(inp.page, 1),
                limit=self._limit(inp.limit),
                sort="-updated_at",
            )
        )

    def run_list_all(self, inp: ListAllPostsInput) -> PostListOutput:
        decision = self._policy.can_list_all_posts(inp.user)
        if not decision:
            return PostListOutput(errors=[_denied(decision)], success=False)
        return self._page(
            PostQuery(
                site_id=inp.site_id,
                status=inp.status,
                page=max(inp.page, 1),
                limit=self._limit(inp.limit),
                sort="-updated_at",
            )
        )

    def run_list_scheduled(self, inp: ListScheduledInput) -> PostListOutput:
        decision = self._policy.can_list_scheduled(inp.user)
        if not decision:
            return PostListOutput(errors=[_denied(decision)], success=False)
        return self._page(
            PostQuery(site_id=inp.site_id, status="scheduled", limit=0, sort="scheduled_date")
        )

    def run_list_versions(self, inp: ListVersionsInput) -> VersionsOutput:
        post = self._posts.get_by_id(inp.post_id)
        if post is None:
            return VersionsOutput(versions=[], errors=[_post_not_found()], success=False)
        decision = self._policy.can_view_versions(inp.user, post)
        if not decision:
            return VersionsOutput(versions=[], errors=[_denied(decision)], success=False)
        return VersionsOutput(versions=list(post.versions), errors=[], success=True)

    def run_track_view(self, inp: TrackViewInput) -> TrackViewOutput:
        post = self._posts.get_by_id(inp.post_id)
        if post is None or post.status != "published":
            return TrackViewOutput(views=0, errors=[_post_not_found()], success=False)
        today = self._time.now_utc().date()
        updated = self._posts.record_view(post.id, today, self._rules.view_history_days)
        if updated is None:
            return TrackViewOutput(views=0, errors=[_post_not_found()], success=False)
        return TrackViewOutput(views=updated.views, errors=[], success=True)
