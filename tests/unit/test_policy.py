"""
Authorization matrix tests.

Covers role resolution, the super_admin override, ownership, the site boundary
and the per-action post checks.
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from siteforge.components.roles.registry import role_id_for
from siteforge.domain.entities import Post, Site, SiteSettings, SiteUser, User
from siteforge.domain.policy import (
    Allow,
    Deny,
    HasPermission,
    MinLevel,
    Ownership,
    RoleIn,
    SiteAccess,
    SiteContext,
    deny_kind,
)


def make_user(role: str | None = "subscriber", **kwargs) -> User:
    return User(
        name="Test",
        email=f"{uuid4().hex[:8]}@example.com",
        password_hash="x",
        legacy_role=role,
        **kwargs,
    )


def make_post(author: User, status: str = "draft") -> Post:
    return Post(site_id=uuid4(), author_id=author.id, title="T", slug="t", status=status)


def make_site(owner: User) -> Site:
    return Site(name="S", subdomain="s1", owner_user_id=owner.id, settings=SiteSettings(title="S"))


class TestDecisions:
    def test_truthiness(self):
        assert Allow()
        assert not Deny("not_owner")

    def test_deny_kinds(self):
        assert deny_kind(Deny("not_authenticated")) == "not_authenticated"
        assert deny_kind(Deny("site_context_required")) == "validation"
        assert deny_kind(Deny("not_owner")) == "authorization"


class TestRoleResolution:
    def test_legacy_role_wins(self, policy):
        user = make_user("editor", role_id=role_id_for("author"))

        assignment = policy.resolve(user)

        assert assignment.name == "editor"
        assert assignment.source == "legacy"

    def test_reference_used_when_legacy_unknown(self, policy):
        user = make_user("owner", role_id=role_id_for("author"))

        assignment = policy.resolve(user)

        assert assignment.name == "author"
        assert assignment.source == "reference"

    def test_site_role_reference_ignored(self, policy):
        user = make_user(None, role_id=role_id_for("site_admin", "site"))

        assert policy.resolve(user).source == "none"

    def test_unknown_role_denies_permissions(self, policy):
        user = make_user("owner")

        decision = policy.authorize(user, HasPermission("view_posts"))

        assert decision == Deny("no_role", "No role assigned")
        assert not policy.authorize(user, MinLevel(0))


class TestRequirements:
    def test_anonymous_is_not_authenticated(self, policy):
        decision = policy.authorize(None, HasPermission("view_posts"))

        assert decision.reason == "not_authenticated"

    @pytest.mark.parametrize(
        "role,permission,allowed",
        [
            ("visitor", "view_posts", True),
            ("subscriber", "create_comments", True),
            ("subscriber", "create_posts", False),
            ("contributor", "create_drafts", True),
            ("contributor", "publish_posts", False),
            ("author", "publish_posts", True),
            ("author", "edit_all_posts", False),
            ("editor", "edit_all_posts", True),
            ("editor", "manage_roles", False),
            ("admin", "manage_roles", True),
            ("admin", "manage_sites", False),
            ("super_admin", "manage_sites", True),
        ],
    )
    def test_permission_matrix(self, policy, role, permission, allowed):
        assert bool(policy.authorize(make_user(role), HasPermission(permission))) is allowed

    def test_min_level(self, policy):
        assert policy.authorize(make_user("editor"), MinLevel(4))
        assert policy.authorize(make_user("author"), MinLevel(4)).reason == "insufficient_level"

    def test_role_in(self, policy):
        requirement = RoleIn(frozenset({"editor", "admin"}))

        assert policy.authorize(make_user("admin"), requirement)
        assert policy.authorize(make_user("author"), requirement).reason == "role_not_allowed"

    def test_legacy_super_admin_name_passes_role_checks(self, policy):
        assert policy.authorize(make_user("super_admin"), RoleIn(frozenset({"admin"})))

    def test_platform_super_admin_overrides_everything(self, policy):
        root = make_user("subscriber", platform_role="super_admin")
        stranger_post = make_post(make_user())

        assert policy.authorize(root, HasPermission("manage_sites"))
        assert policy.authorize(root, Ownership(stranger_post))
        assert policy.authorize(root, RoleIn(frozenset({"editor"})))

    def test_ownership(self, policy):
        author = make_user("author")
        other = make_user("author")
        post = make_post(author)

        assert policy.authorize(author, Ownership(post))
        assert policy.authorize(other, Ownership(post)).reason == "not_owner"
        assert policy.authorize(make_user("admin"), Ownership(post))
        assert policy.authorize(make_user("editor"), Ownership(post)).reason == "not_owner"

    def test_check_returns_first_denial(self, policy):
        user = make_user("contributor")

        decision = policy.check(user, HasPermission("view_posts"), HasPermission("publish_posts"))

        assert decision.reason == "missing_permission"
        assert "publish_posts" in decision.message


class TestSiteAccess:
    def test_missing_context_checked_before_caller(self, policy):
        assert policy.authorize(None, SiteAccess(None)).reason == "site_context_required"

    def test_owner_has_full_access(self, policy):
        owner = make_user("subscriber")
        context = SiteContext(site=make_site(owner))

        assert policy.authorize(owner, SiteAccess(context, "manage_site"))

    def test_member_permissions(self, policy):
        owner = make_user()
        writer = make_user("author")
        site = make_site(owner)
        membership = SiteUser(
            site_id=site.id,
            user_id=writer.id,
            role="writer",
            permissions=["create_posts", "edit_posts"],
        )
        context = SiteContext(site=site, membership=membership)

        assert policy.authorize(writer, SiteAccess(context, "create_posts"))
        denied = policy.authorize(writer, SiteAccess(context, "manage_users"))
        assert denied.reason == "missing_site_permission"

    @pytest.mark.parametrize("status", ["inactive", "pending"])
    def test_inactive_membership_has_no_access(self, policy, status):
        owner = make_user()
        member = make_user("admin")
        site = make_site(owner)
        membership = SiteUser(
            site_id=site.id, user_id=member.id, role="site_admin", status=status
        )

        decision = policy.authorize(member, SiteAccess(SiteContext(site, membership)))

        assert decision.reason == "no_site_access"

    def test_membership_for_another_site_is_ignored(self, policy):
        owner = make_user()
        member = make_user()
        site = make_site(owner)
        membership = SiteUser(site_id=uuid4(), user_id=member.id, role="editor")

        decision = policy.authorize(member, SiteAccess(SiteContext(site, membership)))

        assert decision.reason == "no_site_access"

    def test_platform_admin_is_not_a_site_member(self, policy):
        site = make_site(make_user())

        decision = policy.authorize(make_user("admin"), SiteAccess(SiteContext(site)))

        assert decision.reason == "no_site_access"

    def test_super_admin_enters_any_site(self, policy):
        root = make_user(platform_role="super_admin")
        site = make_site(make_user())

        assert policy.authorize(root, SiteAccess(SiteContext(site), "manage_site"))


class TestPostMatrix:
    def test_create(self, policy):
        assert policy.can_create_post(make_user("contributor"))
        assert policy.can_create_post(make_user("author"))
        assert not policy.can_create_post(make_user("subscriber"))
        assert policy.can_create_post(None).reason == "not_authenticated"

    def test_contributor_must_stay_draft(self, policy):
        assert policy.must_stay_draft(make_user("contributor"))
        assert not policy.must_stay_draft(make_user("author"))

    def test_contributor_edits_own_drafts_only(self, policy):
        contributor = make_user("contributor")

        assert policy.can_edit_post(contributor, make_post(contributor))
        decision = policy.can_edit_post(contributor, make_post(contributor, "published"))
        assert decision.reason == "draft_only"

    def test_author_edits_own_posts(self, policy):
        author = make_user("author")

        assert policy.can_edit_post(author, make_post(author, "published"))
        assert not policy.can_edit_post(author, make_post(make_user("author")))

    def test_editor_edits_everything(self, policy):
        assert policy.can_edit_post(make_user("editor"), make_post(make_user("author")))

    def test_delete(self, policy):
        author = make_user("author")
        contributor = make_user("contributor")

        assert policy.can_delete_post(author, make_post(author))
        assert not policy.can_delete_post(author, make_post(make_user()))
        assert not policy.can_delete_post(contributor, make_post(contributor))
        assert policy.can_delete_post(make_user("editor"), make_post(author))

    def test_publish_and_archive(self, policy):
        assert policy.can_publish_post(make_user("author"))
        assert not policy.can_publish_post(make_user("contributor"))
        assert policy.can_archive_post(make_user("editor"))
        assert not policy.can_archive_post(make_user("author"))

    def test_view(self, policy):
        author = make_user("author")
        draft = make_post(author)

        assert policy.can_view_post(None, make_post(author, "published"))
        assert policy.can_view_post(author, draft)
        assert policy.can_view_post(make_user("editor"), draft)
        assert not policy.can_view_post(make_user("author"), draft)
        assert not policy.can_view_post(None, draft)

    def test_versions(self, policy):
        author = make_user("author")
        post = make_post(author, "published")

        assert policy.can_view_versions(author, post)
        assert policy.can_view_versions(make_user("admin"), post)
        assert not policy.can_view_versions(make_user("author"), post)

    def test_listing(self, policy):
        assert policy.can_list_all_posts(make_user("editor"))
        assert not policy.can_list_all_posts(make_user("author"))
        assert policy.can_list_scheduled(make_user("admin"))
        assert not policy.can_list_scheduled(make_user("contributor"))

    def test_manage_roles(self, policy):
        assert policy.can_manage_roles(make_user("admin"))
        assert not policy.can_manage_roles(make_user("editor"))
        assert policy.can_manage_roles(make_user(platform_role="super_admin"))
