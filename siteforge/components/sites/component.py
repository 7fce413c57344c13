"""
Sites component - tenant provisioning, membership and the site access boundary.

Every site-scoped request resolves a SiteContext first (explicit id, or the
subdomain of the request host), then asks require_site_access whether the caller
may act on it. Owners always pass; members pass while their membership is active
and holds the requested site permission; platform super_admins pass everywhere.
"""

from __future__ import annotations

import logging
import re
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from siteforge.components.roles.registry import RoleRegistry
from siteforge.components.sites.models import (
    AddMemberInput,
    CheckSubdomainInput,
    CheckSubdomainOutput,
    CreateSiteInput,
    DeleteSiteInput,
    DeleteSiteOutput,
    GetPublicSiteInput,
    GetSiteInput,
    InitializeSiteInput,
    InitializeSiteOutput,
    ListMembersInput,
    ListMembersOutput,
    ListUserSitesInput,
    ListUserSitesOutput,
    MemberOutput,
    MemberSite,
    RemoveMemberInput,
    SiteError,
    SiteLookupInput,
    SiteLookupOutput,
    SiteOutput,
    UpdateSiteInput,
)
from siteforge.components.sites.ports import (
    MembershipRepoPort,
    PostRepoPort,
    SiteRepoPort,
    SubscriptionRepoPort,
    TimePort,
    UserRepoPort,
)
from siteforge.domain.entities import (
    PlanFeatures,
    Post,
    Site,
    SitePlan,
    SiteSettings,
    SiteUser,
    Subscription,
    User,
)
from siteforge.domain.errors import DuplicateKeyError, StorageError
from siteforge.domain.policy import (
    Decision,
    Deny,
    PolicyEngine,
    SiteAccess,
    SiteContext,
    deny_kind,
)
from siteforge.rules.models import Rules, SiteRules

logger = logging.getLogger(__name__)

SITE_NAME_MAX_LENGTH = 100
UPDATABLE_SETTINGS = frozenset(SiteSettings.model_fields)


def _err(code: str, message: str, field: str, kind: str = "validation") -> SiteError:
    return SiteError(code=code, message=message, field=field, kind=kind)


def _denied(decision: Deny) -> SiteError:
    return _err(decision.reason.upper(), decision.message, "user", deny_kind(decision))


def _not_found() -> SiteError:
    return _err("SITE_NOT_FOUND", "Site not found", "site_id", "not_found")


def _is_owner(site: Site, user: User | None) -> bool:
    return user is not None and str(site.owner_user_id) == str(user.id)


# --- Subdomains ---


def normalize_subdomain(subdomain: str) -> str:
    return subdomain.strip().lower()


def validate_subdomain(subdomain: str, rules: SiteRules) -> str | None:
    """Return the reason a subdomain is unusable, or None."""
    if not subdomain:
        return "Subdomain is required"
    if len(subdomain) > rules.subdomain_max_length:
        return f"Subdomain cannot exceed {rules.subdomain_max_length} characters"
    if not re.match(rules.subdomain_pattern, subdomain):
        return "Subdomain can only contain lowercase letters, numbers, and hyphens"
    if subdomain in rules.reserved_subdomains:
        return "This subdomain is reserved"
    return None


def subdomain_from_host(host: str | None, ignored_labels: list[str]) -> str | None:
    """`blog.example.com` -> `blog`; hosts with fewer than three labels have none."""
    if not host:
        return None
    hostname = host.split(":", 1)[0].strip().lower()
    parts = hostname.split(".")
    if len(parts) < 3:
        return None
    label = parts[0]
    if not label or label in ignored_labels:
        return None
    return label


def run_check_subdomain(
    inp: CheckSubdomainInput,
    *,
    site_repo: SiteRepoPort,
    rules: SiteRules,
) -> CheckSubdomainOutput:
    subdomain = normalize_subdomain(inp.subdomain)
    reason = validate_subdomain(subdomain, rules)
    if reason:
        return CheckSubdomainOutput(subdomain=subdomain, available=False, reason=reason)
    if site_repo.get_by_subdomain(subdomain) is not None:
        return CheckSubdomainOutput(
            subdomain=subdomain, available=False, reason="Subdomain is already taken"
        )
    return CheckSubdomainOutput(subdomain=subdomain, available=True)


# --- Context & access ---


def resolve_site(
    inp: SiteLookupInput,
    *,
    site_repo: SiteRepoPort,
    rules: SiteRules,
) -> SiteLookupOutput:
    """Find the tenant a request targets."""
    if inp.site_id:
        try:
            site_id = UUID(str(inp.site_id))
        except ValueError:
            return SiteLookupOutput(site=None, errors=[_not_found()], success=False)
        site = site_repo.get_by_id(site_id)
        if site is None:
            return SiteLookupOutput(site=None, errors=[_not_found()], success=False)
        return SiteLookupOutput(site=site, errors=[], success=True)

    subdomain = subdomain_from_host(inp.host, rules.ignored_host_labels)
    if subdomain:
        site = site_repo.get_by_subdomain(subdomain)
        if site is not None and site.is_active:
            return SiteLookupOutput(site=site, errors=[], success=True)
        return SiteLookupOutput(site=None, errors=[_not_found()], success=False)

    return SiteLookupOutput(
        site=None,
        errors=[_err("SITE_CONTEXT_REQUIRED", "Site context required", "site_id")],
        success=False,
    )


def build_site_context(
    site: Site,
    user: User | None,
    *,
    membership_repo: MembershipRepoPort,
) -> SiteContext:
    membership = membership_repo.get(site.id, user.id) if user is not None else None
    return SiteContext(site=site, membership=membership)


def require_site_access(
    context: SiteContext | None,
    principal: User | None,
    *,
    policy: PolicyEngine,
    permission: str | None = None,
) -> Decision:
    """Distinguishes missing context, missing caller and insufficient access."""
    return policy.check(principal, SiteAccess(context, permission))


def _load_context(
    site_id: UUID,
    user: User | None,
    *,
    site_repo: SiteRepoPort,
    membership_repo: MembershipRepoPort,
) -> SiteContext | None:
    site = site_repo.get_by_id(site_id)
    if site is None:
        return None
    return build_site_context(site, user, membership_repo=membership_repo)


# --- Provisioning ---


def run_create(
    inp: CreateSiteInput,
    *,
    site_repo: SiteRepoPort,
    membership_repo: MembershipRepoPort,
    subscription_repo: SubscriptionRepoPort,
    registry: RoleRegistry,
    rules: Rules,
    time: TimePort,
) -> SiteOutput:
    """
    Create a site owned by the caller.

    The owner also receives a site_admin membership holding every site permission,
    and the site starts on the free plan with an active subscription record.
    """
    errors: list[SiteError] = []
    name = inp.name.strip()
    if not name:
        errors.append(_err("NAME_REQUIRED", "Site name is required", "name"))
    elif len(name) > SITE_NAME_MAX_LENGTH:
        errors.append(
            _err("NAME_TOO_LONG", f"Site name cannot exceed {SITE_NAME_MAX_LENGTH} characters", "name")
        )

    subdomain = normalize_subdomain(inp.subdomain)
    reason = validate_subdomain(subdomain, rules.sites)
    if reason:
        errors.append(_err("SUBDOMAIN_INVALID", reason, "subdomain"))

    if inp.type not in rules.sites.types:
        errors.append(_err("TYPE_INVALID", f"Unknown site type '{inp.type}'", "type"))

    if errors:
        return SiteOutput(site=None, errors=errors, success=False)

    if site_repo.get_by_subdomain(subdomain) is not None:
        return SiteOutput(
            site=None,
            errors=[_err("SUBDOMAIN_TAKEN", "Subdomain is already taken", "subdomain", "conflict")],
            success=False,
        )

    now = time.now_utc()
    free = rules.plans.catalog["free"]
    site = Site(
        name=name,
        subdomain=subdomain,
        owner_user_id=inp.user.id,
        type=inp.type,  # type: ignore[arg-type]
        template=inp.template or rules.sites.default_template,
        theme=inp.theme or rules.sites.default_theme,
        settings=SiteSettings(
            title=name,
            description=inp.description,
            language=inp.language or rules.content.default_language,
            timezone=inp.timezone or "UTC",
        ),
        subscription=SitePlan(
            plan="free", status="active", features=PlanFeatures(**free.features.model_dump())
        ),
        created_at=now,
        updated_at=now,
    )

    try:
        site = site_repo.insert(site)
    except DuplicateKeyError:
        return SiteOutput(
            site=None,
            errors=[_err("SUBDOMAIN_TAKEN", "Subdomain is already taken", "subdomain", "conflict")],
            success=False,
        )

    membership = SiteUser(
        site_id=site.id,
        user_id=inp.user.id,
        role="site_admin",
        permissions=sorted(registry.list_permissions("site_admin", "site")),
        status="active",
        joined_at=now,
    )
    try:
        membership = membership_repo.insert(membership)
        subscription_repo.insert(
            Subscription(
                site_id=site.id,
                user_id=inp.user.id,
                plan="free",
                status="active",
                created_at=now,
                updated_at=now,
            )
        )
    except (StorageError, DuplicateKeyError):
        logger.error("Provisioning site %s failed, rolling back", site.id)
        site_repo.delete(site.id)
        raise

    logger.info("Site %s (%s) created by %s", site.id, site.subdomain, inp.user.id)
    return SiteOutput(site=site, errors=[], success=True, membership=membership)


def run_initialize(
    inp: InitializeSiteInput,
    *,
    site_repo: SiteRepoPort,
    post_repo: PostRepoPort,
    time: TimePort,
) -> InitializeSiteOutput:
    """
    Seed default content for a new site.

    Runs after creation has already succeeded; any failure here is logged and
    reported in the output, never raised.
    """
    try:
        site = site_repo.get_by_id(inp.site_id)
        if site is None:
            return InitializeSiteOutput(initialized=False, errors=[_not_found()])
        if site.is_initialized:
            return InitializeSiteOutput(initialized=True)

        now = time.now_utc()
        welcome = Post(
            site_id=site.id,
            author_id=site.owner_user_id,
            title=f"Welcome to {site.name}",
            slug="welcome",
            content=(
                f"<p>Welcome to {site.name}! This is your first post. "
                "Edit or delete it, then start writing.</p>"
            ),
            excerpt=f"Welcome to {site.name}",
            status="published",
            published_at=now,
            language=site.settings.language,
            created_at=now,
            updated_at=now,
        )
        try:
            post_repo.insert(welcome)
            created = 1
        except DuplicateKeyError:
            created = 0

        stats = site.stats.model_copy(
            update={"total_posts": site.stats.total_posts + created, "last_activity": now}
        )
        site_repo.update(
            site.model_copy(update={"is_initialized": True, "stats": stats, "updated_at": now})
        )
    except (StorageError, DuplicateKeyError) as e:
        logger.warning("Default content for site %s was not created: %s", inp.site_id, e)
        return InitializeSiteOutput(
            initialized=False, errors=[_err("INIT_FAILED", str(e), "site_id", "storage")]
        )

    logger.info("Site %s initialized with default content", inp.site_id)
    return InitializeSiteOutput(initialized=True)


# --- Reads ---


def run_get(
    inp: GetSiteInput,
    *,
    site_repo: SiteRepoPort,
    membership_repo: MembershipRepoPort,
    policy: PolicyEngine,
) -> SiteOutput:
    context = _load_context(
        inp.site_id, inp.user, site_repo=site_repo, membership_repo=membership_repo
    )
    if context is None:
        return SiteOutput(site=None, errors=[_not_found()], success=False)

    decision = require_site_access(context, inp.user, policy=policy)
    if not decision:
        assert isinstance(decision, Deny)
        return SiteOutput(site=None, errors=[_denied(decision)], success=False)
    return SiteOutput(site=context.site, errors=[], success=True, membership=context.membership)


def run_get_public(inp: GetPublicSiteInput, *, site_repo: SiteRepoPort) -> SiteOutput:
    """Anonymous lookup; inactive sites are indistinguishable from missing ones."""
    site = site_repo.get_by_subdomain(normalize_subdomain(inp.subdomain))
    if site is None or not site.is_active:
        return SiteOutput(site=None, errors=[_not_found()], success=False)
    return SiteOutput(site=site, errors=[], success=True)


def run_list_user_sites(
    inp: ListUserSitesInput, *, site_repo: SiteRepoPort
) -> ListUserSitesOutput:
    owned = site_repo.list_owned(inp.user.id)
    owned_ids = {s.id for s in owned}
    member = [
        MemberSite(site=site, membership=membership)
        for site, membership in site_repo.list_member_sites(inp.user.id)
        if site.id not in owned_ids and membership.status == "active"
    ]
    return ListUserSitesOutput(owned=owned, member=member)


# --- Mutations ---


def run_update(
    inp: UpdateSiteInput,
    *,
    site_repo: SiteRepoPort,
    membership_repo: MembershipRepoPort,
    policy: PolicyEngine,
    rules: SiteRules,
    time: TimePort,
) -> SiteOutput:
    context = _load_context(
        inp.site_id, inp.user, site_repo=site_repo, membership_repo=membership_repo
    )
    if context is None:
        return SiteOutput(site=None, errors=[_not_found()], success=False)

    decision = require_site_access(context, inp.user, policy=policy, permission="manage_site")
    if not decision:
        assert isinstance(decision, Deny)
        return SiteOutput(site=None, errors=[_denied(decision)], success=False)

    site = context.site
    updates: dict[str, Any] = {}
    errors: list[SiteError] = []

    if inp.name is not None:
        name = inp.name.strip()
        if not name or len(name) > SITE_NAME_MAX_LENGTH:
            errors.append(_err("NAME_INVALID", "Site name is invalid", "name"))
        else:
            updates["name"] = name
    if inp.type is not None:
        if inp.type not in rules.types:
            errors.append(_err("TYPE_INVALID", f"Unknown site type '{inp.type}'", "type"))
        else:
            updates["type"] = inp.type
    if inp.template is not None:
        updates["template"] = inp.template
    if inp.theme is not None:
        updates["theme"] = inp.theme
    if inp.is_active is not None:
        updates["is_active"] = inp.is_active
    if inp.custom_domain is not None:
        if inp.custom_domain and not site.subscription.features.custom_domain:
            errors.append(
                _err(
                    "PLAN_FEATURE_REQUIRED",
                    "Custom domains require a paid plan",
                    "custom_domain",
                    "authorization",
                )
            )
        else:
            updates["custom_domain"] = inp.custom_domain or None
    if inp.settings is not None:
        unknown = set(inp.settings) - UPDATABLE_SETTINGS
        if unknown:
            errors.append(
                _err("SETTINGS_INVALID", f"Unknown settings: {sorted(unknown)}", "settings")
            )
        else:
            try:
                updates["settings"] = SiteSettings.model_validate(
                    {**site.settings.model_dump(), **inp.settings}
                )
            except ValidationError as e:
                errors.append(_err("SETTINGS_INVALID", str(e), "settings"))

    if errors:
        return SiteOutput(site=None, errors=errors, success=False)

    updates["updated_at"] = time.now_utc()
    saved = site_repo.update(site.model_copy(update=updates))
    return SiteOutput(site=saved, errors=[], success=True, membership=context.membership)


def run_delete(inp: DeleteSiteInput, *, site_repo: SiteRepoPort) -> DeleteSiteOutput:
    """Owner only. Memberships, the subscription and all posts go with the site."""
    site = site_repo.get_by_id(inp.site_id)
    if site is None:
        return DeleteSiteOutput(errors=[_not_found()], success=False)

    if not _is_owner(site, inp.user) and inp.user.platform_role != "super_admin":
        return DeleteSiteOutput(
            errors=[_err("NOT_OWNER", "Only the site owner can delete it", "user", "authorization")],
            success=False,
        )

    site_repo.delete(site.id)
    logger.info("Site %s deleted by %s", site.id, inp.user.id)
    return DeleteSiteOutput(errors=[], success=True)


# --- Membership ---


def run_add_member(
    inp: AddMemberInput,
    *,
    site_repo: SiteRepoPort,
    membership_repo: MembershipRepoPort,
    user_repo: UserRepoPort,
    registry: RoleRegistry,
    policy: PolicyEngine,
    rules: Rules,
    time: TimePort,
) -> MemberOutput:
    context = _load_context(
        inp.site_id, inp.user, site_repo=site_repo, membership_repo=membership_repo
    )
    if context is None:
        return MemberOutput(membership=None, errors=[_not_found()], success=False)

    decision = require_site_access(context, inp.user, policy=policy, permission="manage_users")
    if not decision:
        assert isinstance(decision, Deny)
        return MemberOutput(membership=None, errors=[_denied(decision)], success=False)

    role = registry.get_role(inp.role, "site")
    if role is None:
        return MemberOutput(
            membership=None,
            errors=[_err("ROLE_INVALID", f"Unknown site role '{inp.role}'", "role")],
            success=False,
        )

    if inp.permissions is not None:
        unknown = set(inp.permissions) - set(rules.permissions.site)
        if unknown:
            return MemberOutput(
                membership=None,
                errors=[_err("PERMISSIONS_INVALID", f"Unknown permissions: {sorted(unknown)}", "permissions")],
                success=False,
            )
        permissions = sorted(set(inp.permissions))
    else:
        permissions = sorted(role.permissions)

    member = user_repo.get_by_id(inp.member_user_id)
    if member is None:
        return MemberOutput(
            membership=None,
            errors=[_err("USER_NOT_FOUND", "User not found", "member_user_id", "not_found")],
            success=False,
        )

    site = context.site
    if str(site.owner_user_id) == str(member.id):
        return MemberOutput(
            membership=None,
            errors=[_err("ALREADY_OWNER", "User owns this site", "member_user_id", "conflict")],
            success=False,
        )

    active = [m for m in membership_repo.list_for_site(site.id) if m.status == "active"]
    if len(active) >= site.subscription.features.max_users:
        return MemberOutput(
            membership=None,
            errors=[
                _err(
                    "PLAN_USER_LIMIT",
                    f"The {site.subscription.plan} plan allows {site.subscription.features.max_users} users",
                    "member_user_id",
                    "conflict",
                )
            ],
            success=False,
        )

    membership = SiteUser(
        site_id=site.id,
        user_id=member.id,
        role=inp.role,  # type: ignore[arg-type]
        permissions=permissions,
        status="active",
        invited_by_user_id=inp.user.id,
        joined_at=time.now_utc(),
    )
    try:
        saved = membership_repo.insert(membership)
    except DuplicateKeyError:
        return MemberOutput(
            membership=None,
            errors=[_err("ALREADY_MEMBER", "User is already a member", "member_user_id", "conflict")],
            success=False,
        )
    return MemberOutput(membership=saved, errors=[], success=True)


def run_remove_member(
    inp: RemoveMemberInput,
    *,
    site_repo: SiteRepoPort,
    membership_repo: MembershipRepoPort,
    policy: PolicyEngine,
) -> MemberOutput:
    context = _load_context(
        inp.site_id, inp.user, site_repo=site_repo, membership_repo=membership_repo
    )
    if context is None:
        return MemberOutput(membership=None, errors=[_not_found()], success=False)

    # Members may always leave on their own
    if str(inp.member_user_id) != str(inp.user.id):
        decision = require_site_access(
            context, inp.user, policy=policy, permission="manage_users"
        )
        if not decision:
            assert isinstance(decision, Deny)
            return MemberOutput(membership=None, errors=[_denied(decision)], success=False)

    if str(context.site.owner_user_id) == str(inp.member_user_id):
        return MemberOutput(
            membership=None,
            errors=[_err("OWNER_REQUIRED", "The owner cannot be removed", "member_user_id", "conflict")],
            success=False,
        )

    existing = membership_repo.get(context.site.id, inp.member_user_id)
    if existing is None:
        return MemberOutput(
            membership=None,
            errors=[_err("MEMBER_NOT_FOUND", "Membership not found", "member_user_id", "not_found")],
            success=False,
        )
    membership_repo.delete(context.site.id, inp.member_user_id)
    return MemberOutput(membership=existing, errors=[], success=True)


def run_list_members(
    inp: ListMembersInput,
    *,
    site_repo: SiteRepoPort,
    membership_repo: MembershipRepoPort,
    policy: PolicyEngine,
) -> ListMembersOutput:
    context = _load_context(
        inp.site_id, inp.user, site_repo=site_repo, membership_repo=membership_repo
    )
    if context is None:
        return ListMembersOutput(members=[], errors=[_not_found()], success=False)

    decision = require_site_access(context, inp.user, policy=policy)
    if not decision:
        assert isinstance(decision, Deny)
        return ListMembersOutput(members=[], errors=[_denied(decision)], success=False)
    return ListMembersOutput(
        members=membership_repo.list_for_site(context.site.id), errors=[], success=True
    )


def site_access_for(
    site_id: UUID,
    user: User | None,
    *,
    site_repo: SiteRepoPort,
    membership_repo: MembershipRepoPort,
    policy: PolicyEngine,
    permission: str | None = None,
) -> tuple[SiteContext | None, Decision]:
    """Load the context for `site_id` and check access in one step."""
    context = _load_context(site_id, user, site_repo=site_repo, membership_repo=membership_repo)
    if context is None:
        return None, Deny("site_not_found", "Site not found")
    return context, require_site_access(context, user, policy=policy, permission=permission)

