"""
Authorization evaluator.

Every decision is made against one resolved RoleAssignment per caller, so the legacy
role string and the role reference can never disagree within a request.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Protocol
from uuid import UUID

from siteforge.domain.entities import Post, Role, Site, SiteUser, User

logger = logging.getLogger(__name__)

SUPER_ADMIN = "super_admin"


# --- Decisions ---

@dataclass(frozen=True)
class Allow:
    allowed: ClassVar[bool] = True

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True)
class Deny:
    reason: str
    message: str = ""
    allowed: ClassVar[bool] = False

    def __bool__(self) -> bool:
        return False


Decision = Allow | Deny
ALLOW = Allow()

_DENY_KINDS = {
    "not_authenticated": "not_authenticated",
    "site_context_required": "validation",
}


def deny_kind(decision: Deny) -> str:
    """Error kind a denial maps to at the component boundary."""
    return _DENY_KINDS.get(decision.reason, "authorization")


# --- Requirements ---

@dataclass(frozen=True)
class SiteContext:
    site: Site
    membership: SiteUser | None = None


@dataclass(frozen=True)
class RoleIn:
    roles: frozenset[str]


@dataclass(frozen=True)
class HasPermission:
    permission: str


@dataclass(frozen=True)
class MinLevel:
    level: int


@dataclass(frozen=True)
class Ownership:
    resource: Any
    owner_field: str = "author_id"


@dataclass(frozen=True)
class SiteAccess:
    context: SiteContext | None
    permission: str | None = None


Requirement = RoleIn | HasPermission | MinLevel | Ownership | SiteAccess


# --- Role resolution ---

class RoleCatalogPort(Protocol):
    def get_role(self, name: str, scope: str = "platform") -> Role | None:
        ...

    def get_role_by_id(self, role_id: UUID) -> Role | None:
        ...


@dataclass(frozen=True)
class RoleAssignment:
    name: str | None
    role: Role | None
    source: Literal["legacy", "reference", "none"]


def resolve_role_assignment(user: User, catalog: RoleCatalogPort) -> RoleAssignment:
    """
    Resolve the caller's effective platform role.

    A legacy role string naming a known role wins; otherwise the role reference is
    followed. An unknown legacy string with no usable reference keeps its name (so
    role-name checks still see it) but carries no Role record, which denies every
    permission and level check.
    """
    if user.legacy_role:
        role = catalog.get_role(user.legacy_role, "platform")
        if role is not None:
            return RoleAssignment(user.legacy_role, role, "legacy")

    if user.role_id is not None:
        role = catalog.get_role_by_id(user.role_id)
        if role is not None and role.scope == "platform":
            return RoleAssignment(role.name, role, "reference")

    if user.legacy_role:
        return RoleAssignment(user.legacy_role, None, "legacy")
    return RoleAssignment(None, None, "none")


# --- Engine ---

class PolicyEngine:
    def __init__(
        self,
        catalog: RoleCatalogPort,
        ownership_override_roles: Iterable[str] = ("admin", SUPER_ADMIN),
        private_post_reader_roles: Iterable[str] = ("editor", "admin", SUPER_ADMIN),
        scheduled_list_roles: Iterable[str] = ("editor", "admin"),
    ):
        self.catalog = catalog
        self.ownership_override_roles = frozenset(ownership_override_roles)
        self.private_post_reader_roles = frozenset(private_post_reader_roles)
        self.scheduled_list_roles = frozenset(scheduled_list_roles)

    @classmethod
    def from_rules(cls, catalog: RoleCatalogPort, rules: Any) -> "PolicyEngine":
        authz = rules.authorization
        return cls(
            catalog,
            ownership_override_roles=authz.ownership_override_roles,
            private_post_reader_roles=authz.private_post_reader_roles,
            scheduled_list_roles=authz.scheduled_list_roles,
        )

    def resolve(self, user: User) -> RoleAssignment:
        return resolve_role_assignment(user, self.catalog)

    def authorize(self, principal: User | None, requirement: Requirement) -> Decision:
        """
        Evaluate one requirement for the caller.

        Order of precedence:
        1. Missing site context (site requirements only)
        2. Missing caller
        3. Platform super_admin override
        4. The requirement itself
        """
        if isinstance(requirement, SiteAccess) and requirement.context is None:
            return Deny("site_context_required", "Site context required")

        if principal is None:
            return Deny("not_authenticated", "Authentication required")

        if principal.platform_role == SUPER_ADMIN:
            return ALLOW

        if isinstance(requirement, SiteAccess):
            return self._check_site_access(principal, requirement)

        assignment = self.resolve(principal)

        if isinstance(requirement, RoleIn):
            if assignment.name == SUPER_ADMIN or assignment.name in requirement.roles:
                return ALLOW
            return Deny(
                "role_not_allowed",
                f"Role '{assignment.name}' is not one of: {', '.join(sorted(requirement.roles))}",
            )

        if isinstance(requirement, HasPermission):
            if assignment.role is None:
                return Deny("no_role", "No role assigned")
            if requirement.permission in assignment.role.permissions:
                return ALLOW
            return Deny(
                "missing_permission", f"Missing permission: {requirement.permission}"
            )

        if isinstance(requirement, MinLevel):
            if assignment.role is None:
                return Deny("no_role", "No role assigned")
            if assignment.role.level >= requirement.level:
                return ALLOW
            return Deny(
                "insufficient_level", f"Requires role level {requirement.level} or higher"
            )

        if isinstance(requirement, Ownership):
            if assignment.name in self.ownership_override_roles:
                return ALLOW
            owner = getattr(requirement.resource, requirement.owner_field, None)
            if owner is not None and str(owner) == str(principal.id):
                return ALLOW
            return Deny("not_owner", "Not the owner of this resource")

        raise TypeError(f"Unknown requirement type: {type(requirement)}")

    def _check_site_access(self, user: User, requirement: SiteAccess) -> Decision:
        context = requirement.context
        assert context is not None

        if str(context.site.owner_user_id) == str(user.id):
            return ALLOW

        membership = context.membership
        if (
            membership is None
            or membership.status != "active"
            or str(membership.user_id) != str(user.id)
            or str(membership.site_id) != str(context.site.id)
        ):
            return Deny("no_site_access", "Access denied to this site")

        if requirement.permission and requirement.permission not in membership.permissions:
            return Deny(
                "missing_site_permission",
                f"Missing site permission: {requirement.permission}",
            )
        return ALLOW

    def check(self, principal: User | None, *requirements: Requirement) -> Decision:
        """All requirements must pass; the first denial is returned."""
        for requirement in requirements:
            decision = self.authorize(principal, requirement)
            if not decision:
                logger.info(
                    "Authorization denied for %s: %s",
                    principal.id if principal else "anonymous",
                    decision.reason,
                )
                return decision
        return ALLOW

    def has_permission(self, user: User | None, permission: str) -> bool:
        return bool(self.authorize(user, HasPermission(permission)))

    # --- Post matrix ---

    def must_stay_draft(self, user: User) -> bool:
        """Callers without publish rights may only hold posts in draft."""
        return not self.has_permission(user, "publish_posts")

    def can_create_post(self, user: User | None) -> Decision:
        if user is None:
            return Deny("not_authenticated", "Authentication required")
        if self.has_permission(user, "create_posts") or self.has_permission(
            user, "create_drafts"
        ):
            return ALLOW
        return Deny("missing_permission", "Missing permission: create_posts")

    def can_edit_post(self, user: User | None, post: Post) -> Decision:
        if user is None:
            return Deny("not_authenticated", "Authentication required")
        if self.has_permission(user, "edit_all_posts"):
            return ALLOW
        decision = self.check(user, HasPermission("edit_own_posts"), Ownership(post))
        if not decision:
            return decision
        if self.must_stay_draft(user) and post.status != "draft":
            return Deny("draft_only", "Only draft posts can be edited with this role")
        return ALLOW

    def can_delete_post(self, user: User | None, post: Post) -> Decision:
        if user is None:
            return Deny("not_authenticated", "Authentication required")
        if self.has_permission(user, "delete_all_posts"):
            return ALLOW
        return self.check(user, HasPermission("delete_own_posts"), Ownership(post))

    def can_publish_post(self, user: User | None) -> Decision:
        return self.check(user, HasPermission("publish_posts"))

    def can_archive_post(self, user: User | None) -> Decision:
        return self.check(user, HasPermission("edit_all_posts"))

    def can_view_post(self, user: User | None, post: Post) -> Decision:
        if post.status == "published":
            return ALLOW
        if user is not None and str(post.author_id) == str(user.id):
            return ALLOW
        return self.check(user, RoleIn(self.private_post_reader_roles))

    def can_view_versions(self, user: User | None, post: Post) -> Decision:
        if user is not None and str(post.author_id) == str(user.id):
            return ALLOW
        return self.check(user, RoleIn(self.private_post_reader_roles))

    def can_list_all_posts(self, user: User | None) -> Decision:
        return self.check(user, RoleIn(self.private_post_reader_roles))

    def can_list_scheduled(self, user: User | None) -> Decision:
        return self.check(user, RoleIn(self.scheduled_list_roles))

    def can_manage_roles(self, user: User | None) -> Decision:
        return self.check(user, RoleIn(frozenset({"admin"})))
