"""Sites component models - frozen dataclass inputs and outputs."""

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from siteforge.domain.entities import Site, SiteUser, User


@dataclass(frozen=True)
class SiteError:
    """Error details for site operations."""

    code: str
    message: str
    field: str
    kind: str = "validation"


@dataclass(frozen=True)
class CheckSubdomainInput:
    subdomain: str


@dataclass(frozen=True)
class CheckSubdomainOutput:
    subdomain: str
    available: bool
    reason: str | None = None


@dataclass(frozen=True)
class CreateSiteInput:
    user: User
    name: str
    subdomain: str
    type: str = "blog"
    description: str = ""
    template: str | None = None
    theme: str | None = None
    language: str | None = None
    timezone: str | None = None


@dataclass(frozen=True)
class SiteOutput:
    site: Site | None
    errors: list[SiteError]
    success: bool
    membership: SiteUser | None = None


@dataclass(frozen=True)
class GetSiteInput:
    user: User | None
    site_id: UUID


@dataclass(frozen=True)
class GetPublicSiteInput:
    subdomain: str


@dataclass(frozen=True)
class ListUserSitesInput:
    user: User


@dataclass(frozen=True)
class MemberSite:
    site: Site
    membership: SiteUser


@dataclass(frozen=True)
class ListUserSitesOutput:
    owned: list[Site] = field(default_factory=list)
    member: list[MemberSite] = field(default_factory=list)
    errors: list[SiteError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class UpdateSiteInput:
    user: User
    site_id: UUID
    name: str | None = None
    type: str | None = None
    template: str | None = None
    theme: str | None = None
    custom_domain: str | None = None
    is_active: bool | None = None
    settings: dict[str, Any] | None = None


@dataclass(frozen=True)
class DeleteSiteInput:
    user: User
    site_id: UUID


@dataclass(frozen=True)
class DeleteSiteOutput:
    errors: list[SiteError]
    success: bool


@dataclass(frozen=True)
class SiteLookupInput:
    """Explicit site id (header, query or body) takes precedence over the host."""

    site_id: str | None = None
    host: str | None = None


@dataclass(frozen=True)
class SiteLookupOutput:
    site: Site | None
    errors: list[SiteError]
    success: bool


@dataclass(frozen=True)
class AddMemberInput:
    user: User
    site_id: UUID
    member_user_id: UUID
    role: str
    permissions: list[str] | None = None


@dataclass(frozen=True)
class MemberOutput:
    membership: SiteUser | None
    errors: list[SiteError]
    success: bool


@dataclass(frozen=True)
class RemoveMemberInput:
    user: User
    site_id: UUID
    member_user_id: UUID


@dataclass(frozen=True)
class ListMembersInput:
    user: User
    site_id: UUID


@dataclass(frozen=True)
class ListMembersOutput:
    members: list[SiteUser]
    errors: list[SiteError]
    success: bool


@dataclass(frozen=True)
class InitializeSiteInput:
    site_id: UUID


@dataclass(frozen=True)
class InitializeSiteOutput:
    initialized: bool
    errors: list[SiteError] = field(default_factory=list)
