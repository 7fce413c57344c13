"""Sites component - tenant boundary, provisioning and membership."""

from siteforge.components.sites.component import (
    build_site_context,
    normalize_subdomain,
    require_site_access,
    resolve_site,
    run_add_member,
    run_check_subdomain,
    run_create,
    run_delete,
    run_get,
    run_get_public,
    run_initialize,
    run_list_members,
    run_list_user_sites,
    run_remove_member,
    run_update,
    site_access_for,
    subdomain_from_host,
    validate_subdomain,
)
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
from siteforge.domain.policy import SiteContext

__all__ = [
    # Boundary
    "SiteContext",
    "build_site_context",
    "require_site_access",
    "resolve_site",
    "site_access_for",
    "subdomain_from_host",
    "normalize_subdomain",
    "validate_subdomain",
    # Entry points
    "run_check_subdomain",
    "run_create",
    "run_initialize",
    "run_get",
    "run_get_public",
    "run_list_user_sites",
    "run_update",
    "run_delete",
    "run_add_member",
    "run_remove_member",
    "run_list_members",
    # Models
    "AddMemberInput",
    "CheckSubdomainInput",
    "CheckSubdomainOutput",
    "CreateSiteInput",
    "DeleteSiteInput",
    "DeleteSiteOutput",
    "GetPublicSiteInput",
    "GetSiteInput",
    "InitializeSiteInput",
    "InitializeSiteOutput",
    "ListMembersInput",
    "ListMembersOutput",
    "ListUserSitesInput",
    "ListUserSitesOutput",
    "MemberOutput",
    "MemberSite",
    "RemoveMemberInput",
    "SiteError",
    "SiteLookupInput",
    "SiteLookupOutput",
    "SiteOutput",
    "UpdateSiteInput",
]
