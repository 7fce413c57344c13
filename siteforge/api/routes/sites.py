from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from siteforge.adapters.clock import SystemClock
from siteforge.adapters.sqlite.repos import (
    SQLiteMembershipRepo,
    SQLitePostRepo,
    SQLiteSiteRepo,
    SQLiteSubscriptionRepo,
    SQLiteUserRepo,
)
from siteforge.api.deps import (
    Settings,
    get_clock,
    get_current_user,
    get_membership_repo,
    get_optional_user,
    get_policy,
    get_post_repo,
    get_registry,
    get_rules,
    get_settings,
    get_site_repo,
    get_subscription_repo,
    get_user_repo,
)
from siteforge.api.errors import raise_for_errors
from siteforge.api.schemas import (
    MemberAddRequest,
    MemberSiteResponse,
    SiteCreateRequest,
    SiteResponse,
    SiteUpdateRequest,
    SubdomainCheckResponse,
    UserSitesResponse,
)
from siteforge.components.sites import (
    AddMemberInput,
    CheckSubdomainInput,
    CreateSiteInput,
    DeleteSiteInput,
    GetPublicSiteInput,
    GetSiteInput,
    InitializeSiteInput,
    ListMembersInput,
    ListUserSitesInput,
    RemoveMemberInput,
    UpdateSiteInput,
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
)
from siteforge.domain.entities import Site, SiteUser, User

router = APIRouter()


@router.get("/check-subdomain/{subdomain}", response_model=SubdomainCheckResponse)
def check_subdomain(
    subdomain: str,
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
) -> SubdomainCheckResponse:
    result = run_check_subdomain(
        CheckSubdomainInput(subdomain=subdomain),
        site_repo=site_repo,
        rules=get_rules(settings).sites,
    )
    return SubdomainCheckResponse(
        subdomain=result.subdomain, available=result.available, reason=result.reason
    )


@router.post("", response_model=SiteResponse, status_code=status.HTTP_201_CREATED)
def create_site(
    req: SiteCreateRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    membership_repo: SQLiteMembershipRepo = Depends(get_membership_repo),
    subscription_repo: SQLiteSubscriptionRepo = Depends(get_subscription_repo),
    post_repo: SQLitePostRepo = Depends(get_post_repo),
    clock: SystemClock = Depends(get_clock),
) -> SiteResponse:
    """Create a site owned by the caller, then seed its default content."""
    result = run_create(
        CreateSiteInput(
            user=current_user,
            name=req.name,
            subdomain=req.subdomain,
            type=req.type,
            description=req.description,
            template=req.template,
            theme=req.theme,
            language=req.language,
            timezone=req.timezone,
        ),
        site_repo=site_repo,
        membership_repo=membership_repo,
        subscription_repo=subscription_repo,
        registry=get_registry(settings),
        rules=get_rules(settings),
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.site is not None

    # Default content is best effort; the site already exists
    run_initialize(
        InitializeSiteInput(site_id=result.site.id),
        site_repo=site_repo,
        post_repo=post_repo,
        time=clock,
    )
    site = site_repo.get_by_id(result.site.id) or result.site
    return SiteResponse(site=site, membership=result.membership)


@router.get("", response_model=UserSitesResponse)
def list_my_sites(
    current_user: User = Depends(get_current_user),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
) -> UserSitesResponse:
    result = run_list_user_sites(ListUserSitesInput(user=current_user), site_repo=site_repo)
    return UserSitesResponse(
        owned=result.owned,
        member=[MemberSiteResponse(site=m.site, membership=m.membership) for m in result.member],
    )


@router.get("/public/{subdomain}", response_model=Site)
def get_public_site(
    subdomain: str,
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
) -> Site:
    result = run_get_public(GetPublicSiteInput(subdomain=subdomain), site_repo=site_repo)
    if not result.success:
        raise_for_errors(result.errors)
    assert result.site is not None
    return result.site


@router.get("/{site_id}", response_model=SiteResponse)
def get_site(
    site_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    membership_repo: SQLiteMembershipRepo = Depends(get_membership_repo),
) -> SiteResponse:
    result = run_get(
        GetSiteInput(user=current_user, site_id=site_id),
        site_repo=site_repo,
        membership_repo=membership_repo,
        policy=get_policy(settings),
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.site is not None
    return SiteResponse(site=result.site, membership=result.membership)


@router.put("/{site_id}", response_model=SiteResponse)
def update_site(
    site_id: UUID,
    req: SiteUpdateRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    membership_repo: SQLiteMembershipRepo = Depends(get_membership_repo),
    clock: SystemClock = Depends(get_clock),
) -> SiteResponse:
    result = run_update(
        UpdateSiteInput(
            user=current_user,
            site_id=site_id,
            name=req.name,
            type=req.type,
            template=req.template,
            theme=req.theme,
            custom_domain=req.custom_domain,
            is_active=req.is_active,
            settings=req.settings,
        ),
        site_repo=site_repo,
        membership_repo=membership_repo,
        policy=get_policy(settings),
        rules=get_rules(settings).sites,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.site is not None
    return SiteResponse(site=result.site, membership=result.membership)


@router.delete("/{site_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_site(
    site_id: UUID,
    current_user: User = Depends(get_current_user),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
) -> Response:
    """Owner only. Removes memberships, the subscription and every post of the site."""
    result = run_delete(DeleteSiteInput(user=current_user, site_id=site_id), site_repo=site_repo)
    if not result.success:
        raise_for_errors(result.errors)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Members ---
@router.get("/{site_id}/members", response_model=list[SiteUser])
def list_members(
    site_id: UUID,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    membership_repo: SQLiteMembershipRepo = Depends(get_membership_repo),
) -> list[SiteUser]:
    result = run_list_members(
        ListMembersInput(user=current_user, site_id=site_id),
        site_repo=site_repo,
        membership_repo=membership_repo,
        policy=get_policy(settings),
    )
    if not result.success:
        raise_for_errors(result.errors)
    return result.members


@router.post("/{site_id}/members", response_model=SiteUser, status_code=status.HTTP_201_CREATED)
def add_member(
    site_id: UUID,
    req: MemberAddRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    membership_repo: SQLiteMembershipRepo = Depends(get_membership_repo),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    clock: SystemClock = Depends(get_clock),
) -> SiteUser:
    result = run_add_member(
        AddMemberInput(
            user=current_user,
            site_id=site_id,
            member_user_id=req.user_id,
            role=req.role,
            permissions=req.permissions,
        ),
        site_repo=site_repo,
        membership_repo=membership_repo,
        user_repo=user_repo,
        registry=get_registry(settings),
        policy=get_policy(settings),
        rules=get_rules(settings),
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.membership is not None
    return result.membership


@router.delete("/{site_id}/members/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    site_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    site_repo: SQLiteSiteRepo = Depends(get_site_repo),
    membership_repo: SQLiteMembershipRepo = Depends(get_membership_repo),
) -> Response:
    result = run_remove_member(
        RemoveMemberInput(user=current_user, site_id=site_id, member_user_id=user_id),
        site_repo=site_repo,
        membership_repo=membership_repo,
        policy=get_policy(settings),
    )
    if not result.success:
        raise_for_errors(result.errors)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
