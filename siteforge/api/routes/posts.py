from uuid import UUID

from fastapi import APIRouter, Depends, Response, status

from siteforge.api.deps import (
    Settings,
    get_current_user,
    get_optional_site,
    get_optional_user,
    get_posts_component,
    get_request_site,
    get_rules,
    get_settings,
)
from siteforge.api.errors import raise_for_errors
from siteforge.api.schemas import (
    PostCreateRequest,
    PostListResponse,
    PostResponse,
    PostUpdateRequest,
    TranslateRequest,
    ViewResponse,
)
from siteforge.components.posts import (
    CreatePostInput,
    DeletePostInput,
    GetPostBySlugInput,
    GetPostInput,
    ListAllPostsInput,
    ListMyPostsInput,
    ListPublishedInput,
    ListScheduledInput,
    ListVersionsInput,
    PostListOutput,
    PostOutput,
    PostsComponent,
    RestoreVersionInput,
    TrackViewInput,
    TranslatePostInput,
    UpdatePostInput,
)
from siteforge.domain.entities import PostStatus, PostVersion, Site, User

router = APIRouter()


def _post(result: PostOutput, settings: Settings) -> PostResponse:
    if not result.success:
        raise_for_errors(result.errors)
    assert result.post is not None
    return PostResponse.from_post(result.post, get_rules(settings).content.words_per_minute)


def _page(result: PostListOutput, settings: Settings) -> PostListResponse:
    if not result.success:
        raise_for_errors(result.errors)
    wpm = get_rules(settings).content.words_per_minute
    return PostListResponse(
        posts=[PostResponse.from_post(p, wpm) for p in result.posts],
        total=result.total,
        page=result.page,
        pages=result.pages,
    )


# --- Listings (static paths before /{post_id}) ---
@router.get("", response_model=PostListResponse)
def list_published(
    language: str | None = None,
    category: str | None = None,
    tag: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int | None = None,
    site: Site = Depends(get_request_site),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostListResponse:
    """Published posts of the current site, newest first."""
    result = posts.run_list_published(
        ListPublishedInput(
            site_id=site.id,
            language=language,
            category=category,
            tag=tag,
            search=search,
            page=page,
            limit=limit,
        )
    )
    return _page(result, settings)


@router.get("/mine", response_model=PostListResponse)
def list_mine(
    post_status: PostStatus | None = None,
    page: int = 1,
    limit: int | None = None,
    current_user: User = Depends(get_current_user),
    site: Site | None = Depends(get_optional_site),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostListResponse:
    result = posts.run_list_mine(
        ListMyPostsInput(
            user=current_user,
            site_id=site.id if site else None,
            status=post_status,
            page=page,
            limit=limit,
        )
    )
    return _page(result, settings)


@router.get("/all", response_model=PostListResponse)
def list_all(
    post_status: PostStatus | None = None,
    page: int = 1,
    limit: int | None = None,
    current_user: User = Depends(get_current_user),
    site: Site | None = Depends(get_optional_site),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostListResponse:
    """Every post in any status (editors and above)."""
    result = posts.run_list_all(
        ListAllPostsInput(
            user=current_user,
            site_id=site.id if site else None,
            status=post_status,
            page=page,
            limit=limit,
        )
    )
    return _page(result, settings)


@router.get("/scheduled", response_model=PostListResponse)
def list_scheduled(
    current_user: User = Depends(get_current_user),
    site: Site | None = Depends(get_optional_site),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostListResponse:
    result = posts.run_list_scheduled(
        ListScheduledInput(user=current_user, site_id=site.id if site else None)
    )
    return _page(result, settings)


@router.get("/slug/{slug}", response_model=PostResponse)
def get_by_slug(
    slug: str,
    site: Site = Depends(get_request_site),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostResponse:
    return _post(posts.run_get_by_slug(GetPostBySlugInput(site_id=site.id, slug=slug)), settings)


# --- CRUD ---
@router.post("", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def create_post(
    req: PostCreateRequest,
    current_user: User = Depends(get_current_user),
    site: Site = Depends(get_request_site),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostResponse:
    result = posts.run_create(
        CreatePostInput(
            user=current_user,
            site_id=site.id,
            title=req.title,
            content=req.content,
            excerpt=req.excerpt,
            status=req.status,
            scheduled_date=req.scheduled_date,
            categories=req.categories,
            tags=req.tags,
            language=req.language,
            meta_description=req.meta_description,
            focus_keyword=req.focus_keyword,
            featured_image=req.featured_image,
        )
    )
    return _post(result, settings)


@router.get("/{post_id}", response_model=PostResponse)
def get_post(
    post_id: UUID,
    current_user: User | None = Depends(get_optional_user),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostResponse:
    return _post(posts.run_get(GetPostInput(user=current_user, post_id=post_id)), settings)


@router.put("/{post_id}", response_model=PostResponse)
def update_post(
    post_id: UUID,
    req: PostUpdateRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostResponse:
    result = posts.run_update(
        UpdatePostInput(
            user=current_user,
            post_id=post_id,
            title=req.title,
            slug=req.slug,
            content=req.content,
            excerpt=req.excerpt,
            status=req.status,
            scheduled_date=req.scheduled_date,
            categories=req.categories,
            tags=req.tags,
            meta_description=req.meta_description,
            focus_keyword=req.focus_keyword,
            featured_image=req.featured_image,
        )
    )
    return _post(result, settings)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    posts: PostsComponent = Depends(get_posts_component),
) -> Response:
    result = posts.run_delete(DeletePostInput(user=current_user, post_id=post_id))
    if not result.success:
        raise_for_errors(result.errors)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Versions ---
@router.get("/{post_id}/versions", response_model=list[PostVersion])
def list_versions(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    posts: PostsComponent = Depends(get_posts_component),
) -> list[PostVersion]:
    """Prior content snapshots, oldest first."""
    result = posts.run_list_versions(ListVersionsInput(user=current_user, post_id=post_id))
    if not result.success:
        raise_for_errors(result.errors)
    return result.versions


@router.post("/{post_id}/versions/{version_id}/restore", response_model=PostResponse)
def restore_version(
    post_id: UUID,
    version_id: UUID,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostResponse:
    result = posts.run_restore_version(
        RestoreVersionInput(user=current_user, post_id=post_id, version_id=version_id)
    )
    return _post(result, settings)


# --- Translations & views ---
@router.post("/{post_id}/translate", response_model=PostResponse, status_code=status.HTTP_201_CREATED)
def translate_post(
    post_id: UUID,
    req: TranslateRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    posts: PostsComponent = Depends(get_posts_component),
) -> PostResponse:
    result = posts.run_translate(
        TranslatePostInput(
            user=current_user,
            post_id=post_id,
            language=req.language,
            title=req.title,
            content=req.content,
            excerpt=req.excerpt,
        )
    )
    return _post(result, settings)


@router.post("/{post_id}/view", response_model=ViewResponse)
def track_view(
    post_id: UUID,
    posts: PostsComponent = Depends(get_posts_component),
) -> ViewResponse:
    result = posts.run_track_view(TrackViewInput(post_id=post_id))
    if not result.success:
        raise_for_errors(result.errors)
    return ViewResponse(views=result.views)
