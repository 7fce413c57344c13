from uuid import UUID

from fastapi import APIRouter, Depends

from siteforge.adapters.clock import SystemClock
from siteforge.adapters.sqlite.repos import SQLiteUserRepo
from siteforge.api.deps import (
    Settings,
    get_clock,
    get_current_user,
    get_policy,
    get_registry,
    get_settings,
    get_user_repo,
)
from siteforge.api.errors import raise_for_errors
from siteforge.api.schemas import RoleChangeRequest, UserResponse
from siteforge.components.accounts import (
    ChangeRoleInput,
    ListUsersInput,
    run_change_role,
    run_list_users,
)
from siteforge.domain.entities import User

router = APIRouter()


@router.get("", response_model=list[UserResponse])
def list_users(
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
) -> list[UserResponse]:
    """List all users (requires edit_users)."""
    result = run_list_users(
        ListUsersInput(actor=current_user), user_repo=user_repo, policy=get_policy(settings)
    )
    if not result.success:
        raise_for_errors(result.errors)
    return [UserResponse.from_user(u) for u in result.users]


@router.put("/{user_id}/role", response_model=UserResponse)
def change_role(
    user_id: UUID,
    req: RoleChangeRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    clock: SystemClock = Depends(get_clock),
) -> UserResponse:
    """Change a user's platform role (admin only)."""
    result = run_change_role(
        ChangeRoleInput(actor=current_user, user_id=user_id, role=req.role),
        user_repo=user_repo,
        registry=get_registry(settings),
        policy=get_policy(settings),
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.user is not None
    return UserResponse.from_user(result.user)
