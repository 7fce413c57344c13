from fastapi import APIRouter, Depends

from siteforge.adapters.sqlite.repos import SQLiteRoleRepo
from siteforge.api.deps import Settings, get_current_user, get_policy, get_registry, get_role_repo, get_settings
from siteforge.api.errors import raise_for_errors
from siteforge.api.schemas import RoleResponse
from siteforge.components.roles import (
    GetRoleInput,
    ListRolesInput,
    RoleError,
    SeedRolesInput,
    SeedRolesOutput,
    run_get_role,
    run_list_roles,
    run_seed,
)
from siteforge.domain.entities import Role, RoleScope, User

router = APIRouter()


def _role_response(role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        display_name=role.display_name,
        description=role.description,
        level=role.level,
        scope=role.scope,
        permissions=sorted(role.permissions),
    )


@router.get("", response_model=list[RoleResponse])
def list_roles(
    scope: RoleScope = "platform",
    settings: Settings = Depends(get_settings),
) -> list[RoleResponse]:
    result = run_list_roles(ListRolesInput(scope=scope), registry=get_registry(settings))
    return [_role_response(r) for r in result.roles]


@router.get("/{name}", response_model=RoleResponse)
def get_role(
    name: str,
    scope: RoleScope = "platform",
    settings: Settings = Depends(get_settings),
) -> RoleResponse:
    result = run_get_role(GetRoleInput(name=name, scope=scope), registry=get_registry(settings))
    if not result.success:
        raise_for_errors(result.errors)
    assert result.role is not None
    return _role_response(result.role)


@router.post("/seed", response_model=list[str])
def seed_roles(
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    repo: SQLiteRoleRepo = Depends(get_role_repo),
) -> list[str]:
    """Replace the stored role catalog with the rules snapshot (admin only)."""
    decision = get_policy(settings).can_manage_roles(current_user)
    if not decision:
        raise_for_errors([RoleError("ACCESS_DENIED", "Access denied", "user", "authorization")])
    result: SeedRolesOutput = run_seed(SeedRolesInput(), registry=get_registry(settings), repo=repo)
    return result.seeded
