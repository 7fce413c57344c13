"""Roles component - role catalog, permission lookup and reseeding."""

from siteforge.components.roles.component import (
    run,
    run_get_role,
    run_list_roles,
    run_seed,
)
from siteforge.components.roles.models import (
    GetRoleInput,
    GetRoleOutput,
    ListRolesInput,
    ListRolesOutput,
    RoleError,
    SeedRolesInput,
    SeedRolesOutput,
)
from siteforge.components.roles.ports import RoleRepoPort
from siteforge.components.roles.registry import RoleRegistry, role_id_for

__all__ = [
    # Entry points
    "run",
    "run_seed",
    "run_get_role",
    "run_list_roles",
    # Registry
    "RoleRegistry",
    "role_id_for",
    # Models
    "SeedRolesInput",
    "SeedRolesOutput",
    "GetRoleInput",
    "GetRoleOutput",
    "ListRolesInput",
    "ListRolesOutput",
    "RoleError",
    # Ports
    "RoleRepoPort",
]
