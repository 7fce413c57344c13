"""Roles component - catalog lookups and destructive reseed."""

import logging

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
from siteforge.components.roles.registry import RoleRegistry

logger = logging.getLogger(__name__)

RolesInput = SeedRolesInput | GetRoleInput | ListRolesInput
RolesOutput = SeedRolesOutput | GetRoleOutput | ListRolesOutput


def run_seed(
    inp: SeedRolesInput,
    *,
    registry: RoleRegistry,
    repo: RoleRepoPort,
) -> SeedRolesOutput:
    """Wipe the stored catalog and write the snapshot. Storage failures propagate."""
    roles = registry.all_roles()
    repo.replace_all(roles)
    names = [f"{r.scope}:{r.name}" for r in roles]
    logger.info("Seeded %d roles", len(names))
    return SeedRolesOutput(seeded=names, errors=[], success=True)


def run_get_role(inp: GetRoleInput, *, registry: RoleRegistry) -> GetRoleOutput:
    role = registry.get_role(inp.name, inp.scope)
    if role is None:
        return GetRoleOutput(
            role=None,
            errors=[RoleError("ROLE_NOT_FOUND", f"Role '{inp.name}' not found", "name", "not_found")],
            success=False,
        )
    return GetRoleOutput(role=role, errors=[], success=True)


def run_list_roles(inp: ListRolesInput, *, registry: RoleRegistry) -> ListRolesOutput:
    return ListRolesOutput(roles=registry.list_roles(inp.scope))


def run(
    inp: RolesInput,
    *,
    registry: RoleRegistry,
    repo: RoleRepoPort | None = None,
) -> RolesOutput:
    """Main dispatcher - routes to appropriate handler based on input type."""
    if isinstance(inp, SeedRolesInput):
        if repo is None:
            raise ValueError("repo is required for seeding")
        return run_seed(inp, registry=registry, repo=repo)
    if isinstance(inp, GetRoleInput):
        return run_get_role(inp, registry=registry)
    if isinstance(inp, ListRolesInput):
        return run_list_roles(inp, registry=registry)
    raise TypeError(f"Unknown input type: {type(inp)}")
