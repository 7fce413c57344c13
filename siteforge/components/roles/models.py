"""Roles component models - frozen dataclass inputs and outputs."""

from dataclasses import dataclass, field

from siteforge.domain.entities import Role, RoleScope


@dataclass(frozen=True)
class RoleError:
    """Error details for role operations."""

    code: str
    message: str
    field: str
    kind: str = "validation"


@dataclass(frozen=True)
class SeedRolesInput:
    """Replace the persisted catalog with the registry snapshot."""

    pass


@dataclass(frozen=True)
class SeedRolesOutput:
    seeded: list[str]
    errors: list[RoleError]
    success: bool


@dataclass(frozen=True)
class GetRoleInput:
    name: str
    scope: RoleScope = "platform"


@dataclass(frozen=True)
class GetRoleOutput:
    role: Role | None
    errors: list[RoleError]
    success: bool


@dataclass(frozen=True)
class ListRolesInput:
    scope: RoleScope = "platform"


@dataclass(frozen=True)
class ListRolesOutput:
    roles: list[Role] = field(default_factory=list)
    errors: list[RoleError] = field(default_factory=list)
    success: bool = True
