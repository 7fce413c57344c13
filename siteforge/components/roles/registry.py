"""Immutable role catalog built once from the rules snapshot."""

from collections.abc import Iterable
from datetime import UTC, datetime
from types import MappingProxyType
from uuid import UUID, uuid5

from siteforge.domain.entities import Role
from siteforge.rules.models import RoleDefinition, Rules

ROLE_NAMESPACE = UUID("6f1c2a8e-3d4b-5e6f-8a9b-0c1d2e3f4a5b")


def role_id_for(name: str, scope: str = "platform") -> UUID:
    """Stable id, so a destructive reseed does not orphan user role references."""
    return uuid5(ROLE_NAMESPACE, f"{scope}:{name}")


def _build(definitions: Iterable[RoleDefinition], scope: str, now: datetime) -> list[Role]:
    return [
        Role(
            id=role_id_for(d.name, scope),
            name=d.name,
            display_name=d.display_name,
            description=d.description,
            level=d.level,
            permissions=frozenset(d.permissions),
            scope=scope,  # type: ignore[arg-type]
            is_active=d.is_active,
            created_at=now,
        )
        for d in definitions
    ]


class RoleRegistry:
    """Read-only lookups over the platform and site role ladders."""

    def __init__(self, roles: Iterable[Role]):
        by_key: dict[tuple[str, str], Role] = {}
        by_id: dict[UUID, Role] = {}
        for role in roles:
            key = (role.scope, role.name)
            if key in by_key:
                raise ValueError(f"Duplicate {role.scope} role: {role.name}")
            by_key[key] = role
            by_id[role.id] = role
        self._by_key = MappingProxyType(by_key)
        self._by_id = MappingProxyType(by_id)

    @classmethod
    def from_rules(cls, rules: Rules, now: datetime | None = None) -> "RoleRegistry":
        now = now or datetime.now(UTC)
        roles = _build(rules.roles, "platform", now) + _build(rules.site_roles, "site", now)
        return cls(roles)

    def get_role(self, name: str, scope: str = "platform") -> Role | None:
        role = self._by_key.get((scope, name))
        if role is None or not role.is_active:
            return None
        return role

    def get_role_by_id(self, role_id: UUID) -> Role | None:
        role = self._by_id.get(role_id)
        if role is None or not role.is_active:
            return None
        return role

    def list_permissions(self, name: str, scope: str = "platform") -> frozenset[str]:
        role = self.get_role(name, scope)
        return role.permissions if role else frozenset()

    def list_roles(self, scope: str = "platform") -> list[Role]:
        roles = [r for (s, _), r in self._by_key.items() if s == scope]
        return sorted(roles, key=lambda r: r.level)

    def all_roles(self) -> list[Role]:
        return list(self._by_key.values())
