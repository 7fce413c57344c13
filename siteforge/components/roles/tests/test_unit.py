"""
Roles component unit tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from siteforge.components.roles import (
    GetRoleInput,
    ListRolesInput,
    RoleRegistry,
    SeedRolesInput,
    role_id_for,
    run,
    run_get_role,
    run_list_roles,
    run_seed,
)
from siteforge.domain.entities import Role
from siteforge.domain.errors import StorageError
from siteforge.rules.loader import load_rules

# --- Mock Implementations ---


class MockRoleRepo:
    def __init__(self, fail: bool = False) -> None:
        self.roles: list[Role] = []
        self.replace_calls = 0
        self.fail = fail

    def replace_all(self, roles: list[Role]) -> None:
        if self.fail:
            raise StorageError("locked")
        self.replace_calls += 1
        self.roles = list(roles)

    def list_all(self) -> list[Role]:
        return list(self.roles)


# --- Fixtures ---


@pytest.fixture(scope="module")
def registry() -> RoleRegistry:
    return RoleRegistry.from_rules(load_rules(Path("rules.yaml")))


class TestRegistry:
    def test_platform_ladder_is_ordered_by_level(self, registry):
        names = [r.name for r in registry.list_roles("platform")]

        assert names == [
            "visitor",
            "subscriber",
            "contributor",
            "author",
            "editor",
            "admin",
            "super_admin",
        ]

    def test_site_ladder(self, registry):
        names = [r.name for r in registry.list_roles("site")]

        assert names == ["subscriber", "writer", "editor", "site_admin"]

    def test_same_name_in_both_scopes(self, registry):
        platform = registry.get_role("editor")
        site = registry.get_role("editor", "site")

        assert platform.id != site.id
        assert "edit_all_posts" in platform.permissions
        assert "edit_posts" in site.permissions

    def test_role_ids_are_stable(self, registry):
        assert registry.get_role("author").id == role_id_for("author")
        assert role_id_for("writer", "site") == role_id_for("writer", "site")
        assert role_id_for("editor", "site") != role_id_for("editor", "platform")

    def test_lookup_by_id(self, registry):
        role = registry.get_role("admin")

        assert registry.get_role_by_id(role.id) == role

    def test_unknown_role_has_no_permissions(self, registry):
        assert registry.get_role("ghost") is None
        assert registry.list_permissions("ghost") == frozenset()

    def test_inactive_role_hidden(self):
        active = Role(id=role_id_for("a"), name="a", display_name="A", level=1)
        retired = Role(id=role_id_for("b"), name="b", display_name="B", level=2, is_active=False)
        registry = RoleRegistry([active, retired])

        assert registry.get_role("b") is None
        assert registry.get_role_by_id(retired.id) is None
        assert len(registry.all_roles()) == 2

    def test_duplicate_role_rejected(self):
        role = Role(id=role_id_for("a"), name="a", display_name="A", level=1)

        with pytest.raises(ValueError, match="Duplicate"):
            RoleRegistry([role, role])


class TestComponent:
    def test_seed_replaces_catalog(self, registry):
        repo = MockRoleRepo()
        repo.roles = [Role(id=role_id_for("stale"), name="stale", display_name="S", level=0)]

        result = run_seed(SeedRolesInput(), registry=registry, repo=repo)

        assert result.success
        assert repo.replace_calls == 1
        assert len(repo.roles) == 11
        assert "platform:author" in result.seeded
        assert "site:writer" in result.seeded
        assert all(r.name != "stale" for r in repo.roles)

    def test_seed_storage_failure_propagates(self, registry):
        with pytest.raises(StorageError):
            run_seed(SeedRolesInput(), registry=registry, repo=MockRoleRepo(fail=True))

    def test_get_role(self, registry):
        result = run_get_role(GetRoleInput(name="writer", scope="site"), registry=registry)

        assert result.success
        assert result.role.level == 2

    def test_get_missing_role(self, registry):
        result = run_get_role(GetRoleInput(name="owner"), registry=registry)

        assert not result.success
        assert result.errors[0].code == "ROLE_NOT_FOUND"
        assert result.errors[0].kind == "not_found"

    def test_list_roles(self, registry):
        result = run_list_roles(ListRolesInput(scope="site"), registry=registry)

        assert len(result.roles) == 4

    def test_dispatcher(self, registry):
        assert run(ListRolesInput(), registry=registry).success
        with pytest.raises(ValueError):
            run(SeedRolesInput(), registry=registry)
        with pytest.raises(TypeError):
            run("seed", registry=registry)  # type: ignore[arg-type]
