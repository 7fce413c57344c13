import os
from collections.abc import Iterator
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from siteforge.adapters.sqlite.migrator import SQLiteMigrator
from siteforge.api import deps
from siteforge.components.roles.registry import RoleRegistry
from siteforge.domain.policy import PolicyEngine
from siteforge.rules.loader import load_rules
from siteforge.rules.models import Rules


@pytest.fixture(scope="session")
def rules() -> Rules:
    # Tests run from the project root
    rules_path = Path("rules.yaml").resolve()
    if not rules_path.exists():
        raise FileNotFoundError(f"Rules not found at {rules_path}")
    return load_rules(rules_path)


@pytest.fixture(scope="session")
def registry(rules) -> RoleRegistry:
    return RoleRegistry.from_rules(rules)


@pytest.fixture(scope="session")
def policy(rules, registry) -> PolicyEngine:
    return PolicyEngine.from_rules(registry, rules)


@pytest.fixture
def db_path(tmp_path) -> str:
    """Temporary SQLite database with every migration applied."""
    path = os.path.join(str(tmp_path), "siteforge.db")
    SQLiteMigrator(path, "migrations").run_migrations()
    return path


def _clear_caches() -> None:
    deps.get_settings.cache_clear()
    deps.get_rules.cache_clear()
    deps.get_registry.cache_clear()
    deps.get_policy.cache_clear()


@pytest.fixture
def client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    """App client on a fresh data dir; startup runs migrations and seeds roles."""
    monkeypatch.setenv("SITEFORGE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("SITEFORGE_SCHEDULER_ENABLED", "false")
    _clear_caches()
    deps.get_email_adapter().clear()

    from siteforge.api.main import app

    with TestClient(app) as c:
        yield c

    _clear_caches()
    deps.get_email_adapter().clear()
