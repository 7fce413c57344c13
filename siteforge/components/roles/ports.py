"""Roles component port definitions."""

from siteforge.ports.repo import RoleRepoPort

__all__ = ["RoleRepoPort"]
