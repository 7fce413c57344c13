"""Scheduler component port definitions - protocols for dependencies."""

from siteforge.components.notifications.ports import NotifierPort
from siteforge.ports.clock import TimePort
from siteforge.ports.repo import PostRepoPort, UserRepoPort

__all__ = ["NotifierPort", "PostRepoPort", "TimePort", "UserRepoPort"]
