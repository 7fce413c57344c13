"""Posts component port definitions - protocols for dependencies."""

from siteforge.components.notifications.ports import NotifierPort
from siteforge.ports.clock import TimePort
from siteforge.ports.repo import MembershipRepoPort, PostQuery, PostRepoPort, SiteRepoPort

__all__ = [
    "MembershipRepoPort",
    "NotifierPort",
    "PostQuery",
    "PostRepoPort",
    "SiteRepoPort",
    "TimePort",
]
