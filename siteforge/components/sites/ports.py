"""Sites component port definitions - protocols for dependencies."""

from siteforge.ports.clock import TimePort
from siteforge.ports.repo import (
    MembershipRepoPort,
    PostRepoPort,
    SiteRepoPort,
    SubscriptionRepoPort,
    UserRepoPort,
)

__all__ = [
    "MembershipRepoPort",
    "PostRepoPort",
    "SiteRepoPort",
    "SubscriptionRepoPort",
    "TimePort",
    "UserRepoPort",
]
