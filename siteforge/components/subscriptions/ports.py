"""Subscriptions component port definitions."""

from siteforge.ports.clock import TimePort
from siteforge.ports.repo import MembershipRepoPort, SiteRepoPort, SubscriptionRepoPort

__all__ = ["MembershipRepoPort", "SiteRepoPort", "SubscriptionRepoPort", "TimePort"]
