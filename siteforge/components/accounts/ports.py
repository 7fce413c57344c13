from siteforge.ports.auth import AuthAdapterPort
from siteforge.ports.clock import TimePort
from siteforge.ports.email import EmailPort
from siteforge.ports.repo import UserRepoPort

__all__ = ["AuthAdapterPort", "EmailPort", "TimePort", "UserRepoPort"]
