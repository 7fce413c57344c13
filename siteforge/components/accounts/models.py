from dataclasses import dataclass, field
from uuid import UUID

from siteforge.domain.entities import User


@dataclass(frozen=True)
class AccountError:
    code: str
    message: str
    field: str
    kind: str = "validation"


@dataclass(frozen=True)
class RegisterInput:
    name: str
    email: str
    password: str
    role: str | None = None


@dataclass(frozen=True)
class VerifyEmailInput:
    email: str
    otp: str


@dataclass(frozen=True)
class ResendVerificationInput:
    email: str


@dataclass(frozen=True)
class LoginInput:
    email: str
    password: str


@dataclass(frozen=True)
class LogoutInput:
    user: User
    token: str


@dataclass(frozen=True)
class ForgotPasswordInput:
    email: str
    reset_url_base: str = ""


@dataclass(frozen=True)
class ResetPasswordInput:
    token: str
    password: str


@dataclass(frozen=True)
class UpdateProfileInput:
    user: User
    name: str | None = None
    bio: str | None = None
    avatar: str | None = None


@dataclass(frozen=True)
class ChangePasswordInput:
    user: User
    current_password: str
    new_password: str


@dataclass(frozen=True)
class ChangeRoleInput:
    actor: User | None
    user_id: UUID
    role: str


@dataclass(frozen=True)
class ListUsersInput:
    actor: User | None


@dataclass(frozen=True)
class AccountOutput:
    user: User | None
    errors: list[AccountError]
    success: bool
    token: str | None = None


@dataclass(frozen=True)
class AckOutput:
    errors: list[AccountError] = field(default_factory=list)
    success: bool = True


@dataclass(frozen=True)
class UserListOutput:
    users: list[User] = field(default_factory=list)
    errors: list[AccountError] = field(default_factory=list)
    success: bool = True
