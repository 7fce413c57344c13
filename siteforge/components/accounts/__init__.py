"""Accounts component - registration, verification, login/logout, password reset, roles."""

from siteforge.components.accounts.component import (
    is_token_revoked,
    normalize_email,
    run_change_password,
    run_change_role,
    run_forgot_password,
    run_list_users,
    run_login,
    run_logout,
    run_register,
    run_resend_verification,
    run_reset_password,
    run_update_profile,
    run_verify_email,
    validate_password,
)
from siteforge.components.accounts.models import (
    AccountError,
    AccountOutput,
    AckOutput,
    ChangePasswordInput,
    ChangeRoleInput,
    ForgotPasswordInput,
    ListUsersInput,
    LoginInput,
    LogoutInput,
    RegisterInput,
    ResendVerificationInput,
    ResetPasswordInput,
    UpdateProfileInput,
    UserListOutput,
    VerifyEmailInput,
)

__all__ = [
    "is_token_revoked",
    "normalize_email",
    "validate_password",
    "run_register",
    "run_verify_email",
    "run_resend_verification",
    "run_login",
    "run_logout",
    "run_forgot_password",
    "run_reset_password",
    "run_update_profile",
    "run_change_password",
    "run_change_role",
    "run_list_users",
    "AccountError",
    "AccountOutput",
    "AckOutput",
    "ChangePasswordInput",
    "ChangeRoleInput",
    "ForgotPasswordInput",
    "ListUsersInput",
    "LoginInput",
    "LogoutInput",
    "RegisterInput",
    "ResendVerificationInput",
    "ResetPasswordInput",
    "UpdateProfileInput",
    "UserListOutput",
    "VerifyEmailInput",
]
