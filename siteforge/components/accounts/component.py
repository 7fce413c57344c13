"""
Accounts component - registration, email verification, sessions and roles.

Verification codes and reset tokens are stored hashed; only the emailed copy is
ever in plain text. Logout revokes a token by keeping its hash on a short
per-user blacklist.
"""

from __future__ import annotations

import hmac
import logging
import re
from datetime import timedelta

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
from siteforge.components.accounts.ports import AuthAdapterPort, EmailPort, TimePort, UserRepoPort
from siteforge.components.roles.registry import RoleRegistry
from siteforge.domain.entities import User
from siteforge.domain.errors import DuplicateKeyError
from siteforge.domain.policy import Deny, HasPermission, PolicyEngine, deny_kind
from siteforge.rules.models import AuthRules, PasswordRules

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _err(code: str, message: str, field: str, kind: str = "validation") -> AccountError:
    return AccountError(code=code, message=message, field=field, kind=kind)


def _denied(decision: Deny) -> AccountError:
    return _err(decision.reason.upper(), decision.message, "user", deny_kind(decision))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_password(password: str, rules: PasswordRules) -> AccountError | None:
    if len(password) < rules.min_length:
        return _err(
            "PASSWORD_TOO_SHORT",
            f"Password must be at least {rules.min_length} characters",
            "password",
        )
    if not re.match(rules.pattern, password):
        return _err(
            "PASSWORD_TOO_WEAK",
            "Password must contain upper and lower case letters, a number and a special character",
            "password",
        )
    return None


def _validate_name(name: str, rules: AuthRules) -> AccountError | None:
    if not name.strip():
        return _err("NAME_REQUIRED", "Name is required", "name")
    if len(name.strip()) > rules.name_max_length:
        return _err(
            "NAME_TOO_LONG", f"Name cannot exceed {rules.name_max_length} characters", "name"
        )
    return None


def _digest_matches(auth: AuthAdapterPort, raw: str, stored: str | None) -> bool:
    if not stored:
        return False
    return hmac.compare_digest(auth.hash_token(raw), stored)


def _send_verification(
    user: User,
    *,
    auth: AuthAdapterPort,
    email: EmailPort,
    rules: AuthRules,
    time: TimePort,
) -> User:
    """Attach a fresh one-time code to `user` and mail it; returns the updated user (unsaved)."""
    otp = auth.generate_otp(rules.otp_length)
    updated = user.model_copy(
        update={
            "email_verification_otp": auth.hash_token(otp),
            "email_verification_expire": time.now_utc() + timedelta(minutes=rules.otp_ttl_minutes),
        }
    )
    try:
        email.send_email(
            recipient=user.email,
            subject="Verify your email address",
            body_html=(
                f"<p>Hi {user.name},</p><p>Your verification code is <strong>{otp}</strong>. "
                f"It expires in {rules.otp_ttl_minutes} minutes.</p>"
            ),
            body_text=f"Your verification code is {otp}",
        )
    except Exception:
        # The code stays valid; the user can ask for it again
        logger.exception("Failed to send verification email to %s", user.email)
    return updated


def run_register(
    inp: RegisterInput,
    *,
    user_repo: UserRepoPort,
    auth: AuthAdapterPort,
    email: EmailPort,
    registry: RoleRegistry,
    rules: AuthRules,
    time: TimePort,
) -> AccountOutput:
    role_name = inp.role or rules.default_role
    address = normalize_email(inp.email)

    errors: list[AccountError] = []
    if role_name not in rules.self_registration_roles:
        errors.append(
            _err(
                "ROLE_NOT_ALLOWED",
                f"Self-registration is limited to: {', '.join(rules.self_registration_roles)}",
                "role",
            )
        )
    name_error = _validate_name(inp.name, rules)
    if name_error:
        errors.append(name_error)
    if not EMAIL_PATTERN.match(address):
        errors.append(_err("EMAIL_INVALID", "Please provide a valid email", "email"))
    password_error = validate_password(inp.password, rules.password)
    if password_error:
        errors.append(password_error)
    if errors:
        return AccountOutput(user=None, errors=errors, success=False)

    taken = _err("EMAIL_TAKEN", "An account with this email already exists", "email", "conflict")
    if user_repo.get_by_email(address) is not None:
        return AccountOutput(user=None, errors=[taken], success=False)

    role = registry.get_role(role_name)
    now = time.now_utc()
    user = User(
        name=inp.name.strip(),
        email=address,
        password_hash=auth.hash_password(inp.password),
        role_id=role.id if role else None,
        legacy_role=role_name,
        is_email_verified=False,
        created_at=now,
        updated_at=now,
    )
    user = _send_verification(user, auth=auth, email=email, rules=rules, time=time)

    try:
        user = user_repo.insert(user)
    except DuplicateKeyError:
        return AccountOutput(user=None, errors=[taken], success=False)

    logger.info("Registered user %s as %s", user.id, role_name)
    return AccountOutput(user=user, errors=[], success=True)


def run_verify_email(
    inp: VerifyEmailInput,
    *,
    user_repo: UserRepoPort,
    auth: AuthAdapterPort,
    rules: AuthRules,
    time: TimePort,
) -> AccountOutput:
    """Confirm the emailed code; a verified account is signed in straight away."""
    user = user_repo.get_by_email(normalize_email(inp.email))
    if user is None:
        return AccountOutput(
            user=None, errors=[_err("USER_NOT_FOUND", "User not found", "email", "not_found")], success=False
        )
    if user.is_email_verified:
        return AccountOutput(
            user=None,
            errors=[_err("ALREADY_VERIFIED", "Email is already verified", "email", "conflict")],
            success=False,
        )

    now = time.now_utc()
    if not _digest_matches(auth, inp.otp.strip(), user.email_verification_otp):
        return AccountOutput(
            user=None, errors=[_err("OTP_INVALID", "Invalid verification code", "otp")], success=False
        )
    if user.email_verification_expire is None or user.email_verification_expire <= now:
        return AccountOutput(
            user=None,
            errors=[_err("OTP_EXPIRED", "Verification code has expired", "otp")],
            success=False,
        )

    user = user_repo.update(
        user.model_copy(
            update={
                "is_email_verified": True,
                "email_verification_otp": None,
                "email_verification_expire": None,
                "last_login": now,
                "updated_at": now,
            }
        )
    )
    logger.info("User %s verified their email", user.id)
    return AccountOutput(
        user=user, errors=[], success=True, token=auth.create_token(user.id, rules.token_ttl_minutes)
    )


def run_resend_verification(
    inp: ResendVerificationInput,
    *,
    user_repo: UserRepoPort,
    auth: AuthAdapterPort,
    email: EmailPort,
    rules: AuthRules,
    time: TimePort,
) -> AckOutput:
    user = user_repo.get_by_email(normalize_email(inp.email))
    if user is None:
        return AckOutput(errors=[_err("USER_NOT_FOUND", "User not found", "email", "not_found")], success=False)
    if user.is_email_verified:
        return AckOutput(
            errors=[_err("ALREADY_VERIFIED", "Email is already verified", "email", "conflict")],
            success=False,
        )
    user = _send_verification(user, auth=auth, email=email, rules=rules, time=time)
    user_repo.update(user.model_copy(update={"updated_at": time.now_utc()}))
    return AckOutput()


def run_login(
    inp: LoginInput,
    *,
    user_repo: UserRepoPort,
    auth: AuthAdapterPort,
    email: EmailPort,
    rules: AuthRules,
    time: TimePort,
) -> AccountOutput:
    invalid = _err("INVALID_CREDENTIALS", "Invalid credentials", "email", "not_authenticated")
    user = user_repo.get_by_email(normalize_email(inp.email))
    if user is None or not auth.verify_password(inp.password, user.password_hash):
        return AccountOutput(user=None, errors=[invalid], success=False)

    if not user.is_active:
        return AccountOutput(
            user=None,
            errors=[_err("ACCOUNT_DISABLED", "User account is disabled", "email", "authorization")],
            success=False,
        )

    if not user.is_email_verified:
        user = _send_verification(user, auth=auth, email=email, rules=rules, time=time)
        user_repo.update(user)
        return AccountOutput(
            user=None,
            errors=[
                _err(
                    "EMAIL_NOT_VERIFIED",
                    "Email not verified; a new verification code has been sent",
                    "email",
                    "authorization",
                )
            ],
            success=False,
        )

    now = time.now_utc()
    user = user_repo.update(user.model_copy(update={"last_login": now, "updated_at": now}))
    return AccountOutput(
        user=user, errors=[], success=True, token=auth.create_token(user.id, rules.token_ttl_minutes)
    )


def run_logout(
    inp: LogoutInput,
    *,
    user_repo: UserRepoPort,
    auth: AuthAdapterPort,
    rules: AuthRules,
    time: TimePort,
) -> AckOutput:
    """Blacklist the presented token; only the most recent entries are kept."""
    now = time.now_utc()
    token_hash = auth.hash_token(inp.token)
    user_repo.blacklist_token(inp.user.id, token_hash, now, rules.token_blacklist_cap)
    logger.info("User %s logged out", inp.user.id)
    return AckOutput()


def is_token_revoked(user: User, token: str, *, auth: AuthAdapterPort) -> bool:
    token_hash = auth.hash_token(token)
    return any(hmac.compare_digest(t.token_hash, token_hash) for t in user.token_blacklist)


def run_forgot_password(
    inp: ForgotPasswordInput,
    *,
    user_repo: UserRepoPort,
    auth: AuthAdapterPort,
    email: EmailPort,
    rules: AuthRules,
    time: TimePort,
) -> AckOutput:
    """Always acknowledges, so the response does not reveal which addresses exist."""
    user = user_repo.get_by_email(normalize_email(inp.email))
    if user is None:
        logger.info("Password reset requested for unknown address")
        return AckOutput()

    raw = auth.generate_reset_token()
    now = time.now_utc()
    user_repo.update(
        user.model_copy(
            update={
                "reset_password_token": auth.hash_token(raw),
                "reset_password_expire": now + timedelta(minutes=rules.reset_token_ttl_minutes),
                "updated_at": now,
            }
        )
    )
    link = f"{inp.reset_url_base.rstrip('/')}/{raw}" if inp.reset_url_base else raw
    try:
        email.send_email(
            recipient=user.email,
            subject="Password reset",
            body_html=(
                f"<p>Use this link to reset your password: {link}</p>"
                f"<p>It expires in {rules.reset_token_ttl_minutes} minutes.</p>"
            ),
            body_text=f"Reset your password: {link}",
        )
    except Exception:
        logger.exception("Failed to send password reset email to %s", user.email)
    return AckOutput()


def run_reset_password(
    inp: ResetPasswordInput,
    *,
    user_repo: UserRepoPort,
    auth: AuthAdapterPort,
    rules: AuthRules,
    time: TimePort,
) -> AccountOutput:
    now = time.now_utc()
    invalid = _err("RESET_TOKEN_INVALID", "Invalid or expired reset token", "token")
    user = user_repo.get_by_reset_token(auth.hash_token(inp.token))
    if user is None or user.reset_password_expire is None or user.reset_password_expire <= now:
        return AccountOutput(user=None, errors=[invalid], success=False)

    password_error = validate_password(inp.password, rules.password)
    if password_error:
        return AccountOutput(user=None, errors=[password_error], success=False)

    user = user_repo.update(
        user.model_copy(
            update={
                "password_hash": auth.hash_password(inp.password),
                "reset_password_token": None,
                "reset_password_expire": None,
                "updated_at": now,
            }
        )
    )
    logger.info("Password reset for user %s", user.id)
    return AccountOutput(
        user=user, errors=[], success=True, token=auth.create_token(user.id, rules.token_ttl_minutes)
    )


def run_update_profile(
    inp: UpdateProfileInput, *, user_repo: UserRepoPort, rules: AuthRules, time: TimePort
) -> AccountOutput:
    updates: dict[str, object] = {}
    if inp.name is not None:
        name_error = _validate_name(inp.name, rules)
        if name_error:
            return AccountOutput(user=None, errors=[name_error], success=False)
        updates["name"] = inp.name.strip()
    if inp.bio is not None:
        updates["bio"] = inp.bio
    if inp.avatar is not None:
        updates["avatar"] = inp.avatar or None

    updates["updated_at"] = time.now_utc()
    user = user_repo.update(inp.user.model_copy(update=updates))
    return AccountOutput(user=user, errors=[], success=True)


def run_change_password(
    inp: ChangePasswordInput,
    *,
    user_repo: UserRepoPort,
    auth: AuthAdapterPort,
    rules: AuthRules,
    time: TimePort,
) -> AccountOutput:
    if not auth.verify_password(inp.current_password, inp.user.password_hash):
        return AccountOutput(
            user=None,
            errors=[_err("PASSWORD_INCORRECT", "Current password is incorrect", "current_password")],
            success=False,
        )
    password_error = validate_password(inp.new_password, rules.password)
    if password_error:
        return AccountOutput(user=None, errors=[password_error], success=False)

    user = user_repo.update(
        inp.user.model_copy(
            update={"password_hash": auth.hash_password(inp.new_password), "updated_at": time.now_utc()}
        )
    )
    return AccountOutput(
        user=user, errors=[], success=True, token=auth.create_token(user.id, rules.token_ttl_minutes)
    )


def run_change_role(
    inp: ChangeRoleInput,
    *,
    user_repo: UserRepoPort,
    registry: RoleRegistry,
    policy: PolicyEngine,
    time: TimePort,
) -> AccountOutput:
    """Admin-only; the role reference and the legacy role string are always written together."""
    decision = policy.can_manage_roles(inp.actor)
    if not decision:
        assert isinstance(decision, Deny)
        return AccountOutput(user=None, errors=[_denied(decision)], success=False)

    role = registry.get_role(inp.role)
    if role is None:
        return AccountOutput(
            user=None, errors=[_err("ROLE_INVALID", f"Unknown role '{inp.role}'", "role")], success=False
        )

    target = user_repo.get_by_id(inp.user_id)
    if target is None:
        return AccountOutput(
            user=None, errors=[_err("USER_NOT_FOUND", "User not found", "user_id", "not_found")], success=False
        )

    user = user_repo.update(
        target.model_copy(
            update={"role_id": role.id, "legacy_role": role.name, "updated_at": time.now_utc()}
        )
    )
    logger.info(
        "User %s role changed to %s by %s", user.id, role.name, inp.actor.id if inp.actor else None
    )
    return AccountOutput(user=user, errors=[], success=True)


def run_list_users(
    inp: ListUsersInput, *, user_repo: UserRepoPort, policy: PolicyEngine
) -> UserListOutput:
    decision = policy.check(inp.actor, HasPermission("edit_users"))
    if not decision:
        assert isinstance(decision, Deny)
        return UserListOutput(errors=[_denied(decision)], success=False)
    return UserListOutput(users=user_repo.list_all())
