from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from siteforge.adapters.auth.crypto import JWTAuthAdapter
from siteforge.adapters.clock import SystemClock
from siteforge.adapters.dev_email import DevEmailAdapter
from siteforge.adapters.sqlite.repos import SQLiteUserRepo
from siteforge.api.deps import (
    Settings,
    get_auth_adapter,
    get_clock,
    get_current_user,
    get_email_adapter,
    get_registry,
    get_rules,
    get_settings,
    get_token,
    get_user_repo,
)
from siteforge.api.errors import raise_for_errors
from siteforge.api.schemas import (
    AuthResponse,
    EmailRequest,
    ForgotPasswordRequest,
    MessageResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
    VerifyEmailRequest,
)
from siteforge.components.accounts import (
    ChangePasswordInput,
    ForgotPasswordInput,
    LoginInput,
    LogoutInput,
    RegisterInput,
    ResendVerificationInput,
    ResetPasswordInput,
    UpdateProfileInput,
    VerifyEmailInput,
    run_change_password,
    run_forgot_password,
    run_login,
    run_logout,
    run_register,
    run_resend_verification,
    run_reset_password,
    run_update_profile,
    run_verify_email,
)
from siteforge.domain.entities import User

router = APIRouter()


def _set_auth_cookie(response: Response, token: str, ttl_minutes: int) -> None:
    response.set_cookie(
        key="access_token",
        value=f"Bearer {token}",
        httponly=True,
        max_age=ttl_minutes * 60,
        expires=ttl_minutes * 60,
        samesite="lax",
        secure=False,  # Set to True for HTTPS prod
    )


def _auth_response(response: Response, token: str, user: User, ttl_minutes: int) -> AuthResponse:
    _set_auth_cookie(response, token, ttl_minutes)
    return AuthResponse(access_token=token, user=UserResponse.from_user(user))


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    req: RegisterRequest,
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
    email: DevEmailAdapter = Depends(get_email_adapter),
    clock: SystemClock = Depends(get_clock),
) -> UserResponse:
    """Create an unverified account and email a verification code."""
    result = run_register(
        RegisterInput(name=req.name, email=req.email, password=req.password, role=req.role),
        user_repo=user_repo,
        auth=auth,
        email=email,
        registry=get_registry(settings),
        rules=get_rules(settings).auth,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.user is not None
    return UserResponse.from_user(result.user)


@router.post("/verify-email", response_model=AuthResponse)
def verify_email(
    req: VerifyEmailRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
    clock: SystemClock = Depends(get_clock),
) -> AuthResponse:
    rules = get_rules(settings).auth
    result = run_verify_email(
        VerifyEmailInput(email=req.email, otp=req.otp),
        user_repo=user_repo,
        auth=auth,
        rules=rules,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.user is not None and result.token is not None
    return _auth_response(response, result.token, result.user, rules.token_ttl_minutes)


@router.post("/resend-verification", response_model=MessageResponse)
def resend_verification(
    req: EmailRequest,
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
    email: DevEmailAdapter = Depends(get_email_adapter),
    clock: SystemClock = Depends(get_clock),
) -> MessageResponse:
    result = run_resend_verification(
        ResendVerificationInput(email=req.email),
        user_repo=user_repo,
        auth=auth,
        email=email,
        rules=get_rules(settings).auth,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    return MessageResponse(message="Verification code sent")


@router.post("/login", response_model=AuthResponse)
def login_for_access_token(
    response: Response,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
    email: DevEmailAdapter = Depends(get_email_adapter),
    clock: SystemClock = Depends(get_clock),
) -> AuthResponse:
    """Authenticate with email (form field `username`) and password."""
    rules = get_rules(settings).auth
    result = run_login(
        LoginInput(email=form_data.username, password=form_data.password),
        user_repo=user_repo,
        auth=auth,
        email=email,
        rules=rules,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.user is not None and result.token is not None
    return _auth_response(response, result.token, result.user, rules.token_ttl_minutes)


@router.post("/logout", response_model=MessageResponse)
def logout(
    response: Response,
    current_user: User = Depends(get_current_user),
    token: str | None = Depends(get_token),
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
    clock: SystemClock = Depends(get_clock),
) -> MessageResponse:
    """Revoke the presented token and clear the cookie."""
    assert token is not None
    run_logout(
        LogoutInput(user=current_user, token=token),
        user_repo=user_repo,
        auth=auth,
        rules=get_rules(settings).auth,
        time=clock,
    )
    response.delete_cookie(key="access_token")
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
def read_users_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.put("/me", response_model=UserResponse)
def update_me(
    req: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    clock: SystemClock = Depends(get_clock),
) -> UserResponse:
    result = run_update_profile(
        UpdateProfileInput(user=current_user, name=req.name, bio=req.bio, avatar=req.avatar),
        user_repo=user_repo,
        rules=get_rules(settings).auth,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.user is not None
    return UserResponse.from_user(result.user)


@router.put("/me/password", response_model=AuthResponse)
def change_password(
    req: PasswordChangeRequest,
    response: Response,
    current_user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
    clock: SystemClock = Depends(get_clock),
) -> AuthResponse:
    rules = get_rules(settings).auth
    result = run_change_password(
        ChangePasswordInput(
            user=current_user,
            current_password=req.current_password,
            new_password=req.new_password,
        ),
        user_repo=user_repo,
        auth=auth,
        rules=rules,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.user is not None and result.token is not None
    return _auth_response(response, result.token, result.user, rules.token_ttl_minutes)


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    req: ForgotPasswordRequest,
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
    email: DevEmailAdapter = Depends(get_email_adapter),
    clock: SystemClock = Depends(get_clock),
) -> MessageResponse:
    run_forgot_password(
        ForgotPasswordInput(email=req.email, reset_url_base=req.reset_url_base),
        user_repo=user_repo,
        auth=auth,
        email=email,
        rules=get_rules(settings).auth,
        time=clock,
    )
    return MessageResponse(message="If the address is registered, a reset link has been sent")


@router.put("/reset-password/{token}", response_model=AuthResponse)
def reset_password(
    token: str,
    req: ResetPasswordRequest,
    response: Response,
    settings: Settings = Depends(get_settings),
    user_repo: SQLiteUserRepo = Depends(get_user_repo),
    auth: JWTAuthAdapter = Depends(get_auth_adapter),
    clock: SystemClock = Depends(get_clock),
) -> AuthResponse:
    rules = get_rules(settings).auth
    result = run_reset_password(
        ResetPasswordInput(token=token, password=req.password),
        user_repo=user_repo,
        auth=auth,
        rules=rules,
        time=clock,
    )
    if not result.success:
        raise_for_errors(result.errors)
    assert result.user is not None and result.token is not None
    return _auth_response(response, result.token, result.user, rules.token_ttl_minutes)
