from fastapi import APIRouter, BackgroundTasks, Response
from pydantic import BaseModel, Field

from notesauth.app import App
from notesauth.config import Config
from notesauth.core.modules.session.models import AuthToken
from notesauth.core.modules.user.models import UserView
from notesauth.web.deps import AppDep, ConfigDep, IdentityDep
from notesauth.web.middleware import SESSION_COOKIE
from notesauth.web.openapi import ErrorResponse

router = APIRouter(tags=["auth"])


class CredentialsRequest(BaseModel):
    """Email and password, used by register and login."""

    email: str = Field(..., min_length=1, max_length=254, description="Email address")
    password: str = Field(..., min_length=1, max_length=1024, description="Password")


class ChangePasswordRequest(BaseModel):
    """Request to change user password."""

    old_password: str = Field(..., min_length=1, description="Current password")
    new_password: str = Field(..., min_length=1, description="New password")


class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512, description="Token from the emailed link")


class EmailRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=254, description="Email address")


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512, description="Token from the reset link")
    password: str = Field(..., min_length=1, max_length=1024, description="New password")


class MessageResponse(BaseModel):
    message: str = Field(..., description="Human-readable outcome")


class UserResponse(BaseModel):
    user: UserView


def set_session_cookie(response: Response, auth_token: AuthToken, config: Config) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=auth_token,
        httponly=True,
        samesite="lax",
        secure=config.secure_cookies,
        max_age=int(config.session_ttl.total_seconds()),
    )


def clear_session_cookie(response: Response, config: Config) -> None:
    response.delete_cookie(SESSION_COOKIE, httponly=True, samesite="lax", secure=config.secure_cookies)


@router.post(
    "/auth/register",
    summary="Register account",
    description="Create an account, send an email verification link and start a session.",
    operation_id="register",
    status_code=201,
    responses={
        201: {"description": "Account created"},
        400: {"model": ErrorResponse, "description": "Invalid email or password"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
async def register(data: CredentialsRequest, app: AppDep, config: ConfigDep, response: Response) -> UserResponse:
    user, auth_token = await app.register(data.email, data.password)
    set_session_cookie(response, auth_token, config)
    return UserResponse(user=user)


@router.post(
    "/auth/login",
    summary="Authenticate user",
    description="Authenticate with email and password; the session token is set as an HttpOnly cookie.",
    operation_id="login",
    responses={
        200: {"description": "Successfully authenticated"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
    },
)
async def login(data: CredentialsRequest, app: AppDep, config: ConfigDep, response: Response) -> UserResponse:
    """Authenticate user and create session."""
    user, auth_token = await app.login(data.email, data.password)
    set_session_cookie(response, auth_token, config)
    return UserResponse(user=user)


@router.post(
    "/auth/logout",
    summary="End session",
    description="Invalidate the current authentication session.",
    operation_id="logout",
    responses={
        200: {"description": "Successfully logged out"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def logout(app: AppDep, config: ConfigDep, identity: IdentityDep, response: Response) -> MessageResponse:
    await app.logout(identity)
    clear_session_cookie(response, config)
    return MessageResponse(message="Logged out")


@router.get(
    "/auth/me",
    summary="Get current user",
    description="Get the account behind the current session.",
    operation_id="getCurrentUser",
    responses={
        200: {"description": "Current user"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def me(app: AppDep, identity: IdentityDep) -> UserResponse:
    return UserResponse(user=await app.get_current_user(identity))


@router.post(
    "/auth/password",
    summary="Change password",
    description="Change the password and end every existing session. A new session cookie is returned.",
    operation_id="changePassword",
    responses={
        200: {"description": "Password changed, other sessions revoked"},
        400: {"model": ErrorResponse, "description": "Invalid current or new password"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def change_password(
    data: ChangePasswordRequest, app: AppDep, config: ConfigDep, identity: IdentityDep, response: Response
) -> MessageResponse:
    auth_token = await app.change_password(identity, data.old_password, data.new_password)
    set_session_cookie(response, auth_token, config)
    return MessageResponse(message="Password changed")


@router.post(
    "/auth/verify-email",
    summary="Verify email",
    description="Confirm an email address with the token from the verification link.",
    operation_id="verifyEmail",
    responses={
        200: {"description": "Email verified"},
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
    },
)
async def verify_email(data: TokenRequest, app: AppDep) -> MessageResponse:
    await app.verify_email(data.token)
    return MessageResponse(message="Email verified")


@router.post(
    "/auth/resend-verification",
    summary="Resend verification email",
    operation_id="resendVerification",
    responses={
        200: {"description": "Verification email sent if the address is unverified"},
        401: {"model": ErrorResponse, "description": "Not authenticated"},
    },
)
async def resend_verification(app: AppDep, identity: IdentityDep) -> MessageResponse:
    await app.resend_verification(identity)
    return MessageResponse(message="If your email is not verified yet, a new link is on its way")


@router.post(
    "/auth/magic-link",
    summary="Request magic link",
    description="Email a one-time sign-in link. The response does not reveal whether the account exists.",
    operation_id="requestMagicLink",
    responses={
        200: {"description": "Request accepted"},
        400: {"model": ErrorResponse, "description": "Malformed email address"},
    },
)
async def request_magic_link(data: EmailRequest, app: AppDep) -> MessageResponse:
    await app.request_magic_link(data.email)
    return MessageResponse(message="If the address can receive mail, a sign-in link is on its way")


async def _verify_magic_link(token: str, app: App, config: Config, response: Response) -> UserResponse:
    user, auth_token = await app.verify_magic_link(token)
    set_session_cookie(response, auth_token, config)
    return UserResponse(user=user)


@router.get(
    "/auth/magic-link/verify",
    summary="Sign in with magic link",
    description="Consume a magic-link token and start a session.",
    operation_id="verifyMagicLink",
    responses={
        200: {"description": "Signed in"},
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
    },
)
async def verify_magic_link(token: str, app: AppDep, config: ConfigDep, response: Response) -> UserResponse:
    return await _verify_magic_link(token, app, config, response)


@router.post(
    "/auth/magic-link/verify",
    summary="Sign in with magic link (token in body)",
    operation_id="verifyMagicLinkPost",
    responses={
        200: {"description": "Signed in"},
        400: {"model": ErrorResponse, "description": "Invalid or expired token"},
    },
)
async def verify_magic_link_post(data: TokenRequest, app: AppDep, config: ConfigDep, response: Response) -> UserResponse:
    return await _verify_magic_link(data.token, app, config, response)


@router.post(
    "/auth/forgot-password",
    summary="Request password reset",
    description="Email a password reset link. The response does not reveal whether the account exists.",
    operation_id="forgotPassword",
    responses={200: {"description": "Request accepted"}},
)
async def forgot_password(data: EmailRequest, app: AppDep, background_tasks: BackgroundTasks) -> MessageResponse:
    # Runs after the response is sent: known and unknown addresses answer in the same time
    background_tasks.add_task(app.forgot_password, data.email)
    return MessageResponse(message="If an account exists for that address, a reset link is on its way")


@router.post(
    "/auth/reset-password",
    summary="Reset password",
    description="Set a new password with a reset token. Every existing session ends and a new one starts.",
    operation_id="resetPassword",
    responses={
        200: {"description": "Password reset, signed in"},
        400: {"model": ErrorResponse, "description": "Invalid or expired token, or weak password"},
    },
)
async def reset_password(data: ResetPasswordRequest, app: AppDep, config: ConfigDep, response: Response) -> UserResponse:
    user, auth_token = await app.reset_password(data.token, data.password)
    set_session_cookie(response, auth_token, config)
    return UserResponse(user=user)
