"""
api/routes/v1/auth.py -- Account, verification and user management REST endpoints.

Routes:
  POST  /api/v1/auth/register              -- create unverified account; emails a link
  POST  /api/v1/auth/login                 -- password login; returns bearer token
  POST  /api/v1/auth/logout                -- stateless; client discards its token
  GET   /api/v1/auth/me                    -- current user (requires auth)
  PUT   /api/v1/auth/profile               -- change name/email (requires auth)
  PUT   /api/v1/auth/change-password       -- change password (requires auth)
  POST  /api/v1/auth/refresh-token         -- fresh bearer token (requires auth)
  POST  /api/v1/auth/verify-token          -- is this bearer token valid? (requires auth)
  GET   /api/v1/auth/verify-email          -- consume the emailed verification link
  POST  /api/v1/auth/resend-verification   -- new link, subject to cooldown
  POST  /api/v1/auth/create-admin          -- bootstrap admin (DEBUG only)
  GET   /api/v1/auth/users                 -- list users (admin only)
  PATCH /api/v1/auth/users/{id}            -- activate/deactivate (admin only)
  POST  /api/v1/auth/users/{id}/unlock     -- clear lockout (admin only)

Security:
  register, login and resend-verification are rate-limited per IP.
  AuthService.login() runs bcrypt for unknown emails too -- never inline
  find_by_email() + verify_password() here.
  PATCH /users/{id} blocks self-deactivation and last-admin deactivation.
  Cache-Control: no-store on every response that carries a token.

Every failure is raised as a core.errors kind; api/main.py maps it to the
error envelope. No route builds an error response by hand.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.limiter import AUTH_RATE_LIMIT, limiter
from api.models import (
    AdminUserResponse,
    ChangePasswordRequest,
    CreateAdminRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    ProfileUpdate,
    RegisterRequest,
    RegisterResponse,
    ResendVerificationRequest,
    ResendVerificationResponse,
    TokenResponse,
    UserPatch,
    UserResponse,
    VerifyEmailResponse,
    VerifyTokenResponse,
)
from auth.dependencies import get_current_user, require_admin
from auth.models import Identity
from auth.service import AuthService
from core.config import get_settings
from core.errors import InvalidRequest

# Auth policy:
# - register, login, logout, verify-email, resend-verification: public
# - create-admin: public but refused unless DEBUG=true
# - me, profile, change-password, refresh-token, verify-token: get_current_user
# - users, users/{id}, users/{id}/unlock: require_admin
router = APIRouter()

_settings = get_settings()


def _origin_url(request: Request) -> str:
    """Base URL for links in emails: Origin header, then PUBLIC_ORIGIN, then this server."""
    return request.headers.get("Origin") or _settings.public_origin or str(request.base_url).rstrip("/")


def _token_response(model) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=model.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(AUTH_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> RegisterResponse:
    """Create an unverified account and email a verification link.

    No token is returned: the account cannot log in until the link is used.
    """
    service: AuthService = request.app.state.auth_service
    identity = service.register(body.name, body.email, body.password, origin_url=_origin_url(request))
    return RegisterResponse(
        message="Registration successful. Please check your email to verify your account.",
        user=UserResponse.from_identity(identity),
    )


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer token.

    Wrong email and wrong password both answer invalid_credentials.
    """
    service: AuthService = request.app.state.auth_service
    result = service.login(body.email, body.password)
    return _token_response(
        LoginResponse(
            access_token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=_settings.token_expire_seconds,
            user=UserResponse.from_identity(result.identity),
        )
    )


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    """Tokens are stateless; logging out is the client discarding its token."""
    return MessageResponse(message="Logged out.")


@router.get("/auth/verify-email", response_model=VerifyEmailResponse)
def verify_email(
    request: Request,
    email: str = Query(min_length=1, max_length=255),
    token: str = Query(min_length=1, max_length=128),
) -> VerifyEmailResponse:
    """Consume the emailed link. Repeating it on a verified account also succeeds."""
    service: AuthService = request.app.state.auth_service
    identity = service.verify_email(email, token)
    return VerifyEmailResponse(message="Email verified successfully.", user=UserResponse.from_identity(identity))


@limiter.limit(AUTH_RATE_LIMIT)
@router.post("/auth/resend-verification", response_model=ResendVerificationResponse)
def resend_verification(request: Request, body: ResendVerificationRequest) -> ResendVerificationResponse:
    service: AuthService = request.app.state.auth_service
    service.resend_verification(body.email, origin_url=_origin_url(request))
    return ResendVerificationResponse(
        message="Verification email sent.",
        cooldown=_settings.resend_cooldown_seconds,
    )


@router.post("/auth/create-admin", response_model=LoginResponse, status_code=201)
def create_admin(request: Request, body: Optional[CreateAdminRequest] = None) -> JSONResponse:
    """Create the single admin account. Refused outside development mode."""
    service: AuthService = request.app.state.auth_service
    body = body or CreateAdminRequest()
    result = service.create_admin(body.email, body.password, body.name)
    resp = _token_response(
        LoginResponse(
            access_token=result.token,
            expires_in=_settings.token_expire_seconds,
            user=UserResponse.from_identity(result.identity),
        )
    )
    resp.status_code = 201
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
async def me(current_user: Identity = Depends(get_current_user)) -> MeResponse:
    """Return the currently authenticated user."""
    return MeResponse(user=UserResponse.from_identity(current_user))


@router.put("/auth/profile", response_model=MeResponse)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: Identity = Depends(get_current_user),
) -> MeResponse:
    if body.name is None and body.email is None:
        raise InvalidRequest("No fields to update.")
    service: AuthService = request.app.state.auth_service
    updated = service.update_profile(current_user.id, name=body.name, email=body.email)
    return MeResponse(user=UserResponse.from_identity(updated))


@router.put("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: Identity = Depends(get_current_user),
) -> MessageResponse:
    """Change password. A wrong current password is invalid_current_password, not invalid_credentials."""
    service: AuthService = request.app.state.auth_service
    service.change_password(current_user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully.")


@router.post("/auth/refresh-token", response_model=TokenResponse)
def refresh_token(request: Request, current_user: Identity = Depends(get_current_user)) -> JSONResponse:
    service: AuthService = request.app.state.auth_service
    return _token_response(
        TokenResponse(
            access_token=service.refresh_token(current_user),
            expires_in=_settings.token_expire_seconds,
        )
    )


@router.post("/auth/verify-token", response_model=VerifyTokenResponse)
async def verify_token(current_user: Identity = Depends(get_current_user)) -> VerifyTokenResponse:
    """Answer 200 for a valid token; the dependency raises the 401 kinds otherwise."""
    return VerifyTokenResponse(valid=True, user=UserResponse.from_identity(current_user))


# ---------------------------------------------------------------------------
# User management (admin only)
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=list[AdminUserResponse])
def list_users(request: Request, current_user: Identity = Depends(require_admin)) -> list[AdminUserResponse]:
    """List all accounts with their lockout state. Admin only."""
    identities = request.app.state.identity_store.list_identities()
    return [AdminUserResponse.from_identity(i) for i in identities]


@router.patch("/auth/users/{user_id}", response_model=AdminUserResponse)
def update_user(
    request: Request,
    user_id: int,
    body: UserPatch,
    current_user: Identity = Depends(require_admin),
) -> AdminUserResponse:
    """Activate or deactivate an account. Admin only. The guards live in AuthService.set_active()."""
    if body.is_active is None:
        raise InvalidRequest("No fields to update.")
    service: AuthService = request.app.state.auth_service
    updated = service.set_active(current_user, user_id, body.is_active)
    return AdminUserResponse.from_identity(updated)


@router.post("/auth/users/{user_id}/unlock", response_model=AdminUserResponse)
def unlock_user(
    request: Request,
    user_id: int,
    current_user: Identity = Depends(require_admin),
) -> AdminUserResponse:
    """Clear failed-login count and lock. Admin only."""
    service: AuthService = request.app.state.auth_service
    return AdminUserResponse.from_identity(service.unlock(user_id))
