"""
core/errors.py -- Typed error kinds shared by auth/, content/ and api/.

Every failure the auth and ownership layers can report is a FolioError
subclass carrying a stable machine code, an HTTP status, and a human-readable
message. Services raise them; api/main.py owns the single exception handler
that turns any FolioError into the standard error envelope:

    {"error": {"code": "...", "message": "...", ...extra}}

Extra fields (lock_until, retry_after) travel in FolioError.extra so the
boundary can surface them without knowing each subclass.

Layer rule: no imports from api/, auth/, content/, or mail/.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any


class FolioError(Exception):
    """Base class for every typed error that crosses the HTTP boundary."""

    code: str = "error"
    status_code: int = 400
    default_message: str = "Request failed."

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra: dict[str, Any] = extra
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Credential store / login
# ---------------------------------------------------------------------------


class DuplicateEmail(FolioError):
    code = "duplicate_email"
    status_code = 409
    default_message = "A user with that email already exists."


class UserNotFound(FolioError):
    code = "user_not_found"
    status_code = 404
    default_message = "User not found."


class InvalidCredentials(FolioError):
    """Wrong email or wrong password -- deliberately indistinguishable."""

    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password."


class InvalidCurrentPassword(FolioError):
    code = "invalid_current_password"
    status_code = 400
    default_message = "Current password is incorrect."


class EmailNotVerified(FolioError):
    code = "email_not_verified"
    status_code = 403
    default_message = "Please verify your email before logging in."


class AlreadyVerified(FolioError):
    code = "already_verified"
    status_code = 400
    default_message = "Email already verified."


class AccountLocked(FolioError):
    code = "account_locked"
    status_code = 423
    default_message = "Account is temporarily locked due to multiple failed login attempts."

    def __init__(self, locked_until: datetime | None = None, message: str | None = None) -> None:
        super().__init__(message, lock_until=locked_until.isoformat() if locked_until else None)
        self.locked_until = locked_until


class AccountDeactivated(FolioError):
    code = "account_deactivated"
    status_code = 401
    default_message = "Account is deactivated."


# ---------------------------------------------------------------------------
# Bearer tokens
# ---------------------------------------------------------------------------


class MissingToken(FolioError):
    code = "unauthorized"
    status_code = 401
    default_message = "Access token required."


class MalformedToken(FolioError):
    code = "malformed_token"
    status_code = 401
    default_message = "Invalid token."


class ExpiredToken(FolioError):
    code = "expired_token"
    status_code = 401
    default_message = "Token expired."


# ---------------------------------------------------------------------------
# Email verification
# ---------------------------------------------------------------------------


class InvalidOrExpiredToken(FolioError):
    code = "invalid_or_expired_token"
    status_code = 400
    default_message = "Verification link is invalid or has expired."


class TooManyRequests(FolioError):
    code = "too_many_requests"
    status_code = 429
    default_message = "Verification email already sent recently."

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message, retry_after=retry_after)
        self.retry_after = retry_after


# ---------------------------------------------------------------------------
# Ownership / authorization
# ---------------------------------------------------------------------------


class AccessDenied(FolioError):
    code = "access_denied"
    status_code = 403
    default_message = "Access denied - insufficient permissions."


class AdminRequired(FolioError):
    code = "forbidden"
    status_code = 403
    default_message = "Admin access required."


class NotFound(FolioError):
    code = "not_found"
    status_code = 404
    default_message = "Resource not found."


class MissingSession(FolioError):
    code = "missing_session"
    status_code = 400
    default_message = "Session ID required for anonymous users."


# ---------------------------------------------------------------------------
# Admin bootstrap
# ---------------------------------------------------------------------------


class AdminExists(FolioError):
    code = "admin_exists"
    status_code = 409
    default_message = "Admin user already exists."


class AdminCreationDisabled(FolioError):
    code = "production_restriction"
    status_code = 403
    default_message = "Admin creation not allowed in production."


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------


class InvalidRequest(FolioError):
    code = "invalid_request"
    status_code = 400
    default_message = "Request is missing required fields."


class SelfDeactivation(FolioError):
    code = "self_deactivation"
    status_code = 400
    default_message = "You cannot deactivate your own account."


class LastAdmin(FolioError):
    code = "last_admin"
    status_code = 400
    default_message = "Cannot deactivate the last active admin account."


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class SlugExists(FolioError):
    code = "slug_exists"
    status_code = 409
    default_message = "A post with this title already exists."
