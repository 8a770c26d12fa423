"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and ownership.

Bearer tokens arrive in the Authorization header. An anonymous visitor is
identified by a self-asserted session id, looked up in priority order:
  1. X-Session-Id header
  2. "sessionId" field of a JSON request body
  3. "sessionId" query parameter

try_get_current_user() is the soft variant (returns None on any failure).
get_current_user() raises MissingToken / MalformedToken / ExpiredToken /
AccountDeactivated / AccountLocked. require_admin() adds AdminRequired.
get_caller() combines the soft identity with the session id; require_caller()
additionally demands one of the two (MissingSession).

A token close to expiry is re-issued here and parked on request.state; the
X-New-Token middleware in api/main.py copies it onto the response.

Layer rule: no imports from api/ or content/.
  auth/dependencies.py may import from fastapi (for Depends/Request) because
  this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import json

from fastapi import Depends, Request

from auth import lockout
from auth.models import Identity
from auth.ownership import Caller
from auth.tokens import decode_access_token, maybe_refresh
from core.errors import (
    AccountDeactivated,
    AccountLocked,
    AdminRequired,
    FolioError,
    MalformedToken,
    MissingToken,
)

SESSION_HEADER = "X-Session-Id"
SESSION_FIELD = "sessionId"


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:]
        return token or None
    return None


def get_current_user(request: Request) -> Identity:
    """Require a valid bearer token for an active, unlocked identity.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: Identity = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise MissingToken()

    claims = decode_access_token(token)
    identity = request.app.state.identity_store.find_by_id(claims.identity_id)
    if identity is None:
        # Signed by us but the account is gone.
        raise MalformedToken()
    if not identity.is_active:
        raise AccountDeactivated()

    now = request.app.state.auth_service.clock()
    if lockout.is_locked(identity, now):
        raise AccountLocked(identity.locked_until)

    refreshed = maybe_refresh(token, identity, now=now)
    if refreshed is not None:
        request.state.refreshed_token = refreshed
    return identity


def try_get_current_user(request: Request) -> Identity | None:
    """Return the authenticated identity, or None if the request is anonymous.

    Never raises a FolioError -- an expired or malformed token is treated
    the same as no token at all.
    """
    try:
        return get_current_user(request)
    except FolioError:
        return None


def require_admin(request: Request) -> Identity:
    """Require admin role. Raises the get_current_user() errors, then AdminRequired.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        async def route(user: Identity = Depends(require_admin)): ...
    """
    identity = get_current_user(request)
    if not identity.is_admin:
        raise AdminRequired()
    return identity


async def resolve_session_id(request: Request) -> str | None:
    """Return the anonymous session id from header, JSON body, or query string."""
    session_id = request.headers.get(SESSION_HEADER)
    if session_id:
        return session_id

    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            # Starlette caches the body, so route body parsing still sees it.
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        if isinstance(body, dict):
            value = body.get(SESSION_FIELD)
            if isinstance(value, str) and value:
                return value

    return request.query_params.get(SESSION_FIELD) or None


def get_caller(
    identity: Identity | None = Depends(try_get_current_user),
    session_id: str | None = Depends(resolve_session_id),
) -> Caller:
    """Resolve the requester for public and ownership-gated routes."""
    return Caller(identity=identity, session_id=session_id)


def require_caller(caller: Caller = Depends(get_caller)) -> Caller:
    """Like get_caller() but raises MissingSession for a fully anonymous request."""
    return caller.require_session()
