"""
auth/ownership.py -- Who may read or write an owned resource.

Tasks, contacts and projects each carry an optional owner_identity_id and an
optional owner_session_id. Access is granted when any of these hold:

  1. the caller is an authenticated admin (this includes resources with
     neither owner field set -- admin-created public content relies on it),
  2. the caller's identity id equals owner_identity_id,
  3. the caller's anonymous session id equals owner_session_id.

A missing resource is NotFound before any ownership check so the two errors
never mask each other.

The anonymous session id is a self-asserted correlation key, not a
credential. It scopes an anonymous visitor's own tasks and nothing more.

Layer rule: no imports from api/, content/, or mail/.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, TypeVar

from auth.models import Identity
from core.errors import AccessDenied, MissingSession, NotFound


class OwnedResource(Protocol):
    owner_identity_id: int | None
    owner_session_id: str | None


R = TypeVar("R", bound=OwnedResource)


@dataclass(frozen=True)
class Caller:
    """The resolved requester: an identity, an anonymous session, both, or neither."""

    identity: Identity | None = None
    session_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.identity is not None and self.identity.is_admin

    def require_session(self) -> Caller:
        """Raise MissingSession unless an identity or a session id is present."""
        if self.identity is None and not self.session_id:
            raise MissingSession()
        return self

    def owner_fields(self) -> dict:
        """Owner columns for a resource this caller creates.

        Authenticated callers own by identity; anonymous callers by session.
        Exactly one of the two is set.
        """
        if self.identity is not None:
            return {"owner_identity_id": self.identity.id, "owner_session_id": None}
        return {"owner_identity_id": None, "owner_session_id": self.session_id}


def can_access(caller: Caller, resource: OwnedResource) -> bool:
    if caller.is_admin:
        return True
    if caller.identity is not None and resource.owner_identity_id is not None:
        if caller.identity.id == resource.owner_identity_id:
            return True
    if caller.session_id and resource.owner_session_id is not None:
        if caller.session_id == resource.owner_session_id:
            return True
    return False


def check_access(caller: Caller, resource: R | None) -> R:
    """Return resource if caller may access it.

    Raises:
        NotFound:     resource is None.
        AccessDenied: resource exists but belongs to someone else.
    """
    if resource is None:
        raise NotFound()
    if not can_access(caller, resource):
        raise AccessDenied()
    return resource
