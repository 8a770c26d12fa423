"""
Tests for auth/ownership.py -- Caller resolution and access checks.

Fixture resources are plain content dataclasses; nothing touches a store.
"""

from __future__ import annotations

import pytest

from auth.models import ROLE_ADMIN, Identity
from auth.ownership import Caller, can_access, check_access
from content.models import Task
from core.errors import AccessDenied, MissingSession, NotFound


def _identity(identity_id: int, role: str = "user") -> Identity:
    return Identity(email=f"u{identity_id}@example.com", password_hash="x", display_name="U", role=role, id=identity_id)


SESSION_TASK = Task(title="anonymous", owner_session_id="abc", id=1)
USER_TASK = Task(title="owned", owner_identity_id=10, id=2)
UNOWNED_TASK = Task(title="admin content", id=3)


class TestCheckAccess:
    def test_matching_session(self) -> None:
        assert check_access(Caller(session_id="abc"), SESSION_TASK) is SESSION_TASK

    def test_other_session_denied(self) -> None:
        with pytest.raises(AccessDenied):
            check_access(Caller(session_id="xyz"), SESSION_TASK)

    def test_unrelated_identity_denied(self) -> None:
        with pytest.raises(AccessDenied):
            check_access(Caller(identity=_identity(99)), SESSION_TASK)

    def test_owner_identity(self) -> None:
        assert check_access(Caller(identity=_identity(10)), USER_TASK) is USER_TASK

    def test_admin_reaches_everything(self) -> None:
        admin = Caller(identity=_identity(1, role=ROLE_ADMIN))
        for resource in (SESSION_TASK, USER_TASK, UNOWNED_TASK):
            assert check_access(admin, resource) is resource

    def test_unowned_resource_denied_to_non_admin(self) -> None:
        assert can_access(Caller(session_id="abc"), UNOWNED_TASK) is False
        assert can_access(Caller(identity=_identity(10)), UNOWNED_TASK) is False

    def test_missing_resource_is_not_found_before_ownership(self) -> None:
        with pytest.raises(NotFound):
            check_access(Caller(session_id="xyz"), None)

    def test_identity_with_matching_session_still_accesses_session_task(self) -> None:
        caller = Caller(identity=_identity(99), session_id="abc")
        assert can_access(caller, SESSION_TASK) is True


class TestCaller:
    def test_anonymous_without_session_requires_one(self) -> None:
        with pytest.raises(MissingSession):
            Caller().require_session()

    def test_session_or_identity_satisfies_requirement(self) -> None:
        Caller(session_id="abc").require_session()
        Caller(identity=_identity(5)).require_session()

    def test_owner_fields_prefer_identity(self) -> None:
        caller = Caller(identity=_identity(5), session_id="abc")
        assert caller.owner_fields() == {"owner_identity_id": 5, "owner_session_id": None}

    def test_owner_fields_for_anonymous(self) -> None:
        assert Caller(session_id="abc").owner_fields() == {"owner_identity_id": None, "owner_session_id": "abc"}

    def test_is_admin(self) -> None:
        assert Caller(identity=_identity(1, role=ROLE_ADMIN)).is_admin
        assert not Caller(identity=_identity(2)).is_admin
        assert not Caller(session_id="abc").is_admin
