"""
Tests for auth/store.py -- IdentityStore CRUD against in-memory SQLite.

Coverage:
  - create + lookup by email (case-insensitive) and id
  - password is stored as a bcrypt hash
  - duplicate email on create and on profile update
  - admin lookup and active-admin count
  - lockout and verification fields survive a round trip
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from auth.models import ROLE_ADMIN
from auth.store import IdentityStore
from core.errors import DuplicateEmail, UserNotFound


def test_create_and_find(identity_store: IdentityStore) -> None:
    identity = identity_store.create("  Jane@Example.COM ", "Passw0rd", " Jane ")
    assert identity.id is not None
    assert identity.email == "jane@example.com"
    assert identity.display_name == "Jane"
    assert identity.is_active is True
    assert identity.is_verified is False
    assert identity_store.find_by_email("JANE@example.com").id == identity.id
    assert identity_store.find_by_id(identity.id).email == "jane@example.com"


def test_password_is_hashed(identity_store: IdentityStore) -> None:
    identity = identity_store.create("jane@example.com", "Passw0rd", "Jane")
    assert identity.password_hash != "Passw0rd"
    assert identity_store.verify_password(identity, "Passw0rd")
    assert not identity_store.verify_password(identity, "Wrong1234")


def test_duplicate_email(identity_store: IdentityStore) -> None:
    identity_store.create("jane@example.com", "Passw0rd", "Jane")
    with pytest.raises(DuplicateEmail):
        identity_store.create("JANE@example.com", "Passw0rd", "Jane Again")


def test_missing_lookups(identity_store: IdentityStore) -> None:
    assert identity_store.find_by_email("nobody@example.com") is None
    assert identity_store.find_by_id(999) is None
    with pytest.raises(UserNotFound):
        identity_store.get(999)


def test_update_profile_rejects_taken_email(identity_store: IdentityStore) -> None:
    identity_store.create("taken@example.com", "Passw0rd", "Taken")
    jane = identity_store.create("jane@example.com", "Passw0rd", "Jane")
    with pytest.raises(DuplicateEmail):
        identity_store.update_profile(jane.id, email="Taken@example.com")


def test_update_profile_keeping_own_email(identity_store: IdentityStore) -> None:
    jane = identity_store.create("jane@example.com", "Passw0rd", "Jane")
    updated = identity_store.update_profile(jane.id, display_name="Jane Doe", email="jane@example.com")
    assert updated.display_name == "Jane Doe"


def test_set_password(identity_store: IdentityStore) -> None:
    jane = identity_store.create("jane@example.com", "Passw0rd", "Jane")
    identity_store.set_password(jane.id, "NewPassw0rd")
    stored = identity_store.get(jane.id)
    assert identity_store.verify_password(stored, "NewPassw0rd")
    assert not identity_store.verify_password(stored, "Passw0rd")


def test_admin_lookup_and_count(identity_store: IdentityStore) -> None:
    assert identity_store.find_admin() is None
    assert identity_store.count_active_admins() == 0
    identity_store.create("user@example.com", "Passw0rd", "User")
    admin = identity_store.create("admin@example.com", "Passw0rd", "Admin", role=ROLE_ADMIN, is_verified=True)
    assert identity_store.find_admin().id == admin.id
    assert identity_store.count_active_admins() == 1
    identity_store.set_active(admin.id, False)
    assert identity_store.count_active_admins() == 0


def test_login_state_round_trip(identity_store: IdentityStore) -> None:
    jane = identity_store.create("jane@example.com", "Passw0rd", "Jane")
    locked_until = datetime(2025, 6, 1, 14, 0, tzinfo=timezone.utc)
    identity_store.save_login_state(replace(jane, failed_login_count=5, locked_until=locked_until))
    stored = identity_store.get(jane.id)
    assert stored.failed_login_count == 5
    assert stored.locked_until == locked_until


def test_verification_token_round_trip_and_mark_verified(identity_store: IdentityStore) -> None:
    jane = identity_store.create("jane@example.com", "Passw0rd", "Jane")
    now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
    identity_store.save_verification_token(
        replace(
            jane,
            verification_token_hash="abc123",
            verification_expires_at=now + timedelta(days=1),
            last_verification_sent_at=now,
        )
    )
    stored = identity_store.get(jane.id)
    assert stored.verification_token_hash == "abc123"
    assert stored.verification_expires_at == now + timedelta(days=1)
    assert stored.last_verification_sent_at == now

    assert identity_store.mark_verified(jane.id, "abc123") is True
    verified = identity_store.get(jane.id)
    assert verified.is_verified is True
    assert verified.verification_token_hash is None
    # Already consumed: the compare-and-set no longer matches.
    assert identity_store.mark_verified(jane.id, "abc123") is False


def test_list_identities_ordered_by_email(identity_store: IdentityStore) -> None:
    identity_store.create("zed@example.com", "Passw0rd", "Zed")
    identity_store.create("amy@example.com", "Passw0rd", "Amy")
    assert [i.email for i in identity_store.list_identities()] == ["amy@example.com", "zed@example.com"]


def test_ping(identity_store: IdentityStore) -> None:
    assert identity_store.ping() is True
