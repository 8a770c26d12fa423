"""
Tests for auth/lockout.py -- the failed-login lockout policy.

All functions are pure, so no store is needed: each test builds an Identity,
applies transitions, and inspects the returned copy.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from auth.lockout import is_locked, register_failure, register_success, unlock
from auth.models import Identity

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
THRESHOLD = 5
LOCK_SECONDS = 2 * 3600


def _identity(**overrides) -> Identity:
    fields = {"email": "jane@example.com", "password_hash": "x", "display_name": "Jane", "id": 1}
    fields.update(overrides)
    return Identity(**fields)


def _fail(identity: Identity, times: int, now: datetime = NOW) -> Identity:
    for _ in range(times):
        identity = register_failure(identity, now, THRESHOLD, LOCK_SECONDS)
    return identity


def test_failures_below_threshold_do_not_lock() -> None:
    identity = _fail(_identity(), THRESHOLD - 1)
    assert identity.failed_login_count == 4
    assert identity.locked_until is None
    assert not is_locked(identity, NOW)


def test_threshold_failure_locks_for_fixed_duration() -> None:
    identity = _fail(_identity(), THRESHOLD)
    assert identity.failed_login_count == 5
    assert identity.locked_until == NOW + timedelta(seconds=LOCK_SECONDS)
    assert is_locked(identity, NOW)


def test_failures_while_locked_do_not_extend_lock() -> None:
    locked = _fail(_identity(), THRESHOLD)
    later = NOW + timedelta(minutes=30)
    again = register_failure(locked, later, THRESHOLD, LOCK_SECONDS)
    assert again == locked


def test_lock_expires() -> None:
    locked = _fail(_identity(), THRESHOLD)
    assert not is_locked(locked, NOW + timedelta(seconds=LOCK_SECONDS))
    assert is_locked(locked, NOW + timedelta(seconds=LOCK_SECONDS - 1))


def test_failure_after_elapsed_lock_restarts_count() -> None:
    locked = _fail(_identity(), THRESHOLD)
    after = NOW + timedelta(seconds=LOCK_SECONDS + 1)
    identity = register_failure(locked, after, THRESHOLD, LOCK_SECONDS)
    assert identity.failed_login_count == 1
    assert identity.locked_until is None


def test_success_resets_counters_and_stamps_login() -> None:
    identity = register_success(_fail(_identity(), 3), NOW)
    assert identity.failed_login_count == 0
    assert identity.locked_until is None
    assert identity.last_login_at == NOW


def test_unlock_clears_lock() -> None:
    identity = unlock(_fail(_identity(), THRESHOLD))
    assert identity.failed_login_count == 0
    assert identity.locked_until is None
    assert not is_locked(identity, NOW)


def test_functions_do_not_mutate_input() -> None:
    original = _identity()
    _fail(original, THRESHOLD)
    assert original.failed_login_count == 0
