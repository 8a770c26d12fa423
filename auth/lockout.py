"""
auth/lockout.py -- Failed-login lockout policy as pure functions.

States over Identity.failed_login_count / locked_until:

    Unlocked  (locked_until is None or in the past)
    Locked    (locked_until in the future)

Unlocked -> Locked when a failed password attempt brings the counter to the
threshold. The lock lasts a fixed duration from that moment. A failure that
arrives after an earlier lock has elapsed restarts counting at 1 instead of
accumulating on top of the old cycle.

Every function returns a new Identity; nothing here touches the database.
The caller persists the result with IdentityStore.save_login_state(). Two
concurrent failures may both read the same counter and write the same value --
that lost update is acceptable (the lock still triggers on a later attempt).

Layer rule: no imports from api/, content/, or mail/.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta

from auth.models import Identity


def is_locked(identity: Identity, now: datetime) -> bool:
    """Return True while locked_until is in the future."""
    return identity.locked_until is not None and identity.locked_until > now


def register_failure(identity: Identity, now: datetime, threshold: int, lock_seconds: int) -> Identity:
    """Return the identity state after one failed password attempt.

    A currently locked identity is returned unchanged -- attempts during a lock
    do not extend it or inflate the counter.
    """
    if identity.locked_until is not None and identity.locked_until <= now:
        return replace(identity, failed_login_count=1, locked_until=None)
    if is_locked(identity, now):
        return identity

    count = identity.failed_login_count + 1
    locked_until = now + timedelta(seconds=lock_seconds) if count >= threshold else None
    return replace(identity, failed_login_count=count, locked_until=locked_until)


def register_success(identity: Identity, now: datetime) -> Identity:
    """Return the identity state after a successful login."""
    return replace(identity, failed_login_count=0, locked_until=None, last_login_at=now)


def unlock(identity: Identity) -> Identity:
    """Return the identity with lockout state cleared (admin action)."""
    return replace(identity, failed_login_count=0, locked_until=None)
