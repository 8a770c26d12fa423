"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container). Stores persist them; the pure
functions in auth/lockout.py and auth/verification.py derive new states with
dataclasses.replace() and hand them back to the store to save.

Layer rule: no imports from api/, content/, or mail/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class Identity:
    """A registered account (the site owner's admin account or a regular user).

    email is always stored lowercased so lookups are case-insensitive.

    Verification state: a verified identity never carries a token hash or an
    expiry -- mark_verified() in the store clears both in the same UPDATE.

    Lockout state: failed_login_count and locked_until are only ever written
    from the result of auth.lockout.register_failure / register_success.

    id is None before the record is written to the database.
    """

    email: str
    password_hash: str
    display_name: str
    role: str = ROLE_USER  # "admin" | "user"
    id: int | None = None
    is_active: bool = True
    is_verified: bool = False
    verification_token_hash: str | None = None  # SHA-256 hex of the emailed token
    verification_expires_at: datetime | None = None
    last_verification_sent_at: datetime | None = None
    failed_login_count: int = 0
    locked_until: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class TokenClaims:
    """The validated contents of a bearer token."""

    identity_id: int
    issued_at: datetime
    expires_at: datetime
