"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as content/store.py).
IdentityStore is the repository; _row_to_identity is the mapper.
Services and dependencies never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Raw passwords only ever pass through hash_password(); the store never keeps
  them. Every method that writes password_hash re-hashes; every other update
  leaves the column out of the UPDATE entirely.

Email uniqueness is case-insensitive: addresses are stripped and lowercased
on every write and lookup, and the UNIQUE constraint applies to that form.

Timestamps are stored as ISO 8601 strings (UTC) and mapped back to aware
datetimes so callers can compare them directly.

DB path: auth/folio_auth.db unless AUTH_DB_URL is set.

Layer rule: no imports from api/, content/, or mail/.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import ROLE_ADMIN, ROLE_USER, Identity
from auth.tokens import hash_password, verify_password
from core.errors import DuplicateEmail, UserNotFound

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'folio_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_identities = Table(
    "identities",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),  # always lowercased
    Column("password_hash", Text, nullable=False),
    Column("display_name", String(50), nullable=False),
    Column("role", String(10), nullable=False, server_default=ROLE_USER),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("is_verified", Integer, nullable=False, server_default="0"),
    Column("verification_token_hash", String(64)),  # SHA-256 hex, NULL once verified
    Column("verification_expires_at", String(32)),
    Column("last_verification_sent_at", String(32)),
    Column("failed_login_count", Integer, nullable=False, server_default="0"),
    Column("locked_until", String(32)),
    Column("last_login_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity records.

    Usage:
        store = IdentityStore()
        identity = store.create("me@example.com", "S3cretpw", "Me", role="admin", is_verified=True)
        same = store.find_by_email("ME@example.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, timeout_seconds: float = 5.0) -> None:
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            # Seconds a connection waits on a locked database before failing.
            connect_args["timeout"] = timeout_seconds
        else:
            engine_kwargs["pool_timeout"] = timeout_seconds
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create(
        self,
        email: str,
        raw_password: str,
        name: str,
        role: str = ROLE_USER,
        is_verified: bool = False,
    ) -> Identity:
        """Insert a new identity and return it with its assigned id.

        Raises DuplicateEmail if the address (case-insensitive) is taken. The
        pre-check gives the common case a clean error; the IntegrityError catch
        covers two concurrent registrations racing past the pre-check.
        """
        email = normalize_email(email)
        if self.find_by_email(email) is not None:
            raise DuplicateEmail()
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _identities.insert().values(
                        email=email,
                        password_hash=hash_password(raw_password),
                        display_name=name.strip(),
                        role=role,
                        is_active=1,
                        is_verified=1 if is_verified else 0,
                        failed_login_count=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
                identity_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        return self.find_by_id(identity_id)

    def find_by_email(self, email: str) -> Identity | None:
        """Look up an identity by email (case-insensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _identities.select().where(_identities.c.email == normalize_email(email))
            ).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_id(self, identity_id: int) -> Identity | None:
        """Look up an identity by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def get(self, identity_id: int) -> Identity:
        """Like find_by_id() but raises UserNotFound."""
        identity = self.find_by_id(identity_id)
        if identity is None:
            raise UserNotFound()
        return identity

    def verify_password(self, identity: Identity, raw_password: str) -> bool:
        return verify_password(raw_password, identity.password_hash)

    def list_identities(self) -> list[Identity]:
        """Return all identities ordered by email. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_identities.select().order_by(_identities.c.email)).fetchall()
        return [_row_to_identity(r) for r in rows]

    def find_admin(self) -> Identity | None:
        """Return the (normally single) admin identity, oldest first."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _identities.select().where(_identities.c.role == ROLE_ADMIN).order_by(_identities.c.id).limit(1)
            ).fetchone()
        return _row_to_identity(row) if row is not None else None

    def count_active_admins(self) -> int:
        """Return the number of active admins. Guards last-admin deactivation."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(_identities)
                .where((_identities.c.role == ROLE_ADMIN) & (_identities.c.is_active == 1))
            ).scalar()
        return result or 0

    def ping(self) -> bool:
        """Cheap connectivity check for the health endpoint."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def _update(self, identity_id: int, **fields) -> bool:
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_identities.update().where(_identities.c.id == identity_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_profile(self, identity_id: int, display_name: str | None = None, email: str | None = None) -> Identity:
        """Change name and/or email. Raises DuplicateEmail if the new email is taken."""
        fields: dict = {}
        if display_name is not None:
            fields["display_name"] = display_name.strip()
        if email is not None:
            email = normalize_email(email)
            other = self.find_by_email(email)
            if other is not None and other.id != identity_id:
                raise DuplicateEmail("Email is already taken.")
            fields["email"] = email
        if fields:
            try:
                updated = self._update(identity_id, **fields)
            except IntegrityError as exc:
                raise DuplicateEmail("Email is already taken.") from exc
            if not updated:
                raise UserNotFound()
        return self.get(identity_id)

    def set_password(self, identity_id: int, raw_password: str) -> None:
        """Re-hash and store a new password."""
        if not self._update(identity_id, password_hash=hash_password(raw_password)):
            raise UserNotFound()

    def set_active(self, identity_id: int, is_active: bool) -> None:
        if not self._update(identity_id, is_active=1 if is_active else 0):
            raise UserNotFound()

    def promote_admin(self, identity_id: int, email: str, raw_password: str, name: str) -> Identity:
        """Overwrite the admin's credentials, mark it verified and lift any lock (CLI bootstrap).

        Raises DuplicateEmail if the new email belongs to another identity.
        """
        email = normalize_email(email)
        other = self.find_by_email(email)
        if other is not None and other.id != identity_id:
            raise DuplicateEmail("Email is already taken.")
        try:
            self._update(
                identity_id,
                email=email,
                password_hash=hash_password(raw_password),
                display_name=name.strip(),
                role=ROLE_ADMIN,
                is_verified=1,
                verification_token_hash=None,
                verification_expires_at=None,
                failed_login_count=0,
                locked_until=None,
            )
        except IntegrityError as exc:
            raise DuplicateEmail("Email is already taken.") from exc
        return self.get(identity_id)

    def save_login_state(self, identity: Identity) -> None:
        """Persist the lockout fields computed by auth.lockout."""
        self._update(
            identity.id,
            failed_login_count=identity.failed_login_count,
            locked_until=_to_iso(identity.locked_until),
            last_login_at=_to_iso(identity.last_login_at),
        )

    def save_verification_token(self, identity: Identity) -> bool:
        """Persist a freshly issued verification token hash, expiry and send time.

        Overwrites any earlier hash, so only the latest token can be consumed.
        Writes only while the row is unverified; returns False when a concurrent
        consume verified it first, leaving the verified row token-free.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _identities.update()
                .where((_identities.c.id == identity.id) & (_identities.c.is_verified == 0))
                .values(
                    verification_token_hash=identity.verification_token_hash,
                    verification_expires_at=_to_iso(identity.verification_expires_at),
                    last_verification_sent_at=_to_iso(identity.last_verification_sent_at),
                    updated_at=_now_iso(),
                )
            )
            conn.commit()
        return result.rowcount > 0

    def mark_verified(self, identity_id: int, expected_hash: str) -> bool:
        """Compare-and-set: verify only if the stored hash is still expected_hash.

        Returns False when another request consumed (or a resend replaced) the
        token between the caller's read and this write.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _identities.update()
                .where(
                    (_identities.c.id == identity_id)
                    & (_identities.c.verification_token_hash == expected_hash)
                    & (_identities.c.is_verified == 0)
                )
                .values(
                    is_verified=1,
                    verification_token_hash=None,
                    verification_expires_at=None,
                    updated_at=_now_iso(),
                )
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    return Identity(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        display_name=row.display_name,
        role=row.role,
        is_active=bool(row.is_active),
        is_verified=bool(row.is_verified),
        verification_token_hash=row.verification_token_hash,
        verification_expires_at=_from_iso(row.verification_expires_at),
        last_verification_sent_at=_from_iso(row.last_verification_sent_at),
        failed_login_count=row.failed_login_count or 0,
        locked_until=_from_iso(row.locked_until),
        last_login_at=_from_iso(row.last_login_at),
        created_at=_from_iso(row.created_at),
        updated_at=_from_iso(row.updated_at),
    )
