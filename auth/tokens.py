"""
auth/tokens.py -- JWT, password hashing, and verification-token utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       only the identity id (sub), iat, exp, iss and aud. Nothing is stored
       server-side; possession is the proof. decode_access_token() raises
       MalformedToken or ExpiredToken -- the dependency layer decides whether
       that becomes a 401 (strict) or "anonymous" (optional).

  Passwords: bcrypt directly (no passlib wrapper). The cost factor makes
       brute-force of low-entropy secrets expensive. _DUMMY_HASH enables
       timing equalization in login so response time does not reveal whether
       an email is registered.

  Verification tokens: secrets.token_hex(32) gives 256 bits of entropy. Only
       SHA-256(token) is stored; the plaintext leaves the process exactly once,
       in the verification email. A fast hash is fine here because the input is
       high-entropy -- bcrypt's slowness only matters for guessable secrets.

Layer rule: no imports from api/, content/, or mail/. Import from core/ is
allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from auth.models import TokenClaims
from core.config import get_settings
from core.errors import ExpiredToken, MalformedToken

if TYPE_CHECKING:
    from auth.models import Identity

logger = logging.getLogger("folio.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are truncated by bcrypt. The API layer caps
    password fields at 128 characters, and registration demands mixed classes,
    so realistic inputs stay well inside the limit.
    """
    salt = bcrypt.gensalt(rounds=_settings.password_hash_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A corrupt stored hash raises
    ValueError inside bcrypt; that is a failed check, not a server error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than later ones. Login always runs verify_password() even when the
# email is unknown.
_DUMMY_HASH: str = hash_password("folio_timing_dummy")


def burn_password_check(plain: str) -> None:
    """Run a bcrypt comparison against a dummy hash to equalize timing."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(identity_id: int, expire_seconds: int = 0, now: datetime | None = None) -> str:
    """Encode a signed JWT for the given identity.

    Args:
        identity_id:    Identity primary key, stored as the JWT subject.
        expire_seconds: Token lifetime. 0 (default) means
                        Settings.token_expire_seconds (7 days).
        now:            Issue time. Defaults to the current UTC time; tests pass
                        a past instant to mint already-expired tokens.
    """
    issued_at = now or datetime.now(timezone.utc)
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    payload = {
        "sub": str(identity_id),
        "iat": issued_at,
        "exp": issued_at + timedelta(seconds=duration),
        "iss": _settings.token_issuer,
        "aud": _settings.token_audience,
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def _signature_is_canonical(token: str) -> bool:
    """True when the signature segment is the exact base64url form of its bytes.

    The last character of a 43-character HS256 signature carries two padding
    bits that base64url decoding discards, so several spellings verify against
    the same MAC. Only the spelling the encoder produces is accepted.
    """
    segment = token.rsplit(".", 1)[-1].encode("ascii")
    return base64url_encode(base64url_decode(segment)) == segment


def decode_access_token(token: str) -> TokenClaims:
    """Verify a JWT and return its claims.

    Raises:
        ExpiredToken:   signature valid but exp has passed.
        MalformedToken: bad or non-canonical signature, wrong issuer/audience,
                        missing or non-numeric subject, or not a JWT at all.
    """
    try:
        payload = jwt.decode(
            token,
            _settings.secret_key,
            algorithms=[_ALGORITHM],
            audience=_settings.token_audience,
            issuer=_settings.token_issuer,
        )
    except ExpiredSignatureError as exc:
        raise ExpiredToken() from exc
    except JWTError as exc:
        raise MalformedToken() from exc

    if not _signature_is_canonical(token):
        raise MalformedToken()

    try:
        return TokenClaims(
            identity_id=int(payload["sub"]),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedToken() from exc


def maybe_refresh(token: str, identity: Identity, now: datetime | None = None) -> str | None:
    """Return a fresh token when the current one is close to expiry, else None.

    Best-effort: a refresh that fails for any reason is logged and reported as
    "no refresh" so the primary request still succeeds with the old token.
    """
    try:
        claims = jwt.get_unverified_claims(token)
        current = now or datetime.now(timezone.utc)
        remaining = int(claims["exp"]) - current.timestamp()
        if remaining >= _settings.token_refresh_threshold_seconds:
            return None
        return create_access_token(identity.id, now=current)
    except Exception:
        logger.warning("Token refresh failed for identity %s", identity.id, exc_info=True)
        return None


# ---------------------------------------------------------------------------
# Email verification tokens
# ---------------------------------------------------------------------------


def generate_verification_token() -> str:
    """Return 32 random bytes as 64 hex characters."""
    return secrets.token_hex(32)


def hash_verification_token(plain: str) -> str:
    """Return SHA-256(plain) as a hex string. Only this value is persisted."""
    return hashlib.sha256(plain.encode("utf-8")).hexdigest()


def verification_token_matches(plain: str, stored_hash: str) -> bool:
    """Constant-time comparison of a presented token against the stored hash."""
    return hmac.compare_digest(hash_verification_token(plain), stored_hash)
