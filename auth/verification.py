"""
auth/verification.py -- Email verification flow.

States over Identity.is_verified:

    Unverified -> Verified   (terminal)

Token lifecycle:
  issue_token()  -- generate 256-bit plaintext, persist SHA-256(plaintext),
                    expiry and issuance time, return the plaintext once.
  consume()      -- hash the presented plaintext, compare in constant time,
                    check expiry, then flip to Verified with a compare-and-set
                    on the stored hash so a second concurrent consumer loses.
  resend()       -- enforce the cooldown, then issue_token() again. Writing the
                    new hash overwrites the old one, so only the latest link works.

Emails are best-effort: the Mailer reports failure by returning False and the
token stays valid for a later resend. Nothing here rolls back on a failed send.

Layer rule: no imports from api/ or content/.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from auth.models import Identity
from auth.store import IdentityStore
from auth.tokens import generate_verification_token, hash_verification_token, verification_token_matches
from core.errors import AlreadyVerified, InvalidOrExpiredToken, TooManyRequests, UserNotFound
from mail.mailer import Mailer, redact_email

logger = logging.getLogger("folio.auth.verification")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def with_new_token(identity: Identity, now: datetime, expire_seconds: int) -> tuple[Identity, str]:
    """Return (identity carrying a fresh token hash, plaintext token)."""
    plain = generate_verification_token()
    updated = replace(
        identity,
        verification_token_hash=hash_verification_token(plain),
        verification_expires_at=now + timedelta(seconds=expire_seconds),
        last_verification_sent_at=now,
    )
    return updated, plain


def cooldown_remaining(identity: Identity, now: datetime, cooldown_seconds: int) -> int:
    """Seconds until another verification email may be sent (0 = allowed now)."""
    if identity.last_verification_sent_at is None:
        return 0
    elapsed = math.floor((now - identity.last_verification_sent_at).total_seconds())
    return max(cooldown_seconds - elapsed, 0)


class VerificationFlow:
    def __init__(
        self,
        store: IdentityStore,
        mailer: Mailer,
        expire_seconds: int = 24 * 3600,
        cooldown_seconds: int = 60,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.mailer = mailer
        self.expire_seconds = expire_seconds
        self.cooldown_seconds = cooldown_seconds
        self.clock = clock

    def issue_token(self, identity: Identity) -> tuple[Identity, str]:
        """Persist a new token hash for identity and return (updated, plaintext).

        Raises AlreadyVerified when the identity was verified after it was read.
        """
        updated, plain = with_new_token(identity, self.clock(), self.expire_seconds)
        if not self.store.save_verification_token(updated):
            raise AlreadyVerified()
        return updated, plain

    def send(self, identity: Identity, plain_token: str, origin_url: str) -> bool:
        sent = self.mailer.send_verification_email(
            to=identity.email,
            name=identity.display_name,
            token=plain_token,
            origin_url=origin_url,
        )
        if not sent:
            logger.warning("Verification email not delivered to %s", redact_email(identity.email))
        return sent

    def consume(self, email: str, plain_token: str) -> Identity:
        """Verify identity's email with the emailed token.

        Idempotent: an already verified identity is returned as-is without
        looking at the token at all.
        """
        identity = self.store.find_by_email(email)
        if identity is None:
            raise UserNotFound()
        if identity.is_verified:
            return identity

        stored_hash = identity.verification_token_hash
        expires_at = identity.verification_expires_at
        if not stored_hash or expires_at is None:
            raise InvalidOrExpiredToken()
        if not verification_token_matches(plain_token, stored_hash) or expires_at < self.clock():
            raise InvalidOrExpiredToken()

        if not self.store.mark_verified(identity.id, stored_hash):
            # Lost the compare-and-set. Success only if the winner verified us.
            current = self.store.find_by_id(identity.id)
            if current is not None and current.is_verified:
                return current
            raise InvalidOrExpiredToken()

        logger.info("Identity %s verified email", identity.id)
        return self.store.get(identity.id)

    def resend(self, email: str, origin_url: str) -> Identity:
        """Issue and email a replacement token, subject to the cooldown."""
        identity = self.store.find_by_email(email)
        if identity is None:
            raise UserNotFound()
        if identity.is_verified:
            raise AlreadyVerified()

        remaining = cooldown_remaining(identity, self.clock(), self.cooldown_seconds)
        if remaining > 0:
            raise TooManyRequests(retry_after=remaining)

        updated, plain = self.issue_token(identity)
        self.send(updated, plain, origin_url)
        return updated
