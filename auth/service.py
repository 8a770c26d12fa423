"""
auth/service.py -- Account operations behind the /auth routes.

AuthService composes the credential store, the lockout policy, the
verification flow and the token functions. Routes translate HTTP into calls
on this class; every failure is raised as a typed core.errors kind.

Login gate order (first failing check wins):
  1. unknown email       -> InvalidCredentials (bcrypt still runs, equal timing)
  2. unverified          -> EmailNotVerified   (lockout counters untouched)
  3. locked              -> AccountLocked      (counter not incremented)
  4. deactivated         -> AccountDeactivated
  5. wrong password      -> InvalidCredentials (counter incremented, may lock)

Login deliberately answers InvalidCredentials for both unknown email and
wrong password, while change_password answers InvalidCurrentPassword -- the
caller there is already authenticated, so there is nothing to enumerate.

Layer rule: no imports from api/ or content/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from auth import lockout
from auth.models import ROLE_ADMIN, ROLE_USER, Identity
from auth.store import IdentityStore
from auth.tokens import burn_password_check, create_access_token
from auth.verification import VerificationFlow
from core.config import Settings
from core.errors import (
    AccountDeactivated,
    AccountLocked,
    AdminCreationDisabled,
    AdminExists,
    EmailNotVerified,
    InvalidCredentials,
    InvalidCurrentPassword,
    InvalidRequest,
    LastAdmin,
    SelfDeactivation,
)

logger = logging.getLogger("folio.auth.service")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LoginResult:
    identity: Identity
    token: str


class AuthService:
    """Usage:
    service = AuthService(store, VerificationFlow(store, mailer), settings)
    identity = service.register("Jane", "jane@example.com", "Passw0rd", origin_url="https://site")
    """

    def __init__(
        self,
        store: IdentityStore,
        verification: VerificationFlow,
        settings: Settings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.verification = verification
        self.settings = settings
        self.clock = clock

    # ------------------------------------------------------------------
    # Registration and verification
    # ------------------------------------------------------------------

    def register(self, name: str, email: str, password: str, origin_url: str) -> Identity:
        """Create an unverified user and email a verification link.

        No bearer token is issued: an unverified identity cannot authenticate.
        A failed email leaves the account and token in place for a resend.
        """
        identity = self.store.create(email, password, name, role=ROLE_USER, is_verified=False)
        identity, plain = self.verification.issue_token(identity)
        self.verification.send(identity, plain, origin_url)
        logger.info("Registered identity %s", identity.id)
        return identity

    def verify_email(self, email: str, token: str) -> Identity:
        return self.verification.consume(email, token)

    def resend_verification(self, email: str, origin_url: str) -> Identity:
        return self.verification.resend(email, origin_url)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> LoginResult:
        now = self.clock()
        identity = self.store.find_by_email(email)
        if identity is None:
            burn_password_check(password)
            raise InvalidCredentials()
        if not identity.is_verified:
            raise EmailNotVerified()
        if lockout.is_locked(identity, now):
            raise AccountLocked(identity.locked_until)
        if not identity.is_active:
            raise AccountDeactivated()

        if not self.store.verify_password(identity, password):
            failed = lockout.register_failure(
                identity,
                now,
                threshold=self.settings.max_failed_logins,
                lock_seconds=self.settings.lockout_seconds,
            )
            self.store.save_login_state(failed)
            if lockout.is_locked(failed, now):
                logger.warning(
                    "Identity %s locked until %s after %d failed logins",
                    identity.id,
                    failed.locked_until.isoformat(),
                    failed.failed_login_count,
                )
            raise InvalidCredentials()

        succeeded = lockout.register_success(identity, now)
        self.store.save_login_state(succeeded)
        return LoginResult(identity=succeeded, token=create_access_token(identity.id, now=now))

    # ------------------------------------------------------------------
    # Authenticated account operations
    # ------------------------------------------------------------------

    def change_password(self, identity_id: int, current_password: str, new_password: str) -> None:
        identity = self.store.get(identity_id)
        if not self.store.verify_password(identity, current_password):
            raise InvalidCurrentPassword()
        self.store.set_password(identity_id, new_password)
        logger.info("Identity %s changed password", identity_id)

    def update_profile(self, identity_id: int, name: str | None = None, email: str | None = None) -> Identity:
        return self.store.update_profile(identity_id, display_name=name, email=email)

    def refresh_token(self, identity: Identity) -> str:
        return create_access_token(identity.id, now=self.clock())

    # ------------------------------------------------------------------
    # Admin bootstrap and management
    # ------------------------------------------------------------------

    def create_admin(self, email: str | None, password: str | None, name: str | None) -> LoginResult:
        """Create the single admin account over HTTP. Development mode only.

        Falls back to the ADMIN_* settings for any field the caller omits.
        The admin is created pre-verified.
        """
        if not self.settings.debug:
            raise AdminCreationDisabled()
        if self.store.find_admin() is not None:
            raise AdminExists()
        email = email or self.settings.admin_email
        password = password or self.settings.admin_password
        if not email or not password:
            raise InvalidRequest("Admin email and password are required.")
        admin = self.store.create(
            email, password, name or self.settings.admin_name, role=ROLE_ADMIN, is_verified=True
        )
        logger.info("Admin identity %s created", admin.id)
        return LoginResult(identity=admin, token=create_access_token(admin.id, now=self.clock()))

    def bootstrap_admin(self, email: str, password: str, name: str) -> tuple[Identity, bool]:
        """Create the admin, or overwrite the existing admin's credentials.

        Used by the `main.py create-admin` CLI, which runs with server access
        and therefore is not restricted to development mode.

        Returns (admin, created).
        """
        existing = self.store.find_admin()
        if existing is None:
            return self.store.create(email, password, name, role=ROLE_ADMIN, is_verified=True), True
        return self.store.promote_admin(existing.id, email, password, name), False

    def unlock(self, identity_id: int) -> Identity:
        identity = self.store.get(identity_id)
        self.store.save_login_state(lockout.unlock(identity))
        logger.info("Identity %s unlocked", identity_id)
        return self.store.get(identity_id)

    def set_active(self, actor: Identity, identity_id: int, is_active: bool) -> Identity:
        """Activate or deactivate an account. Admin only.

        Blocks self-deactivation and deactivating the last active admin, either
        of which would leave the site without a recovery path short of DB access.
        """
        target = self.store.get(identity_id)
        if not is_active:
            if target.id == actor.id:
                raise SelfDeactivation()
            if target.is_admin and target.is_active and self.store.count_active_admins() <= 1:
                raise LastAdmin()
        self.store.set_active(identity_id, is_active)
        logger.info("Identity %s set is_active=%s by %s", identity_id, is_active, actor.id)
        return self.store.get(identity_id)
