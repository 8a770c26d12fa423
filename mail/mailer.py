"""
mail/mailer.py -- SMTP mailer with a logging fallback for development.

Delivery is best-effort by contract: every send_* method returns True when the
message was handed to the SMTP server and False otherwise. Transport failures
(connection refused, auth rejected, timeout) are logged here and never raised,
so a broken mail server cannot fail registration or a contact submission.

Every SMTP connection is bounded by smtp_timeout_seconds.

When SMTP_HOST is not configured the mailer logs the verification link instead
of sending it, which is how local development completes the signup flow.

Bodies are rendered with Jinja2 from mail/templates/ (autoescaped -- contact
form fields are attacker-controlled text).
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from jinja2 import Environment, FileSystemLoader, select_autoescape

from core.config import Settings

if TYPE_CHECKING:
    from content.models import Contact

logger = logging.getLogger("folio.mail")

_TEMPLATES = Environment(
    loader=FileSystemLoader(Path(__file__).parent / "templates"),
    autoescape=select_autoescape(["html"]),
)


def redact_email(email: str) -> str:
    """Redact an address for logs: 'jane@example.com' -> 'ja***@example.com'."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


def build_verify_url(origin: str, email: str, token: str) -> str:
    query = urlencode({"token": token, "email": email})
    return f"{origin.rstrip('/')}/api/v1/auth/verify-email?{query}"


class Mailer:
    """Sends transactional email via SMTP.

    Usage:
        mailer = Mailer(get_settings())
        mailer.send_verification_email(to="a@b.c", name="A", token=plain, origin_url="https://site")
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    @property
    def is_configured(self) -> bool:
        return self.settings.smtp_configured

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_verification_email(self, to: str, name: str, token: str, origin_url: str) -> bool:
        verify_url = build_verify_url(origin_url, to, token)
        if not self.is_configured or self.settings.debug:
            # Dev fallback: the link is the only way to finish signup without SMTP.
            logger.info("DEV: verification link for %s: %s", redact_email(to), verify_url)
        html = _TEMPLATES.get_template("verify_email.html").render(
            name=name,
            verify_url=verify_url,
            expires_hours=self.settings.verification_expire_seconds // 3600,
        )
        return self._send(to, "Verify your email for Portfolio", html)

    def send_contact_notification(self, contact: Contact) -> bool:
        recipient = self.settings.contact_notify_to
        if not recipient:
            logger.debug("Contact notification skipped: CONTACT_NOTIFY_TO not set")
            return False
        html = _TEMPLATES.get_template("contact_notification.html").render(contact=contact)
        return self._send(recipient, f"New Contact Form Submission: {contact.subject}", html)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(self, to: str, subject: str, html_body: str) -> bool:
        if not self.is_configured:
            logger.info("Mailer not configured; skipped %r to %s", subject, redact_email(to))
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.email_from
        msg["To"] = to
        msg.attach(MIMEText(html_body, "html"))

        cfg = self.settings
        try:
            smtp_cls = smtplib.SMTP_SSL if cfg.smtp_port == 465 else smtplib.SMTP
            with smtp_cls(cfg.smtp_host, cfg.smtp_port, timeout=cfg.smtp_timeout_seconds) as server:
                if cfg.smtp_use_tls and smtp_cls is smtplib.SMTP:
                    server.starttls()
                if cfg.smtp_user and cfg.smtp_password:
                    server.login(cfg.smtp_user, cfg.smtp_password)
                server.sendmail(cfg.email_from, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            # OSError covers refused connections and socket timeouts.
            logger.warning("Failed to send %r to %s: %s", subject, redact_email(to), exc)
            return False

        logger.info("Sent %r to %s", subject, redact_email(to))
        return True
