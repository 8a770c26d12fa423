"""
Tests for mail/mailer.py -- link building, redaction, and the best-effort
delivery contract.

smtplib.SMTP is replaced with a recording fake via monkeypatch; no network.
"""

from __future__ import annotations

import smtplib

import pytest

from content.models import Contact
from core.config import Settings
from mail import mailer as mailer_module
from mail.mailer import Mailer, build_verify_url, redact_email


class _RecordingSMTP:
    sent: list[tuple[str, list[str], str]] = []
    fail_with: Exception | None = None

    def __init__(self, host: str, port: int, timeout: float) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

    def __enter__(self) -> "_RecordingSMTP":
        if self.fail_with is not None:
            raise self.fail_with
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def starttls(self) -> None:
        pass

    def login(self, user: str, password: str) -> None:
        pass

    def sendmail(self, sender: str, recipients: list[str], body: str) -> None:
        _RecordingSMTP.sent.append((sender, recipients, body))


@pytest.fixture
def smtp(monkeypatch):
    _RecordingSMTP.sent = []
    _RecordingSMTP.fail_with = None
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _RecordingSMTP)
    return _RecordingSMTP


def _settings(**overrides) -> Settings:
    fields = {
        "debug": True,
        "smtp_host": "smtp.example.com",
        "email_from": "site@example.com",
        "contact_notify_to": "owner@example.com",
    }
    fields.update(overrides)
    return Settings(**fields)


def _contact() -> Contact:
    return Contact(
        name="Jane Doe",
        email="jane@example.com",
        subject="<b>Hello</b>",
        message="Please get in touch.",
        id=1,
    )


def test_redact_email() -> None:
    assert redact_email("jane@example.com") == "ja***@example.com"
    assert redact_email("not-an-email") == "redacted"


def test_build_verify_url() -> None:
    url = build_verify_url("https://site.example/", "jane+x@example.com", "abc")
    assert url == "https://site.example/api/v1/auth/verify-email?token=abc&email=jane%2Bx%40example.com"


def test_unconfigured_mailer_reports_failure(smtp) -> None:
    mailer = Mailer(_settings(smtp_host=""))
    assert mailer.is_configured is False
    assert mailer.send_verification_email("jane@example.com", "Jane", "tok", "https://site.example") is False
    assert smtp.sent == []


def test_verification_email_contains_link(smtp) -> None:
    mailer = Mailer(_settings())
    assert mailer.send_verification_email("jane@example.com", "Jane", "tok123", "https://site.example") is True
    sender, recipients, body = smtp.sent[0]
    assert sender == "site@example.com"
    assert recipients == ["jane@example.com"]
    assert "tok123" in body


def test_contact_notification_escapes_fields(smtp) -> None:
    mailer = Mailer(_settings())
    assert mailer.send_contact_notification(_contact()) is True
    _, recipients, body = smtp.sent[0]
    assert recipients == ["owner@example.com"]
    assert "&lt;b&gt;Hello&lt;/b&gt;" in body


def test_contact_notification_needs_recipient(smtp) -> None:
    mailer = Mailer(_settings(contact_notify_to=""))
    assert mailer.send_contact_notification(_contact()) is False
    assert smtp.sent == []


@pytest.mark.parametrize("error", [smtplib.SMTPException("rejected"), ConnectionRefusedError("refused")])
def test_transport_failure_returns_false(smtp, error) -> None:
    smtp.fail_with = error
    mailer = Mailer(_settings())
    assert mailer.send_verification_email("jane@example.com", "Jane", "tok", "https://site.example") is False
