"""Tests for the `main.py create-admin` command against a temporary SQLite file."""

from __future__ import annotations

import argparse

import pytest

import main
from auth.store import IdentityStore
from core.config import Settings


@pytest.fixture
def cli_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        debug=True,
        auth_db_url=f"sqlite:///{tmp_path / 'auth.db'}",
        content_db_url=f"sqlite:///{tmp_path / 'content.db'}",
    )
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    return settings


def _args(email=None, password=None, name=None) -> argparse.Namespace:
    return argparse.Namespace(email=email, password=password, name=name)


def test_create_then_update_admin(cli_settings, capsys) -> None:
    assert main._create_admin(_args("owner@example.com", "AdminPass1", "Site Owner")) == 0
    assert "Created admin account: owner@example.com" in capsys.readouterr().out

    assert main._create_admin(_args("new@example.com", "AdminPass2", "New Owner")) == 0
    assert "Updated admin account: new@example.com" in capsys.readouterr().out

    store = IdentityStore(cli_settings.auth_db_url)
    try:
        admin = store.find_admin()
        assert admin.email == "new@example.com"
        assert admin.is_verified is True
        assert store.verify_password(admin, "AdminPass2")
        assert len(store.list_identities()) == 1
    finally:
        store.close()


def test_weak_password_is_refused(cli_settings, capsys) -> None:
    assert main._create_admin(_args("owner@example.com", "alllowercase1", "Owner")) == 2
    assert "uppercase" in capsys.readouterr().out


def test_missing_credentials(cli_settings, capsys) -> None:
    assert main._create_admin(_args()) == 2
    assert "required" in capsys.readouterr().out


def test_email_of_another_account_is_refused(cli_settings, capsys) -> None:
    assert main._create_admin(_args("owner@example.com", "AdminPass1", "Site Owner")) == 0
    store = IdentityStore(cli_settings.auth_db_url)
    try:
        store.create("jane@example.com", "Passw0rd", "Jane")
    finally:
        store.close()
    capsys.readouterr()

    assert main._create_admin(_args("jane@example.com", "AdminPass2", "Site Owner")) == 2
    assert "already belongs to another account" in capsys.readouterr().out

    store = IdentityStore(cli_settings.auth_db_url)
    try:
        assert store.find_admin().email == "owner@example.com"
    finally:
        store.close()
