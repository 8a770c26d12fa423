"""
Integration tests for /api/v1/contact via TestClient.

Submission is public; the sender (identity or session) can read their own
message back; listing, stats, status changes, notes, spam and archive flags
and deletion are admin only. Admin notes are never shown to the sender.
Spam is flagged, not rejected, and never triggers the admin notification.
"""

from __future__ import annotations

import pytest

SENDER = {"X-Session-Id": "sender-session"}


def _message(**overrides) -> dict:
    body = {
        "name": "Jane Doe",
        "email": "Jane@Example.com",
        "subject": "Website redesign",
        "message": "Could you quote a new landing page for my bakery?",
        "project_type": "Web Development",
        "budget": "$1,000 - $5,000",
    }
    body.update(overrides)
    return body


def _submit(client, headers: dict | None = None, **overrides) -> int:
    resp = client.post("/api/v1/contact", json=_message(**overrides), headers=headers or {})
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def _error(resp) -> dict:
    return resp.json()["error"]


class TestSubmit:
    def test_submit_acknowledges_and_notifies(self, api_env) -> None:
        before = len(api_env.mailer.contact_notifications)
        resp = api_env.client.post("/api/v1/contact", json=_message())
        assert resp.status_code == 201
        body = resp.json()
        assert body["message"] == "Thank you for your message! I'll get back to you soon."
        assert isinstance(body["id"], int)
        assert len(api_env.mailer.contact_notifications) == before + 1
        assert api_env.mailer.contact_notifications[-1].email == "jane@example.com"

    def test_spam_is_stored_flagged_without_notification(self, api_env) -> None:
        before = len(api_env.mailer.contact_notifications)
        contact_id = _submit(api_env.client, subject="Congratulations winner", message="Click here for free money now")
        assert len(api_env.mailer.contact_notifications) == before
        resp = api_env.client.get(f"/api/v1/contact/{contact_id}", headers=api_env.admin_headers)
        assert resp.json()["is_spam"] is True

    def test_mail_failure_does_not_fail_submission(self, api_env) -> None:
        api_env.mailer.fail = True
        try:
            resp = api_env.client.post("/api/v1/contact", json=_message())
        finally:
            api_env.mailer.fail = False
        assert resp.status_code == 201

    @pytest.mark.parametrize(
        "field,value",
        [
            ("subject", "Hi"),
            ("message", "Too short"),
            ("email", "jane@example..com"),
            ("phone", "call me"),
            ("budget", "Lots"),
        ],
    )
    def test_validation(self, api_env, field: str, value: str) -> None:
        resp = api_env.client.post("/api/v1/contact", json=_message(**{field: value}))
        assert resp.status_code == 422
        assert field in [f["field"] for f in _error(resp)["fields"]]


class TestReadBack:
    def test_sender_session_reads_own_message(self, api_env) -> None:
        contact_id = _submit(api_env.client, SENDER)
        resp = api_env.client.get(f"/api/v1/contact/{contact_id}", headers=SENDER)
        assert resp.status_code == 200
        # A sender read does not mark the message as read.
        assert resp.json()["status"] == "New"

    def test_other_session_is_denied(self, api_env) -> None:
        contact_id = _submit(api_env.client, SENDER)
        resp = api_env.client.get(f"/api/v1/contact/{contact_id}", headers={"X-Session-Id": "someone-else"})
        assert resp.status_code == 403
        assert _error(resp)["code"] == "access_denied"

    def test_anonymous_submission_without_session_is_admin_only(self, api_env) -> None:
        contact_id = _submit(api_env.client)
        assert api_env.client.get(f"/api/v1/contact/{contact_id}").status_code == 403

    def test_admin_read_marks_new_as_read(self, api_env) -> None:
        contact_id = _submit(api_env.client, SENDER)
        resp = api_env.client.get(f"/api/v1/contact/{contact_id}", headers=api_env.admin_headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "Read"
        assert resp.json()["read_at"] is not None

    def test_missing_message(self, api_env) -> None:
        resp = api_env.client.get("/api/v1/contact/99999", headers=api_env.admin_headers)
        assert resp.status_code == 404


class TestAdmin:
    def test_list_requires_admin(self, api_env, make_user) -> None:
        assert api_env.client.get("/api/v1/contact").status_code == 401
        _, token = make_user()
        resp = api_env.client.get("/api/v1/contact", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403

    def test_list_paginates_and_filters(self, api_env) -> None:
        _submit(api_env.client, subject="Paging marker one")
        _submit(api_env.client, subject="Paging marker two")
        resp = api_env.client.get(
            "/api/v1/contact", params={"search": "paging marker", "limit": 1}, headers=api_env.admin_headers
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["pagination"] == {"page": 1, "pages": 2, "total": 2, "limit": 1}
        assert body["contacts"][0]["subject"] == "Paging marker two"

        resp = api_env.client.get("/api/v1/contact", params={"is_spam": "false"}, headers=api_env.admin_headers)
        assert all(not c["is_spam"] for c in resp.json()["contacts"])

    def test_status_update_and_stats(self, api_env) -> None:
        contact_id = _submit(api_env.client)
        resp = api_env.client.put(
            f"/api/v1/contact/{contact_id}/status", json={"status": "Replied"}, headers=api_env.admin_headers
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "Replied"
        assert resp.json()["replied_at"] is not None

        stats = api_env.client.get("/api/v1/contact/stats", headers=api_env.admin_headers).json()
        assert stats["by_status"]["Replied"] >= 1
        assert stats["total"] >= stats["spam"]

    def test_status_update_rejects_unknown_status(self, api_env) -> None:
        contact_id = _submit(api_env.client)
        resp = api_env.client.put(
            f"/api/v1/contact/{contact_id}/status", json={"status": "Archived"}, headers=api_env.admin_headers
        )
        assert resp.status_code == 422

    def test_delete(self, api_env) -> None:
        contact_id = _submit(api_env.client)
        assert api_env.client.delete(f"/api/v1/contact/{contact_id}", headers=api_env.admin_headers).status_code == 204
        resp = api_env.client.delete(f"/api/v1/contact/{contact_id}", headers=api_env.admin_headers)
        assert resp.status_code == 404
        assert _error(resp)["message"] == "Contact message not found."


class TestModeration:
    def test_notes_are_hidden_from_the_sender(self, api_env) -> None:
        contact_id = _submit(api_env.client, SENDER)
        resp = api_env.client.post(
            f"/api/v1/contact/{contact_id}/notes", json={"content": "Quoted 2k"}, headers=api_env.admin_headers
        )
        assert resp.status_code == 201
        notes = resp.json()["notes"]
        assert [n["content"] for n in notes] == ["Quoted 2k"]
        assert notes[0]["added_by"] == api_env.admin_id

        admin_view = api_env.client.get(f"/api/v1/contact/{contact_id}", headers=api_env.admin_headers).json()
        assert len(admin_view["notes"]) == 1
        sender_view = api_env.client.get(f"/api/v1/contact/{contact_id}", headers=SENDER).json()
        assert sender_view["notes"] is None

    def test_note_validation_and_access(self, api_env, make_user) -> None:
        contact_id = _submit(api_env.client)
        url = f"/api/v1/contact/{contact_id}/notes"
        assert api_env.client.post(url, json={"content": ""}, headers=api_env.admin_headers).status_code == 422
        assert api_env.client.post(url, json={"content": "x" * 501}, headers=api_env.admin_headers).status_code == 422
        _, token = make_user()
        resp = api_env.client.post(url, json={"content": "hi"}, headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        resp = api_env.client.post("/api/v1/contact/99999/notes", json={"content": "hi"}, headers=api_env.admin_headers)
        assert resp.status_code == 404

    def test_mark_spam_closes_message(self, api_env) -> None:
        contact_id = _submit(api_env.client)
        resp = api_env.client.put(f"/api/v1/contact/{contact_id}/spam", headers=api_env.admin_headers)
        assert resp.status_code == 200
        assert resp.json()["is_spam"] is True
        assert resp.json()["status"] == "Closed"
        assert api_env.client.put("/api/v1/contact/99999/spam", headers=api_env.admin_headers).status_code == 404

    def test_archive_and_filter(self, api_env) -> None:
        contact_id = _submit(api_env.client, subject="Archive marker")
        resp = api_env.client.put(f"/api/v1/contact/{contact_id}/archive", headers=api_env.admin_headers)
        assert resp.status_code == 200
        assert resp.json()["is_archived"] is True

        params = {"search": "archive marker", "is_archived": "true"}
        listed = api_env.client.get("/api/v1/contact", params=params, headers=api_env.admin_headers).json()
        assert [c["id"] for c in listed["contacts"]] == [contact_id]
        params["is_archived"] = "false"
        listed = api_env.client.get("/api/v1/contact", params=params, headers=api_env.admin_headers).json()
        assert listed["contacts"] == []

    def test_moderation_requires_admin(self, api_env) -> None:
        contact_id = _submit(api_env.client, SENDER)
        assert api_env.client.put(f"/api/v1/contact/{contact_id}/spam", headers=SENDER).status_code == 401
        assert api_env.client.put(f"/api/v1/contact/{contact_id}/archive").status_code == 401
