"""Integration tests for contacts, notes, tasks, the system log and psychometrics

Tests cover:
- Contact CRUD, search and Contact Zero protection
- Note lifecycle through the trash, pins and mentions
- Task creation, status changes and date filters
- System log filtering, read state and admin-only announcements
- Psychometric evidence and profile updates with an injected LLM
"""

from __future__ import annotations

from framelord.llm.caller import get_llm_caller

BIG_FIVE = {
    "openness": 0.6,
    "conscientiousness": 0.9,
    "extraversion": 0.3,
    "agreeableness": 0.4,
    "neuroticism": 0.2,
    "confidence": "medium",
}


def _contact(client, name="Jordan Park", **fields):
    response = client.post("/api/contacts", json={"full_name": name, **fields})
    assert response.status_code == 201
    return response.json()


class TestContacts:
    def test_create_get_update(self, client):
        contact = _contact(client, email="jordan@example.com", tags=["vip"])

        fetched = client.get(f"/api/contacts/{contact['id']}").json()
        assert fetched["full_name"] == "Jordan Park"
        assert fetched["frame"]["current_score"] == 50

        updated = client.patch(
            f"/api/contacts/{contact['id']}",
            json={"company": "Acme", "relationship_domain": "personal"},
        ).json()
        assert updated["company"] == "Acme"
        assert updated["relationship_domain"] == "personal"
        assert updated["email"] == "jordan@example.com"

    def test_contact_zero_is_listed_and_protected(self, client):
        contacts = client.get("/api/contacts").json()["contacts"]
        assert contacts[0]["id"] == "contact_zero"

        response = client.post("/api/contacts/contact_zero/archive")
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot archive Contact Zero"

    def test_archive_and_filters(self, client):
        contact = _contact(client)
        _contact(client, "Riley Chen", relationship_domain="personal")

        archived = client.post(f"/api/contacts/{contact['id']}/archive").json()
        assert archived["status"] == "archived"

        visible = client.get("/api/contacts", params={"exclude_self": True}).json()
        assert [c["full_name"] for c in visible["contacts"]] == ["Riley Chen"]
        everyone = client.get("/api/contacts", params={"include_archived": True}).json()
        assert everyone["total"] == 3
        personal = client.get("/api/contacts", params={"domain": "personal"}).json()
        assert [c["full_name"] for c in personal["contacts"]] == ["Riley Chen"]

    def test_search(self, client):
        _contact(client, "Jordan Park")
        _contact(client, "Parker Jones")

        names = [
            c["full_name"]
            for c in client.get("/api/contacts/search", params={"q": "park"}).json()["contacts"]
        ]
        assert names[0] == "Parker Jones"
        assert set(names) == {"Jordan Park", "Parker Jones"}

    def test_errors(self, client):
        assert client.get("/api/contacts/missing").status_code == 404
        assert client.post("/api/contacts", json={"full_name": ""}).status_code == 422
        assert client.patch("/api/contacts/missing", json={"company": "x"}).status_code == 404

    def test_summary_counts_open_tasks(self, client):
        contact = _contact(client)
        client.post("/api/tasks", json={"contact_id": contact["id"], "title": "Call back"})

        summary = client.get(f"/api/contacts/{contact['id']}/summary").json()
        assert summary["open_tasks"] == 1
        assert summary["contact"]["id"] == contact["id"]


class TestNotes:
    def test_lifecycle(self, client):
        contact = _contact(client)
        note = client.post(
            "/api/notes",
            json={
                "title": "  Kickoff ",
                "content": "Wants a #pilot before #budget talks",
                "contact_id": contact["id"],
            },
        ).json()
        assert note["title"] == "Kickoff"
        assert note["topics"] == ["pilot", "budget"]

        pinned = client.post(f"/api/notes/{note['id']}/pin").json()
        assert pinned["pinned"] is True

        assert client.delete(f"/api/notes/{note['id']}").json()["trashed"] is True
        assert client.get("/api/notes").json()["total"] == 0
        assert client.get("/api/notes/trash").json()["total"] == 1

        restored = client.post(f"/api/notes/{note['id']}/restore").json()
        assert restored["deleted_at"] is None

        client.delete(f"/api/notes/{note['id']}")
        assert client.delete(f"/api/notes/trash/{note['id']}").json()["success"] is True
        assert client.get(f"/api/notes/{note['id']}").status_code == 404

    def test_note_becomes_psychometric_evidence(self, client):
        contact = _contact(client)
        client.post(
            "/api/notes",
            json={"content": "Always asks for data first.", "contact_id": contact["id"]},
        )

        evidence = client.get(f"/api/psychometrics/{contact['id']}/evidence").json()
        assert evidence["total"] == 1
        assert evidence["evidence"][0]["sourceType"] == "note"

    def test_archive_and_search(self, client):
        note = client.post("/api/notes", json={"content": "Quarterly review prep"}).json()

        client.post(f"/api/notes/{note['id']}/archive")
        assert client.get("/api/notes/archived").json()["total"] == 1
        assert client.get("/api/notes", params={"include_archived": False}).json()["total"] == 0

        results = client.get("/api/notes/search", params={"q": "quarterly"}).json()
        assert results["notes"][0]["id"] == note["id"]

    def test_mentions(self, client):
        contact = _contact(client)
        note = client.post("/api/notes", json={"content": "Intro call"}).json()

        added = client.put(f"/api/notes/{note['id']}/mentions/{contact['id']}").json()
        assert added["mentions"] == [contact["id"]]
        again = client.put(f"/api/notes/{note['id']}/mentions/{contact['id']}").json()
        assert again["mentions"] == [contact["id"]]

        removed = client.delete(f"/api/notes/{note['id']}/mentions/{contact['id']}").json()
        assert removed["mentions"] == []

    def test_empty_trash(self, client):
        for text in ("a", "b"):
            note = client.post("/api/notes", json={"content": text}).json()
            client.delete(f"/api/notes/{note['id']}")

        assert client.post("/api/notes/trash/purge").json() == {"purged": 0}
        assert client.delete("/api/notes/trash").json() == {"purged": 2}

    def test_missing_note(self, client):
        assert client.post("/api/notes/nope/pin").status_code == 404
        assert client.post("/api/notes/nope/restore").status_code == 404
        assert client.delete("/api/notes/nope").status_code == 404


class TestTasks:
    def test_create_and_complete(self, client):
        contact = _contact(client)

        task = client.post(
            "/api/tasks",
            json={"contact_id": contact["id"], "title": "Send proposal", "due_at": "2026-03-02T15:00:00"},
        ).json()
        assert task["status"] == "open"
        assert task["due_at"].startswith("2026-03-02T15:00:00")

        done = client.patch(f"/api/tasks/{task['id']}/status", json={"status": "done"}).json()
        assert done["status"] == "done"
        assert client.get("/api/tasks/open").json()["total"] == 0
        assert client.get("/api/tasks", params={"status": "done"}).json()["total"] == 1

    def test_date_filters(self, client):
        contact = _contact(client)
        for day in ("2026-03-01", "2026-03-02", "2026-03-05"):
            client.post(
                "/api/tasks",
                json={"contact_id": contact["id"], "title": day, "due_at": f"{day}T09:00:00Z"},
            )

        on_day = client.get("/api/tasks", params={"date": "2026-03-02"}).json()
        assert [t["title"] for t in on_day["tasks"]] == ["2026-03-02"]

        in_range = client.get(
            "/api/tasks", params={"start": "2026-03-01", "end": "2026-03-02"}
        ).json()
        assert in_range["total"] == 2

        assert client.get("/api/tasks", params={"start": "2026-03-01"}).status_code == 400
        assert client.get("/api/tasks", params={"date": "03/02/2026"}).status_code == 400

    def test_grouped_by_contact(self, client):
        contact = _contact(client)
        client.post("/api/tasks", json={"contact_id": contact["id"], "title": "One"})
        client.post("/api/tasks", json={"contact_id": "contact_zero", "title": "Mine"})

        grouped = client.get("/api/tasks/open/by-contact").json()
        assert list(grouped) == [contact["id"]]

    def test_errors(self, client):
        assert client.post(
            "/api/tasks", json={"contact_id": "missing", "title": "x"}
        ).status_code == 404
        assert client.get("/api/tasks/missing").status_code == 404

        contact = _contact(client)
        task = client.post("/api/tasks", json={"contact_id": contact["id"], "title": "x"}).json()
        bad = client.patch(f"/api/tasks/{task['id']}/status", json={"status": "someday"})
        assert bad.status_code == 400


class TestSystemLog:
    def test_entries_and_read_state(self, client):
        created = client.post(
            "/api/system-log", json={"type": "task", "title": "Follow up", "message": "Due today"}
        )
        assert created.status_code == 201
        entry = created.json()
        assert entry["source"] == "userRule"

        listing = client.get("/api/system-log").json()
        assert listing["total"] == 1
        assert listing["unread"] == 1

        client.post(f"/api/system-log/{entry['id']}/read")
        assert client.get("/api/system-log/unread-count").json() == {"type": None, "unread": 0}
        assert client.post("/api/system-log/missing/read").status_code == 404

    def test_reserved_types(self, client):
        response = client.post(
            "/api/system-log", json={"type": "billing", "title": "Fake", "message": "x"}
        )
        assert response.status_code == 400

    def test_settings_filter(self, client):
        client.post("/api/system-log", json={"type": "task", "title": "T", "message": "x"})

        settings = client.patch("/api/system-log/settings", json={"show_tasks": False}).json()
        assert settings["show_tasks"] is False

        assert client.get("/api/system-log").json()["total"] == 0
        assert client.get("/api/system-log", params={"filtered": False}).json()["total"] == 1

    def test_announcements_require_admin(self, client, monkeypatch):
        monkeypatch.setenv("FRAMELORD_ADMIN_API_KEY", "admin-key")
        body = {"title": "New feature", "message": "Try FrameScan images"}

        assert client.post("/api/system-log/announcements", json=body).status_code == 401
        response = client.post(
            "/api/system-log/announcements",
            json=body,
            headers={"Authorization": "Bearer admin-key"},
        )
        assert response.status_code == 201
        assert response.json()["source"] == "owner"

        marked = client.post("/api/system-log/read-all").json()
        assert marked == {"marked": 1}


class TestPsychometrics:
    def test_manual_evidence_and_update(self, client, fake_llm):
        contact = _contact(client)
        llm = fake_llm(BIG_FIVE)
        client.app.dependency_overrides[get_llm_caller] = lambda: llm

        added = client.post(
            f"/api/psychometrics/{contact['id']}/evidence",
            json={"sourceType": "voice_note", "rawText": "I like to plan everything."},
        ).json()
        assert added["added"] is True

        response = client.post(
            f"/api/psychometrics/{contact['id']}/update", json={"sections": ["big_five"]}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["has_stored_profile"] is True
        assert body["profile"]["big_five"]["conscientiousness"] == 0.9
        assert body["evidence_count"] == 1
        assert len(llm.calls) == 1

        client.delete(f"/api/psychometrics/{contact['id']}")
        assert client.get(f"/api/psychometrics/{contact['id']}").json()["has_stored_profile"] is False

    def test_update_without_evidence_skips_llm(self, client, fake_llm):
        contact = _contact(client)
        llm = fake_llm(BIG_FIVE)
        client.app.dependency_overrides[get_llm_caller] = lambda: llm

        body = client.post(f"/api/psychometrics/{contact['id']}/update", json={}).json()

        assert body["profile"]["status"] == "insufficient_data"
        assert body["evidence_confidence"] == "insufficient"
        assert llm.calls == []

    def test_contact_zero_and_unknown(self, client):
        assert client.get("/api/psychometrics/contact_zero").status_code == 400
        assert client.get("/api/psychometrics/missing").status_code == 404
