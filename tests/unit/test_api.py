from __future__ import annotations

from fastapi.testclient import TestClient

from crm_assistant.api.main import create_app
from crm_assistant.chat import messages
from crm_assistant.config.settings import Settings
from crm_assistant.storage import collection_path

from doubles import RecordingStore, ScriptedExtractor


def test_health_endpoint(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_contact_lifecycle_and_search(client: TestClient) -> None:
    created = client.post(
        "/contacts", json={"name": "Jane Smith", "company": "Acme", "email": "jane@acme.com"}
    )
    assert created.status_code == 200
    contact = created.json()
    assert contact["title"] == ""
    client.post("/contacts", json={"name": "Bob", "company": "Globex"})

    assert [c["name"] for c in client.get("/contacts", params={"q": "acme"}).json()] == [
        "Jane Smith"
    ]

    patched = client.patch(f"/contacts/{contact['id']}", json={"phone": "555-0100"})
    assert patched.status_code == 204
    [jane] = client.get("/contacts", params={"q": "jane"}).json()
    assert jane["phone"] == "555-0100"
    assert jane["company"] == "Acme"

    assert client.delete(f"/contacts/{contact['id']}").status_code == 204
    assert len(client.get("/contacts").json()) == 1


def test_unknown_record_returns_404(client: TestClient) -> None:
    assert client.patch("/contacts/missing", json={"name": "x"}).status_code == 404
    assert client.delete("/deals/missing").status_code == 404
    assert client.post("/deals/missing/move", json={"stage": "Proposal Sent"}).status_code == 404


def test_deal_moves_follow_pipeline_rules(client: TestClient) -> None:
    deal = client.post("/deals", json={"name": "Acme Project", "value": 5000}).json()
    assert deal["stage"] == "Initial Contact"
    assert deal["probability"] == 50

    skipped = client.post(f"/deals/{deal['id']}/move", json={"stage": "Proposal Sent"})
    assert skipped.status_code == 409

    assert (
        client.post(f"/deals/{deal['id']}/move", json={"stage": "First Meeting Scheduled"}).status_code
        == 204
    )
    assert (
        client.post(f"/deals/{deal['id']}/move", json={"stage": "Proposal Accepted (Won)"}).status_code
        == 204
    )

    board = client.get("/pipeline").json()
    assert [d["name"] for d in board["Proposal Accepted (Won)"]] == ["Acme Project"]

    dashboard = client.get("/dashboard").json()
    assert dashboard["closed_deals"] == 1
    assert dashboard["active_deals"] == 0
    assert dashboard["pipeline_value"] == 0


def test_invalid_stage_is_rejected(client: TestClient) -> None:
    deal = client.post("/deals", json={"name": "Acme"}).json()
    response = client.post(f"/deals/{deal['id']}/move", json={"stage": "Lost"})
    assert response.status_code == 422


def test_project_tasks(client: TestClient) -> None:
    project = client.post("/projects", json={"name": "Website Redesign", "client": "Google"}).json()
    assert project["tasks"] == []

    with_task = client.post(f"/projects/{project['id']}/tasks", json={"name": "Wireframes"})
    assert with_task.status_code == 200
    [task] = with_task.json()["tasks"]

    toggled = client.post(f"/projects/{project['id']}/tasks/{task['id']}/toggle").json()
    assert toggled["tasks"][0]["completed"] is True

    removed = client.delete(f"/projects/{project['id']}/tasks/{task['id']}").json()
    assert removed["tasks"] == []
    assert client.get("/projects").json()[0]["tasks"] == []

    assert client.post("/projects/missing/tasks", json={"name": "x"}).status_code == 404
    assert client.post(f"/projects/{project['id']}/tasks", json={"name": ""}).status_code == 422


def test_settings_documents_merge(client: TestClient) -> None:
    assert client.get("/settings/profile").json()["first_name"] == ""

    client.put("/settings/profile", json={"first_name": "Ada", "company": "Acme"})
    saved = client.put("/settings/profile", json={"bio": "Hi"}).json()
    assert saved["first_name"] == "Ada"
    assert saved["bio"] == "Hi"

    prefs = client.put("/settings/notifications", json={"deal_reminders": True}).json()
    assert prefs["deal_reminders"] is True
    assert prefs["weekly_reports"] is False


def test_records_are_scoped_per_user(client: TestClient) -> None:
    client.post("/contacts", json={"name": "Mine"}, headers={"X-User-Id": "alice"})
    assert client.get("/contacts", headers={"X-User-Id": "bob"}).json() == []
    assert [c["name"] for c in client.get("/contacts", headers={"X-User-Id": "alice"}).json()] == [
        "Mine"
    ]


def test_chat_session_flow(client: TestClient, extractor: ScriptedExtractor) -> None:
    extractor.queue(
        {
            "intent": "add_contact",
            "data": {"name": "John Doe", "company": "Acme Corp"},
            "confirmationMessage": "Add John Doe?",
        }
    )
    session = client.post("/chat/sessions").json()
    assert session["stage"] == "idle"
    assert session["transcript"][0]["text"] == messages.GREETING
    session_id = session["session_id"]

    first = client.post(f"/chat/sessions/{session_id}/messages", json={"text": "add John Doe"})
    assert first.status_code == 200
    assert first.json()["stage"] == "awaiting_confirmation"
    assert first.json()["reply"]["text"] == "Add John Doe?"

    second = client.post(f"/chat/sessions/{session_id}/messages", json={"text": "yes"}).json()
    assert second["reply"]["text"] == 'Contact "John Doe" added successfully!'
    assert second["stage"] == "idle"
    assert len(second["transcript"]) == 5

    blank = client.post(f"/chat/sessions/{session_id}/messages", json={"text": "  "}).json()
    assert blank["reply"] is None
    assert len(blank["transcript"]) == 5

    assert [c["name"] for c in client.get("/contacts").json()] == ["John Doe"]


def test_chat_sessions_are_private(client: TestClient) -> None:
    session_id = client.post("/chat/sessions", headers={"X-User-Id": "alice"}).json()["session_id"]
    assert client.get(f"/chat/sessions/{session_id}", headers={"X-User-Id": "bob"}).status_code == 404
    assert (
        client.post(
            f"/chat/sessions/{session_id}/messages",
            json={"text": "hi"},
            headers={"X-User-Id": "bob"},
        ).status_code
        == 404
    )
    assert client.delete(f"/chat/sessions/{session_id}", headers={"X-User-Id": "alice"}).status_code == 204
    assert client.get(f"/chat/sessions/{session_id}", headers={"X-User-Id": "alice"}).status_code == 404


def test_busy_session_returns_409(client: TestClient) -> None:
    session_id = client.post("/chat/sessions").json()["session_id"]
    session = client.app.state.chat_sessions.get(session_id, user_id="local-user")
    session.pipeline._pending = True
    response = client.post(f"/chat/sessions/{session_id}/messages", json={"text": "hello"})
    assert response.status_code == 409


def test_unknown_task_returns_404_without_writing(
    client: TestClient, store: RecordingStore
) -> None:
    project = client.post("/projects", json={"name": "Website Redesign"}).json()
    store.mutations.clear()

    assert client.post(f"/projects/{project['id']}/tasks/missing/toggle").status_code == 404
    assert client.delete(f"/projects/{project['id']}/tasks/missing").status_code == 404
    assert store.mutations == []


def test_shutdown_closes_workspaces_for_injected_storage(
    store: RecordingStore, extractor: ScriptedExtractor, settings: Settings
) -> None:
    app = create_app(storage=store, extractor=extractor, settings_override=settings)
    path = collection_path(settings.app_id, "local-user", "contacts")
    with TestClient(app) as client:
        client.get("/contacts")
        assert store._hub.has_listeners(path)
    assert not store._hub.has_listeners(path)
