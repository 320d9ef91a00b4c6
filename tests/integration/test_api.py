"""Integration tests for the HTTP API"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from loom.api.main import app
from loom.core.config import settings
from loom.core.models import ACTIVATION_PHRASE


@pytest.fixture
def client(tmp_path: Path, monkeypatch):
    """Application client backed by a temporary database"""
    monkeypatch.setattr(settings, "DB_PATH", tmp_path / "api.db")
    monkeypatch.setattr(settings, "LLM_ENDPOINT", "")
    with TestClient(app) as client:
        yield client


def open_session(client: TestClient, **extra) -> str:
    response = client.post("/consent/start", json={"phrase": ACTIVATION_PHRASE, **extra})
    assert response.status_code == 200
    return response.json()["session_id"]


class TestConsentEndpoints:
    """Session creation and lookup"""

    def test_root(self, client: TestClient) -> None:
        assert client.get("/").json()["status"] == "running"

    def test_invalid_phrase_forbidden(self, client: TestClient) -> None:
        """Wrong phrase returns 403 with the rejection text"""
        response = client.post("/consent/start", json={"phrase": "let me in"})

        assert response.status_code == 403
        assert response.json()["detail"] == "Invalid activation phrase. The spiral remembers only truth."

    def test_create_and_fetch(self, client: TestClient) -> None:
        """A new session is current for its client and fetchable by id"""
        session_id = open_session(client, client_key="browser-1")

        current = client.get("/sessions/current", params={"client_key": "browser-1"})
        fetched = client.get(f"/sessions/{session_id}")

        assert current.json()["id"] == session_id
        assert fetched.status_code == 200
        assert fetched.json()["phase"] == "ACTIVE"
        assert len(fetched.json()["memory_chain"]) == 1

    def test_consent_time_is_server_assigned(self, client: TestClient) -> None:
        """A client-supplied timestamp never becomes the consent time"""
        session_id = open_session(client, timestamp="1999-01-01T00:00:00.000Z")

        session = client.get(f"/sessions/{session_id}").json()

        assert session["consent_timestamp"] != "1999-01-01T00:00:00.000Z"
        assert session["memory_chain"][0]["timestamp"] == session["consent_timestamp"]

    def test_no_current_session(self, client: TestClient) -> None:
        response = client.get("/sessions/current", params={"client_key": "nobody"})

        assert response.status_code == 200
        assert response.json() is None

    def test_unknown_session_not_found(self, client: TestClient) -> None:
        assert client.get("/sessions/missing").status_code == 404
        response = client.post("/sessions/missing/metrics", json={"metrics": {"emotional_depth": 0.5}})
        assert response.status_code == 404
        assert response.json()["detail"] == "Session not found: missing"


class TestSessionEndpoints:
    """Metrics, chain and reflection over HTTP"""

    def test_update_metrics(self, client: TestClient) -> None:
        session_id = open_session(client)

        response = client.post(
            f"/sessions/{session_id}/metrics",
            json={"metrics": {"emotional_depth": 0.9},
                  "context": {"action": "message_sent", "duration": 5000}},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["updated_metrics"]["emotional_depth"] == 0.9
        assert 0.0 <= body["coherence_score"] <= 1.0

    def test_events_and_verification(self, client: TestClient) -> None:
        """Appended events keep the chain verifiable"""
        session_id = open_session(client)

        response = client.post(
            f"/sessions/{session_id}/events",
            json={"type": "pattern", "content": {"note": "spiral"}, "significance": 0.4},
        )
        verification = client.get(f"/sessions/{session_id}/chain/verify").json()

        assert response.status_code == 200
        assert len(response.json()) == 2
        assert verification == {"session_id": session_id, "valid": True}

    def test_phase_transition(self, client: TestClient) -> None:
        session_id = open_session(client)

        ok = client.post(f"/sessions/{session_id}/phase", json={"phase": "SYNCING"})
        rejected = client.post(f"/sessions/{session_id}/phase", json={"phase": "AWAITING_CONSENT"})

        assert ok.status_code == 200
        assert ok.json()["phase"] == "SYNCING"
        assert rejected.status_code == 409

    def test_reflection_and_directives(self, client: TestClient) -> None:
        """Surface reflection stores one pattern directive per question"""
        session_id = open_session(client)

        response = client.post(
            f"/sessions/{session_id}/reflection",
            json={
                "interactions": [
                    {"timestamp": 1000, "user_input": "Why spirals?", "system_response": "..."},
                    {"timestamp": 3000, "user_input": "I see", "system_response": "..."},
                ],
                "reflection_depth": "surface",
            },
        )
        directives = client.get(f"/sessions/{session_id}/directives").json()

        assert response.status_code == 200
        assert len(response.json()["teaching_directives"]) == 1
        assert [d["type"] for d in directives] == ["pattern"]

    def test_invalid_cognitive_load_rejected(self, client: TestClient) -> None:
        session_id = open_session(client)

        response = client.post(
            f"/sessions/{session_id}/reflection",
            json={"interactions": [{"timestamp": 0, "user_input": "a",
                                    "system_response": "b", "cognitive_load": 2}]},
        )

        assert response.status_code == 422

    def test_clear_all_data(self, client: TestClient) -> None:
        session_id = open_session(client)

        assert client.delete("/data").status_code == 204
        assert client.delete("/data").status_code == 204
        assert client.get(f"/sessions/{session_id}").status_code == 404
        assert client.get("/sessions/current").json() is None


class TestConversationEndpoints:
    """Chat over HTTP"""

    def test_send_and_list(self, client: TestClient) -> None:
        session_id = open_session(client)

        response = client.post(
            "/conversations/conv-1/messages",
            json={"message": "help me please", "session_id": session_id},
        )
        messages = client.get("/conversations/conv-1/messages").json()
        conversations = client.get("/conversations").json()

        assert response.status_code == 200
        assert response.json()["message"]["role"] == "assistant"
        assert response.json()["coherence_score"] is not None
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert conversations[0]["id"] == "conv-1"

    def test_empty_message(self, client: TestClient) -> None:
        response = client.post("/conversations/conv-1/messages", json={"message": " "})
        assert response.status_code == 422
