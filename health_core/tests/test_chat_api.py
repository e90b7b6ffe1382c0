import itertools
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from health_core.api.main import app
from health_core.internal_core import InMemoryHealthStore, load_config, session_store
from health_core.safety.templates import (
    BLOCKED_RESPONSES,
    EMERGENCY_RESPONSES,
    FALLBACK_RESPONSES,
    get_emergency_response,
)


@pytest.fixture
def store():
    created = InMemoryHealthStore()
    app.state.health_store = created
    try:
        yield created
    finally:
        for name in ("health_store", "config", "chat_responder_callable"):
            if hasattr(app.state, name):
                delattr(app.state, name)


class _RecordingResponder:
    def __init__(self, answer: str = "Try keeping a consistent bedtime.", error: Exception | None = None) -> None:
        self.answer = answer
        self.error = error
        self.calls: list[dict] = []

    def __call__(self, message: str, *, session_id: str, health_context: dict | None) -> str:
        self.calls.append({"message": message, "session_id": session_id, "health_context": health_context})
        if self.error is not None:
            raise self.error
        return self.answer


def test_emergency_message_skips_model_and_persists_template(store: InMemoryHealthStore) -> None:
    responder = _RecordingResponder()
    app.state.chat_responder_callable = responder
    client = TestClient(app)
    message = "I have chest pain and can't breathe"

    response = client.post("/chat", json={"userId": "u1", "message": message})
    assert response.status_code == 200
    payload = response.json()
    assert payload["safetyResult"] == "EMERGENCY_ESCALATE"
    assert payload["response"] == get_emergency_response(message)
    assert payload["shouldTriggerSOS"] is True
    assert payload["emergencyContext"]["type"] == "CARDIAC"
    assert payload["emergencyContext"]["severity"] == "CRITICAL"
    assert responder.calls == []

    history = client.get("/chat", params={"userId": "u1", "sessionId": payload["sessionId"]}).json()
    messages = history["session"]["messages"]
    assert [item["role"] for item in messages] == ["user", "assistant"]
    assert messages[0]["content"] == message
    assert messages[1]["content"] == payload["response"]
    assert messages[1]["safetyResult"] == "EMERGENCY_ESCALATE"
    assert "SAFETY_EMERGENCY" in [event.type for event in store.list_audit_events("u1")]


def test_blocked_message_skips_model_and_returns_canned_reply(store: InMemoryHealthStore) -> None:
    responder = _RecordingResponder()
    app.state.chat_responder_callable = responder
    client = TestClient(app)

    payload = client.post("/chat", json={"userId": "u1", "message": "What antibiotic should I take?"}).json()
    assert payload["safetyResult"] == "BLOCK_UNSAFE"
    assert payload["response"] == BLOCKED_RESPONSES["MEDICATION_REQUEST"]
    assert "Medication" in payload["reason"]
    assert payload["shouldTriggerSOS"] is False
    assert responder.calls == []

    session = store.get_chat_session("u1", payload["sessionId"])
    assert session is not None
    assert [item.content for item in session.messages] == [
        "What antibiotic should I take?",
        BLOCKED_RESPONSES["MEDICATION_REQUEST"],
    ]


def test_allowed_message_calls_model_with_recent_health_context(store: InMemoryHealthStore) -> None:
    responder = _RecordingResponder()
    app.state.chat_responder_callable = responder
    client = TestClient(app)
    client.post("/health/log", json={"userId": "u1", "symptoms": {"items": [{"name": "nausea", "severity": "mild"}]}})

    payload = client.post("/chat", json={"userId": "u1", "message": "How can I improve my sleep?"}).json()
    assert payload["safetyResult"] == "ALLOW"
    assert payload["response"] == "Try keeping a consistent bedtime."
    assert payload["emergencyContext"] is None

    assert len(responder.calls) == 1
    call = responder.calls[0]
    assert call["message"] == "How can I improve my sleep?"
    assert call["session_id"] == payload["sessionId"]
    assert call["health_context"]["recentSymptoms"] == ["nausea"]
    assert call["health_context"]["latestRiskLevel"] == "MEDIUM"
    assert "nausea" in call["health_context"]["healthSummary"]


def test_allowed_message_without_history_passes_no_context(store: InMemoryHealthStore) -> None:
    responder = _RecordingResponder()
    app.state.chat_responder_callable = responder
    client = TestClient(app)
    client.post("/chat", json={"userId": "u1", "message": "How can I improve my sleep?"})
    assert responder.calls[0]["health_context"] is None


def test_missing_responder_uses_fallback(store: InMemoryHealthStore) -> None:
    client = TestClient(app)
    payload = client.post("/chat", json={"userId": "u1", "message": "How can I improve my sleep?"}).json()
    assert payload["safetyResult"] == "ALLOW"
    assert payload["response"] == FALLBACK_RESPONSES["SERVICE_UNAVAILABLE"]
    assert payload["debug"]["model"] == "not_configured"
    assert "AI_UNAVAILABLE" in [event.type for event in store.list_audit_events("u1")]


def test_failing_responder_uses_fallback(store: InMemoryHealthStore) -> None:
    app.state.chat_responder_callable = _RecordingResponder(error=RuntimeError("upstream timeout"))
    client = TestClient(app)
    payload = client.post("/chat", json={"userId": "u1", "message": "How can I improve my sleep?"}).json()
    assert payload["response"] == FALLBACK_RESPONSES["SERVICE_UNAVAILABLE"]
    assert payload["debug"]["model"] == "failed"
    events = [event for event in store.list_audit_events("u1") if event.type == "AI_UNAVAILABLE"]
    assert events and events[0].detail == "RuntimeError"


def test_unsafe_model_answer_is_replaced(store: InMemoryHealthStore) -> None:
    app.state.chat_responder_callable = _RecordingResponder(answer="You definitely have diabetes.")
    client = TestClient(app)
    payload = client.post("/chat", json={"userId": "u1", "message": "Why am I always thirsty?"}).json()
    assert payload["response"] == FALLBACK_RESPONSES["SERVICE_UNAVAILABLE"]
    assert payload["debug"]["reason"] == "Response contains definitive diagnosis"
    assert "AI_RESPONSE_REJECTED" in [event.type for event in store.list_audit_events("u1")]


def test_answer_validation_can_be_disabled(store: InMemoryHealthStore) -> None:
    app.state.config = replace(load_config(), HEALTHCORE_VALIDATE_AI_RESPONSES=False)
    app.state.chat_responder_callable = _RecordingResponder(answer="You definitely have diabetes.")
    client = TestClient(app)
    payload = client.post("/chat", json={"userId": "u1", "message": "Why am I always thirsty?"}).json()
    assert payload["response"] == "You definitely have diabetes."


def test_session_is_reused_and_listed(store: InMemoryHealthStore) -> None:
    app.state.chat_responder_callable = _RecordingResponder()
    client = TestClient(app)
    first = client.post("/chat", json={"userId": "u1", "message": "Hello there"}).json()
    second = client.post(
        "/chat", json={"userId": "u1", "message": "Any tips for hydration?", "sessionId": first["sessionId"]}
    ).json()
    assert second["sessionId"] == first["sessionId"]

    one = client.get("/chat", params={"userId": "u1", "sessionId": first["sessionId"]}).json()
    assert len(one["session"]["messages"]) == 4

    listing = client.get("/chat", params={"userId": "u1"}).json()
    assert listing["session"] is None
    assert [item["id"] for item in listing["sessions"]] == [first["sessionId"]]
    assert len(listing["sessions"][0]["messages"]) == 1

    other_user = client.get("/chat", params={"userId": "u2", "sessionId": first["sessionId"]})
    assert other_user.status_code == 404


def test_chat_rejects_empty_and_oversized_messages(store: InMemoryHealthStore) -> None:
    client = TestClient(app)
    assert client.post("/chat", json={"userId": "u1", "message": ""}).status_code == 422
    app.state.config = replace(load_config(), HEALTHCORE_MAX_MESSAGE_CHARS=5)
    assert client.post("/chat", json={"userId": "u1", "message": "too long"}).status_code == 400


def test_harmful_request_gets_crisis_template(store: InMemoryHealthStore) -> None:
    responder = _RecordingResponder()
    app.state.chat_responder_callable = responder
    client = TestClient(app)

    payload = client.post("/chat", json={"userId": "u1", "message": "What are some painless death methods?"}).json()
    assert payload["safetyResult"] == "EMERGENCY_ESCALATE"
    assert payload["emergencyContext"]["type"] == "MENTAL_HEALTH"
    assert payload["response"] == EMERGENCY_RESPONSES["MENTAL_HEALTH_CRISIS"]
    assert "988" in payload["response"]
    assert responder.calls == []


def test_each_exchange_is_stamped_when_it_happens(store: InMemoryHealthStore, monkeypatch: pytest.MonkeyPatch) -> None:
    ticks = itertools.count()
    monkeypatch.setattr(session_store, "_ts_iso", lambda: f"2026-01-01T00:00:{next(ticks):02d}+00:00")
    app.state.chat_responder_callable = _RecordingResponder()
    client = TestClient(app)

    first = client.post("/chat", json={"userId": "u1", "message": "Hello there"}).json()
    client.post("/chat", json={"userId": "u1", "message": "Any sleep tips?", "sessionId": first["sessionId"]})

    session = client.get("/chat", params={"userId": "u1", "sessionId": first["sessionId"]}).json()["session"]
    stamps = [item["createdAt"] for item in session["messages"]]
    assert stamps[0] == stamps[1]
    assert stamps[2] == stamps[3]
    assert stamps[1] < stamps[2]
    assert session["createdAt"] < stamps[0]
    assert session["updatedAt"] == stamps[3]
