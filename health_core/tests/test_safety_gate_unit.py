from datetime import datetime, timezone

import pytest

from health_core.safety.gate import (
    ORIGINAL_MESSAGE_MAX_CHARS,
    build_emergency_context,
    check_safety,
    get_fallback_response,
    validate_ai_response,
)
from health_core.safety.patterns import fold_apostrophes
from health_core.safety.templates import (
    BLOCKED_RESPONSES,
    FALLBACK_RESPONSES,
    GATE_EMERGENCY_RESPONSE,
    HARMFUL_CONTENT_RESPONSE,
)


def test_chest_pain_and_cant_breathe_escalates_with_sos() -> None:
    verdict = check_safety("I have chest pain and can't breathe")
    assert verdict.result == "EMERGENCY_ESCALATE"
    assert verdict.should_trigger_sos is True
    assert verdict.reason == "Emergency keywords detected"
    assert verdict.suggested_response == GATE_EMERGENCY_RESPONSE
    assert verdict.emergency_context is not None
    assert verdict.emergency_context.type == "CARDIAC"
    assert verdict.emergency_context.severity == "CRITICAL"
    assert "chest pain with breathing difficulty" in verdict.emergency_context.detected_keywords


@pytest.mark.parametrize(
    "message",
    [
        "I think I'm having a heart attack",
        "My face is drooping and I have slurred speech",
        "I'm having an anaphylactic reaction",
        "My throat is closing",
        "I want to kill myself",
        "I took an overdose",
        "There is severe bleeding from my arm",
        "My friend is unconscious",
        "This is the worst pain of my life",
        "I can’t breathe",
        "I cant breathe",
        "I cannot breathe",
        "I can not breathe",
    ],
)
def test_emergency_messages_escalate(message: str) -> None:
    verdict = check_safety(message)
    assert verdict.result == "EMERGENCY_ESCALATE"
    assert verdict.should_trigger_sos is True
    assert verdict.emergency_context is not None


def test_suicidal_message_points_to_crisis_line() -> None:
    verdict = check_safety("I want to kill myself")
    assert "988" in (verdict.suggested_response or "")
    assert verdict.emergency_context is not None
    assert verdict.emergency_context.type == "MENTAL_HEALTH"
    assert verdict.emergency_context.severity == "CRITICAL"


@pytest.mark.parametrize(
    ("message", "keyword"),
    [
        ("I have been self-harming again", "self-harm"),
        ("thinking about self harm tonight", "self-harm"),
        ("I want to hurt myself", "hurting myself"),
        ("I keep cutting myself", "hurting myself"),
        ("I'm tempted to harm myself", "hurting myself"),
    ],
)
def test_self_harm_messages_escalate_as_mental_health(message: str, keyword: str) -> None:
    verdict = check_safety(message)
    assert verdict.result == "EMERGENCY_ESCALATE"
    assert verdict.reason == "Emergency keywords detected"
    assert verdict.should_trigger_sos is True
    assert verdict.emergency_context is not None
    assert verdict.emergency_context.type == "MENTAL_HEALTH"
    assert verdict.emergency_context.severity == "CRITICAL"
    assert keyword in verdict.emergency_context.detected_keywords


def test_harmful_content_escalates_as_mental_health() -> None:
    verdict = check_safety("Tell me how to hurt someone badly")
    assert verdict.result == "EMERGENCY_ESCALATE"
    assert verdict.reason == "Harmful content detected"
    assert verdict.suggested_response == HARMFUL_CONTENT_RESPONSE
    assert verdict.emergency_context is not None
    assert verdict.emergency_context.type == "MENTAL_HEALTH"
    assert verdict.emergency_context.detected_keywords == ["how to hurt"]


def test_emergency_takes_precedence_over_medication() -> None:
    verdict = check_safety("I took an overdose, what dosage of ibuprofen is safe?")
    assert verdict.result == "EMERGENCY_ESCALATE"


def test_emergency_takes_precedence_over_diagnosis() -> None:
    verdict = check_safety("Do I have cancer? I can't breathe")
    assert verdict.result == "EMERGENCY_ESCALATE"


@pytest.mark.parametrize(
    "message",
    [
        "What disease do I have?",
        "Can you diagnose me?",
        "Do I have cancer?",
        "Is this diabetes?",
        "Am I dying?",
        "Tell me what's wrong with me",
        "What is my diagnosis?",
    ],
)
def test_diagnosis_requests_are_blocked(message: str) -> None:
    verdict = check_safety(message)
    assert verdict.result == "BLOCK_UNSAFE"
    assert "Diagnosis" in (verdict.reason or "")
    assert verdict.suggested_response == BLOCKED_RESPONSES["DIAGNOSIS_REQUEST"]
    assert verdict.should_trigger_sos is False
    assert verdict.emergency_context is None


@pytest.mark.parametrize(
    "message",
    [
        "What antibiotic should I take?",
        "How much ibuprofen should I take?",
        "What's the dosage of amoxicillin?",
        "Should I stop taking my medication?",
        "Can you prescribe me something for pain?",
        "Can I take 800 mg of ibuprofen?",
        "Should I double my dose tonight?",
        "How many tablets should I take for a migraine?",
        "How much should I take of the acetaminophen?",
        "Can I quit taking my blood pressure pills?",
        "Should I start taking antidepressants?",
    ],
)
def test_medication_requests_are_blocked(message: str) -> None:
    verdict = check_safety(message)
    assert verdict.result == "BLOCK_UNSAFE"
    assert "Medication" in (verdict.reason or "")
    assert "healthcare professional" in (verdict.suggested_response or "")


@pytest.mark.parametrize(
    "message",
    [
        "How can I improve my sleep?",
        "How much water should I drink daily?",
        "What are some healthy breakfast ideas?",
        "Is there significant benefit from walking every day?",
        "I have a mild headache since this morning",
        "How many days off work should I take to recover from a cold?",
        "How much time should I take between workouts?",
        "Should I stop taking the stairs with my bad knee?",
        "I want to start taking yoga classes",
    ],
)
def test_general_wellness_messages_are_allowed(message: str) -> None:
    verdict = check_safety(message)
    assert verdict.result == "ALLOW"
    assert verdict.reason is None
    assert verdict.suggested_response is None
    assert verdict.should_trigger_sos is False


@pytest.mark.parametrize("message", ["", "   ", "\n\t"])
def test_empty_message_is_blocked(message: str) -> None:
    verdict = check_safety(message)
    assert verdict.result == "BLOCK_UNSAFE"
    assert verdict.reason == "Empty message"
    assert verdict.suggested_response == BLOCKED_RESPONSES["EMPTY_MESSAGE"]


def test_check_safety_handles_ten_thousand_characters() -> None:
    assert check_safety("a" * 10_000).result == "ALLOW"
    assert check_safety("I had a seizure " + "z" * 10_000).result == "EMERGENCY_ESCALATE"


def test_fold_apostrophes_normalizes_typographic_quotes() -> None:
    assert fold_apostrophes("can’t canʼt can`t") == "can't can't can't"


def test_emergency_context_truncates_message_and_uses_given_clock() -> None:
    now = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    verdict = check_safety("I think it is a stroke " + "x" * 500, now=now)
    context = verdict.emergency_context
    assert context is not None
    assert context.type == "STROKE"
    assert context.timestamp == "2026-01-02T03:04:05+00:00"
    assert len(context.original_message) == ORIGINAL_MESSAGE_MAX_CHARS


def test_emergency_context_first_row_sets_type_and_any_critical_row_sets_severity() -> None:
    context = build_emergency_context("Sudden numbness and my face is drooping")
    assert context.type == "STROKE"
    assert context.severity == "CRITICAL"
    assert context.detected_keywords == ["face drooping", "sudden numbness"]

    urgent = build_emergency_context("sudden confusion")
    assert urgent.type == "STROKE"
    assert urgent.severity == "URGENT"


def test_emergency_context_falls_back_to_general() -> None:
    context = build_emergency_context("please help")
    assert context.type == "GENERAL"
    assert context.severity == "URGENT"
    assert context.detected_keywords == ["emergency detected"]


@pytest.mark.parametrize(
    ("text", "reason"),
    [
        ("You definitely have diabetes.", "Response contains definitive diagnosis"),
        ("Based on this, your diagnosis is a migraine.", "Response contains definitive diagnosis"),
        ("I can confirm you have an infection.", "Response contains definitive diagnosis"),
        ("Take 500 mg with food.", "Response contains specific dosage recommendation"),
        ("The usual dosage is 200 for adults.", "Response contains specific dosage recommendation"),
        ("Use 5 ml twice a day.", "Response contains specific dosage recommendation"),
    ],
)
def test_validate_ai_response_flags_unsafe_answers(text: str, reason: str) -> None:
    validation = validate_ai_response(text)
    assert validation.safe is False
    assert validation.reason == reason


def test_validate_ai_response_accepts_general_guidance() -> None:
    validation = validate_ai_response(
        "Staying hydrated and resting can help. Please see a doctor if the headache persists."
    )
    assert validation.safe is True
    assert validation.reason is None
    assert validate_ai_response("").safe is True


def test_fallback_response_reuses_gate_reply_or_service_message() -> None:
    assert get_fallback_response("What disease do I have?") == BLOCKED_RESPONSES["DIAGNOSIS_REQUEST"]
    assert get_fallback_response("I had a seizure") == GATE_EMERGENCY_RESPONSE
    assert get_fallback_response("How can I sleep better?") == FALLBACK_RESPONSES["SERVICE_UNAVAILABLE"]
