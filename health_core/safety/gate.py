from __future__ import annotations

"""
Pre-model safety gate for free-text chat messages.

Design intent:
- Classify before any language-model call: ALLOW / EMERGENCY_ESCALATE / BLOCK_UNSAFE.
- Category checks run in a fixed order and short-circuit; emergency always wins.
- Post-hoc validation of model answers is a separate, independent check.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Sequence

from health_core.safety.patterns import (
    AI_DIAGNOSIS_INDICATORS,
    AI_DOSAGE_INDICATORS,
    DIAGNOSIS_PATTERNS,
    EMERGENCY_CONTEXT_RULES,
    EMERGENCY_PATTERNS,
    FALLBACK_EMERGENCY_KEYWORD,
    HARMFUL_PATTERNS,
    MEDICATION_PATTERNS,
    EmergencySeverity,
    EmergencyType,
    fold_apostrophes,
)
from health_core.safety.templates import (
    BLOCKED_RESPONSES,
    FALLBACK_RESPONSES,
    GATE_EMERGENCY_RESPONSE,
    HARMFUL_CONTENT_RESPONSE,
)


SafetyResult = Literal["ALLOW", "EMERGENCY_ESCALATE", "BLOCK_UNSAFE"]

ORIGINAL_MESSAGE_MAX_CHARS = 200


@dataclass(frozen=True)
class EmergencyContext:
    type: EmergencyType
    detected_keywords: list[str]
    severity: EmergencySeverity
    timestamp: str
    original_message: str


@dataclass(frozen=True)
class SafetyVerdict:
    result: SafetyResult
    reason: str | None = None
    suggested_response: str | None = None
    should_trigger_sos: bool = False
    emergency_context: EmergencyContext | None = None


@dataclass(frozen=True)
class ResponseValidation:
    safe: bool
    reason: str | None = None


@dataclass(frozen=True)
class _ContextMatch:
    type: EmergencyType | None = None
    severity: EmergencySeverity = "URGENT"
    keywords: list[str] = field(default_factory=list)


def check_safety(message: str, *, now: datetime | None = None) -> SafetyVerdict:
    text = fold_apostrophes(message or "").strip()
    if not text:
        return SafetyVerdict(
            result="BLOCK_UNSAFE",
            reason="Empty message",
            suggested_response=BLOCKED_RESPONSES["EMPTY_MESSAGE"],
        )

    if _matches_any(text, EMERGENCY_PATTERNS):
        return SafetyVerdict(
            result="EMERGENCY_ESCALATE",
            reason="Emergency keywords detected",
            suggested_response=GATE_EMERGENCY_RESPONSE,
            should_trigger_sos=True,
            emergency_context=build_emergency_context(text, now=now),
        )

    harmful = _matched_phrases(text, HARMFUL_PATTERNS)
    if harmful:
        return SafetyVerdict(
            result="EMERGENCY_ESCALATE",
            reason="Harmful content detected",
            suggested_response=HARMFUL_CONTENT_RESPONSE,
            should_trigger_sos=True,
            emergency_context=EmergencyContext(
                type="MENTAL_HEALTH",
                detected_keywords=harmful,
                severity="CRITICAL",
                timestamp=_ts_iso(now),
                original_message=text[:ORIGINAL_MESSAGE_MAX_CHARS],
            ),
        )

    if _matches_any(text, DIAGNOSIS_PATTERNS):
        return SafetyVerdict(
            result="BLOCK_UNSAFE",
            reason="Diagnosis request detected",
            suggested_response=BLOCKED_RESPONSES["DIAGNOSIS_REQUEST"],
        )

    if _matches_any(text, MEDICATION_PATTERNS):
        return SafetyVerdict(
            result="BLOCK_UNSAFE",
            reason="Medication dosing request detected",
            suggested_response=BLOCKED_RESPONSES["MEDICATION_REQUEST"],
        )

    return SafetyVerdict(result="ALLOW")


def build_emergency_context(message: str, *, now: datetime | None = None) -> EmergencyContext:
    """
    Derive type/severity/keywords for a message the emergency layer already flagged.

    When no typed row matches, the context falls back to GENERAL/URGENT with a
    placeholder keyword so escalations always carry a context.
    """
    text = fold_apostrophes(message or "").strip()
    match = _match_context_rules(text)
    if match.type is None:
        match = _ContextMatch(type="GENERAL", severity="URGENT", keywords=[FALLBACK_EMERGENCY_KEYWORD])
    return EmergencyContext(
        type=match.type,  # type: ignore[arg-type]
        detected_keywords=match.keywords,
        severity=match.severity,
        timestamp=_ts_iso(now),
        original_message=text[:ORIGINAL_MESSAGE_MAX_CHARS],
    )


def validate_ai_response(text: str) -> ResponseValidation:
    body = fold_apostrophes(text or "")
    if _matches_any(body, AI_DIAGNOSIS_INDICATORS):
        return ResponseValidation(safe=False, reason="Response contains definitive diagnosis")
    if _matches_any(body, AI_DOSAGE_INDICATORS):
        return ResponseValidation(safe=False, reason="Response contains specific dosage recommendation")
    return ResponseValidation(safe=True)


def get_fallback_response(message: str) -> str:
    """Canned reply for when the model is unreachable or its answer was rejected."""
    verdict = check_safety(message)
    if verdict.suggested_response:
        return verdict.suggested_response
    return FALLBACK_RESPONSES["SERVICE_UNAVAILABLE"]


def _match_context_rules(text: str) -> _ContextMatch:
    etype: EmergencyType | None = None
    severity: EmergencySeverity = "URGENT"
    keywords: list[str] = []
    for pattern, rule_type, rule_severity, keyword in EMERGENCY_CONTEXT_RULES:
        if not pattern.search(text):
            continue
        if etype is None:
            etype = rule_type
        if rule_severity == "CRITICAL":
            severity = "CRITICAL"
        keywords.append(keyword)
    return _ContextMatch(type=etype, severity=severity, keywords=keywords)


def _matches_any(text: str, patterns: Sequence[re.Pattern[str]]) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def _matched_phrases(text: str, patterns: Sequence[re.Pattern[str]]) -> list[str]:
    out: list[str] = []
    for pattern in patterns:
        found = pattern.search(text)
        if found:
            out.append(re.sub(r"\s+", " ", found.group(0).lower()))
    return out


def _ts_iso(now: datetime | None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()
