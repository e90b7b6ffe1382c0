from __future__ import annotations

"""
HTTP surface for the health companion core.

Design intent:
- Keep route handlers thin: validate, call the pure core, persist, respond.
- Never call the language model for escalated or blocked chat messages.
- Hold store, config and model responder on app.state so tests can inject them.
"""

import logging
from typing import Any, Callable, Literal

from fastapi import FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from health_core.internal_core import HealthCoreConfig, InMemoryHealthStore, load_config
from health_core.internal_core.audit import log_event
from health_core.internal_core.contracts import (
    ChatSessionRecord,
    HealthLogRecord,
    RiskAssessmentRecord,
)
from health_core.risk.engine import (
    HealthLog,
    Lifestyle,
    RiskAssessment,
    SymptomItem,
    UserProfile,
    Vitals,
    assess_risk,
)
from health_core.safety.gate import (
    SafetyResult,
    SafetyVerdict,
    check_safety,
    get_fallback_response,
    validate_ai_response,
)
from health_core.safety.templates import get_emergency_response


class SymptomItemInput(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    severity: Literal["mild", "moderate", "severe"]
    duration: str | None = Field(default=None, max_length=64)


class SymptomsInput(BaseModel):
    items: list[SymptomItemInput] = Field(default_factory=list)
    freeText: str | None = Field(default=None, max_length=4000)


class VitalsInput(BaseModel):
    heartRate: float | None = Field(default=None, ge=30, le=250)
    temperature: float | None = Field(default=None, ge=35, le=43)
    bpSystolic: float | None = Field(default=None, ge=70, le=250)
    bpDiastolic: float | None = Field(default=None, ge=40, le=150)
    spO2: float | None = Field(default=None, ge=70, le=100)


class LifestyleInput(BaseModel):
    sleepHours: float | None = Field(default=None, ge=0, le=24)
    stressLevel: Literal["low", "moderate", "high"] | None = None
    hydration: Literal["poor", "adequate", "good"] | None = None
    exercise: bool | None = None
    meals: int | None = Field(default=None, ge=0, le=10)


class UserProfileInput(BaseModel):
    age: float | None = Field(default=None, ge=0, le=130)
    conditions: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)


class HealthLogInput(BaseModel):
    symptoms: SymptomsInput = Field(default_factory=SymptomsInput)
    vitals: VitalsInput | None = None
    lifestyle: LifestyleInput | None = None


class RiskAssessRequest(BaseModel):
    log: HealthLogInput
    profile: UserProfileInput | None = None


class HealthLogCreateRequest(HealthLogInput):
    userId: str = Field(min_length=1, max_length=128)
    profile: UserProfileInput | None = None


class RiskAssessmentResponse(BaseModel):
    riskLevel: Literal["LOW", "MEDIUM", "HIGH", "EMERGENCY"]
    reasons: list[str] = Field(default_factory=list)
    nextSteps: list[str] = Field(default_factory=list)
    redFlags: list[str] = Field(default_factory=list)
    consultAdvice: str
    ruleVersion: str


class HealthLogCreateResponse(BaseModel):
    healthLogId: str
    createdAt: str
    assessment: RiskAssessmentResponse


class HealthLogItem(BaseModel):
    id: str
    createdAt: str
    symptoms: dict[str, Any] = Field(default_factory=dict)
    vitals: dict[str, Any] = Field(default_factory=dict)
    lifestyle: dict[str, Any] = Field(default_factory=dict)
    assessment: RiskAssessmentResponse | None = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    hasMore: bool


class HealthLogListResponse(BaseModel):
    healthLogs: list[HealthLogItem] = Field(default_factory=list)
    pagination: Pagination


class RiskToolResponse(BaseModel):
    hasData: bool
    message: str | None = None
    riskLevel: str | None = None
    assessedAt: str | None = None
    reasons: list[str] = Field(default_factory=list)
    redFlags: list[str] = Field(default_factory=list)
    nextSteps: list[str] = Field(default_factory=list)
    ruleVersion: str | None = None
    basedOn: dict[str, Any] = Field(default_factory=dict)


class SafetyCheckRequest(BaseModel):
    message: str = ""


class EmergencyContextResponse(BaseModel):
    type: Literal["CARDIAC", "STROKE", "BREATHING", "ALLERGIC", "MENTAL_HEALTH", "GENERAL"]
    detectedKeywords: list[str] = Field(default_factory=list)
    severity: Literal["CRITICAL", "URGENT"]
    timestamp: str
    originalMessage: str


class SafetyVerdictResponse(BaseModel):
    result: Literal["ALLOW", "EMERGENCY_ESCALATE", "BLOCK_UNSAFE"]
    reason: str | None = None
    suggestedResponse: str | None = None
    shouldTriggerSOS: bool = False
    emergencyContext: EmergencyContextResponse | None = None


class ResponseValidationRequest(BaseModel):
    text: str = ""


class ResponseValidationResponse(BaseModel):
    safe: bool
    reason: str | None = None


class ChatRequest(BaseModel):
    userId: str = Field(min_length=1, max_length=128)
    message: str = Field(min_length=1)
    sessionId: str | None = Field(default=None, max_length=128)


class ChatResponse(BaseModel):
    response: str
    sessionId: str
    safetyResult: Literal["ALLOW", "EMERGENCY_ESCALATE", "BLOCK_UNSAFE"]
    reason: str | None = None
    shouldTriggerSOS: bool = False
    emergencyContext: EmergencyContextResponse | None = None
    debug: dict[str, Any] = Field(default_factory=dict)


class ChatMessageItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    createdAt: str
    safetyResult: str | None = None


class ChatSessionItem(BaseModel):
    id: str
    createdAt: str
    updatedAt: str
    messages: list[ChatMessageItem] = Field(default_factory=list)


class ChatHistoryResponse(BaseModel):
    session: ChatSessionItem | None = None
    sessions: list[ChatSessionItem] = Field(default_factory=list)


ChatResponder = Callable[..., str]

_BOOT_CONFIG = load_config()

app = FastAPI(title="health companion core service")
logger = logging.getLogger(__name__)
logging.getLogger("health_core").setLevel(_BOOT_CONFIG.HEALTHCORE_LOG_LEVEL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(_BOOT_CONFIG.HEALTHCORE_CORS_ORIGINS),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_config() -> HealthCoreConfig:
    existing = getattr(app.state, "config", None)
    if isinstance(existing, HealthCoreConfig):
        return existing
    setattr(app.state, "config", _BOOT_CONFIG)
    return _BOOT_CONFIG


def _get_store() -> InMemoryHealthStore:
    existing = getattr(app.state, "health_store", None)
    if isinstance(existing, InMemoryHealthStore):
        return existing
    created = InMemoryHealthStore()
    setattr(app.state, "health_store", created)
    return created


def _get_chat_responder() -> ChatResponder | None:
    responder = getattr(app.state, "chat_responder_callable", None)
    return responder if callable(responder) else None


def _to_health_log(payload: HealthLogInput) -> HealthLog:
    vitals = payload.vitals
    lifestyle = payload.lifestyle
    return HealthLog(
        symptoms=[
            SymptomItem(name=item.name, severity=item.severity, duration=item.duration)
            for item in payload.symptoms.items
        ],
        free_text=payload.symptoms.freeText,
        vitals=(
            Vitals(
                heart_rate=vitals.heartRate,
                temperature=vitals.temperature,
                bp_systolic=vitals.bpSystolic,
                bp_diastolic=vitals.bpDiastolic,
                spo2=vitals.spO2,
            )
            if vitals is not None
            else None
        ),
        lifestyle=(
            Lifestyle(
                sleep_hours=lifestyle.sleepHours,
                stress_level=lifestyle.stressLevel,
                hydration=lifestyle.hydration,
                exercise=lifestyle.exercise,
                meals=lifestyle.meals,
            )
            if lifestyle is not None
            else None
        ),
    )


def _to_profile(payload: UserProfileInput | None) -> UserProfile | None:
    if payload is None:
        return None
    return UserProfile(
        age=payload.age,
        conditions=list(payload.conditions),
        allergies=list(payload.allergies),
    )


def _assessment_response(assessment: RiskAssessment | RiskAssessmentRecord) -> RiskAssessmentResponse:
    return RiskAssessmentResponse(
        riskLevel=assessment.risk_level,
        reasons=list(assessment.reasons),
        nextSteps=list(assessment.next_steps),
        redFlags=list(assessment.red_flags),
        consultAdvice=assessment.consult_advice,
        ruleVersion=assessment.rule_version,
    )


def _assessment_record(assessment: RiskAssessment, created_at: str) -> RiskAssessmentRecord:
    return RiskAssessmentRecord(
        risk_level=assessment.risk_level,
        reasons=list(assessment.reasons),
        next_steps=list(assessment.next_steps),
        red_flags=list(assessment.red_flags),
        consult_advice=assessment.consult_advice,
        rule_version=assessment.rule_version,
        created_at=created_at,
    )


def _health_log_item(record: HealthLogRecord) -> HealthLogItem:
    return HealthLogItem(
        id=record.log_id,
        createdAt=record.created_at,
        symptoms=record.symptoms,
        vitals=record.vitals,
        lifestyle=record.lifestyle,
        assessment=_assessment_response(record.assessment) if record.assessment else None,
    )


def _verdict_response(verdict: SafetyVerdict) -> SafetyVerdictResponse:
    return SafetyVerdictResponse(
        result=verdict.result,
        reason=verdict.reason,
        suggestedResponse=verdict.suggested_response,
        shouldTriggerSOS=verdict.should_trigger_sos,
        emergencyContext=_emergency_context_response(verdict),
    )


def _emergency_context_response(verdict: SafetyVerdict) -> EmergencyContextResponse | None:
    context = verdict.emergency_context
    if context is None:
        return None
    return EmergencyContextResponse(
        type=context.type,
        detectedKeywords=list(context.detected_keywords),
        severity=context.severity,
        timestamp=context.timestamp,
        originalMessage=context.original_message,
    )


def _chat_session_item(record: ChatSessionRecord, *, last_only: bool = False) -> ChatSessionItem:
    messages = record.messages[-1:] if last_only else record.messages
    return ChatSessionItem(
        id=record.session_id,
        createdAt=record.created_at,
        updatedAt=record.updated_at,
        messages=[
            ChatMessageItem(
                role=item.role,
                content=item.content,
                createdAt=item.created_at,
                safetyResult=item.safety_result,
            )
            for item in messages
        ],
    )


def _ensure_message_size(message: str) -> None:
    limit = _get_config().HEALTHCORE_MAX_MESSAGE_CHARS
    if len(message) > limit:
        raise HTTPException(status_code=400, detail=f"Message exceeds {limit} characters.")


def _build_health_context(store: InMemoryHealthStore, user_id: str) -> dict[str, Any] | None:
    count = _get_config().HEALTHCORE_CHAT_CONTEXT_LOGS
    if count <= 0:
        return None
    recent, _ = store.list_health_logs(user_id, limit=count)
    if not recent:
        return None
    per_log: list[str] = []
    recent_symptoms: list[str] = []
    for record in recent:
        names = [str(item.get("name", "")) for item in record.symptoms.get("items", []) if item.get("name")]
        recent_symptoms.extend(names)
        per_log.append(", ".join(names) or "no symptoms")
    latest = recent[0].assessment
    return {
        "healthSummary": f"Recent health logs: {'; '.join(per_log)}",
        "recentSymptoms": recent_symptoms,
        "latestRiskLevel": latest.risk_level if latest else None,
    }


def _persist_exchange(
    store: InMemoryHealthStore,
    session: ChatSessionRecord,
    message: str,
    reply: str,
    safety_result: SafetyResult,
) -> None:
    store.append_chat_exchange(
        session.session_id,
        user_content=message,
        assistant_content=reply,
        safety_result=safety_result,
    )


def _answer_with_model(
    store: InMemoryHealthStore,
    payload: ChatRequest,
    session: ChatSessionRecord,
) -> tuple[str, dict[str, Any]]:
    responder = _get_chat_responder()
    if responder is None:
        log_event(store, payload.userId, "AI_UNAVAILABLE", "responder_not_configured")
        return get_fallback_response(payload.message), {"model": "not_configured"}

    health_context = _build_health_context(store, payload.userId)
    try:
        answer = str(
            responder(
                payload.message,
                session_id=session.session_id,
                health_context=health_context,
            )
            or ""
        )
    except Exception as exc:
        logger.warning("chat responder failed session_id=%s error=%s", session.session_id, type(exc).__name__)
        log_event(store, payload.userId, "AI_UNAVAILABLE", "responder_failed", type(exc).__name__)
        return get_fallback_response(payload.message), {"model": "failed"}

    if not answer.strip():
        log_event(store, payload.userId, "AI_UNAVAILABLE", "responder_empty")
        return get_fallback_response(payload.message), {"model": "empty"}

    if _get_config().HEALTHCORE_VALIDATE_AI_RESPONSES:
        validation = validate_ai_response(answer)
        if not validation.safe:
            logger.info("chat answer rejected session_id=%s reason=%s", session.session_id, validation.reason)
            log_event(store, payload.userId, "AI_RESPONSE_REJECTED", "unsafe_answer", validation.reason or "")
            return get_fallback_response(payload.message), {"model": "rejected", "reason": validation.reason}

    return answer, {"model": "ok"}


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/risk/assess", response_model=RiskAssessmentResponse)
async def risk_assess(payload: RiskAssessRequest) -> RiskAssessmentResponse:
    assessment = assess_risk(_to_health_log(payload.log), _to_profile(payload.profile))
    return _assessment_response(assessment)


@app.post("/health/log", response_model=HealthLogCreateResponse, status_code=201)
async def health_log_create(payload: HealthLogCreateRequest) -> HealthLogCreateResponse:
    store = _get_store()
    record = store.create_health_log(
        payload.userId,
        symptoms=payload.symptoms.model_dump(exclude_none=True),
        vitals=payload.vitals.model_dump(exclude_none=True) if payload.vitals else None,
        lifestyle=payload.lifestyle.model_dump(exclude_none=True) if payload.lifestyle else None,
    )
    log_event(store, payload.userId, "HEALTH_LOG_CREATED", "created", f"log_id={record.log_id}")

    assessment = assess_risk(_to_health_log(payload), _to_profile(payload.profile))
    store.attach_assessment(record.log_id, _assessment_record(assessment, record.created_at))
    log_event(
        store,
        payload.userId,
        "RISK_ASSESSED",
        assessment.risk_level,
        f"log_id={record.log_id} rule_version={assessment.rule_version} red_flags={len(assessment.red_flags)}",
    )
    logger.info("risk assessed log_id=%s level=%s", record.log_id, assessment.risk_level)
    return HealthLogCreateResponse(
        healthLogId=record.log_id,
        createdAt=record.created_at,
        assessment=_assessment_response(assessment),
    )


@app.get("/health/log", response_model=HealthLogListResponse)
async def health_log_list(
    userId: str = Query(min_length=1, max_length=128),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
) -> HealthLogListResponse:
    resolved_limit = _get_config().clamp_history_limit(limit)
    records, total = _get_store().list_health_logs(userId, limit=resolved_limit, offset=offset)
    return HealthLogListResponse(
        healthLogs=[_health_log_item(item) for item in records],
        pagination=Pagination(
            total=total,
            limit=resolved_limit,
            offset=offset,
            hasMore=offset + resolved_limit < total,
        ),
    )


@app.get("/tools/risk-assessment", response_model=RiskToolResponse)
async def tools_risk_assessment(
    userId: str = Query(min_length=1, max_length=128),
    x_app_secret: str | None = Header(default=None, alias="x-app-secret"),
) -> RiskToolResponse:
    secret = _get_config().HEALTHCORE_TOOL_SECRET
    if secret and x_app_secret != secret:
        raise HTTPException(status_code=401, detail="Unauthorized")

    record = _get_store().latest_assessed_log(userId)
    if record is None or record.assessment is None:
        return RiskToolResponse(hasData=False, message="No risk assessments found for this user.")
    assessment = record.assessment
    return RiskToolResponse(
        hasData=True,
        riskLevel=assessment.risk_level,
        assessedAt=assessment.created_at,
        reasons=assessment.reasons,
        redFlags=assessment.red_flags,
        nextSteps=assessment.next_steps,
        ruleVersion=assessment.rule_version,
        basedOn={"symptoms": record.symptoms},
    )


@app.post("/safety/check", response_model=SafetyVerdictResponse)
async def safety_check(payload: SafetyCheckRequest) -> SafetyVerdictResponse:
    _ensure_message_size(payload.message)
    return _verdict_response(check_safety(payload.message))


@app.post("/safety/validate-response", response_model=ResponseValidationResponse)
async def safety_validate_response(payload: ResponseValidationRequest) -> ResponseValidationResponse:
    validation = validate_ai_response(payload.text)
    return ResponseValidationResponse(safe=validation.safe, reason=validation.reason)


@app.post("/chat", response_model=ChatResponse)
async def chat(payload: ChatRequest) -> ChatResponse:
    _ensure_message_size(payload.message)
    store = _get_store()
    verdict = check_safety(payload.message)
    logger.info("chat safety result=%s reason=%s", verdict.result, verdict.reason)

    session = store.get_or_create_chat_session(payload.userId, payload.sessionId)

    if verdict.result == "EMERGENCY_ESCALATE":
        context = verdict.emergency_context
        reply = get_emergency_response(payload.message, emergency_type=context.type if context else None)
        log_event(
            store,
            payload.userId,
            "SAFETY_EMERGENCY",
            context.type if context else "GENERAL",
            f"severity={context.severity if context else 'URGENT'} reason={verdict.reason}",
        )
        _persist_exchange(store, session, payload.message, reply, verdict.result)
        return ChatResponse(
            response=reply,
            sessionId=session.session_id,
            safetyResult=verdict.result,
            reason=verdict.reason,
            shouldTriggerSOS=verdict.should_trigger_sos,
            emergencyContext=_emergency_context_response(verdict),
        )

    if verdict.result == "BLOCK_UNSAFE":
        reply = verdict.suggested_response or get_fallback_response(payload.message)
        log_event(store, payload.userId, "SAFETY_BLOCKED", "blocked", verdict.reason or "")
        _persist_exchange(store, session, payload.message, reply, verdict.result)
        return ChatResponse(
            response=reply,
            sessionId=session.session_id,
            safetyResult=verdict.result,
            reason=verdict.reason,
        )

    log_event(store, payload.userId, "SAFETY_ALLOW", "allow")
    reply, debug = _answer_with_model(store, payload, session)
    _persist_exchange(store, session, payload.message, reply, verdict.result)
    return ChatResponse(
        response=reply,
        sessionId=session.session_id,
        safetyResult=verdict.result,
        debug=debug,
    )


@app.get("/chat", response_model=ChatHistoryResponse)
async def chat_history(
    userId: str = Query(min_length=1, max_length=128),
    sessionId: str | None = Query(default=None, max_length=128),
) -> ChatHistoryResponse:
    store = _get_store()
    if sessionId:
        session = store.get_chat_session(userId, sessionId)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Chat session not found: {sessionId}")
        return ChatHistoryResponse(session=_chat_session_item(session))
    return ChatHistoryResponse(
        sessions=[_chat_session_item(item, last_only=True) for item in store.list_chat_sessions(userId)],
    )
