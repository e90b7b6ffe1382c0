from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

RiskLevelName = Literal["LOW", "MEDIUM", "HIGH", "EMERGENCY"]
SafetyResultName = Literal["ALLOW", "EMERGENCY_ESCALATE", "BLOCK_UNSAFE"]
ChatRole = Literal["user", "assistant"]


class RiskAssessmentRecord(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    risk_level: RiskLevelName
    reasons: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)
    red_flags: List[str] = Field(default_factory=list)
    consult_advice: str
    rule_version: str
    created_at: str


class HealthLogRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    log_id: str
    user_id: str
    created_at: str
    symptoms: Dict[str, Any] = Field(default_factory=dict)
    vitals: Dict[str, Any] = Field(default_factory=dict)
    lifestyle: Dict[str, Any] = Field(default_factory=dict)
    assessment: Optional[RiskAssessmentRecord] = None


class ChatMessageRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    role: ChatRole
    content: str
    created_at: str
    safety_result: Optional[SafetyResultName] = None


class ChatSessionRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str
    user_id: str
    created_at: str
    updated_at: str
    messages: List[ChatMessageRecord] = Field(default_factory=list)


AuditEventType = Literal[
    "HEALTH_LOG_CREATED",
    "RISK_ASSESSED",
    "SAFETY_ALLOW",
    "SAFETY_EMERGENCY",
    "SAFETY_BLOCKED",
    "AI_RESPONSE_REJECTED",
    "AI_UNAVAILABLE",
    "ERROR",
]


class AuditEvent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ts_iso: str
    user_id: str
    type: AuditEventType
    code: str
    detail: str = ""
