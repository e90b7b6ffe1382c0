from __future__ import annotations

import datetime as _dt
import uuid
from threading import RLock
from typing import Any, Dict, List, Optional, Tuple

from .contracts import (
    AuditEvent,
    ChatMessageRecord,
    ChatSessionRecord,
    HealthLogRecord,
    RiskAssessmentRecord,
    SafetyResultName,
)


def _ts_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat()


class InMemoryHealthStore:
    """
    Process-local store for health logs, assessments, chat sessions and audit events.

    Instances are injected (app.state) rather than held as module globals; every
    read returns a deep copy so callers cannot mutate stored records.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._logs: Dict[str, HealthLogRecord] = {}
        self._log_order: List[str] = []
        self._sessions: Dict[str, ChatSessionRecord] = {}
        self._audit: Dict[str, List[AuditEvent]] = {}

    def create_health_log(
        self,
        user_id: str,
        *,
        symptoms: Dict[str, Any],
        vitals: Optional[Dict[str, Any]] = None,
        lifestyle: Optional[Dict[str, Any]] = None,
    ) -> HealthLogRecord:
        record = HealthLogRecord(
            log_id=uuid.uuid4().hex,
            user_id=user_id,
            created_at=_ts_iso(),
            symptoms=dict(symptoms),
            vitals=dict(vitals or {}),
            lifestyle=dict(lifestyle or {}),
        )
        with self._lock:
            self._logs[record.log_id] = record
            self._log_order.append(record.log_id)
        return record.model_copy(deep=True)

    def attach_assessment(self, log_id: str, assessment: RiskAssessmentRecord) -> HealthLogRecord:
        with self._lock:
            record = self._logs.get(log_id)
            if record is None:
                raise KeyError(f"Health log not found: {log_id}")
            if record.assessment is not None:
                raise ValueError(f"Health log already assessed: {log_id}")
            record.assessment = assessment
            return record.model_copy(deep=True)

    def list_health_logs(self, user_id: str, *, limit: int, offset: int = 0) -> Tuple[List[HealthLogRecord], int]:
        with self._lock:
            owned = [self._logs[log_id] for log_id in reversed(self._log_order) if self._logs[log_id].user_id == user_id]
            page = owned[offset : offset + limit]
            return [item.model_copy(deep=True) for item in page], len(owned)

    def latest_assessed_log(self, user_id: str) -> Optional[HealthLogRecord]:
        with self._lock:
            for log_id in reversed(self._log_order):
                record = self._logs[log_id]
                if record.user_id == user_id and record.assessment is not None:
                    return record.model_copy(deep=True)
        return None

    def get_or_create_chat_session(self, user_id: str, session_id: Optional[str] = None) -> ChatSessionRecord:
        with self._lock:
            existing = self._sessions.get(session_id or "")
            if existing is not None and existing.user_id == user_id:
                return existing.model_copy(deep=True)
            now = _ts_iso()
            created = ChatSessionRecord(
                session_id=uuid.uuid4().hex,
                user_id=user_id,
                created_at=now,
                updated_at=now,
            )
            self._sessions[created.session_id] = created
            return created.model_copy(deep=True)

    def append_chat_exchange(
        self,
        session_id: str,
        *,
        user_content: str,
        assistant_content: str,
        safety_result: SafetyResultName,
    ) -> ChatSessionRecord:
        now = _ts_iso()
        with self._lock:
            session = self._sessions[session_id]
            session.messages.extend(
                [
                    ChatMessageRecord(role="user", content=user_content, created_at=now),
                    ChatMessageRecord(
                        role="assistant",
                        content=assistant_content,
                        created_at=now,
                        safety_result=safety_result,
                    ),
                ]
            )
            session.updated_at = now
            return session.model_copy(deep=True)

    def get_chat_session(self, user_id: str, session_id: str) -> Optional[ChatSessionRecord]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or session.user_id != user_id:
                return None
            return session.model_copy(deep=True)

    def list_chat_sessions(self, user_id: str) -> List[ChatSessionRecord]:
        with self._lock:
            owned = [item for item in self._sessions.values() if item.user_id == user_id]
            owned.sort(key=lambda item: item.updated_at, reverse=True)
            return [item.model_copy(deep=True) for item in owned]

    def append_audit_event(self, user_id: str, event: AuditEvent) -> None:
        with self._lock:
            self._audit.setdefault(user_id, []).append(event)

    def list_audit_events(self, user_id: str) -> List[AuditEvent]:
        with self._lock:
            return [item.model_copy() for item in self._audit.get(user_id, [])]
