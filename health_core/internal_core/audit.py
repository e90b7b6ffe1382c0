from __future__ import annotations

import datetime as _dt

from .contracts import AuditEvent, AuditEventType
from .session_store import InMemoryHealthStore


def _ts_iso() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat()


def _sanitize_detail(detail: str) -> str:
    # Never include chat message bodies or symptom free text in detail.
    detail = (detail or "").replace("\n", " ").strip()
    if len(detail) > 200:
        detail = detail[:200] + "…"
    return detail


def log_event(
    store: InMemoryHealthStore,
    user_id: str,
    event_type: AuditEventType,
    code: str,
    detail: str = "",
) -> None:
    event = AuditEvent(
        ts_iso=_ts_iso(),
        user_id=user_id,
        type=event_type,
        code=code,
        detail=_sanitize_detail(detail),
    )
    store.append_audit_event(user_id, event)
