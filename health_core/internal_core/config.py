from __future__ import annotations

import os
from dataclasses import dataclass


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _getenv_csv(name: str, default: str) -> tuple[str, ...]:
    raw = _getenv_str(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class HealthCoreConfig:
    HEALTHCORE_LOG_LEVEL: str
    HEALTHCORE_CORS_ORIGINS: tuple[str, ...]
    HEALTHCORE_MAX_MESSAGE_CHARS: int
    HEALTHCORE_HISTORY_DEFAULT_LIMIT: int
    HEALTHCORE_HISTORY_MAX_LIMIT: int
    HEALTHCORE_CHAT_CONTEXT_LOGS: int
    HEALTHCORE_VALIDATE_AI_RESPONSES: bool
    HEALTHCORE_TOOL_SECRET: str

    def clamp_history_limit(self, limit: int | None) -> int:
        if limit is None or limit <= 0:
            return self.HEALTHCORE_HISTORY_DEFAULT_LIMIT
        return min(limit, self.HEALTHCORE_HISTORY_MAX_LIMIT)


def load_config() -> HealthCoreConfig:
    default_limit = max(1, _getenv_int("HEALTHCORE_HISTORY_DEFAULT_LIMIT", 10))
    max_limit = max(default_limit, _getenv_int("HEALTHCORE_HISTORY_MAX_LIMIT", 100))
    return HealthCoreConfig(
        HEALTHCORE_LOG_LEVEL=_getenv_str("HEALTHCORE_LOG_LEVEL", "INFO").strip().upper() or "INFO",
        HEALTHCORE_CORS_ORIGINS=_getenv_csv("HEALTHCORE_CORS_ORIGINS", "*") or ("*",),
        HEALTHCORE_MAX_MESSAGE_CHARS=max(1, _getenv_int("HEALTHCORE_MAX_MESSAGE_CHARS", 20000)),
        HEALTHCORE_HISTORY_DEFAULT_LIMIT=default_limit,
        HEALTHCORE_HISTORY_MAX_LIMIT=max_limit,
        HEALTHCORE_CHAT_CONTEXT_LOGS=max(0, _getenv_int("HEALTHCORE_CHAT_CONTEXT_LOGS", 3)),
        HEALTHCORE_VALIDATE_AI_RESPONSES=_getenv_bool("HEALTHCORE_VALIDATE_AI_RESPONSES", True),
        HEALTHCORE_TOOL_SECRET=_getenv_str("HEALTHCORE_TOOL_SECRET", ""),
    )
