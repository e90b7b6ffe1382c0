"""
HTTP boundary for the health companion core.

Design intent:
- Expose thin, typed endpoints for health logs, risk, safety and chat.
- Keep request validation explicit and failure modes predictable.
- Orchestrate core modules without embedding rules in routers.
"""
