"""
Health companion core package.

Design intent:
- Keep risk scoring and chat safety classification pure and deterministic.
- Keep I/O (HTTP, persistence, model calls) at the api/internal_core edge.
"""
