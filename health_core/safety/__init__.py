"""
Chat safety boundary in front of the language model.

Design intent:
- Escalate emergencies and block diagnosis/dosing requests before any model call.
- Re-check model answers for definitive diagnoses and specific doses.
- Keep response text static and selection deterministic.
"""
