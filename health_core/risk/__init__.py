"""
Risk assessment boundary for submitted health logs.

Design intent:
- Map symptoms, vitals, lifestyle and profile to a ratcheted risk level.
- Keep every escalation explained by a reason or red flag.
- Stamp each assessment with the rule version that produced it.
"""
