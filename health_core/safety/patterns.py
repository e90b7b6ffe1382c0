from __future__ import annotations

"""
Ordered regular-expression tables used by the safety gate.

Messages are matched after fold_apostrophes(), so patterns only need to handle
the ASCII apostrophe.
"""

import re
from typing import Literal


EmergencyType = Literal["CARDIAC", "STROKE", "BREATHING", "ALLERGIC", "MENTAL_HEALTH", "GENERAL"]
EmergencySeverity = Literal["CRITICAL", "URGENT"]

# "can't", "cant", "cannot", "can not"
_CANT = r"\bcan(?:'?t|\s*not)\b"
_DISEASES = r"(?:cancer|diabetes|hiv|aids|covid|a\s*tumou?r|leukemia|dementia)"
_SELF_HARM = (
    r"(?:self[\s-]*harm|(?:hurting|harming|cutting)\s*my\s*self"
    r"|(?:want|going|trying|tempted|urge)\s*to\s*(?:hurt|harm|cut)\s*my\s*self)"
)
_MEDS = (
    r"(?:medicines?|medications?|meds|drugs?|pills?|tablets?|capsules?|doses?|mg|milligrams?|antibiotics?"
    r"|painkillers?|antidepressants?|insulin|ibuprofen|acetaminophen|paracetamol|tylenol|advil|motrin"
    r"|aspirin|naproxen|aleve)"
)


_APOSTROPHES = str.maketrans({"\u2019": "'", "\u2018": "'", "\u02bc": "'", "`": "'"})


def fold_apostrophes(text: str) -> str:
    return text.translate(_APOSTROPHES)


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


EMERGENCY_PATTERNS = _compile(
    # cardiac
    r"chest\s*pain.*breath|breath.*chest\s*pain",
    r"heart\s*attack",
    rf"{_CANT}\s*breathe?",
    r"difficulty\s*breathing",
    r"severe\s*chest\s*pain",
    # stroke
    r"stroke",
    r"face\s*(?:is\s*)?droop",
    r"arm\s*weakness",
    r"speech\s*difficult",
    r"slurred\s*speech",
    r"sudden\s*numbness",
    r"sudden\s*confusion",
    # allergic
    r"anaphyla",
    r"throat\s*(?:is\s*)?(?:closing|swelling)",
    rf"{_CANT}\s*swallow",
    # life-threatening
    r"suicid",
    r"kill\s*(?:my)?\s*self",
    r"want\s*to\s*die",
    r"end\s*my\s*life",
    _SELF_HARM,
    r"overdos",
    r"poison",
    r"severe\s*bleeding",
    r"unconscious",
    r"seizure",
    r"convulsion",
    # superlative pain
    r"worst\s*pain.*life",
    r"excruciating",
)

HARMFUL_PATTERNS = _compile(
    r"how\s*to\s*(?:harm|hurt|injure)",
    r"ways\s*to\s*die",
    r"painless\s*death",
)

DIAGNOSIS_PATTERNS = _compile(
    r"what\s*(?:disease|illness|condition)\s*do\s*i\s*have",
    r"diagnose\s*(?:me|my)",
    r"tell\s*me\s*what(?:'?s|\s*is)?\s*(?:wrong|i\s*have)",
    rf"do\s*i\s*have\s*{_DISEASES}",
    rf"is\s*(?:this|it)\s*(?:{_DISEASES}|serious|fatal|deadly)",
    r"am\s*i\s*dying",
    r"what(?:'?s|\s*is)\s*my\s*diagnosis",
)

MEDICATION_PATTERNS = _compile(
    r"dosage\s*(?:of|for)",
    r"how\s*much\s*(?:medicine|medication|drug|pill)",
    rf"how\s*(?:much|many)\b[^.?!]*\b{_MEDS}\b[^.?!]*\bshould\s*i\s*take",
    rf"how\s*(?:much|many)\b[^.?!]*\bshould\s*i\s*take\b[^.?!]*\b{_MEDS}\b",
    r"how\s*many\s*(?:mg|milligram|pill|tablet)",
    r"what\s*dose\s*(?:should|can)",
    r"prescribe\s*(?:me|a)",
    r"what\s*(?:antibiotic|medicine|medication|drug)\s*should\s*i\s*take",
    r"give\s*me\s*(?:a\s*)?(?:prescription|medication|medicine)",
    r"can\s*i\s*take\s*\d+\s*(?:mg|pill|tablet)",
    r"increase.*dose",
    r"double.*dose",
    rf"(?:stop|quit|start)\s*taking\s+(?:\w+\s+){{0,3}}?{_MEDS}\b",
    r"stop\s*my\s*(?:medication|medicine|meds)",
)

# Finer-grained table for EmergencyContext. First matching row decides the type;
# every matching row contributes its keyword.
EMERGENCY_CONTEXT_RULES: tuple[tuple[re.Pattern[str], EmergencyType, EmergencySeverity, str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), etype, severity, keyword)
    for pattern, etype, severity, keyword in (
        (r"heart\s*attack", "CARDIAC", "CRITICAL", "heart attack"),
        (r"chest\s*pain.*breath|breath.*chest\s*pain", "CARDIAC", "CRITICAL", "chest pain with breathing difficulty"),
        (r"chest\s*pain", "CARDIAC", "URGENT", "chest pain"),
        (r"crushing\s*pressure", "CARDIAC", "CRITICAL", "crushing pressure"),
        (r"radiating\s*pain", "CARDIAC", "URGENT", "radiating pain"),
        (r"stroke", "STROKE", "CRITICAL", "stroke"),
        (r"face\s*(?:is\s*)?droop", "STROKE", "CRITICAL", "face drooping"),
        (r"arm\s*weakness", "STROKE", "URGENT", "arm weakness"),
        (r"speech\s*difficult", "STROKE", "URGENT", "speech difficulty"),
        (r"slurred\s*speech", "STROKE", "URGENT", "slurred speech"),
        (r"sudden\s*numbness", "STROKE", "URGENT", "sudden numbness"),
        (r"sudden\s*confusion", "STROKE", "URGENT", "sudden confusion"),
        (rf"{_CANT}\s*breathe?", "BREATHING", "CRITICAL", "can't breathe"),
        (r"difficulty\s*breathing", "BREATHING", "URGENT", "difficulty breathing"),
        (r"shortness\s*of\s*breath", "BREATHING", "URGENT", "shortness of breath"),
        (r"gasping|choking", "BREATHING", "CRITICAL", "gasping or choking"),
        (r"anaphyla", "ALLERGIC", "CRITICAL", "anaphylaxis"),
        (r"throat\s*(?:is\s*)?closing", "ALLERGIC", "CRITICAL", "throat closing"),
        (r"throat\s*(?:is\s*)?swelling", "ALLERGIC", "URGENT", "throat swelling"),
        (rf"{_CANT}\s*swallow", "ALLERGIC", "URGENT", "can't swallow"),
        (r"allergic\s*reaction|severe\s*allergy|epipen", "ALLERGIC", "URGENT", "allergic reaction"),
        (r"suicid", "MENTAL_HEALTH", "CRITICAL", "suicide"),
        (r"kill\s*(?:my)?\s*self", "MENTAL_HEALTH", "CRITICAL", "kill myself"),
        (r"end\s*my\s*life", "MENTAL_HEALTH", "CRITICAL", "end my life"),
        (r"want\s*to\s*die", "MENTAL_HEALTH", "CRITICAL", "want to die"),
        (r"self[\s-]*harm", "MENTAL_HEALTH", "CRITICAL", "self-harm"),
        (r"(?:hurting|harming|cutting)\s*my\s*self|to\s*(?:hurt|harm|cut)\s*my\s*self", "MENTAL_HEALTH", "CRITICAL", "hurting myself"),
        (r"overdos", "MENTAL_HEALTH", "CRITICAL", "overdose"),
        (r"unconscious", "GENERAL", "CRITICAL", "unconscious"),
        (r"severe\s*bleeding", "GENERAL", "CRITICAL", "severe bleeding"),
        (r"seizure", "GENERAL", "CRITICAL", "seizure"),
        (r"convulsion", "GENERAL", "CRITICAL", "convulsion"),
        (r"poison", "GENERAL", "URGENT", "poison"),
        (r"worst\s*pain.*life", "GENERAL", "URGENT", "worst pain"),
        (r"excruciating", "GENERAL", "URGENT", "excruciating pain"),
    )
)

FALLBACK_EMERGENCY_KEYWORD = "emergency detected"

# Post-hoc checks on AI-generated answers.
AI_DIAGNOSIS_INDICATORS = _compile(
    rf"you\s*(?:definitely\s*)?have\s+{_DISEASES}",
    r"you\s*definitely\s*have\s+\w+",
    r"your\s+diagnosis\s+is",
    r"i\s+can\s+confirm\s+(?:you\s+have|that)",
    r"this\s+is\s+(?:definitely|certainly)\s+(?:cancer|diabetes)",
)

AI_DOSAGE_INDICATORS = _compile(
    r"take\s+\d+\s*(?:mg|milligrams?|tablets?|pills?)",
    r"dosage\s*(?:is|should\s*be)\s*\d+",
    r"\d+\s*(?:mg|ml)\s*(?:every|twice|three\s*times)",
)
