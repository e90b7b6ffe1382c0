from __future__ import annotations

"""
Deterministic health-risk assessment for a single submitted health log.

Design intent:
- Each rule is an independent evaluator folded over one accumulator.
- Risk level is a ratchet: rules may raise it, never lower it.
- Output is a pure function of (log, profile); no clock, no randomness.
"""

from dataclasses import dataclass, field, replace
from typing import Callable, Literal, Sequence


RULE_VERSION = "1.0.0"

RiskLevel = Literal["LOW", "MEDIUM", "HIGH", "EMERGENCY"]
Severity = Literal["mild", "moderate", "severe"]
StressLevel = Literal["low", "moderate", "high"]
Hydration = Literal["poor", "adequate", "good"]

RISK_ORDER: tuple[RiskLevel, ...] = ("LOW", "MEDIUM", "HIGH", "EMERGENCY")


@dataclass(frozen=True)
class SymptomItem:
    name: str
    severity: Severity
    duration: str | None = None


@dataclass(frozen=True)
class Vitals:
    heart_rate: float | None = None
    temperature: float | None = None
    bp_systolic: float | None = None
    bp_diastolic: float | None = None
    spo2: float | None = None


@dataclass(frozen=True)
class Lifestyle:
    sleep_hours: float | None = None
    stress_level: StressLevel | None = None
    hydration: Hydration | None = None
    exercise: bool | None = None
    meals: int | None = None


@dataclass(frozen=True)
class HealthLog:
    symptoms: list[SymptomItem] = field(default_factory=list)
    free_text: str | None = None
    vitals: Vitals | None = None
    lifestyle: Lifestyle | None = None


@dataclass(frozen=True)
class UserProfile:
    age: float | None = None
    conditions: list[str] = field(default_factory=list)
    allergies: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RiskAssessment:
    risk_level: RiskLevel
    reasons: list[str]
    next_steps: list[str]
    red_flags: list[str]
    consult_advice: str
    rule_version: str


EMERGENCY_SYMPTOMS: tuple[str, ...] = (
    "chest pain",
    "shortness of breath",
    "difficulty breathing",
    "severe allergic reaction",
    "loss of consciousness",
    "severe bleeding",
    "stroke symptoms",
    "seizure",
)

HIGH_RISK_SYMPTOMS: tuple[str, ...] = (
    "chest pain",
    "shortness of breath",
    "high fever",
    "severe headache",
    "confusion",
    "fainting",
    "severe abdominal pain",
    "blood in stool",
    "blood in urine",
    "sudden vision changes",
    "severe dizziness",
    "numbness",
    "weakness on one side",
)

MEDIUM_RISK_SYMPTOMS: tuple[str, ...] = (
    "fever",
    "persistent cough",
    "vomiting",
    "diarrhea",
    "headache",
    "body aches",
    "fatigue",
    "nausea",
    "dizziness",
    "joint pain",
    "back pain",
)

CHRONIC_CONDITIONS = frozenset({"diabetes", "heart disease", "hypertension", "asthma", "copd"})

# Only the longest duration option escalates; shorter options are not scored.
PROLONGED_DURATIONS = frozenset({"more than a week"})

_CONSULT_ADVICE: dict[str, str] = {
    "EMERGENCY": (
        "This is a medical emergency. Please seek immediate professional medical care. "
        "Call emergency services or go to the nearest emergency room."
    ),
    "HIGH": (
        "Your symptoms suggest you should see a healthcare provider today. "
        "Please contact your doctor or visit an urgent care facility."
    ),
    "MEDIUM": (
        "While not immediately urgent, your symptoms warrant attention. Consider scheduling "
        "an appointment with your healthcare provider if symptoms persist beyond 48 hours."
    ),
    "LOW": (
        "Your current health indicators are within normal ranges. Continue to monitor "
        "your health and maintain healthy lifestyle habits."
    ),
}

NO_CONCERNS_REASON = "No significant health concerns detected"


@dataclass(frozen=True)
class RiskState:
    """Accumulator threaded through the rule fold."""

    level: RiskLevel = "LOW"
    reasons: tuple[str, ...] = ()
    red_flags: tuple[str, ...] = ()
    next_steps: tuple[str, ...] = ()

    def raise_to(self, level: RiskLevel) -> RiskState:
        if risk_rank(level) <= risk_rank(self.level):
            return self
        return replace(self, level=level)

    def note(
        self,
        *,
        reason: str | None = None,
        red_flag: str | None = None,
        next_step: str | None = None,
    ) -> RiskState:
        return replace(
            self,
            reasons=self.reasons + ((reason,) if reason else ()),
            red_flags=self.red_flags + ((red_flag,) if red_flag else ()),
            next_steps=self.next_steps + ((next_step,) if next_step else ()),
        )


RiskRule = Callable[[RiskState, HealthLog, "UserProfile | None"], RiskState]


def risk_rank(level: str) -> int:
    try:
        return RISK_ORDER.index(level)  # type: ignore[arg-type]
    except ValueError:
        return 0


def assess_risk(log: HealthLog, profile: UserProfile | None = None) -> RiskAssessment:
    state = RiskState()
    for rule in RISK_RULES:
        state = rule(state, log, profile)

    next_steps = _assemble_next_steps(state.level, list(state.next_steps))
    reasons = list(state.reasons) or [NO_CONCERNS_REASON]
    return RiskAssessment(
        risk_level=state.level,
        reasons=reasons,
        next_steps=next_steps,
        red_flags=list(state.red_flags),
        consult_advice=_CONSULT_ADVICE[state.level],
        rule_version=RULE_VERSION,
    )


def match_symptoms(symptoms: Sequence[SymptomItem], targets: Sequence[str]) -> list[str]:
    """
    Return symptom names matching any target, in input order.

    A name matches when either string contains the other (case-insensitive),
    so "Chest pain (left side)" and "pain" both hit "chest pain".
    """
    matches: list[str] = []
    for symptom in symptoms:
        name = symptom.name.strip().lower()
        if not name:
            continue
        for target in targets:
            if name in target or target in name:
                matches.append(symptom.name)
                break
    return matches


def _emergency_symptom_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    matches = match_symptoms(log.symptoms, EMERGENCY_SYMPTOMS)
    if not matches:
        return state
    state = state.raise_to("EMERGENCY")
    for name in matches:
        state = state.note(red_flag=f"{name} requires immediate medical attention")
    return state.note(reason=f"Emergency symptoms detected: {', '.join(matches)}")


def _high_risk_symptom_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    matches = match_symptoms(log.symptoms, HIGH_RISK_SYMPTOMS)
    if not matches or state.level == "EMERGENCY":
        return state
    return state.raise_to("HIGH").note(reason=f"High-risk symptoms: {', '.join(matches)}")


def _severity_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    severe = [item.name for item in log.symptoms if item.severity == "severe"]
    if not severe:
        return state
    state = state.raise_to("HIGH" if len(severe) >= 2 else "MEDIUM")
    return state.note(reason=f"{len(severe)} severe symptom(s): {', '.join(severe)}")


def _medium_risk_symptom_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    matches = match_symptoms(log.symptoms, MEDIUM_RISK_SYMPTOMS)
    if not matches or state.level != "LOW":
        return state
    return state.raise_to("MEDIUM").note(reason=f"Symptoms requiring attention: {', '.join(matches)}")


def _duration_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    prolonged = [
        item.name
        for item in log.symptoms
        if (item.duration or "").strip().lower() in PROLONGED_DURATIONS
    ]
    if not prolonged:
        return state
    return state.raise_to("MEDIUM").note(
        reason=f"Prolonged symptoms (>1 week): {', '.join(prolonged)}",
        next_step="Consider consulting a doctor for symptoms lasting more than a week",
    )


def _temperature_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    temperature = log.vitals.temperature if log.vitals else None
    if temperature is None:
        return state
    shown = _fmt_number(temperature)
    if temperature >= 40:
        return state.raise_to("HIGH").note(
            reason=f"High fever: {shown}°C",
            red_flag="Very high fever (≥40°C)",
        )
    if temperature >= 38.5:
        return state.raise_to("MEDIUM").note(reason=f"Elevated temperature: {shown}°C")
    if temperature >= 37.5:
        return state.note(reason=f"Mild fever: {shown}°C")
    return state


def _heart_rate_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    heart_rate = log.vitals.heart_rate if log.vitals else None
    if heart_rate is None or 50 <= heart_rate <= 120:
        return state
    shown = _fmt_number(heart_rate)
    state = state.raise_to("MEDIUM")
    if heart_rate > 150 or heart_rate < 40:
        state = state.raise_to("HIGH").note(red_flag=f"Abnormal heart rate: {shown} bpm")
    return state.note(reason=f"Heart rate outside normal range: {shown} bpm")


def _blood_pressure_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    if log.vitals is None:
        return state
    systolic = log.vitals.bp_systolic
    diastolic = log.vitals.bp_diastolic
    if systolic is None or diastolic is None:
        return state
    reading = f"{_fmt_number(systolic)}/{_fmt_number(diastolic)} mmHg"

    if _at_least(systolic, 180) or _at_least(diastolic, 120):
        return state.raise_to("HIGH").note(
            reason=f"Very high blood pressure: {reading}",
            red_flag="Hypertensive crisis - seek immediate care",
        )
    if _at_least(systolic, 140) or _at_least(diastolic, 90):
        return state.raise_to("MEDIUM").note(reason=f"Elevated blood pressure: {reading}")
    if _below(systolic, 90) or _below(diastolic, 60):
        return state.raise_to("MEDIUM").note(reason=f"Low blood pressure: {reading}")
    return state


def _spo2_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    spo2 = log.vitals.spo2 if log.vitals else None
    if spo2 is None:
        return state
    shown = _fmt_number(spo2)
    if spo2 < 90:
        return state.raise_to("EMERGENCY").note(
            reason=f"Very low oxygen: {shown}%",
            red_flag="Critically low oxygen saturation - seek emergency care immediately",
        )
    if spo2 < 94:
        return state.raise_to("HIGH").note(
            reason=f"Low oxygen saturation: {shown}%",
            red_flag="Low oxygen saturation",
        )
    return state


def _lifestyle_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    lifestyle = log.lifestyle
    if lifestyle is None:
        return state
    if lifestyle.sleep_hours is not None and lifestyle.sleep_hours < 4:
        state = state.note(
            reason="Severe sleep deprivation may affect health",
            next_step="Try to get at least 7-8 hours of sleep",
        )
    if lifestyle.stress_level == "high":
        state = state.note(
            reason="High stress levels reported",
            next_step="Consider stress management techniques",
        )
    if lifestyle.hydration == "poor":
        state = state.note(
            reason="Poor hydration reported",
            next_step="Increase water intake to at least 8 glasses per day",
        )
    return state


def _comorbidity_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    if profile is None or not log.symptoms:
        return state
    if not any(str(item).strip().lower() in CHRONIC_CONDITIONS for item in profile.conditions):
        return state
    return state.raise_to("MEDIUM").note(
        reason="Pre-existing conditions may require closer monitoring",
        next_step="Consider consulting your regular healthcare provider",
    )


def _age_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    if profile is None or profile.age is None or not log.symptoms:
        return state
    if 5 <= profile.age <= 65:
        return state
    return state.raise_to("MEDIUM").note(reason="Age group may require closer monitoring")


def _cardiac_combination_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    names = [item.name.lower() for item in log.symptoms]
    has_chest_pain = any("chest pain" in name for name in names)
    has_breathing_issue = any(
        "shortness of breath" in name or "difficulty breathing" in name for name in names
    )
    if not (has_chest_pain and has_breathing_issue):
        return state
    return state.raise_to("EMERGENCY").note(
        red_flag="Chest pain with breathing difficulty - possible cardiac emergency",
    )


def _fever_headache_combination_rule(state: RiskState, log: HealthLog, profile: UserProfile | None) -> RiskState:
    temperature = log.vitals.temperature if log.vitals else None
    has_fever = any("fever" in item.name.lower() for item in log.symptoms) or _at_least(temperature, 38)
    has_severe_headache = any(
        "headache" in item.name.lower() and item.severity == "severe" for item in log.symptoms
    )
    if not (has_fever and has_severe_headache):
        return state
    return state.raise_to("HIGH").note(red_flag="Fever with severe headache - seek medical evaluation")


# Order controls the order of reasons/red flags only; the final level is the max.
RISK_RULES: tuple[RiskRule, ...] = (
    _emergency_symptom_rule,
    _high_risk_symptom_rule,
    _severity_rule,
    _medium_risk_symptom_rule,
    _duration_rule,
    _temperature_rule,
    _heart_rate_rule,
    _blood_pressure_rule,
    _spo2_rule,
    _lifestyle_rule,
    _comorbidity_rule,
    _age_rule,
    _cardiac_combination_rule,
    _fever_headache_combination_rule,
)


def _assemble_next_steps(level: RiskLevel, rule_steps: list[str]) -> list[str]:
    if level == "EMERGENCY":
        return [
            "Call emergency services (911) or go to the nearest emergency room immediately",
            *rule_steps,
            "Do not drive yourself - have someone take you or call an ambulance",
        ]
    if level == "HIGH":
        return [
            "Seek medical attention today",
            *rule_steps,
            "Contact your doctor or visit an urgent care clinic",
            "Monitor symptoms closely and go to ER if they worsen",
        ]
    if level == "MEDIUM":
        return [
            *rule_steps,
            "Monitor your symptoms over the next 24-48 hours",
            "Schedule a doctor's appointment if symptoms persist or worsen",
            "Rest and stay hydrated",
        ]
    return [
        *rule_steps,
        "Continue monitoring your health",
        "Maintain healthy habits: sleep, hydration, nutrition",
        "Log your health regularly to track patterns",
    ]


def _at_least(value: float | None, threshold: float) -> bool:
    return value is not None and value >= threshold


def _below(value: float | None, threshold: float) -> bool:
    return value is not None and value < threshold


def _fmt_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)
