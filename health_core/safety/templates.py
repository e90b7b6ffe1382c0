from __future__ import annotations

"""
Static response templates for escalated, blocked, and fallback chat replies.

Design intent:
- Template text is authored content; only the selection order is logic.
- Selection re-scans the message with narrower keyword sets than the gate.
"""

from typing import Literal

from health_core.safety.patterns import fold_apostrophes


EmergencyTemplateKey = Literal[
    "CARDIAC_EMERGENCY",
    "STROKE_WARNING",
    "ALLERGIC_EMERGENCY",
    "BREATHING_EMERGENCY",
    "MENTAL_HEALTH_CRISIS",
    "MEDICAL_EMERGENCY",
]


EMERGENCY_RESPONSES: dict[str, str] = {
    "MEDICAL_EMERGENCY": """🚨 **This sounds like a medical emergency.**

**Take immediate action:**
1. **Call 911** (or your local emergency number) immediately
2. Stay calm and follow the dispatcher's instructions
3. Do not attempt to drive yourself
4. If possible, unlock your door for first responders

**While waiting for help:**
- Stay as still and calm as possible
- Loosen any tight clothing
- If you have prescribed emergency medication (like nitroglycerin or an EpiPen), use it as directed

Your safety is the priority. Professional medical help is on the way.""",
    "CARDIAC_EMERGENCY": """🚨 **Possible Cardiac Emergency Detected**

**Call 911 immediately** - Chest pain with breathing difficulty can indicate a heart attack.

**While waiting for help:**
1. Sit or lie down in a comfortable position
2. If you have aspirin and are not allergic, chew one regular aspirin (325mg)
3. Loosen any tight clothing
4. Try to stay calm and take slow breaths
5. If you have nitroglycerin prescribed, take it as directed

**Do NOT:**
- Drive yourself to the hospital
- Ignore symptoms hoping they'll pass
- Eat or drink anything

**Every minute matters with heart attacks. Call for help now.**""",
    "STROKE_WARNING": """🚨 **Possible Stroke Warning - Act FAST**

Use the **FAST** method to check:
- **F**ace: Is one side drooping? Ask them to smile.
- **A**rms: Can they raise both arms? Does one drift down?
- **S**peech: Is speech slurred or strange?
- **T**ime: Call 911 immediately if you see any of these signs!

**Call 911 now** - Stroke treatment is most effective within the first hours.

**While waiting:**
- Note the time symptoms started
- Keep the person lying down with head slightly elevated
- Do not give food, water, or medication
- Stay with them and keep them calm""",
    "ALLERGIC_EMERGENCY": """🚨 **Severe Allergic Reaction (Anaphylaxis) Alert**

**Call 911 immediately**

**If you have an EpiPen:**
1. Use it immediately on outer thigh (through clothing is OK)
2. Hold for 10 seconds
3. Call 911 even after using EpiPen

**While waiting for help:**
- Lie down with legs elevated (unless having breathing difficulty)
- If breathing is difficult, sit up
- Remove any known allergen source
- Stay calm and still

**Symptoms can return** - You need professional monitoring even if you feel better.""",
    "BREATHING_EMERGENCY": """🚨 **Breathing Emergency**

**Call 911 immediately** for difficulty breathing.

**While waiting for help:**
1. Sit upright - don't lie flat
2. Stay calm and try to take slow breaths
3. Loosen any tight clothing around neck and chest
4. If you have an inhaler or prescribed breathing medication, use it
5. Open windows for fresh air if possible

**If someone else is having trouble breathing:**
- Keep them sitting upright
- Don't leave them alone
- Be ready to start CPR if they become unresponsive

**Do not wait** - breathing problems can worsen quickly.""",
    "MENTAL_HEALTH_CRISIS": """I hear that you're going through an incredibly difficult time, and I want you to know that help is available right now.

**Please reach out immediately:**

📞 **National Suicide Prevention Lifeline:** 988 (call or text, 24/7)
📱 **Crisis Text Line:** Text HOME to 741741
🌐 **International Association for Suicide Prevention:** https://www.iasp.info/resources/Crisis_Centres/

**You are not alone.** These feelings can be overwhelming, but trained counselors are available 24/7 to listen and help.

If you're in immediate danger, please call 911 or go to your nearest emergency room.

**Your life has value. Please reach out for support.**""",
}

# Short summary shown by the gate itself; the long form comes from get_emergency_response.
GATE_EMERGENCY_RESPONSE = """🚨 **This sounds like a medical emergency.**

**If you or someone else is in immediate danger, please:**
1. **Call emergency services (911) immediately**
2. Do not wait - every second counts
3. Stay on the line with emergency services
4. If possible, have someone meet the ambulance

**While waiting for help:**
- Stay calm and try to remain still
- If experiencing chest pain, sit or lie down
- If someone is unconscious, check their breathing
- Do not drive yourself to the hospital

If you are having thoughts of harming yourself, call or text 988 to reach the Suicide & Crisis Lifeline.

Your safety is the top priority. Professional medical help is essential in emergencies."""

HARMFUL_CONTENT_RESPONSE = """I'm concerned about what you've shared. Your life matters, and help is available.

**Please reach out now:**
- **National Suicide Prevention Lifeline:** 988 (call or text)
- **Crisis Text Line:** Text HOME to 741741
- **International Association for Suicide Prevention:** https://www.iasp.info/resources/Crisis_Centres/

You don't have to face this alone. Professional support can make a difference."""

BLOCKED_RESPONSES: dict[str, str] = {
    "DIAGNOSIS_REQUEST": """I understand you're looking for answers about your health, but I'm not able to provide medical diagnoses. Only a qualified healthcare professional can diagnose conditions after proper examination and testing.

**Why I can't diagnose:**
- Accurate diagnosis requires physical examination
- Lab tests and imaging may be needed
- Medical history review is essential

**What I can help with:**
- Explaining general health information
- Helping you track and describe your symptoms
- Suggesting when to seek medical care

**Your next step:** Schedule an appointment with your doctor. If symptoms are severe or worsening, visit urgent care. Your logged symptoms can help them understand your situation better.""",
    "MEDICATION_REQUEST": """I'm not able to provide advice on medication choice, dosages, prescriptions, or whether to start or stop medications. This requires professional medical judgment based on your specific health situation.

**For medication questions, please:**
- Consult your doctor or prescribing physician
- Speak with a licensed pharmacist
- Call your healthcare provider's nurse line

**Important:** Never change your medication regimen without consulting a healthcare professional. Incorrect dosing can be dangerous.

Is there something else I can help you with, like tracking your symptoms or providing general health information?""",
    "EMPTY_MESSAGE": "Please enter a message to continue.",
}

FALLBACK_RESPONSES: dict[str, str] = {
    "SERVICE_UNAVAILABLE": """I'm currently unable to process your request due to a technical issue. Please try again in a moment.

**In the meantime, you can:**
- Log your symptoms using the Health Log feature
- Review your health history on the Dashboard
- Contact your healthcare provider if you have urgent concerns

If this is a medical emergency, please call emergency services (911) immediately.""",
}

_TEMPLATE_KEYWORDS: tuple[tuple[EmergencyTemplateKey, tuple[str, ...]], ...] = (
    ("STROKE_WARNING", ("stroke", "face droop", "arm weak", "sudden numbness")),
    ("ALLERGIC_EMERGENCY", ("anaphyl", "throat closing", "throat swelling")),
    ("BREATHING_EMERGENCY", ("can't breathe", "cannot breathe", "can not breathe", "cant breathe", "difficulty breathing")),
    (
        "MENTAL_HEALTH_CRISIS",
        (
            "suicid",
            "kill myself",
            "want to die",
            "end my life",
            "self-harm",
            "self harm",
            "hurt myself",
            "harm myself",
            "hurting myself",
            "harming myself",
            "cutting myself",
            "cut myself",
        ),
    ),
)


def select_emergency_template(message: str) -> EmergencyTemplateKey:
    lowered = fold_apostrophes(message or "").lower()
    if ("chest" in lowered and "pain" in lowered) or "heart attack" in lowered:
        return "CARDIAC_EMERGENCY"
    for key, keywords in _TEMPLATE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return key
    return "MEDICAL_EMERGENCY"


def get_emergency_response(message: str, *, emergency_type: str | None = None) -> str:
    """
    Return the long-form first-aid template for an already-escalated message.

    When no keyword set matches and the gate typed the escalation as
    MENTAL_HEALTH, the crisis template replaces the generic one.
    """
    key = select_emergency_template(message)
    if key == "MEDICAL_EMERGENCY" and emergency_type == "MENTAL_HEALTH":
        key = "MENTAL_HEALTH_CRISIS"
    return EMERGENCY_RESPONSES[key]
