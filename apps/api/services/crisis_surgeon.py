"""
Crisis Surgeon

Prompt and response handling for crisis-mode Fog Checks. The voice is an
emergency-room doctor: short, directive, survival-focused. No career talk,
no long-term vision.

The model returns JSON with exactly two fields:
    triageAssessment    2-3 sentence observation
    immediateDirective  one command or question

Anything else (malformed JSON, missing or blank fields) degrades to a fixed
fallback pair. Parsing never raises.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


CRISIS_TYPE_LABELS = {
    "TOXIC_ENV": "Toxic Environment",
    "BURNOUT": "Overwhelmed/Burnout",
    "FINANCIAL": "Financial Panic",
    "IMPOSTER": "Imposter Syndrome",
}


@dataclass
class CrisisContext:
    crisis_type: str
    burden_to_cut: str
    oxygen_source: str
    is_burden_cut: bool
    is_oxygen_scheduled: bool
    oxygen_level_current: Optional[int]
    oxygen_level_start: Optional[int]
    weeks_since_start: int
    protocol_completed: Optional[bool] = None
    oxygen_connected: Optional[bool] = None


@dataclass
class CrisisFeedback:
    triage_assessment: str
    immediate_directive: str


FALLBACK_FEEDBACK = CrisisFeedback(
    triage_assessment="You are in survival mode. Focus on conservation, not growth. Execute your protocol.",
    immediate_directive="Did you complete the action you committed to this week?",
)


def _yes_no(value: Optional[bool]) -> str:
    if value is None:
        return "Not reported"
    return "Yes" if value else "No"


def build_crisis_surgeon_prompt(context: CrisisContext) -> str:
    crisis_label = CRISIS_TYPE_LABELS.get(context.crisis_type, context.crisis_type)

    if context.oxygen_level_current is not None:
        oxygen_line = f"{context.oxygen_level_current}/10"
    else:
        oxygen_line = "Not assessed"
    if context.oxygen_level_start is not None:
        oxygen_line += f" (Started at {context.oxygen_level_start}/10)"

    return f"""You are The Crisis Surgeon. You operate in Emergency Room mode.

CONTEXT:
Crisis Type: {crisis_label}
Week: {context.weeks_since_start} in Recovery Mode
Protocol Assigned:
  - Cut: {context.burden_to_cut}
  - Oxygen Source: {context.oxygen_source}

Current Status:
  - Burden Cut: {"Yes" if context.is_burden_cut else "No"}
  - Oxygen Scheduled: {"Yes" if context.is_oxygen_scheduled else "No"}
  - Oxygen Level: {oxygen_line}

This Week's Check-In:
  - Protocol Completed: {_yes_no(context.protocol_completed)}
  - Oxygen Connected: {_yes_no(context.oxygen_connected)}

YOUR MISSION:
Assess stabilization. Adjust protocol if needed. DO NOT talk about career growth, long-term vision, or 18-month plans.

TONE:
Emergency Room Doctor - surgical, not soft. Survival-focused. Direct orders, not suggestions.

RULES:
1. Do not think about "career growth" this week
2. Do not reference their vision or anti-goal
3. Your ONLY focus is Conservation
4. Keep observations to 2-3 sentences
5. Give ONE clear directive

OUTPUT FORMAT (JSON):
{{
  "triageAssessment": "State the reality without emotion to ground them. 2-3 sentences.",
  "immediateDirective": "One clear command or question. Tactical. Specific."
}}

EXAMPLES:

GOOD (Week 1 - Protocol Incomplete):
{{
  "triageAssessment": "You are in survival mode. Do not think about career growth this week. Your ONLY mission is Conservation.",
  "immediateDirective": "Email your manager tonight about stepping back from Tuesday meetings. Not 'sometime.' Tonight."
}}

GOOD (Week 2 - Burden Cut, No Oxygen):
{{
  "triageAssessment": "You cut the Tuesday meeting. Good. But you didn't call your oxygen source. If you won't reach for oxygen when it's offered, survival becomes a choice.",
  "immediateDirective": "Schedule the 15-minute call with {context.oxygen_source} for this week. Calendar invite. Done."
}}

BAD (Too philosophical):
{{
  "triageAssessment": "Think about what you really want in your career.",
  "immediateDirective": "Consider your long-term goals."
}}

BAD (Too soft):
{{
  "triageAssessment": "Great job this week!",
  "immediateDirective": "Keep up the good work!"
}}

Generate the Crisis Fog Check now:"""


def _strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned[3:]
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
        if cleaned.endswith("```"):
            cleaned = cleaned[:-3]
    return cleaned.strip()


def parse_crisis_surgeon_response(raw: Optional[str]) -> CrisisFeedback:
    """Parse model output into CrisisFeedback, falling back on anything unusable."""
    if not raw:
        return FALLBACK_FEEDBACK

    try:
        parsed = json.loads(_strip_code_fences(raw))
    except (ValueError, TypeError) as e:
        logger.warning(f"[CRISIS_SURGEON_PARSE_ERROR] {e}")
        return FALLBACK_FEEDBACK

    if not isinstance(parsed, dict):
        logger.warning("[CRISIS_SURGEON_PARSE_ERROR] response is not a JSON object")
        return FALLBACK_FEEDBACK

    assessment = parsed.get("triageAssessment")
    directive = parsed.get("immediateDirective")
    if not isinstance(assessment, str) or not assessment.strip():
        return FALLBACK_FEEDBACK
    if not isinstance(directive, str) or not directive.strip():
        return FALLBACK_FEEDBACK

    return CrisisFeedback(triage_assessment=assessment.strip(), immediate_directive=directive.strip())


@dataclass
class CrisisGuidance:
    status: str
    color: str
    message: str


def get_crisis_guidance(oxygen_level: Optional[int]) -> CrisisGuidance:
    """Status band for an oxygen level."""
    if oxygen_level is None:
        return CrisisGuidance("Not Assessed", "amber", "Complete your first check-in to assess your oxygen levels.")
    if oxygen_level <= 3:
        return CrisisGuidance("Critical", "red", "Your oxygen levels are critical. Execute your protocol immediately. Survival mode.")
    if oxygen_level <= 5:
        return CrisisGuidance("Struggling", "orange", "You are struggling. Stay focused on conservation. Do not add new commitments.")
    if oxygen_level <= 7:
        return CrisisGuidance("Stabilizing", "amber", "You are stabilizing. Keep executing your protocol. Connection is working.")
    return CrisisGuidance("Breathing Clearly", "green", "Your oxygen levels are good. You are ready to think beyond this week.")
