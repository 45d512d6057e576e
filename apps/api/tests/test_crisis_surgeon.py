"""Tests for Crisis Surgeon prompt building and response parsing."""
import pytest

from services.crisis_surgeon import (
    FALLBACK_FEEDBACK,
    CrisisContext,
    build_crisis_surgeon_prompt,
    get_crisis_guidance,
    parse_crisis_surgeon_response,
)


def _context(**overrides) -> CrisisContext:
    values = dict(
        crisis_type="BURNOUT",
        burden_to_cut="Tuesday status meetings",
        oxygen_source="my sister",
        is_burden_cut=True,
        is_oxygen_scheduled=False,
        oxygen_level_current=5,
        oxygen_level_start=3,
        weeks_since_start=3,
    )
    values.update(overrides)
    return CrisisContext(**values)


class TestParseResponse:
    def test_valid_json(self):
        feedback = parse_crisis_surgeon_response(
            '{"triageAssessment": "You are holding.", "immediateDirective": "Call her tonight."}'
        )
        assert feedback.triage_assessment == "You are holding."
        assert feedback.immediate_directive == "Call her tonight."

    def test_markdown_fences_tolerated(self):
        raw = '```json\n{"triageAssessment": "A.", "immediateDirective": "B."}\n```'
        feedback = parse_crisis_surgeon_response(raw)
        assert feedback.triage_assessment == "A."
        assert feedback.immediate_directive == "B."

    @pytest.mark.parametrize("raw", [
        "this is not json at all",
        "",
        None,
        "[1, 2, 3]",
        '"just a string"',
        '{"triageAssessment": "Only one field."}',
        '{"triageAssessment": "  ", "immediateDirective": "Do it."}',
        '{"triageAssessment": 42, "immediateDirective": "Do it."}',
        '{"observation": "Wrong keys.", "strategicQuestion": "Why?"}',
    ])
    def test_unusable_output_falls_back(self, raw):
        assert parse_crisis_surgeon_response(raw) == FALLBACK_FEEDBACK

    def test_fallback_text(self):
        assert FALLBACK_FEEDBACK.triage_assessment.startswith("You are in survival mode.")
        assert FALLBACK_FEEDBACK.immediate_directive == "Did you complete the action you committed to this week?"


class TestPrompt:
    def test_prompt_includes_context(self):
        prompt = build_crisis_surgeon_prompt(_context())

        assert "Crisis Type: Overwhelmed/Burnout" in prompt
        assert "Week: 3 in Recovery Mode" in prompt
        assert "Cut: Tuesday status meetings" in prompt
        assert "Burden Cut: Yes" in prompt
        assert "Oxygen Scheduled: No" in prompt
        assert "5/10 (Started at 3/10)" in prompt
        assert '"triageAssessment"' in prompt

    def test_unreported_checkin_fields(self):
        prompt = build_crisis_surgeon_prompt(_context(oxygen_level_current=None, oxygen_level_start=None))

        assert "Oxygen Level: Not assessed" in prompt
        assert "Protocol Completed: Not reported" in prompt
        assert "Oxygen Connected: Not reported" in prompt

    def test_reported_checkin_fields(self):
        prompt = build_crisis_surgeon_prompt(_context(protocol_completed=False, oxygen_connected=True))

        assert "Protocol Completed: No" in prompt
        assert "Oxygen Connected: Yes" in prompt


class TestGuidance:
    @pytest.mark.parametrize("level,status", [
        (None, "Not Assessed"),
        (1, "Critical"),
        (3, "Critical"),
        (4, "Struggling"),
        (5, "Struggling"),
        (6, "Stabilizing"),
        (7, "Stabilizing"),
        (8, "Breathing Clearly"),
        (10, "Breathing Clearly"),
    ])
    def test_bands(self, level, status):
        assert get_crisis_guidance(level).status == status
