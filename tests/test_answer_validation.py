"""
Unit tests for answer-set validation (``app/services/answer_validation.py``).

Pure functions; the autouse DB fixture is the only database contact.
"""

import pytest

from app.core.exceptions import ValidationError
from app.services.answer_validation import (
    FIELD_RULES,
    SUBMIT_REQUIRED_FIELDS,
    ensure_submittable,
    validate_answers,
    validate_ceo_philosophy,
)
from app.services.step_gating import ALL_STEPS


PHILOSOPHY = {
    "management_philosophy": ["people first"],
    "vision_mission": ["best place to work"],
    "growth_stage": "growth",
    "leadership": ["servant"],
    "general": ["transparency"],
    "concerns": "Retaining senior engineers.",
}


class TestRuleCoverage:
    def test_every_step_has_rules(self):
        assert set(FIELD_RULES) == set(ALL_STEPS)
        assert set(SUBMIT_REQUIRED_FIELDS) == set(ALL_STEPS)

    def test_required_fields_are_declared(self):
        for step, fields in SUBMIT_REQUIRED_FIELDS.items():
            for field in fields:
                assert field in FIELD_RULES[step], f"{step}.{field}"


class TestValidateAnswers:
    @pytest.mark.parametrize("step", ALL_STEPS)
    def test_valid_payloads_pass(self, step, valid_answers):
        assert validate_answers(step, valid_answers(step)) == valid_answers(step)

    def test_returns_copy(self):
        payload = {"industry_category": "Retail"}
        clean = validate_answers("diagnosis", payload)
        clean["industry_category"] = "changed"
        assert payload["industry_category"] == "Retail"

    def test_partial_payload_passes(self):
        assert validate_answers("diagnosis", {"average_age": 41}) == {"average_age": 41}

    def test_empty_payload_passes(self):
        assert validate_answers("organization", {}) == {}

    def test_none_values_allowed(self):
        assert validate_answers("diagnosis", {"present_headcount": None})

    def test_reports_every_problem(self):
        with pytest.raises(ValidationError) as exc:
            validate_answers("diagnosis", {
                "present_headcount": -1,
                "average_age": "old",
                "hr_issues": "retention",
                "favourite_colour": "blue",
            })
        details = exc.value.details
        assert details["present_headcount"] == "must be at least 0"
        assert details["average_age"] == "must be a number"
        assert details["hr_issues"] == "must be a list"
        assert details["favourite_colour"] == "unknown field"

    def test_boolean_is_not_an_integer(self):
        with pytest.raises(ValidationError) as exc:
            validate_answers("diagnosis", {"present_headcount": True})
        assert exc.value.details["present_headcount"] == "must be an integer"

    def test_float_is_not_an_integer(self):
        with pytest.raises(ValidationError):
            validate_answers("diagnosis", {"present_headcount": 12.5})

    def test_choices(self):
        with pytest.raises(ValidationError) as exc:
            validate_answers("organization", {"structure_type": "holacracy"})
        assert exc.value.details["structure_type"].startswith("must be one of:")

    @pytest.mark.parametrize("value", ["123-45-67890", "1234567890", "12345"])
    def test_registration_number_accepted(self, value):
        validate_answers("diagnosis", {"registration_number": value})

    @pytest.mark.parametrize("value", ["12", "ABC-12-12345", "123-456-7890"])
    def test_registration_number_rejected(self, value):
        with pytest.raises(ValidationError) as exc:
            validate_answers("diagnosis", {"registration_number": value})
        assert exc.value.details["registration_number"] == "has an invalid format"

    def test_string_length(self):
        with pytest.raises(ValidationError) as exc:
            validate_answers("diagnosis", {"industry_category": "x" * 256})
        assert "at most 255" in exc.value.details["industry_category"]

    def test_non_object_payload(self):
        with pytest.raises(ValidationError) as exc:
            validate_answers("diagnosis", ["not", "a", "dict"])
        assert exc.value.details == {"answers": "must be an object"}


class TestEnsureSubmittable:
    @pytest.mark.parametrize("answers", [None, {}, {"industry_category": ""}, {"hr_issues": []}])
    def test_empty_answer_set_refused(self, answers):
        with pytest.raises(ValidationError) as exc:
            ensure_submittable("diagnosis", answers)
        assert "answers" in exc.value.details

    def test_missing_required_fields(self):
        with pytest.raises(ValidationError) as exc:
            ensure_submittable("diagnosis", {"average_age": 40})
        assert set(exc.value.details) == {"industry_category", "present_headcount"}

    def test_invalid_value_refused(self):
        with pytest.raises(ValidationError):
            ensure_submittable("organization", {"structure_type": "holacracy"})

    @pytest.mark.parametrize("step", ALL_STEPS)
    def test_complete_answers_pass(self, step, valid_answers):
        ensure_submittable(step, valid_answers(step))

    def test_extension_step_needs_only_one_field(self):
        ensure_submittable("tree", {"evaluation": ["360 review"]})


class TestCeoPhilosophy:
    def test_complete_survey(self):
        assert validate_ceo_philosophy(PHILOSOPHY) == PHILOSOPHY

    def test_optional_section(self):
        validate_ceo_philosophy({**PHILOSOPHY, "organizational_issues": ["silos"]})

    def test_missing_sections(self):
        with pytest.raises(ValidationError) as exc:
            validate_ceo_philosophy({"growth_stage": "startup"})
        assert exc.value.details == {
            "management_philosophy": "is required",
            "vision_mission": "is required",
            "leadership": "is required",
            "general": "is required",
            "concerns": "is required",
        }

    def test_blank_required_section(self):
        with pytest.raises(ValidationError) as exc:
            validate_ceo_philosophy({**PHILOSOPHY, "leadership": []})
        assert exc.value.details == {"leadership": "is required"}
