"""
Answer-set validation for workflow steps and the CEO philosophy survey.

Every step declares its fields in FIELD_RULES.  ``validate_answers`` checks
a save payload against them and reports *all* problems at once as
``ValidationError.details`` (field → message) so the form can be re-rendered
with the user's input intact.  ``ensure_submittable`` adds the stricter
checks that only apply when a step is handed in for review.

Rule keys:
    type        integer | number | string | boolean | array | object
    min         lower bound for integer / number
    max_length  upper bound for string length
    choices     allowed values for a string
    pattern     regex a string must fully match
"""

from __future__ import annotations

import re

from app.core.exceptions import ValidationError

_INT_MIN0 = {"type": "integer", "min": 0}
_NUM_MIN0 = {"type": "number", "min": 0}
_STR255 = {"type": "string", "max_length": 255}
_ARRAY = {"type": "array"}
_OBJECT = {"type": "object"}
_TEXT = {"type": "string", "max_length": 10000}

REGISTRATION_NUMBER_RE = r"\d{3}-\d{2}-\d{5}|\d{10}|\d{3,10}"

FIELD_RULES: dict[str, dict[str, dict]] = {
    "diagnosis": {
        "is_public": {"type": "boolean"},
        "registration_number": {"type": "string", "max_length": 255, "pattern": REGISTRATION_NUMBER_RE},
        "industry_category": _STR255,
        "industry_subcategory": _STR255,
        "industry_other": _STR255,
        "present_headcount": _INT_MIN0,
        "expected_headcount_1y": _INT_MIN0,
        "expected_headcount_2y": _INT_MIN0,
        "expected_headcount_3y": _INT_MIN0,
        "average_tenure_active": _NUM_MIN0,
        "average_tenure_leavers": _NUM_MIN0,
        "average_age": _NUM_MIN0,
        "gender_male": _INT_MIN0,
        "gender_female": _INT_MIN0,
        "gender_other": _INT_MIN0,
        "total_executives": _INT_MIN0,
        "executive_positions": _ARRAY,
        "leadership_count": _INT_MIN0,
        "job_grade_names": _ARRAY,
        "promotion_years": _ARRAY,
        "organizational_charts": _ARRAY,
        "org_structure_types": _ARRAY,
        "org_structure_explanations": _ARRAY,
        "hr_issues": _ARRAY,
        "custom_hr_issues": _TEXT,
        "job_categories": _ARRAY,
        "job_functions": _ARRAY,
    },
    "organization": {
        "structure_type": {
            "type": "string",
            "choices": ("functional", "divisional", "matrix", "team", "hq_subsidiary", "undefined"),
        },
        "job_grade_structure": {
            "type": "string",
            "choices": ("single", "multi", "integrated", "separated"),
        },
        "job_grade_details": _OBJECT,
        "organization_notes": _TEXT,
    },
    "performance": {
        "evaluation_units": _ARRAY,
        "performance_methods": _ARRAY,
        "assessment_structure": _ARRAY,
        "kpis": _ARRAY,
    },
    "compensation": {
        "compensation_structure": _ARRAY,
        "differentiation_methods": _ARRAY,
        "incentive_components": _ARRAY,
        "salary_structure_type": {
            "type": "string",
            "choices": ("annual", "seniority", "job_based", "grade_based", "mixed"),
        },
        "salary_adjustment_unit": {"type": "string", "choices": ("percentage", "krw")},
        "pay_bands": _ARRAY,
    },
    "conclusion": {
        "summary": _TEXT,
        "key_decisions": _ARRAY,
        "next_actions": _ARRAY,
    },
    "job_analysis": {
        "answers": _ARRAY,
        "selected_job_keyword_ids": _ARRAY,
        "grouped_jobs": _ARRAY,
    },
    "tree": {
        "talent_review": _ARRAY,
        "evaluation": _ARRAY,
        "enhancement": _ARRAY,
    },
    "hr_policy_os": {
        "policy_manual": _OBJECT,
        "system_handbook": _OBJECT,
        "implementation_roadmap": _ARRAY,
        "analytics_blueprint": _OBJECT,
        "customizations": _OBJECT,
    },
}

# Fields that must be filled before a step can be submitted for review.
SUBMIT_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "diagnosis": ("industry_category", "present_headcount"),
    "organization": ("structure_type",),
    "performance": ("performance_methods",),
    "compensation": ("compensation_structure",),
    "conclusion": ("summary",),
    "job_analysis": (),
    "tree": (),
    "hr_policy_os": (),
}

CEO_PHILOSOPHY_RULES: dict[str, dict] = {
    "management_philosophy": {**_ARRAY, "required": True},
    "vision_mission": {**_ARRAY, "required": True},
    "growth_stage": {"type": "string", "max_length": 255, "required": True},
    "leadership": {**_ARRAY, "required": True},
    "general": {**_ARRAY, "required": True},
    "organizational_issues": _ARRAY,
    "concerns": {**_TEXT, "required": True},
}

_TYPE_NAMES = {
    "integer": "an integer",
    "number": "a number",
    "string": "a string",
    "boolean": "true or false",
    "array": "a list",
    "object": "an object",
}


def _is_blank(value) -> bool:
    return value is None or value == "" or value == [] or value == {}


def _check_type(kind: str, value) -> bool:
    if kind == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if kind == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == "string":
        return isinstance(value, str)
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "array":
        return isinstance(value, list)
    if kind == "object":
        return isinstance(value, dict)
    raise ValueError(f"Unknown rule type: {kind}")


def _check_field(rule: dict, value) -> str | None:
    """Return an error message for ``value`` or None when it passes ``rule``."""
    if value is None:
        return None
    kind = rule["type"]
    if not _check_type(kind, value):
        return f"must be {_TYPE_NAMES[kind]}"
    if "min" in rule and value < rule["min"]:
        return f"must be at least {rule['min']}"
    if kind == "string":
        if "max_length" in rule and len(value) > rule["max_length"]:
            return f"must be at most {rule['max_length']} characters"
        if "choices" in rule and value not in rule["choices"]:
            return f"must be one of: {', '.join(rule['choices'])}"
        if "pattern" in rule and value and not re.fullmatch(rule["pattern"], value):
            return "has an invalid format"
    return None


def _validate(rules: dict[str, dict], answers, label: str) -> dict:
    if not isinstance(answers, dict):
        raise ValidationError(f"{label} answers must be a JSON object", {"answers": "must be an object"})

    details = {}
    for field, value in answers.items():
        rule = rules.get(field)
        if rule is None:
            details[field] = "unknown field"
            continue
        error = _check_field(rule, value)
        if error:
            details[field] = error
    for field, rule in rules.items():
        if rule.get("required") and _is_blank(answers.get(field)):
            details.setdefault(field, "is required")

    if details:
        raise ValidationError(f"{label} answers are invalid", details)
    return dict(answers)


def validate_answers(step: str, answers) -> dict:
    """Check a save payload for ``step``.  Returns a clean copy.

    Raises:
        ValidationError: one or more fields fail; ``details`` lists them all.
    """
    return _validate(FIELD_RULES[step], answers, f"Step '{step}'")


def ensure_submittable(step: str, answers: dict | None) -> None:
    """Raise ValidationError unless the answer set can be handed in.

    An answer set with no filled field is never submittable.
    """
    answers = answers or {}
    if all(_is_blank(v) for v in answers.values()):
        raise ValidationError(
            f"Step '{step}' has no answers to submit",
            {"answers": "at least one field must be filled before submitting"},
        )
    validate_answers(step, answers)
    missing = {
        field: "is required before submitting"
        for field in SUBMIT_REQUIRED_FIELDS.get(step, ())
        if _is_blank(answers.get(field))
    }
    if missing:
        raise ValidationError(f"Step '{step}' is incomplete", missing)


def validate_ceo_philosophy(answers) -> dict:
    return _validate(CEO_PHILOSOPHY_RULES, answers, "CEO philosophy")
