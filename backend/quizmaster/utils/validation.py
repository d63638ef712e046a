"""Validation utilities for answer keys."""

from typing import Dict, Any


def validate_answer_key_structure(answers: Dict[int, str]) -> Dict[str, Any]:
    """
    Validate an answer key's question map.
    Returns validation result with warnings/errors.
    """
    warnings = []
    errors = []

    if not answers:
        errors.append("No questions found")
        return {"valid": False, "errors": errors, "warnings": warnings, "question_count": 0}

    for q_num in sorted(answers):
        answer = answers[q_num]
        if q_num <= 0:
            errors.append(f"Invalid question number: Q{q_num}")
        if not answer:
            errors.append(f"Q{q_num}: Missing answer")
        elif len(answer) > 1:
            warnings.append(f"Q{q_num}: Answer '{answer}' is longer than one character")

    positive = [q for q in answers if q > 0]
    if positive:
        expected = set(range(1, max(positive) + 1))
        missing = expected - set(positive)
        if missing:
            warnings.append(f"Missing question numbers: {sorted(missing)}")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "question_count": len(answers)
    }
