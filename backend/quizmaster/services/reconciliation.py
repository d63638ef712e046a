"""
Scoring of recognized answers against the master key.
"""

from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from quizmaster.exceptions import EmptyAnswerKeyError, MasterKeyMissingError
from quizmaster.models import AnswerKey, Grade, RecognizedAnswer

# Inclusive lower bounds, checked top-down
GRADE_THRESHOLDS: Tuple[Tuple[float, str], ...] = (
    (95, "A+"),
    (85, "A"),
    (75, "B"),
    (65, "C"),
    (50, "D"),
)

RecognizedInput = Union[Mapping[int, Optional[str]], Iterable[RecognizedAnswer]]


class Reconciliation(BaseModel):
    model_config = ConfigDict(frozen=True)
    answers: Dict[int, str]
    is_correct: Dict[int, bool]
    score: int
    total_questions: int
    percentage: float
    grade: Grade


def grade_for_percentage(percentage: float) -> str:
    for lower_bound, grade in GRADE_THRESHOLDS:
        if percentage >= lower_bound:
            return grade
    return "F"


def ensure_gradable(master_key: Optional[AnswerKey]) -> AnswerKey:
    """Raise before any scoring work if the key cannot produce a percentage."""
    if master_key is None:
        raise MasterKeyMissingError()
    if master_key.total_questions <= 0:
        raise EmptyAnswerKeyError(master_key.name)
    return master_key


def _pairs(recognized: RecognizedInput):
    if isinstance(recognized, Mapping):
        return [(int(q), a) for q, a in recognized.items()]
    return [(r.question_number, r.answer) for r in recognized]


def reconcile(master_key: Optional[AnswerKey], recognized: RecognizedInput) -> Reconciliation:
    """
    Compare recognized answers to the key.

    A question is correct only when the recognized answer is non-empty and
    equals the key's answer. Every key question gets an is_correct entry,
    as does every recognized question (False when the key lacks it).
    """
    master_key = ensure_gradable(master_key)

    answers: Dict[int, str] = {}
    is_correct: Dict[int, bool] = {q_num: False for q_num in master_key.answers}

    for q_num, raw_answer in _pairs(recognized):
        answer = (raw_answer or "").strip().upper()
        answers[q_num] = answer
        is_correct[q_num] = answer != "" and master_key.answers.get(q_num) == answer

    score = sum(1 for correct in is_correct.values() if correct)
    percentage = score / master_key.total_questions * 100

    return Reconciliation(
        answers=answers,
        is_correct=is_correct,
        score=score,
        total_questions=master_key.total_questions,
        percentage=percentage,
        grade=grade_for_percentage(percentage),
    )
