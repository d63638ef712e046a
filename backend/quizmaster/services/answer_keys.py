"""
Answer key construction and editing. Keys are immutable; every edit
returns a new AnswerKey with a fresh last_updated.
"""

from datetime import datetime, timezone
from pathlib import PurePath
from typing import Dict, Iterable

from quizmaster.config import logger
from quizmaster.exceptions import InvalidAnswerKeyError
from quizmaster.models import AnswerKey, RecognizedAnswer
from quizmaster.utils.validation import validate_answer_key_structure

DEFAULT_NEW_ANSWER = "A"


def key_name_from_filename(filename: str) -> str:
    """'physics_midterm.final.jpg' -> 'physics_midterm.final'"""
    stem = PurePath(filename or "").stem
    return stem or "Answer Key"


def _rebuild(key: AnswerKey, answers: Dict[int, str], **changes) -> AnswerKey:
    return AnswerKey(
        id=changes.get("id", key.id),
        name=changes.get("name", key.name),
        answers=answers,
        last_updated=datetime.now(timezone.utc),
    )


def build_answer_key(name: str, recognized: Iterable[RecognizedAnswer]) -> AnswerKey:
    """Draft key from master-key recognition output."""
    answers = {r.question_number: r.answer for r in recognized}
    key = AnswerKey(name=name, answers=answers)
    logger.info(f"Built answer key '{key.name}' with {key.total_questions} questions")
    return key


def set_answer(key: AnswerKey, question_number: int, value: str) -> AnswerKey:
    token = (value or "").strip().upper()
    if len(token) != 1:
        raise InvalidAnswerKeyError([f"Q{question_number}: answer must be a single character"])
    if question_number <= 0:
        raise InvalidAnswerKeyError([f"Invalid question number: Q{question_number}"])
    return _rebuild(key, {**key.answers, question_number: token})


def add_question(key: AnswerKey, answer: str = DEFAULT_NEW_ANSWER) -> AnswerKey:
    next_q = max(list(key.answers) + [0]) + 1
    return _rebuild(key, {**key.answers, next_q: answer})


def remove_question(key: AnswerKey, question_number: int) -> AnswerKey:
    if question_number not in key.answers:
        raise InvalidAnswerKeyError([f"Q{question_number} is not part of the key"])
    answers = {q: a for q, a in key.answers.items() if q != question_number}
    return _rebuild(key, answers)


def finalize(key: AnswerKey) -> AnswerKey:
    """Reject keys with blank answers or non-positive question numbers."""
    validation = validate_answer_key_structure(key.answers)
    if not validation["valid"]:
        raise InvalidAnswerKeyError(validation["errors"])
    for warning in validation["warnings"]:
        logger.warning(f"Answer key '{key.name}': {warning}")
    return key
