"""Pydantic models for QuizMaster Checker"""

from .answer_key import AnswerKey, AnswerKeyUpdate, AnswerUpdate, normalize_answers
from .recognition import RecognizedAnswer, RecognitionResult
from .result import (
    Grade,
    GRADE_ORDER,
    StudentResult,
    ItemStatus,
    ProcessStatus,
)
