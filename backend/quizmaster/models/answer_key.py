"""Answer key Pydantic models"""

import uuid
from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Dict, Optional
from datetime import datetime, timezone


def normalize_answers(raw: Optional[dict]) -> Dict[int, str]:
    """Question numbers as ints, answer tokens stripped and upper-cased."""
    answers = {}
    for q_num, answer in (raw or {}).items():
        answers[int(q_num)] = (answer or "").strip().upper()
    return answers


class AnswerKey(BaseModel):
    """Master answer key. total_questions always equals len(answers)."""
    model_config = ConfigDict(extra="ignore", frozen=True)
    id: str = Field(default_factory=lambda: f"key_{uuid.uuid4().hex[:8]}")
    name: str
    answers: Dict[int, str] = {}
    total_questions: int = 0
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="before")
    @classmethod
    def _sync_total_questions(cls, data):
        if isinstance(data, dict):
            answers = normalize_answers(data.get("answers"))
            data = {**data, "answers": answers, "total_questions": len(answers)}
        return data

    def sorted_questions(self):
        return sorted(self.answers)


class AnswerKeyUpdate(BaseModel):
    """Payload for saving a whole key"""
    id: Optional[str] = None
    name: str
    answers: Dict[int, str]


class AnswerUpdate(BaseModel):
    answer: str
