"""Structured output returned by the recognition service"""

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import List, Optional


class RecognizedAnswer(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    question_number: int = Field(alias="questionNumber")
    answer: str = ""

    @field_validator("answer", mode="before")
    @classmethod
    def _none_is_blank(cls, value):
        return "" if value is None else value


class RecognitionResult(BaseModel):
    """Mirrors the response schema sent with every recognition request"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")
    student_name: Optional[str] = Field(default=None, alias="studentName")
    student_id: Optional[str] = Field(default=None, alias="studentId")
    answers: List[RecognizedAnswer]
