"""Graded result and batch progress models"""

from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Dict, Literal, Optional
from datetime import datetime, timezone

Grade = Literal["A+", "A", "B", "C", "D", "F"]
GRADE_ORDER = ("A+", "A", "B", "C", "D", "F")


class StudentResult(BaseModel):
    """Graded outcome for one sheet. Never mutated after creation."""
    model_config = ConfigDict(extra="ignore", frozen=True)
    id: str
    student_name: str
    student_id: str = "N/A"
    answers: Dict[int, str] = {}
    is_correct: Dict[int, bool] = {}
    score: int
    total_questions: int  # snapshot of the key at scoring time
    percentage: float
    grade: Grade
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    image_url: Optional[str] = None
    file_name: Optional[str] = None


class ItemStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ProcessStatus(BaseModel):
    """One batch item. Transient, never persisted."""
    model_config = ConfigDict(frozen=True)
    file_name: str
    status: ItemStatus = ItemStatus.PENDING
    error: Optional[str] = None
    result: Optional[StudentResult] = None
