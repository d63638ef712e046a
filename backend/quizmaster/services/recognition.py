"""
Recognition client - one structured-extraction call per sheet, wrapped in
a bounded retry with linear backoff.
"""

import json
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from quizmaster.config import logger
from quizmaster.exceptions import RecognitionError
from quizmaster.models import RecognitionResult
from quizmaster.services.llm import ImageContent


class RecognitionMode(str, Enum):
    MASTER_KEY = "master_key"
    STUDENT_SHEET = "student_sheet"


ANSWERS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "questionNumber": {"type": "INTEGER"},
            "answer": {
                "type": "STRING",
                "description": "The selected option (e.g., A, B, C, D) or empty string if not answered",
            },
        },
        "required": ["questionNumber", "answer"],
    },
}

MASTER_KEY_INSTRUCTION = (
    "Extract question numbers and correct answers from the provided Master Answer Key image. "
    "Return valid JSON only."
)
STUDENT_SHEET_INSTRUCTION = (
    "Grade the student's answer sheet. Extract Name, ID, and selected options (A,B,C,D). "
    "Return valid JSON only."
)
ANALYZE_PROMPT = "Analyze the attached MCQ sheet."


def response_schema_for(mode: RecognitionMode) -> dict:
    """Response schema sent with the request. Only student sheets carry identity fields."""
    properties = {"answers": ANSWERS_SCHEMA}
    if mode == RecognitionMode.STUDENT_SHEET:
        properties["studentName"] = {"type": "STRING", "description": "Name of the student if found on the sheet"}
        properties["studentId"] = {"type": "STRING", "description": "ID of the student if found on the sheet"}
    return {"type": "OBJECT", "properties": properties, "required": ["answers"]}


def instruction_for(mode: RecognitionMode) -> str:
    if mode == RecognitionMode.MASTER_KEY:
        return MASTER_KEY_INSTRUCTION
    return STUDENT_SHEET_INSTRUCTION


def parse_recognition_response(text: str) -> RecognitionResult:
    """Parse the raw response text. Raises ValueError on empty or invalid content."""
    if not text or not text.strip():
        raise ValueError("Empty response")

    payload = text.strip()
    # Models occasionally wrap JSON in a markdown code fence
    if payload.startswith("```"):
        payload = payload.split("```")[1]
        if payload.startswith("json"):
            payload = payload[4:]
        payload = payload.strip()

    try:
        return RecognitionResult.model_validate(json.loads(payload))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Response does not match the answer schema: {e}") from e


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry while attempts remain. Retry n (1-based) waits backoff_seconds * n,
    so the defaults give 3 attempts with 2s then 4s pauses.
    """
    max_retries: int = 2
    backoff_seconds: float = 2.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_number: int) -> float:
        return self.backoff_seconds * retry_number

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts


class RecognitionClient:
    """Turns an optimized sheet image into a RecognitionResult."""

    def __init__(self, transport, retry_policy: Optional[RetryPolicy] = None,
                 timeout_seconds: Optional[float] = None):
        self._transport = transport
        self._retry_policy = retry_policy or RetryPolicy()
        self._timeout_seconds = timeout_seconds

    async def _call_once(self, image: ImageContent, mode: RecognitionMode) -> RecognitionResult:
        call = self._transport.generate(
            image,
            system_instruction=instruction_for(mode),
            prompt=ANALYZE_PROMPT,
            response_schema=response_schema_for(mode),
        )
        if self._timeout_seconds:
            text = await asyncio.wait_for(call, timeout=self._timeout_seconds)
        else:
            text = await call
        return parse_recognition_response(text)

    async def recognize(self, image_bytes: bytes, mode: RecognitionMode) -> RecognitionResult:
        policy = self._retry_policy
        image = ImageContent(image_bytes)
        attempt = 0
        last_error = None

        while True:
            attempt += 1
            try:
                return await self._call_once(image, mode)
            except Exception as e:
                last_error = e
                if not policy.should_retry(attempt):
                    break
                delay = policy.delay_for(attempt)
                logger.warning(f"Retry attempt {attempt} for {mode.value} recognition after error: {e} (waiting {delay}s)")
                await policy.sleep(delay)

        logger.error(f"Recognition failed after {attempt} attempts: {last_error}")
        raise RecognitionError(
            f"Recognition failed after {attempt} attempts: {last_error}", attempts=attempt
        ) from last_error
