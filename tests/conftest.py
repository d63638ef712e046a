"""Shared fixtures: fake recognition transport, recorded sleeps, sheet images."""

import io
import json
import asyncio

import pytest
from PIL import Image

from quizmaster.config import Settings
from quizmaster.models import AnswerKey
from quizmaster.repository import InMemoryGradingRepository
from quizmaster.services.batch_queue import BatchController
from quizmaster.services.recognition import RecognitionClient, RetryPolicy


def make_image_bytes(width=400, height=300, fmt="PNG", mode="RGB", color="white"):
    img = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


def sheet_json(answers, name=None, student_id=None):
    payload = {"answers": [{"questionNumber": q, "answer": a} for q, a in answers.items()]}
    if name is not None:
        payload["studentName"] = name
    if student_id is not None:
        payload["studentId"] = student_id
    return json.dumps(payload)


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FakeTransport:
    """
    Returns queued responses in call order. A queued Exception is raised
    instead of returned. The last response repeats once the queue drains.
    Each call stays in flight for `delay` seconds.
    """

    def __init__(self, *responses, delay=0):
        self._responses = list(responses)
        self.delay = delay
        self.calls = []
        self.events = []
        self._in_flight = 0
        self.max_in_flight = 0

    async def generate(self, image, system_instruction, prompt, response_schema):
        call_no = len(self.calls) + 1
        self.calls.append({
            "image": image,
            "system_instruction": system_instruction,
            "prompt": prompt,
            "response_schema": response_schema,
        })
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        self.events.append(("start", call_no))
        try:
            await asyncio.sleep(self.delay)
            response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
            if isinstance(response, Exception):
                raise response
            return response
        finally:
            self._in_flight -= 1
            self.events.append(("end", call_no))


@pytest.fixture
def master_key():
    return AnswerKey(name="Midterm", answers={1: "A", 2: "B", 3: "C"})


@pytest.fixture
def test_settings():
    return Settings(batch_pacing_seconds=1.5, decode_timeout_seconds=5.0, max_upload_mb=1)


@pytest.fixture
def repository():
    return InMemoryGradingRepository()


@pytest.fixture
def retry_sleep():
    return SleepRecorder()


@pytest.fixture
def pacing_sleep():
    return SleepRecorder()


@pytest.fixture
def build_controller(repository, test_settings, retry_sleep, pacing_sleep):
    def _build(transport):
        client = RecognitionClient(transport, retry_policy=RetryPolicy(sleep=retry_sleep))
        return BatchController(client, repository, settings=test_settings, sleep=pacing_sleep)
    return _build
