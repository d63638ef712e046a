"""
FastAPI dependencies and the wiring of pipeline components.
"""

from fastapi import Request

from quizmaster.config import Settings, logger
from quizmaster.repository import (
    GradingRepository, InMemoryGradingRepository, MongoGradingRepository,
)
from quizmaster.services.batch_queue import BatchController
from quizmaster.services.jobs import JobRegistry
from quizmaster.services.llm import GeminiExtractor
from quizmaster.services.recognition import RecognitionClient, RetryPolicy


def build_repository(settings: Settings) -> GradingRepository:
    if settings.storage_backend == "mongo":
        from quizmaster.database import get_database
        return MongoGradingRepository(get_database())
    logger.warning("⚠️ Using in-memory storage - results are lost on restart")
    return InMemoryGradingRepository()


def build_recognition_client(settings: Settings) -> RecognitionClient:
    return RecognitionClient(
        GeminiExtractor(model_name=settings.gemini_model),
        retry_policy=RetryPolicy(
            max_retries=settings.recognition_max_retries,
            backoff_seconds=settings.recognition_backoff_seconds,
        ),
        timeout_seconds=settings.recognition_timeout_seconds,
    )


def get_repository(request: Request) -> GradingRepository:
    return request.app.state.repository


def get_batch_controller(request: Request) -> BatchController:
    return request.app.state.batch_controller


def get_job_registry(request: Request) -> JobRegistry:
    return request.app.state.jobs


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
