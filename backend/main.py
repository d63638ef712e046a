"""
QuizMaster Checker API - main entry point.
Creates the FastAPI app, wires the grading pipeline in the lifespan,
sets up CORS and request timing, registers all routes.
"""

import os
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware

from quizmaster.config import Settings, logger, get_version_info, settings as default_settings
from quizmaster.database import close_client
from quizmaster.deps import build_recognition_client, build_repository
from quizmaster.repository import GradingRepository
from quizmaster.routes import register_all_routes
from quizmaster.services.batch_queue import BatchController
from quizmaster.services.jobs import JobRegistry
from quizmaster.services.recognition import RecognitionClient


def create_app(settings: Settings = default_settings,
               repository: Optional[GradingRepository] = None,
               recognition_client: Optional[RecognitionClient] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Build the pipeline on startup, cancel outstanding jobs on shutdown"""
        logger.info("🚀 QuizMaster Checker starting up...")
        repo = repository or build_repository(settings)
        client = recognition_client or build_recognition_client(settings)

        app.state.settings = settings
        app.state.repository = repo
        app.state.batch_controller = BatchController(client, repo, settings=settings)
        app.state.jobs = JobRegistry()
        logger.info(f"Storage backend: {type(repo).__name__}, model: {settings.gemini_model}")

        yield

        logger.info("🛑 QuizMaster Checker shutting down...")
        await app.state.jobs.shutdown()
        close_client()

    app = FastAPI(title="QuizMaster Checker API", lifespan=lifespan)

    api_router = APIRouter(prefix="/api")

    @api_router.get("/version")
    async def get_version():
        """Public version endpoint for deployment verification"""
        return get_version_info()

    register_all_routes(api_router)
    app.include_router(api_router)

    @app.get("/health")
    async def root_health_check():
        """Liveness/readiness probe"""
        return {"status": "healthy", "service": "QuizMaster Checker API"}

    @app.middleware("http")
    async def request_timing_middleware(request: Request, call_next):
        """Log response time for every request"""
        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Request failed: {request.method} {request.url.path}: {e}", exc_info=True)
            raise
        response_time_ms = int((time.time() - start_time) * 1000)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({response_time_ms}ms)")
        return response

    cors_origins_env = os.environ.get("CORS_ORIGINS")
    cors_origins = [origin.strip() for origin in cors_origins_env.split(",")] if cors_origins_env else [
        "http://localhost:3000",
        "http://127.0.0.1:3000"
    ]

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app


app = create_app()
