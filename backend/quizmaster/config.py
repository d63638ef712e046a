"""
Configuration - env vars, grading pipeline constants, API key setup.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
import google.generativeai as genai

ROOT_DIR = Path(__file__).parent.parent
load_dotenv(ROOT_DIR / '.env')

# Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("quizmaster")

# LLM API Key
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")

if not GEMINI_API_KEY:
    logger.warning("⚠️ No GEMINI_API_KEY found - sheet recognition will fail")
else:
    genai.configure(api_key=GEMINI_API_KEY)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    """Grading pipeline settings. Durations are in seconds."""
    gemini_model: str = "gemini-2.5-flash"
    max_image_dimension: int = 800
    jpeg_quality: int = 70
    recognition_max_retries: int = 2
    recognition_backoff_seconds: float = 2.0
    recognition_timeout_seconds: float = 120.0
    batch_pacing_seconds: float = 1.5
    decode_timeout_seconds: float = 15.0
    max_upload_mb: float = 20.0
    mongo_url: Optional[str] = None
    db_name: str = "quizmaster"
    storage_backend: str = "memory"

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


def load_settings() -> Settings:
    """Build Settings from the environment."""
    mongo_url = os.environ.get("MONGO_URL")
    return Settings(
        gemini_model=os.environ.get("GEMINI_MODEL", "gemini-2.5-flash"),
        max_image_dimension=_env_int("MAX_IMAGE_DIMENSION", 800),
        jpeg_quality=_env_int("JPEG_QUALITY", 70),
        recognition_max_retries=_env_int("RECOGNITION_MAX_RETRIES", 2),
        recognition_backoff_seconds=_env_float("RECOGNITION_BACKOFF_SECONDS", 2.0),
        recognition_timeout_seconds=_env_float("RECOGNITION_TIMEOUT_SECONDS", 120.0),
        batch_pacing_seconds=_env_float("BATCH_PACING_SECONDS", 1.5),
        decode_timeout_seconds=_env_float("DECODE_TIMEOUT_SECONDS", 15.0),
        max_upload_mb=_env_float("MAX_UPLOAD_MB", 20.0),
        mongo_url=mongo_url,
        db_name=os.environ.get("DB_NAME", "quizmaster"),
        storage_backend=os.environ.get("STORAGE_BACKEND", "mongo" if mongo_url else "memory"),
    )


settings = load_settings()


def get_llm_api_key():
    """Get the LLM API key from environment variables."""
    return GEMINI_API_KEY


def get_version_info():
    """Get deployment version information."""
    git_commit = os.environ.get("GIT_COMMIT_SHA")
    if not git_commit:
        commit_file = ROOT_DIR / ".git_commit"
        if commit_file.exists():
            git_commit = commit_file.read_text().strip()

    if not git_commit:
        git_commit = "unknown"

    return {
        "git_commit": git_commit,
        "build_time": os.environ.get("BUILD_TIME", "unknown"),
        "environment": os.environ.get("ENV", os.environ.get("ENVIRONMENT", "development")),
        "model": settings.gemini_model,
    }
