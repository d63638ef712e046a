"""
Database connection - MongoDB async client (Motor), created on first use.
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from quizmaster.config import settings, logger
from quizmaster.exceptions import ConfigurationError

_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    global _client
    if _client is None:
        if not settings.mongo_url:
            raise ConfigurationError("MONGO_URL is not set - cannot use the mongo storage backend")
        _client = AsyncIOMotorClient(settings.mongo_url)
        logger.info(f"Connected MongoDB client for database '{settings.db_name}'")
    return _client


def get_database():
    return get_client()[settings.db_name]


def close_client():
    global _client
    if _client is not None:
        _client.close()
        _client = None
