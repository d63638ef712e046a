"""API route registration."""

from fastapi import APIRouter
from .master_key import router as master_key_router
from .grading import router as grading_router
from .results import router as results_router


def register_all_routes(api_router: APIRouter):
    """Include all route modules on the main API router."""
    api_router.include_router(master_key_router)
    api_router.include_router(grading_router)
    api_router.include_router(results_router)
