"""Result routes - stored results, per-result breakdown, dashboard, reset."""

from fastapi import APIRouter, Depends, HTTPException

from quizmaster.config import logger
from quizmaster.deps import get_repository
from quizmaster.repository import GradingRepository
from quizmaster.services.summary import breakdown, summarize

router = APIRouter(tags=["results"])


@router.get("/results")
async def list_results(include_images: bool = False, repository: GradingRepository = Depends(get_repository)):
    """All stored results in grading order"""
    exclude = None if include_images else {"image_url"}
    results = await repository.load_results()
    return [r.model_dump(mode="json", exclude=exclude) for r in results]


@router.get("/results/{result_id}")
async def get_result(result_id: str, repository: GradingRepository = Depends(get_repository)):
    """One result with its answer breakdown against the current key"""
    result = await repository.get_result(result_id)
    if result is None:
        raise HTTPException(status_code=404, detail="Result not found")

    master_key = await repository.load_master_key()
    return {
        **result.model_dump(mode="json"),
        "breakdown": breakdown(master_key, result) if master_key else [],
    }


@router.get("/dashboard/summary")
async def dashboard_summary(repository: GradingRepository = Depends(get_repository)):
    master_key = await repository.load_master_key()
    results = await repository.load_results()
    return summarize(master_key, results)


@router.delete("/data")
async def clear_all_data(repository: GradingRepository = Depends(get_repository)):
    """Remove the master key and every stored result"""
    await repository.clear()
    logger.info("All grading data cleared")
    return {"message": "All data cleared"}
