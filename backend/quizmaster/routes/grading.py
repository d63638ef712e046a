"""Grading routes - start a batch, poll job status, cancel."""

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from typing import List

from quizmaster.config import Settings, logger
from quizmaster.deps import get_batch_controller, get_job_registry, get_repository, get_settings
from quizmaster.exceptions import BatchInProgressError, EmptyAnswerKeyError, MasterKeyMissingError
from quizmaster.repository import GradingRepository
from quizmaster.services.batch_queue import BatchController
from quizmaster.services.file_processing import expand_uploads
from quizmaster.services.jobs import JobRegistry
from quizmaster.services.reconciliation import ensure_gradable

router = APIRouter(tags=["grading"])


@router.post("/grading/batches")
async def start_batch(
    files: List[UploadFile] = File(...),
    repository: GradingRepository = Depends(get_repository),
    controller: BatchController = Depends(get_batch_controller),
    jobs: JobRegistry = Depends(get_job_registry),
    settings: Settings = Depends(get_settings)
):
    """Start a background grading job over the uploaded sheets"""
    try:
        master_key = ensure_gradable(await repository.load_master_key())
    except MasterKeyMissingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EmptyAnswerKeyError as e:
        raise HTTPException(status_code=409, detail=str(e))

    files_data = []
    for file in files:
        content = await file.read()
        if not content:
            continue
        files_data.append((file.filename or "upload", content))

    uploads = expand_uploads(files_data, settings.max_upload_bytes)
    if not uploads:
        raise HTTPException(status_code=400, detail="No valid sheet files uploaded")

    try:
        job = jobs.start(controller, uploads, master_key)
    except BatchInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info(f"=== GRADING JOB {job.job_id} === {len(uploads)} sheets queued")

    return {
        **job.snapshot(),
        "message": f"Grading job started for {len(uploads)} sheets. Use job_id to check progress."
    }


@router.get("/grading/jobs/{job_id}")
async def get_grading_job_status(job_id: str, jobs: JobRegistry = Depends(get_job_registry)):
    """Poll grading job status"""
    job = jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.snapshot()


@router.post("/grading/jobs/{job_id}/cancel")
async def cancel_grading_job(job_id: str, jobs: JobRegistry = Depends(get_job_registry)):
    """Stop a job before its next sheet. The sheet in flight still finishes."""
    job = jobs.cancel(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    if job.token.cancelled:
        return {"message": "Cancellation requested", "job_id": job_id}
    return {"message": f"Job already {job.status}", "job_id": job_id}
