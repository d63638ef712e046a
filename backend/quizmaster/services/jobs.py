"""
In-process registry of background grading jobs.

Each job owns one asyncio task running BatchController.run_batch. The job
keeps only the latest immutable status snapshot, so pollers always read
a consistent view.
"""

import uuid
import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from quizmaster.config import logger
from quizmaster.exceptions import BatchInProgressError
from quizmaster.models import AnswerKey, ItemStatus
from quizmaster.services.batch_queue import (
    BatchController, CancellationToken, Snapshot, initial_statuses,
)
from quizmaster.services.file_processing import SheetUpload

ACTIVE_STATUSES = ("pending", "processing")
MAX_FINISHED_JOBS = 20

# sheet images are served by /results, not by job polls
ITEM_EXCLUDE = {"result": {"image_url"}}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class GradingJob:
    job_id: str
    key_id: str
    statuses: Snapshot
    status: str = "pending"  # pending, processing, completed, cancelled, failed
    error: Optional[str] = None
    token: CancellationToken = field(default_factory=CancellationToken)
    task: Optional[asyncio.Task] = None
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)

    def record(self, statuses: Snapshot):
        self.statuses = statuses
        self.updated_at = _now()

    def snapshot(self) -> dict:
        statuses = self.statuses
        counts = {s: 0 for s in ItemStatus}
        for item in statuses:
            counts[item.status] += 1
        return {
            "job_id": self.job_id,
            "key_id": self.key_id,
            "status": self.status,
            "error": self.error,
            "total_papers": len(statuses),
            "processed_papers": counts[ItemStatus.COMPLETED] + counts[ItemStatus.ERROR],
            "successful": counts[ItemStatus.COMPLETED],
            "failed": counts[ItemStatus.ERROR],
            "items": [item.model_dump(mode="json", exclude=ITEM_EXCLUDE) for item in statuses],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class JobRegistry:
    """
    At most one job runs at a time. Finished jobs stay pollable until more
    than max_finished newer ones have completed.
    """

    def __init__(self, max_finished: int = MAX_FINISHED_JOBS):
        self._jobs: Dict[str, GradingJob] = {}
        self._max_finished = max_finished

    def get(self, job_id: str) -> Optional[GradingJob]:
        return self._jobs.get(job_id)

    def active(self) -> Optional[GradingJob]:
        for job in self._jobs.values():
            if job.status in ACTIVE_STATUSES:
                return job
        return None

    def start(self, controller: BatchController, uploads: List[SheetUpload],
              master_key: AnswerKey) -> GradingJob:
        """Register a job and schedule it on the running loop. Key must already be validated."""
        running = self.active()
        if running is not None:
            raise BatchInProgressError(running.job_id)

        self._evict_finished()
        job = GradingJob(
            job_id=f"job_{uuid.uuid4().hex[:12]}",
            key_id=master_key.id,
            statuses=initial_statuses([u.file_name for u in uploads]),
        )
        self._jobs[job.job_id] = job
        job.task = asyncio.create_task(self._run(job, controller, uploads, master_key))
        return job

    def _evict_finished(self):
        finished = [j.job_id for j in self._jobs.values() if j.status not in ACTIVE_STATUSES]
        for job_id in finished[:max(len(finished) - self._max_finished, 0)]:
            del self._jobs[job_id]

    async def _run(self, job: GradingJob, controller: BatchController,
                   uploads: List[SheetUpload], master_key: AnswerKey):
        job.status = "processing"
        try:
            outcome = await controller.run_batch(
                uploads, master_key, on_progress=job.record, cancel_token=job.token
            )
            job.status = "cancelled" if outcome.cancelled else "completed"
        except asyncio.CancelledError:
            logger.warning(f"Grading job {job.job_id} interrupted by shutdown")
            job.status = "cancelled"
            raise
        except Exception as e:
            logger.error(f"Critical error in grading job {job.job_id}: {e}", exc_info=True)
            job.status = "failed"
            job.error = str(e)
        finally:
            job.updated_at = _now()

    def cancel(self, job_id: str) -> Optional[GradingJob]:
        job = self._jobs.get(job_id)
        if job is not None and job.status in ACTIVE_STATUSES:
            job.token.cancel()
            logger.info(f"Grading job {job_id} cancellation requested")
        return job

    async def shutdown(self):
        """Cancel outstanding tasks (application shutdown)."""
        running = [j for j in self._jobs.values() if j.task and not j.task.done()]
        for job in running:
            job.task.cancel()
        if running:
            await asyncio.gather(*(j.task for j in running), return_exceptions=True)
        # a task cancelled before its first step never reaches _run
        for job in running:
            if job.status in ACTIVE_STATUSES:
                job.status = "cancelled"
