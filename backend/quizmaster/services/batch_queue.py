"""
Batch queue controller.

Sheets are graded strictly one at a time: optimize -> recognize -> reconcile.
Recognition calls never overlap and consecutive submissions are separated
by a fixed pacing delay, which keeps the external service under its rate
limits. A failed item is marked as such and the batch moves on.

Item state lives in immutable ProcessStatus tuples produced by
transition(); every change yields a new snapshot for progress observers.
"""

import time
import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from quizmaster.config import Settings, settings as default_settings, logger
from quizmaster.exceptions import ImageDecodeError, RecognitionError
from quizmaster.models import AnswerKey, ItemStatus, ProcessStatus, StudentResult
from quizmaster.repository import GradingRepository
from quizmaster.services.answer_keys import build_answer_key, key_name_from_filename
from quizmaster.services.file_processing import SheetUpload
from quizmaster.services.image_optimizer import optimize_image_async, to_data_url
from quizmaster.services.reconciliation import ensure_gradable, reconcile
from quizmaster.services.recognition import RecognitionClient, RecognitionMode

RECOGNITION_FAILED_MESSAGE = "API Timeout or Size Limit"
DECODE_FAILED_MESSAGE = "Could not read image file"
UNEXPECTED_ERROR_MESSAGE = "Unexpected processing error"

ALLOWED_TRANSITIONS = {
    ItemStatus.PENDING: {ItemStatus.PROCESSING},
    ItemStatus.PROCESSING: {ItemStatus.COMPLETED, ItemStatus.ERROR},
    ItemStatus.COMPLETED: set(),
    ItemStatus.ERROR: set(),
}

Snapshot = Tuple[ProcessStatus, ...]
ProgressCallback = Callable[[Snapshot], None]


class IllegalTransitionError(ValueError):
    pass


def initial_statuses(file_names: Sequence[str]) -> Snapshot:
    return tuple(ProcessStatus(file_name=name) for name in file_names)


def transition(statuses: Snapshot, index: int, new_status: ItemStatus,
               error: Optional[str] = None, result: Optional[StudentResult] = None) -> Snapshot:
    """Return a new snapshot with item `index` moved to `new_status`."""
    current = statuses[index]
    if new_status not in ALLOWED_TRANSITIONS[current.status]:
        raise IllegalTransitionError(
            f"{current.file_name}: cannot move from {current.status.value} to {new_status.value}"
        )
    updated = ProcessStatus(file_name=current.file_name, status=new_status, error=error, result=result)
    return statuses[:index] + (updated,) + statuses[index + 1:]


class CancellationToken:
    """Checked between items, never mid-item."""

    def __init__(self):
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class BatchOutcome:
    statuses: Snapshot
    results: List[StudentResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failed(self) -> List[ProcessStatus]:
        return [s for s in self.statuses if s.status == ItemStatus.ERROR]


class BatchController:
    """Runs the optimize -> recognize (-> reconcile) pipeline over uploads."""

    def __init__(self, recognition_client: RecognitionClient, repository: GradingRepository,
                 settings: Settings = default_settings,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
                 clock: Callable[[], float] = time.time):
        self._recognition = recognition_client
        self._repository = repository
        self._settings = settings
        self._sleep = sleep
        self._clock = clock
        # one recognition pipeline at a time, across batches and key extraction
        self._lock = asyncio.Lock()

    async def _optimize(self, content: bytes) -> bytes:
        return await optimize_image_async(
            content,
            max_dimension=self._settings.max_image_dimension,
            quality=self._settings.jpeg_quality,
            timeout=self._settings.decode_timeout_seconds,
        )

    async def extract_master_key(self, image_bytes: bytes, file_name: str) -> AnswerKey:
        """Single image, no reconciliation, no pacing. Errors propagate to the caller."""
        async with self._lock:
            optimized = await self._optimize(image_bytes)
            recognized = await self._recognition.recognize(optimized, RecognitionMode.MASTER_KEY)
        return build_answer_key(key_name_from_filename(file_name), recognized.answers)

    async def _grade_sheet(self, upload: SheetUpload, position: int, master_key: AnswerKey,
                           batch_stamp: int, pace: bool) -> StudentResult:
        optimized = await self._optimize(upload.content)
        if pace:
            await self._sleep(self._settings.batch_pacing_seconds)
        recognized = await self._recognition.recognize(optimized, RecognitionMode.STUDENT_SHEET)
        scored = reconcile(master_key, recognized.answers)

        return StudentResult(
            id=f"{batch_stamp}-{position}",
            student_name=(recognized.student_name or "").strip() or f"Student {position + 1}",
            student_id=(recognized.student_id or "").strip() or "N/A",
            answers=scored.answers,
            is_correct=scored.is_correct,
            score=scored.score,
            total_questions=scored.total_questions,
            percentage=scored.percentage,
            grade=scored.grade,
            image_url=to_data_url(optimized),
            file_name=upload.file_name,
        )

    async def run_batch(self, uploads: Sequence[SheetUpload], master_key: Optional[AnswerKey],
                        on_progress: Optional[ProgressCallback] = None,
                        cancel_token: Optional[CancellationToken] = None) -> BatchOutcome:
        """
        Grade uploads in order. Raises MasterKeyMissingError / EmptyAnswerKeyError
        before touching any item; item failures are recorded, never raised.
        Completed results are appended to the repository once the loop ends.
        A second batch on the same controller waits until this one finishes.
        """
        master_key = ensure_gradable(master_key)
        async with self._lock:
            return await self._run_batch(uploads, master_key, on_progress, cancel_token)

    async def _run_batch(self, uploads: Sequence[SheetUpload], master_key: AnswerKey,
                         on_progress: Optional[ProgressCallback],
                         cancel_token: Optional[CancellationToken]) -> BatchOutcome:

        statuses = initial_statuses([u.file_name for u in uploads])

        def emit():
            if on_progress is not None:
                on_progress(statuses)

        emit()
        results: List[StudentResult] = []
        cancelled = False
        dispatched = False
        batch_stamp = int(self._clock() * 1000)

        logger.info(f"=== BATCH GRADING START === {len(uploads)} sheets against key '{master_key.name}'")

        for idx, upload in enumerate(uploads):
            if cancel_token is not None and cancel_token.cancelled:
                logger.info(f"Batch cancelled before item {idx + 1}/{len(uploads)}")
                cancelled = True
                break

            statuses = transition(statuses, idx, ItemStatus.PROCESSING)
            emit()
            logger.info(f"[Sheet {idx + 1}/{len(uploads)}] START processing: {upload.file_name}")

            if upload.error:
                logger.warning(f"[Sheet {idx + 1}] rejected: {upload.error}")
                statuses = transition(statuses, idx, ItemStatus.ERROR, error=upload.error)
                emit()
                continue

            try:
                result = await self._grade_sheet(upload, idx, master_key, batch_stamp, pace=dispatched)
            except ImageDecodeError as e:
                logger.error(f"Decode error for {upload.file_name}: {e}")
                statuses = transition(statuses, idx, ItemStatus.ERROR, error=DECODE_FAILED_MESSAGE)
                emit()
                continue
            except RecognitionError as e:
                dispatched = True
                logger.error(f"Processing error for {upload.file_name}: {e}")
                statuses = transition(statuses, idx, ItemStatus.ERROR, error=RECOGNITION_FAILED_MESSAGE)
                emit()
                continue
            except Exception as e:
                dispatched = True
                logger.error(f"Unexpected error for {upload.file_name}: {e}", exc_info=True)
                statuses = transition(statuses, idx, ItemStatus.ERROR, error=UNEXPECTED_ERROR_MESSAGE)
                emit()
                continue

            dispatched = True
            results.append(result)
            statuses = transition(statuses, idx, ItemStatus.COMPLETED, result=result)
            emit()
            logger.info(f"[Sheet {idx + 1}] {result.student_name}: {result.score}/{result.total_questions} ({result.grade})")

        if results:
            await self._repository.append_results(results)

        logger.info(
            f"=== BATCH GRADING DONE === {len(results)} completed, "
            f"{sum(1 for s in statuses if s.status == ItemStatus.ERROR)} failed"
            + (" (cancelled)" if cancelled else "")
        )
        return BatchOutcome(statuses=statuses, results=results, cancelled=cancelled)
