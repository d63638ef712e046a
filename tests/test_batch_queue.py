"""
Unit tests for the sequential batch grading controller
"""
import io

import pytest
from PIL import Image

from conftest import FakeTransport, make_image_bytes, sheet_json
from quizmaster.exceptions import EmptyAnswerKeyError, ImageDecodeError, MasterKeyMissingError, RecognitionError
from quizmaster.models import AnswerKey, ItemStatus
from quizmaster.services.batch_queue import (
    DECODE_FAILED_MESSAGE,
    RECOGNITION_FAILED_MESSAGE,
    CancellationToken,
    IllegalTransitionError,
    initial_statuses,
    transition,
)
from quizmaster.services.file_processing import SheetUpload


def _uploads(count):
    return [SheetUpload(f"sheet_{i + 1}.png", make_image_bytes(1200, 1600)) for i in range(count)]


class TestTransitions:

    def test_happy_path(self):
        statuses = initial_statuses(["a.png", "b.png"])
        processing = transition(statuses, 0, ItemStatus.PROCESSING)
        done = transition(processing, 0, ItemStatus.COMPLETED)

        assert [s.status for s in statuses] == [ItemStatus.PENDING, ItemStatus.PENDING]
        assert processing[0].status == ItemStatus.PROCESSING
        assert done[0].status == ItemStatus.COMPLETED
        assert done[1] is statuses[1]

    def test_error_carries_message(self):
        statuses = transition(initial_statuses(["a.png"]), 0, ItemStatus.PROCESSING)
        failed = transition(statuses, 0, ItemStatus.ERROR, error="nope")
        assert failed[0].error == "nope"

    @pytest.mark.parametrize("path", [
        [ItemStatus.COMPLETED],
        [ItemStatus.ERROR],
        [ItemStatus.PROCESSING, ItemStatus.COMPLETED, ItemStatus.ERROR],
        [ItemStatus.PROCESSING, ItemStatus.ERROR, ItemStatus.PROCESSING],
    ])
    def test_illegal_transitions(self, path):
        statuses = initial_statuses(["a.png"])
        with pytest.raises(IllegalTransitionError):
            for status in path:
                statuses = transition(statuses, 0, status)


class TestRunBatch:

    async def test_all_items_graded(self, build_controller, master_key, repository, pacing_sleep):
        transport = FakeTransport(
            sheet_json({1: "A", 2: "B", 3: "D"}, name="Ana", student_id="S-1"),
            sheet_json({1: "A", 2: "B", 3: "C"}),
        )
        controller = build_controller(transport)
        outcome = await controller.run_batch(_uploads(2), master_key)

        assert [s.status for s in outcome.statuses] == [ItemStatus.COMPLETED] * 2
        first, second = outcome.results
        assert (first.student_name, first.student_id, first.score, first.grade) == ("Ana", "S-1", 2, "C")
        assert (second.student_name, second.student_id, second.score, second.grade) == ("Student 2", "N/A", 3, "A+")
        assert first.total_questions == 3
        assert first.file_name == "sheet_1.png"
        assert first.image_url.startswith("data:image/jpeg;base64,")
        assert first.id.endswith("-0") and second.id.endswith("-1")

        # pacing only between submissions
        assert pacing_sleep.calls == [1.5]
        assert await repository.load_results() == outcome.results

    async def test_optimized_image_is_sent(self, build_controller, master_key):
        transport = FakeTransport(sheet_json({1: "A"}))
        await build_controller(transport).run_batch(_uploads(1), master_key)

        sent = Image.open(io.BytesIO(transport.calls[0]["image"].image_bytes))
        assert sent.format == "JPEG"
        assert max(sent.size) == 800

    async def test_failed_item_does_not_abort_batch(self, build_controller, master_key, repository, retry_sleep):
        boom = RuntimeError("503 unavailable")
        transport = FakeTransport(
            sheet_json({1: "A"}),
            boom, boom, boom,
            sheet_json({1: "A", 2: "B"}),
            sheet_json({1: "C"}),
        )
        outcome = await build_controller(transport).run_batch(_uploads(4), master_key)

        assert [s.status for s in outcome.statuses] == [
            ItemStatus.COMPLETED, ItemStatus.ERROR, ItemStatus.COMPLETED, ItemStatus.COMPLETED,
        ]
        assert outcome.statuses[1].error == RECOGNITION_FAILED_MESSAGE
        assert outcome.statuses[1].result is None
        assert [r.file_name for r in outcome.results] == ["sheet_1.png", "sheet_3.png", "sheet_4.png"]
        assert [s.file_name for s in outcome.failed] == ["sheet_2.png"]
        assert retry_sleep.calls == [2.0, 4.0]
        assert len(await repository.load_results()) == 3

    async def test_decode_failure_is_item_error(self, build_controller, master_key, pacing_sleep):
        transport = FakeTransport(sheet_json({1: "A"}))
        uploads = [SheetUpload("broken.png", b"garbage")] + _uploads(1)
        outcome = await build_controller(transport).run_batch(uploads, master_key)

        assert outcome.statuses[0].status == ItemStatus.ERROR
        assert outcome.statuses[0].error == DECODE_FAILED_MESSAGE
        assert outcome.statuses[1].status == ItemStatus.COMPLETED
        assert len(transport.calls) == 1
        # nothing was submitted before the second sheet
        assert pacing_sleep.calls == []

    async def test_rejected_upload_is_never_submitted(self, build_controller, master_key):
        transport = FakeTransport(sheet_json({1: "A"}))
        uploads = [SheetUpload("huge.png", error="File too large")] + _uploads(1)
        outcome = await build_controller(transport).run_batch(uploads, master_key)

        assert outcome.statuses[0].status == ItemStatus.ERROR
        assert outcome.statuses[0].error == "File too large"
        assert len(transport.calls) == 1

    async def test_recognition_calls_never_overlap(self, build_controller, master_key):
        transport = FakeTransport(sheet_json({1: "A"}))
        await build_controller(transport).run_batch(_uploads(3), master_key)

        assert transport.max_in_flight == 1
        assert transport.events == [
            ("start", 1), ("end", 1), ("start", 2), ("end", 2), ("start", 3), ("end", 3),
        ]

    async def test_progress_snapshots(self, build_controller, master_key):
        transport = FakeTransport(sheet_json({1: "A"}), RuntimeError("down"))
        snapshots = []
        controller = build_controller(transport)
        await controller.run_batch(_uploads(2), master_key, on_progress=snapshots.append)

        flattened = [tuple(s.status for s in snap) for snap in snapshots]
        P, R, C, E = ItemStatus.PENDING, ItemStatus.PROCESSING, ItemStatus.COMPLETED, ItemStatus.ERROR
        assert flattened == [(P, P), (R, P), (C, P), (C, R), (C, E)]
        # earlier snapshots are untouched by later transitions
        assert snapshots[0][0].status == P

    async def test_cancellation_between_items(self, build_controller, master_key, repository):
        token = CancellationToken()
        transport = FakeTransport(sheet_json({1: "A"}))

        def cancel_after_first(snapshot):
            if snapshot[0].status == ItemStatus.COMPLETED:
                token.cancel()

        outcome = await build_controller(transport).run_batch(
            _uploads(3), master_key, on_progress=cancel_after_first, cancel_token=token
        )

        assert outcome.cancelled
        assert [s.status for s in outcome.statuses] == [ItemStatus.COMPLETED, ItemStatus.PENDING, ItemStatus.PENDING]
        assert len(transport.calls) == 1
        assert len(await repository.load_results()) == 1

    async def test_missing_key_rejected_before_work(self, build_controller):
        transport = FakeTransport(sheet_json({1: "A"}))
        with pytest.raises(MasterKeyMissingError):
            await build_controller(transport).run_batch(_uploads(1), None)
        assert transport.calls == []

    async def test_empty_key_rejected_before_work(self, build_controller):
        transport = FakeTransport(sheet_json({1: "A"}))
        with pytest.raises(EmptyAnswerKeyError):
            await build_controller(transport).run_batch(_uploads(1), AnswerKey(name="Empty"))
        assert transport.calls == []

    async def test_result_snapshots_key_size(self, build_controller, master_key, repository):
        transport = FakeTransport(sheet_json({1: "A"}))
        outcome = await build_controller(transport).run_batch(_uploads(1), master_key)
        await repository.save_master_key(AnswerKey(name="Bigger", answers={q: "A" for q in range(1, 21)}))

        stored = (await repository.load_results())[0]
        assert stored.total_questions == 3
        assert stored == outcome.results[0]


class TestExtractMasterKey:

    async def test_builds_draft_key(self, build_controller, pacing_sleep):
        transport = FakeTransport(sheet_json({1: "a", 2: "c", 3: "b"}))
        key = await build_controller(transport).extract_master_key(make_image_bytes(), "biology_key.jpg")

        assert key.name == "biology_key"
        assert key.answers == {1: "A", 2: "C", 3: "B"}
        assert key.total_questions == 3
        assert pacing_sleep.calls == []

    async def test_errors_propagate(self, build_controller):
        with pytest.raises(ImageDecodeError):
            await build_controller(FakeTransport("{}")).extract_master_key(b"nope", "key.jpg")
        with pytest.raises(RecognitionError):
            await build_controller(FakeTransport(RuntimeError("x"))).extract_master_key(make_image_bytes(), "key.jpg")
