"""Master key routes - extract from image, view, edit, save."""

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File

from quizmaster.config import logger
from quizmaster.deps import get_batch_controller, get_repository
from quizmaster.exceptions import ImageDecodeError, InvalidAnswerKeyError, RecognitionError
from quizmaster.models import AnswerKey, AnswerKeyUpdate, AnswerUpdate
from quizmaster.repository import GradingRepository
from quizmaster.services import answer_keys
from quizmaster.services.batch_queue import BatchController
from quizmaster.utils.validation import validate_answer_key_structure

router = APIRouter(tags=["master-key"])


async def _require_key(repository: GradingRepository) -> AnswerKey:
    key = await repository.load_master_key()
    if key is None:
        raise HTTPException(status_code=404, detail="No master answer key defined")
    return key


async def _save(repository: GradingRepository, key: AnswerKey) -> AnswerKey:
    try:
        key = answer_keys.finalize(key)
    except InvalidAnswerKeyError as e:
        raise HTTPException(status_code=422, detail=str(e))
    await repository.save_master_key(key)
    return key


@router.post("/master-key/extract")
async def extract_master_key(
    file: UploadFile = File(...),
    controller: BatchController = Depends(get_batch_controller)
):
    """Read a master answer sheet image into a draft key (not saved)"""
    image_bytes = await file.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail="Empty file uploaded")

    try:
        draft = await controller.extract_master_key(image_bytes, file.filename or "")
    except ImageDecodeError as e:
        logger.error(f"Master key decode failed for {file.filename}: {e}")
        raise HTTPException(status_code=400, detail="Error reading file.")
    except RecognitionError as e:
        logger.error(f"Master key extraction failed for {file.filename}: {e}")
        raise HTTPException(
            status_code=502,
            detail="Failed to parse the answer key. Please ensure the image is clear."
        )

    validation = validate_answer_key_structure(draft.answers)
    return {
        "key": draft.model_dump(mode="json"),
        "warnings": validation["warnings"] + validation["errors"],
    }


@router.get("/master-key")
async def get_master_key(repository: GradingRepository = Depends(get_repository)):
    key = await _require_key(repository)
    return key.model_dump(mode="json")


@router.put("/master-key")
async def save_master_key(payload: AnswerKeyUpdate, repository: GradingRepository = Depends(get_repository)):
    """Replace the stored key wholesale"""
    fields = {"name": payload.name, "answers": payload.answers}
    if payload.id:
        fields["id"] = payload.id
    key = await _save(repository, AnswerKey(**fields))
    return key.model_dump(mode="json")


@router.patch("/master-key/answers/{question_number}")
async def update_answer(
    question_number: int,
    payload: AnswerUpdate,
    repository: GradingRepository = Depends(get_repository)
):
    key = await _require_key(repository)
    try:
        key = answer_keys.set_answer(key, question_number, payload.answer)
    except InvalidAnswerKeyError as e:
        raise HTTPException(status_code=422, detail=str(e))
    key = await _save(repository, key)
    return key.model_dump(mode="json")


@router.post("/master-key/questions")
async def add_question(repository: GradingRepository = Depends(get_repository)):
    key = await _require_key(repository)
    key = await _save(repository, answer_keys.add_question(key))
    return key.model_dump(mode="json")


@router.delete("/master-key/questions/{question_number}")
async def remove_question(question_number: int, repository: GradingRepository = Depends(get_repository)):
    key = await _require_key(repository)
    try:
        key = answer_keys.remove_question(key, question_number)
    except InvalidAnswerKeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    key = await _save(repository, key)
    return key.model_dump(mode="json")
