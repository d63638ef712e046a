"""
Storage for the two persistent slots: the master answer key and the
ordered list of student results.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from pymongo import ASCENDING

from quizmaster.config import logger
from quizmaster.models import AnswerKey, StudentResult
from quizmaster.utils.serialization import serialize_doc

MASTER_KEY_SLOT = "master_key"


class GradingRepository(ABC):

    @abstractmethod
    async def load_master_key(self) -> Optional[AnswerKey]:
        ...

    @abstractmethod
    async def save_master_key(self, key: AnswerKey) -> None:
        """Replace the stored key wholesale."""

    @abstractmethod
    async def load_results(self) -> List[StudentResult]:
        ...

    @abstractmethod
    async def append_results(self, results: List[StudentResult]) -> None:
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Empty both slots."""

    async def get_result(self, result_id: str) -> Optional[StudentResult]:
        for result in await self.load_results():
            if result.id == result_id:
                return result
        return None


class InMemoryGradingRepository(GradingRepository):
    """Process-local storage. Used for tests and STORAGE_BACKEND=memory."""

    def __init__(self):
        self._key: Optional[AnswerKey] = None
        self._results: List[StudentResult] = []

    async def load_master_key(self):
        return self._key

    async def save_master_key(self, key):
        self._key = key

    async def load_results(self):
        return list(self._results)

    async def append_results(self, results):
        # Rebind rather than extend so earlier load_results() copies stay valid
        self._results = self._results + list(results)

    async def clear(self):
        self._key = None
        self._results = []


class MongoGradingRepository(GradingRepository):

    def __init__(self, db):
        self._keys = db.answer_keys
        self._results = db.student_results

    async def load_master_key(self):
        doc = await self._keys.find_one({"slot": MASTER_KEY_SLOT})
        if not doc:
            return None
        return AnswerKey.model_validate(serialize_doc(doc))

    async def save_master_key(self, key):
        await self._keys.replace_one(
            {"slot": MASTER_KEY_SLOT},
            {"slot": MASTER_KEY_SLOT, **key.model_dump(mode="json")},
            upsert=True
        )
        logger.info(f"Saved master key '{key.name}' ({key.total_questions} questions)")

    async def load_results(self):
        docs = await self._results.find({}).sort("seq", ASCENDING).to_list(None)
        return [StudentResult.model_validate(d) for d in serialize_doc(docs)]

    async def get_result(self, result_id):
        doc = await self._results.find_one({"id": result_id})
        return StudentResult.model_validate(serialize_doc(doc)) if doc else None

    async def append_results(self, results):
        if not results:
            return
        start = await self._results.count_documents({})
        docs = [
            {"seq": start + offset, **result.model_dump(mode="json")}
            for offset, result in enumerate(results)
        ]
        await self._results.insert_many(docs, ordered=True)
        logger.info(f"Stored {len(docs)} student results")

    async def clear(self):
        await self._keys.delete_many({})
        await self._results.delete_many({})
        logger.info("Cleared master key and all student results")
