"""
Domain exceptions for the grading pipeline.

Configuration-level errors are raised to the caller before any batch work
starts. Item-level errors (decode, recognition) are caught by the batch
controller and recorded on the item's status.
"""

from typing import List, Optional


class QuizMasterError(Exception):
    """Base exception for all grading errors"""


class ConfigurationError(QuizMasterError):
    """The grading setup is unusable (no key, empty key, missing storage)"""


class MasterKeyMissingError(ConfigurationError):
    def __init__(self, message: str = "A master answer key must be defined before grading student papers"):
        super().__init__(message)


class EmptyAnswerKeyError(ConfigurationError):
    def __init__(self, key_name: Optional[str] = None):
        label = f"'{key_name}' " if key_name else ""
        super().__init__(f"Master answer key {label}has no questions - cannot compute a percentage")
        self.key_name = key_name


class InvalidAnswerKeyError(QuizMasterError):
    """A key failed validation while being edited or finalized"""

    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) if errors else "Invalid answer key")
        self.errors = list(errors)


class ImageDecodeError(QuizMasterError):
    """The uploaded image could not be decoded (or decoding timed out)"""


class RecognitionError(QuizMasterError):
    """The recognition service failed terminally after all retries"""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class BatchInProgressError(QuizMasterError):
    """Another grading job is still running"""

    def __init__(self, job_id: str):
        super().__init__(f"Grading job {job_id} is still running - wait for it to finish or cancel it")
        self.job_id = job_id
