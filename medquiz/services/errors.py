"""
Exception hierarchy for medquiz.

Validators never raise. These exceptions cover infrastructure failures
(language model output, persistence) and are translated into structured
results at the generation and creation boundaries.
"""

from typing import List, Optional


class MedQuizError(Exception):
    """Base class for all medquiz errors"""
    pass


class GenerationAttemptError(MedQuizError):
    """A single generation attempt produced unusable output (bad JSON or shape)."""

    def __init__(self, message: str, raw_response: Optional[str] = None):
        super().__init__(message)
        self.raw_response = raw_response


class QuestionGenerationError(MedQuizError):
    """A batch of questions could not be completed."""

    def __init__(self, message: str, question_index: Optional[int] = None,
                 attempt_errors: Optional[List[str]] = None):
        super().__init__(message)
        self.question_index = question_index
        self.attempt_errors = attempt_errors or []


class RepositoryError(MedQuizError):
    """A persistence operation failed."""

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection
