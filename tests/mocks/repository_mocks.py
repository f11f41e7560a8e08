"""
Repository wrappers that fail on demand, for saga rollback tests.
"""

from typing import Any, Dict, List, Optional

from medquiz.services.repository import QUESTIONS, QUIZZES, SQLAlchemyQuizRepository


class FailingRepository(SQLAlchemyQuizRepository):
    """
    SQLAlchemy repository that raises on a chosen create or on every delete.

    Args:
        fail_on_question: 1-based question create that raises
        fail_on_quiz: raise when the quiz record is created
        fail_deletes: raise on every delete (compensation failure)
    """

    def __init__(self, session_factory, fail_on_question: Optional[int] = None,
                 fail_on_quiz: bool = False, fail_deletes: bool = False):
        super().__init__(session_factory)
        self.fail_on_question = fail_on_question
        self.fail_on_quiz = fail_on_quiz
        self.fail_deletes = fail_deletes
        self.created_question_ids: List[str] = []
        self.deleted: List[str] = []
        self._question_creates = 0

    def create(self, collection: str, data: Dict[str, Any]) -> str:
        if collection == QUESTIONS:
            self._question_creates += 1
            if self._question_creates == self.fail_on_question:
                raise RuntimeError("database unavailable")
            record_id = super().create(collection, data)
            self.created_question_ids.append(record_id)
            return record_id
        if collection == QUIZZES and self.fail_on_quiz:
            raise RuntimeError("quiz table locked")
        return super().create(collection, data)

    def delete(self, collection: str, record_id: str) -> None:
        if self.fail_deletes:
            raise RuntimeError("delete refused")
        super().delete(collection, record_id)
        self.deleted.append(record_id)
