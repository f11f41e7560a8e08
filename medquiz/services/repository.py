"""
Quiz repository

The creation transaction only needs three operations on two collections
("questions" and "quizzes"): create, delete and find_by_id. QuizRepository
is that interface; SQLAlchemyQuizRepository implements it on the ORM models.
Each operation commits on its own so a failed later step can be compensated.
"""

import logging
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medquiz.database import SessionLocal
from medquiz.models.models import Question, Quiz
from medquiz.services.errors import RepositoryError

logger = logging.getLogger(__name__)

QUESTIONS = "questions"
QUIZZES = "quizzes"


@runtime_checkable
class QuizRepository(Protocol):
    """Narrow persistence interface used by QuizCreationTransaction."""

    def create(self, collection: str, data: Dict[str, Any]) -> str:
        """Store a record and return its id."""
        ...

    def delete(self, collection: str, record_id: str) -> None:
        ...

    def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Return the record as a dict, or None when it does not exist."""
        ...


class SQLAlchemyQuizRepository:
    """QuizRepository backed by the Question and Quiz tables."""

    MODELS = {
        QUESTIONS: Question,
        QUIZZES: Quiz,
    }

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def _model(self, collection: str):
        model = self.MODELS.get(collection)
        if model is None:
            raise RepositoryError(f"Unknown collection '{collection}'", collection=collection)
        return model

    def create(self, collection: str, data: Dict[str, Any]) -> str:
        model = self._model(collection)
        columns = {c.name for c in model.__table__.columns}
        unknown = set(data) - columns
        if unknown:
            raise RepositoryError(
                f"Unknown field(s) for {collection}: {', '.join(sorted(unknown))}",
                collection=collection,
            )

        db = self.session_factory()
        try:
            record = model(**data)
            db.add(record)
            db.commit()
            db.refresh(record)
            logger.debug(f"Created {collection} record {record.id}")
            return record.id
        except SQLAlchemyError as e:
            db.rollback()
            raise RepositoryError(f"Failed to create {collection} record: {e}",
                                  collection=collection) from e
        finally:
            db.close()

    def delete(self, collection: str, record_id: str) -> None:
        model = self._model(collection)
        db = self.session_factory()
        try:
            record = db.query(model).filter(model.id == record_id).first()
            if record is not None:
                db.delete(record)
                db.commit()
                logger.debug(f"Deleted {collection} record {record_id}")
        except SQLAlchemyError as e:
            db.rollback()
            raise RepositoryError(f"Failed to delete {collection} record {record_id}: {e}",
                                  collection=collection) from e
        finally:
            db.close()

    def find_by_id(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        model = self._model(collection)
        db = self.session_factory()
        try:
            record = db.query(model).filter(model.id == record_id).first()
            if record is None:
                return None
            return {c.name: getattr(record, c.name) for c in model.__table__.columns}
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to load {collection} record {record_id}: {e}",
                                  collection=collection) from e
        finally:
            db.close()
