"""
Quiz Creation Transaction

Persists a validated quiz draft as question records followed by a quiz
record, without ever leaving orphaned questions behind.

The store offers no multi-record transaction, so creation runs as a saga:
every successful create pushes its undo action on a stack, and any later
failure runs the stack in reverse before a failed CreationResult is
returned. Compensation problems are logged and reported, never raised.

Steps:
1. Validate the request (no side effects)
2. Create questions one by one, re-checking each draft first
3. Compensate and fail if a question cannot be stored
4. Create the quiz referencing the question ids in order
5. Compensate and fail if the quiz cannot be stored
6. Integrity check on the committed data (warnings only)
"""

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from medquiz import config
from medquiz.schemas.quiz import QuestionDraft, QuizCreationMeta, QuizDraft
from medquiz.services.audit_logger import AuditAction, AuditLogger, AuditStatus
from medquiz.services.medical_validator import MedicalContentValidator, question_text_blob
from medquiz.services.repository import (
    QUESTIONS,
    QUIZZES,
    QuizRepository,
    SQLAlchemyQuizRepository,
)
from medquiz.services.text_similarity import contains_term, normalize

logger = logging.getLogger(__name__)

VALID_LEVELS = ("PASS", "LAS", "both")
MIN_TITLE_CHARS = 5
MIN_DESCRIPTION_CHARS = 10
MIN_EXPLANATION_CHARS = 20
RECOMMENDED_EXPLANATION_CHARS = 50

# Keywords turned into question tags
TAG_KEYWORDS = (
    "anatomie", "physiologie", "pathologie", "diagnostic", "traitement",
    "symptôme", "maladie", "syndrome", "cellule", "tissu", "organe",
    "système", "fonction", "mécanisme", "processus", "thérapie",
    "médical", "clinique", "patient", "santé", "biologie",
)
MAX_KEYWORD_TAGS = 3
MAX_DRAFT_TAGS = 2

_MEDICAL_VALIDATOR = MedicalContentValidator()

BASE_ANSWER_SECONDS = 30
CHARS_PER_SECOND = 20
DIFFICULTY_TIME_MULTIPLIERS = {"easy": 1.0, "medium": 1.3, "hard": 1.6}


@dataclass(frozen=True)
class CreationMetadata:
    created_at: datetime
    generated_by_ai: bool = True
    total_duration: int = 0          # quiz duration in minutes
    processing_time_ms: float = 0.0


@dataclass(frozen=True)
class CreationResult:
    success: bool
    quiz_id: Optional[str] = None
    question_ids: Tuple[str, ...] = ()
    questions_created: int = 0
    validation_score: Optional[float] = None   # post-creation integrity, 0-100
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    metadata: CreationMetadata = field(
        default_factory=lambda: CreationMetadata(created_at=datetime.utcnow())
    )


@dataclass
class _UndoAction:
    description: str
    action: Callable[[], None]


# =============================================================================
# QUESTION PAYLOAD HELPERS
# =============================================================================

def extract_keyword_tags(text: str) -> List[str]:
    normalized = normalize(text)
    return [term for term in TAG_KEYWORDS if contains_term(normalized, term)]


def build_question_tags(question: QuestionDraft, level: str) -> List[str]:
    """Level, difficulty, up to 3 keywords, the first 2 draft tags and 'ai-generated'."""
    tags = [level.lower()]
    if question.difficulty is not None:
        tags.append(question.difficulty.value)
    tags.extend(extract_keyword_tags(question.question_text)[:MAX_KEYWORD_TAGS])
    tags.extend(question.tags[:MAX_DRAFT_TAGS])
    tags.append("ai-generated")

    unique = []
    for tag in tags:
        if tag and len(tag) > 2 and tag not in unique:
            unique.append(tag)
    return unique


def estimate_answer_time(question: QuestionDraft) -> int:
    """Seconds: (30 + ceil(characters / 20)) x difficulty multiplier."""
    characters = len(question.question_text) + sum(len(o.text) for o in question.options)
    reading = math.ceil(characters / CHARS_PER_SECOND)
    difficulty = question.difficulty.value if question.difficulty else "medium"
    multiplier = DIFFICULTY_TIME_MULTIPLIERS.get(difficulty, 1.3)
    return round((BASE_ANSWER_SECONDS + reading) * multiplier)


def check_question_data(
    question: QuestionDraft,
    category_id: Optional[str],
    medical: Optional[MedicalContentValidator] = None,
) -> Tuple[List[str], List[str]]:
    """Last check before a question is stored: (errors, warnings)."""
    errors, warnings = [], []
    medical = medical or _MEDICAL_VALIDATOR

    if len(question.options) != 4:
        errors.append(f"exactly 4 options required (found {len(question.options)})")
    correct = sum(1 for o in question.options if o.is_correct)
    if correct != 1:
        errors.append(f"exactly one correct answer (found {correct})")

    normalized = [normalize(o.text) for o in question.options]
    if len(set(normalized)) != len(normalized):
        errors.append("duplicate options")

    explanation = question.explanation.strip()
    if len(explanation) < MIN_EXPLANATION_CHARS:
        errors.append("explanation missing or too short")
    elif len(explanation) < RECOMMENDED_EXPLANATION_CHARS:
        warnings.append("explanation is short")

    for issue in medical.scan_inappropriate(question_text_blob(question.to_content()), "question"):
        if issue.is_critical:
            errors.append(issue.message)
        else:
            warnings.append(issue.message)

    if not category_id:
        errors.append("category is required")

    return errors, warnings


# =============================================================================
# TRANSACTION
# =============================================================================

class QuizCreationTransaction:
    """
    Usage:
        transaction = QuizCreationTransaction(SQLAlchemyQuizRepository())
        result = transaction.create_quiz_from_draft(
            draft, QuizCreationMeta(category_id="cat-1", level="PASS", user_id="u-1")
        )
    """

    def __init__(
        self,
        repository: QuizRepository,
        audit: Optional[AuditLogger] = None,
        max_questions: int = config.MAX_QUESTIONS_PER_QUIZ,
        passing_score: int = config.DEFAULT_PASSING_SCORE,
        default_duration: int = config.DEFAULT_QUIZ_DURATION_MINUTES,
    ):
        self.repository = repository
        self.audit = audit or AuditLogger()
        self.max_questions = max(1, min(config.HARD_MAX_QUESTIONS_PER_QUIZ, max_questions))
        self.passing_score = passing_score
        self.default_duration = default_duration

    def create_quiz_from_draft(
        self,
        draft: Union[QuizDraft, Dict[str, Any], None],
        meta: QuizCreationMeta,
    ) -> CreationResult:
        started = time.perf_counter()
        undo_stack: List[_UndoAction] = []
        question_ids: List[str] = []

        self.audit.record_event(
            AuditAction.QUIZ_CREATION, AuditStatus.STARTED, user_id=meta.user_id,
            config={"category_id": meta.category_id, "level": meta.level},
        )

        # 1. Request validation
        if isinstance(draft, dict):
            try:
                draft = QuizDraft.from_content(draft)
            except ValidationError as e:
                return self._failure(started, meta, [f"invalid quiz draft: {e.error_count()} error(s)"])

        errors = self.validate_request(draft, meta)
        if errors:
            logger.info(f"Quiz creation request rejected: {'; '.join(errors)}")
            return self._failure(started, meta, errors)

        logger.info(f"Creating quiz '{draft.title}' with {len(draft.questions)} question(s)")
        warnings: List[str] = []

        try:
            # 2-3. Questions
            for number, question in enumerate(draft.questions, start=1):
                problems, question_warnings = check_question_data(question, meta.category_id)
                warnings.extend(f"question {number}: {w}" for w in question_warnings)
                if problems:
                    return self._abort(
                        started, meta, undo_stack,
                        [f"question {number}: {p}" for p in problems], warnings,
                    )

                try:
                    question_id = self.repository.create(
                        QUESTIONS, self._question_record(question, number, draft, meta)
                    )
                except Exception as e:
                    logger.error(f"Failed to create question {number}: {e}")
                    return self._abort(
                        started, meta, undo_stack,
                        [f"question {number} could not be created: {e}"], warnings,
                    )

                question_ids.append(question_id)
                undo_stack.append(self._undo_delete(QUESTIONS, question_id))

            # 4-5. Quiz
            try:
                quiz_id = self.repository.create(QUIZZES, self._quiz_record(draft, meta, question_ids))
            except Exception as e:
                logger.error(f"Failed to create quiz '{draft.title}': {e}")
                return self._abort(
                    started, meta, undo_stack, [f"quiz could not be created: {e}"], warnings,
                )
        except Exception as e:
            logger.error(f"Unexpected error during quiz creation: {e}")
            return self._abort(started, meta, undo_stack, [f"unexpected error: {e}"], warnings)

        # 6. Integrity check, nothing is rolled back past this point
        score, integrity_warnings = self.verify_created_quiz(quiz_id, question_ids)
        warnings.extend(integrity_warnings)

        processing_ms = (time.perf_counter() - started) * 1000
        duration = draft.estimated_duration_minutes or self.default_duration
        self.audit.record_event(
            AuditAction.QUIZ_CREATION, AuditStatus.SUCCESS, user_id=meta.user_id,
            config={"category_id": meta.category_id, "level": meta.level},
            result={"quiz_id": quiz_id, "questions_created": len(question_ids),
                    "validation_score": score},
            duration_ms=processing_ms,
        )
        logger.info(f"Quiz {quiz_id} created with {len(question_ids)} question(s), "
                    f"integrity score {score}")

        return CreationResult(
            success=True,
            quiz_id=quiz_id,
            question_ids=tuple(question_ids),
            questions_created=len(question_ids),
            validation_score=score,
            warnings=tuple(warnings),
            metadata=CreationMetadata(
                created_at=datetime.utcnow(),
                generated_by_ai=True,
                total_duration=duration,
                processing_time_ms=processing_ms,
            ),
        )

    def validate_request(self, draft: Optional[QuizDraft], meta: QuizCreationMeta) -> List[str]:
        """All problems with the request; empty when it can proceed."""
        errors = []
        if draft is None:
            errors.append("quiz draft is required")
        else:
            if len(draft.title.strip()) < MIN_TITLE_CHARS:
                errors.append(f"title must be at least {MIN_TITLE_CHARS} characters")
            if len(draft.description.strip()) < MIN_DESCRIPTION_CHARS:
                errors.append(f"description must be at least {MIN_DESCRIPTION_CHARS} characters")
            if not draft.questions:
                errors.append("at least one question is required")
            elif len(draft.questions) > self.max_questions:
                errors.append(f"at most {self.max_questions} questions allowed "
                              f"(got {len(draft.questions)})")

        if not meta.category_id:
            errors.append("category_id is required")
        if not meta.user_id:
            errors.append("user_id is required")
        if meta.level not in VALID_LEVELS:
            errors.append(f"level must be one of {', '.join(VALID_LEVELS)}")
        return errors

    def verify_created_quiz(self, quiz_id: str, question_ids: List[str]) -> Tuple[float, List[str]]:
        """Integrity score 0-100 and warnings for the committed records."""
        warnings = []
        score = 100.0
        try:
            quiz = self.repository.find_by_id(QUIZZES, quiz_id)
            if quiz is None:
                warnings.append("created quiz not found")
                score -= 50
            else:
                linked = quiz.get("question_ids") or []
                if len(linked) != len(question_ids):
                    warnings.append(
                        f"quiz links {len(linked)} question(s), expected {len(question_ids)}"
                    )
                    score -= 20
                for question_id in question_ids:
                    if self.repository.find_by_id(QUESTIONS, question_id) is None:
                        warnings.append(f"question {question_id} not found")
                        score -= 10
        except Exception as e:
            logger.warning(f"Integrity check failed for quiz {quiz_id}: {e}")
            warnings.append("integrity check could not be completed")
            score -= 30
        return max(0.0, score), warnings

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _undo_delete(self, collection: str, record_id: str) -> _UndoAction:
        return _UndoAction(
            description=f"delete {collection} {record_id}",
            action=lambda: self.repository.delete(collection, record_id),
        )

    def _compensate(self, undo_stack: List[_UndoAction]) -> List[str]:
        """Run undo actions newest first; returns errors for the ones that failed."""
        errors = []
        while undo_stack:
            undo = undo_stack.pop()
            try:
                undo.action()
                logger.warning(f"Compensated: {undo.description}")
            except Exception as e:
                logger.error(f"Compensation failed ({undo.description}): {e}")
                errors.append(f"cleanup failed: {undo.description}: {e}")
        return errors

    def _abort(self, started: float, meta: QuizCreationMeta, undo_stack: List[_UndoAction],
               errors: List[str], warnings: List[str]) -> CreationResult:
        errors = errors + self._compensate(undo_stack)
        return self._failure(started, meta, errors, warnings)

    def _failure(self, started: float, meta: QuizCreationMeta, errors: List[str],
                 warnings: Optional[List[str]] = None) -> CreationResult:
        processing_ms = (time.perf_counter() - started) * 1000
        self.audit.record_event(
            AuditAction.QUIZ_CREATION, AuditStatus.FAILED, user_id=meta.user_id,
            config={"category_id": meta.category_id, "level": meta.level},
            error={"errors": errors},
            duration_ms=processing_ms,
        )
        return CreationResult(
            success=False,
            errors=tuple(errors),
            warnings=tuple(warnings or ()),
            metadata=CreationMetadata(
                created_at=datetime.utcnow(),
                processing_time_ms=processing_ms,
            ),
        )

    def _question_record(self, question: QuestionDraft, number: int, draft: QuizDraft,
                         meta: QuizCreationMeta) -> Dict[str, Any]:
        difficulty = question.difficulty or meta.difficulty
        return {
            "question_text": question.question_text,
            "question_type": "multipleChoice",
            "options": [
                {"id": f"opt_{number}_{i}", "optionText": o.text, "isCorrect": o.is_correct}
                for i, o in enumerate(question.options)
            ],
            "explanation": question.explanation,
            "category_id": meta.category_id,
            "course_id": meta.course_id,
            "difficulty": difficulty.value if difficulty else "medium",
            "student_level": meta.level,
            "tags": build_question_tags(question, meta.level),
            "generated_by_ai": True,
            "ai_generation_prompt": f"Generated by AI for quiz '{draft.title}' "
                                    f"(question {number}/{len(draft.questions)})",
            "quality_score": question.quality_score,
            "forced_acceptance": question.forced_acceptance,
            "validated_by_expert": False,
            "estimated_time_seconds": estimate_answer_time(question),
            "created_by": meta.user_id,
        }

    def _quiz_record(self, draft: QuizDraft, meta: QuizCreationMeta,
                     question_ids: List[str]) -> Dict[str, Any]:
        return {
            "title": draft.title,
            "description": draft.description,
            "question_ids": list(question_ids),
            "category_id": meta.category_id,
            "course_id": meta.course_id,
            "student_level": meta.level,
            "duration_minutes": draft.estimated_duration_minutes or self.default_duration,
            "passing_score": self.passing_score,
            "quiz_type": "standard",
            "published": meta.published,
            "created_by": meta.user_id,
        }


def create_quiz_from_draft(draft: Union[QuizDraft, Dict[str, Any]], meta: QuizCreationMeta,
                           repository: Optional[QuizRepository] = None,
                           audit: Optional[AuditLogger] = None) -> CreationResult:
    """Create with a freshly wired transaction (SQLAlchemy repository by default)."""
    transaction = QuizCreationTransaction(repository or SQLAlchemyQuizRepository(), audit=audit)
    return transaction.create_quiz_from_draft(draft, meta)
