"""
Quiz Draft Schemas

Pydantic models for AI-generated quiz content before it is persisted.

Field names are snake_case in Python and camelCase on the wire
(``questionText``, ``isCorrect``, ``estimatedDuration``) so the models
round-trip the JSON the language model is asked to produce.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# ENUMS
# =============================================================================

class StudentLevel(str, Enum):
    """Medical-track study level the content targets."""
    PASS = "PASS"  # Parcours d'Accès Spécifique Santé, first year
    LAS = "LAS"    # Licence Accès Santé


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


DIFFICULTY_ORDER = {
    Difficulty.EASY.value: 1,
    Difficulty.MEDIUM.value: 2,
    Difficulty.HARD.value: 3,
}


# =============================================================================
# DRAFTS
# =============================================================================

class Option(BaseModel):
    """One answer choice."""
    model_config = ConfigDict(populate_by_name=True)

    text: str
    is_correct: bool = Field(..., alias="isCorrect")


class QuestionDraft(BaseModel):
    """
    A single multiple-choice question.

    Always exactly 4 options with exactly one correct. The generation
    metadata fields (quality_score, validation_issues, forced_acceptance,
    generation_attempts) never appear in ``to_content()``.
    """
    model_config = ConfigDict(populate_by_name=True)

    question_text: str = Field(..., alias="questionText")
    options: List[Option] = Field(..., min_length=4, max_length=4)
    explanation: str
    difficulty: Optional[Difficulty] = None
    tags: List[str] = Field(default_factory=list)

    # Set by the generation loop
    quality_score: Optional[float] = Field(None, ge=0.0, le=1.0)
    validation_issues: List[str] = Field(default_factory=list)
    forced_acceptance: bool = False
    generation_attempts: int = 0

    @field_validator("tags")
    @classmethod
    def dedupe_tags(cls, tags: List[str]) -> List[str]:
        seen = []
        for tag in tags:
            if tag not in seen:
                seen.append(tag)
        return seen

    @model_validator(mode="after")
    def exactly_one_correct(self) -> "QuestionDraft":
        correct = sum(1 for option in self.options if option.is_correct)
        if correct != 1:
            raise ValueError(f"exactly one correct answer required (found {correct})")
        return self

    @property
    def correct_option(self) -> Option:
        return next(option for option in self.options if option.is_correct)

    def to_content(self) -> Dict[str, Any]:
        """Serialize to the closed JSON shape checked by the structural validator."""
        content: Dict[str, Any] = {
            "questionText": self.question_text,
            "options": [{"text": o.text, "isCorrect": o.is_correct} for o in self.options],
            "explanation": self.explanation,
        }
        if self.difficulty is not None:
            content["difficulty"] = self.difficulty.value
        if self.tags:
            content["tags"] = list(self.tags)
        return content


class _QuizContent(BaseModel):
    """Outer wire envelope, checked before its parts are merged."""
    quiz: Optional[Dict[str, Any]] = None
    questions: Optional[List[Any]] = None


class QuizDraft(BaseModel):
    """A complete quiz: metadata plus 1-20 questions."""
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    estimated_duration_minutes: int = Field(15, ge=1, le=120, alias="estimatedDuration")
    questions: List[QuestionDraft] = Field(..., min_length=1, max_length=20)

    @classmethod
    def from_content(cls, content: Dict[str, Any]) -> "QuizDraft":
        """Build from the ``{"quiz": {...}, "questions": [...]}`` wire shape."""
        envelope = _QuizContent.model_validate(content)
        return cls.model_validate({**(envelope.quiz or {}), "questions": envelope.questions or []})

    def to_content(self) -> Dict[str, Any]:
        return {
            "quiz": {
                "title": self.title,
                "description": self.description,
                "estimatedDuration": self.estimated_duration_minutes,
            },
            "questions": [q.to_content() for q in self.questions],
        }


# =============================================================================
# REQUESTS
# =============================================================================

class QuestionGenerationRequest(BaseModel):
    """What the generation loop should produce."""
    level: StudentLevel
    count: int = Field(1, ge=1, le=20)
    domain: Optional[str] = None
    source_content: Optional[str] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    course_name: Optional[str] = None
    user_id: Optional[str] = None


class QuizCreationMeta(BaseModel):
    """
    Ownership and classification for a quiz about to be persisted.

    Deliberately loose: the creation transaction validates these values
    itself and reports problems as errors instead of raising.
    """
    category_id: Optional[str] = None
    level: str = StudentLevel.PASS.value  # "PASS", "LAS" or "both"
    user_id: Optional[str] = None
    course_id: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    published: bool = False
