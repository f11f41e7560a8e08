"""
Structural Validator

Checks raw, untrusted quiz content against a closed schema before any
other validator looks at it. The schema is expressed as strict pydantic
models with extra fields forbidden; pydantic errors are mapped to
ValidationIssues with field paths.

Severity:
- quiz.title / quiz.description length or type: major
- quiz.estimatedDuration range or type: minor
- everything else (missing fields, unknown fields, questions, options): critical
- zero or several correct answers in a question: critical (+25 penalty)
"""

import copy
import logging
from typing import Annotated, Any, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError

from medquiz.services.validation_types import (
    CheckReport,
    IssueCategory,
    IssueSeverity,
    ValidationIssue,
    ValidationWarning,
    WarningCategory,
)

logger = logging.getLogger(__name__)


# =============================================================================
# CLOSED SCHEMA
# =============================================================================

_CLOSED = ConfigDict(extra="forbid")

TagText = Annotated[str, StringConstraints(strict=True, min_length=2, max_length=50)]


class _OptionSchema(BaseModel):
    model_config = _CLOSED

    text: str = Field(..., min_length=5, max_length=200, strict=True)
    isCorrect: bool = Field(..., strict=True)


class _QuestionSchema(BaseModel):
    model_config = _CLOSED

    questionText: str = Field(..., min_length=20, max_length=500, strict=True)
    options: List[_OptionSchema] = Field(..., min_length=4, max_length=4)
    explanation: str = Field(..., min_length=50, max_length=1000, strict=True)
    difficulty: Optional[Literal["easy", "medium", "hard"]] = None
    tags: Optional[List[TagText]] = None


class _QuizMetaSchema(BaseModel):
    model_config = _CLOSED

    title: str = Field(..., min_length=10, max_length=100, strict=True)
    description: str = Field(..., min_length=20, max_length=300, strict=True)
    estimatedDuration: float = Field(..., ge=1, le=120, strict=True)


class _QuizContentSchema(BaseModel):
    model_config = _CLOSED

    quiz: _QuizMetaSchema
    questions: List[_QuestionSchema] = Field(..., min_length=1, max_length=20)


# =============================================================================
# VALIDATOR
# =============================================================================

SEVERITY_PENALTIES = {
    IssueSeverity.CRITICAL: 30.0,
    IssueSeverity.MAJOR: 15.0,
    IssueSeverity.MINOR: 5.0,
}
CORRECT_COUNT_PENALTY = 25.0

_MAJOR_QUIZ_FIELDS = ("title", "description")
_MINOR_QUIZ_FIELDS = ("estimatedDuration",)


def format_path(loc: Tuple[Any, ...]) -> str:
    """('questions', 0, 'options', 2, 'text') -> 'questions[0].options[2].text'"""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "root"


class StructuralValidator:
    """
    Validates the ``{"quiz": {...}, "questions": [...]}`` shape.

    Pure and total: any input, including None, strings or lists, yields a
    CheckReport. ``is_valid`` is True only when no issue at all was found.
    """

    def validate(self, content: Any) -> CheckReport:
        issues: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        penalty = 0.0

        try:
            _QuizContentSchema.model_validate(content)
        except ValidationError as exc:
            for error in exc.errors():
                issues.append(self._issue_from_error(error))

        for index, found in self._correct_answer_counts(content):
            if found != 1:
                issues.append(ValidationIssue(
                    category=IssueCategory.STRUCTURE,
                    severity=IssueSeverity.CRITICAL,
                    field=f"questions[{index}].options",
                    message=f"exactly one correct answer (found {found})",
                    suggestion="Mark exactly one option with isCorrect: true",
                ))
                penalty += CORRECT_COUNT_PENALTY

        penalty += sum(SEVERITY_PENALTIES[issue.severity] for issue in issues)

        if isinstance(content, dict) and isinstance(content.get("questions"), list):
            untagged = [
                i for i, q in enumerate(content["questions"])
                if isinstance(q, dict) and "difficulty" not in q
            ]
            if untagged:
                warnings.append(ValidationWarning(
                    category=WarningCategory.OPTIMIZATION,
                    message=f"{len(untagged)} question(s) without a declared difficulty",
                    suggestion="Declare easy, medium or hard so level rules can be checked",
                    field="questions",
                ))

        if issues:
            logger.debug(f"Structural validation found {len(issues)} issue(s)")

        return CheckReport(
            is_valid=not issues,
            issues=issues,
            warnings=warnings,
            penalty=penalty,
        )

    def _correct_answer_counts(self, content: Any) -> List[Tuple[int, int]]:
        """Count isCorrect == True per question, skipping anything malformed."""
        counts = []
        if not isinstance(content, dict) or not isinstance(content.get("questions"), list):
            return counts
        for index, question in enumerate(content["questions"]):
            if not isinstance(question, dict) or not isinstance(question.get("options"), list):
                continue
            found = sum(
                1 for option in question["options"]
                if isinstance(option, dict) and option.get("isCorrect") is True
            )
            counts.append((index, found))
        return counts

    def _issue_from_error(self, error: dict) -> ValidationIssue:
        loc = tuple(error.get("loc", ()))
        error_type = error.get("type", "")
        path = format_path(loc)
        name = str(loc[-1]) if loc and not isinstance(loc[-1], int) else path
        ctx = error.get("ctx") or {}

        severity = IssueSeverity.CRITICAL
        if error_type not in ("missing", "extra_forbidden") and len(loc) >= 2 and loc[0] == "quiz":
            if loc[1] in _MAJOR_QUIZ_FIELDS:
                severity = IssueSeverity.MAJOR
            elif loc[1] in _MINOR_QUIZ_FIELDS:
                severity = IssueSeverity.MINOR

        message, suggestion = self._describe(error_type, name, path, ctx, error)
        return ValidationIssue(
            category=IssueCategory.STRUCTURE,
            severity=severity,
            field=path,
            message=message,
            suggestion=suggestion,
        )

    def _describe(self, error_type: str, name: str, path: str, ctx: dict,
                  error: dict) -> Tuple[str, str]:
        if error_type == "missing":
            return f"{name} is required", f"Add the '{name}' field"
        if error_type == "extra_forbidden":
            return f"unknown field '{name}'", f"Remove '{name}'; the schema is closed"
        if error_type == "string_too_short":
            minimum = ctx.get("min_length")
            return (f"{name} too short (min {minimum} characters)",
                    f"Expand {name} to at least {minimum} characters")
        if error_type == "string_too_long":
            maximum = ctx.get("max_length")
            return (f"{name} too long (max {maximum} characters)",
                    f"Shorten {name} to at most {maximum} characters")
        if error_type in ("too_short", "too_long"):
            actual = ctx.get("actual_length")
            if name == "options":
                return (f"exactly 4 options required (found {actual})",
                        "Provide exactly 4 answer options")
            if name == "questions":
                return (f"between 1 and 20 questions required (found {actual})",
                        "Provide between 1 and 20 questions")
            return f"{name} has the wrong number of items ({actual})", "Fix the item count"
        if error_type in ("greater_than_equal", "less_than_equal"):
            return f"{name} must be between 1 and 120", "Use a duration between 1 and 120 minutes"
        if error_type == "literal_error":
            return (f"{name} must be one of easy, medium, hard",
                    "Use easy, medium or hard")
        if error_type == "model_type":
            return f"{path} must be an object", "Provide a JSON object"
        return f"{path}: {error.get('msg', 'invalid value')}", f"Fix the type of {name}"


def sanitize(content: Any) -> Any:
    """
    Deep copy with every string trimmed and internal whitespace collapsed.

    Non-string values are copied unchanged; dict keys are left alone.
    """
    if isinstance(content, str):
        return " ".join(content.split())
    if isinstance(content, dict):
        return {key: sanitize(value) for key, value in content.items()}
    if isinstance(content, list):
        return [sanitize(value) for value in content]
    return copy.deepcopy(content)
