"""
Single-question validator used by the generation loop.

A lighter pass than the quiz orchestrator: one question, no quiz context,
scored 0-100 from fixed penalties. Reuses the content, medical and level
validators for option, vocabulary and inappropriate-content checks.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from medquiz.schemas.quiz import QuestionDraft
from medquiz.services.content_validator import BusinessContentValidator, read_options
from medquiz.services.level_validator import LevelValidator
from medquiz.services.medical_validator import MedicalContentValidator, question_text_blob
from medquiz.services.rule_tables import DEFAULT_RULE_TABLES, RuleTables
from medquiz.services.validation_types import (
    IssueCategory,
    IssueSeverity,
    ValidationIssue,
    ValidationWarning,
)

logger = logging.getLogger(__name__)

MIN_QUESTION_CHARS = 20
MIN_EXPLANATION_CHARS = 50
MIN_AVERAGE_OPTION_CHARS = 10

SHORT_QUESTION_PENALTY = 30
SHORT_EXPLANATION_PENALTY = 20
OPTION_COUNT_PENALTY = 50
CORRECT_COUNT_PENALTY = 50
NO_MEDICAL_TERMS_PENALTY = 15
SHORT_OPTIONS_PENALTY = 10
FORBIDDEN_TERM_PENALTY = 10

INAPPROPRIATE_PENALTIES = {
    IssueSeverity.CRITICAL: 50,
    IssueSeverity.MAJOR: 20,
    IssueSeverity.MINOR: 5,
}


@dataclass
class QuestionValidation:
    score: float                                     # 0-100
    issues: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)

    @property
    def has_critical(self) -> bool:
        return any(issue.is_critical for issue in self.issues)

    @property
    def issue_messages(self) -> List[str]:
        return [issue.message for issue in self.issues]


class QuestionDraftValidator:
    """Scores one generated question."""

    def __init__(
        self,
        rules: RuleTables = DEFAULT_RULE_TABLES,
        content: Optional[BusinessContentValidator] = None,
        medical: Optional[MedicalContentValidator] = None,
        level: Optional[LevelValidator] = None,
    ):
        self.rules = rules
        self.content = content or BusinessContentValidator(rules)
        self.medical = medical or MedicalContentValidator(rules)
        self.level = level or LevelValidator(rules)

    def validate(self, draft: Union[QuestionDraft, Dict[str, Any]],
                 level: Optional[str] = None) -> QuestionValidation:
        question = draft.to_content() if isinstance(draft, QuestionDraft) else draft
        if not isinstance(question, dict):
            return QuestionValidation(score=0.0, issues=[ValidationIssue(
                category=IssueCategory.STRUCTURE,
                severity=IssueSeverity.CRITICAL,
                field="question",
                message="question must be an object",
            )])

        issues: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        score = 100.0

        def add(severity, category, field_name, message, penalty, suggestion=""):
            nonlocal score
            issues.append(ValidationIssue(
                category=category, severity=severity, field=field_name,
                message=message, suggestion=suggestion,
            ))
            score -= penalty

        question_text = question.get("questionText")
        if not isinstance(question_text, str) or len(question_text.strip()) < MIN_QUESTION_CHARS:
            add(IssueSeverity.MAJOR, IssueCategory.STRUCTURE, "questionText",
                "question too short or empty", SHORT_QUESTION_PENALTY,
                f"Write at least {MIN_QUESTION_CHARS} characters")

        explanation = question.get("explanation")
        if not isinstance(explanation, str) or len(explanation.strip()) < MIN_EXPLANATION_CHARS:
            add(IssueSeverity.MAJOR, IssueCategory.STRUCTURE, "explanation",
                "explanation too short", SHORT_EXPLANATION_PENALTY,
                f"Write at least {MIN_EXPLANATION_CHARS} characters")

        options = read_options(question)
        raw_options = question.get("options")
        option_count = len(raw_options) if isinstance(raw_options, list) else 0
        if option_count != 4:
            add(IssueSeverity.CRITICAL, IssueCategory.STRUCTURE, "options",
                f"exactly 4 options required (found {option_count})", OPTION_COUNT_PENALTY)

        correct = sum(1 for _, _, is_correct in options if is_correct)
        if correct != 1:
            add(IssueSeverity.CRITICAL, IssueCategory.STRUCTURE, "options",
                f"exactly one correct answer (found {correct})", CORRECT_COUNT_PENALTY)

        if options:
            average = sum(len(text) for _, text, _ in options) / len(options)
            if average < MIN_AVERAGE_OPTION_CHARS:
                add(IssueSeverity.MINOR, IssueCategory.CONTENT, "options",
                    "answer options too short", SHORT_OPTIONS_PENALTY,
                    "Give options enough detail to be plausible")

        # Duplicates, near duplicates, distractor overlap, coherence, style
        content_issues, content_warnings, content_penalty = self.content.check_question(
            question, "question"
        )
        issues.extend(content_issues)
        warnings.extend(content_warnings)
        score -= content_penalty

        blob = question_text_blob(question)
        if not self.medical.has_medical_vocabulary(blob):
            add(IssueSeverity.MINOR, IssueCategory.MEDICAL, "questionText",
                "no specific medical terminology", NO_MEDICAL_TERMS_PENALTY,
                "Anchor the question in a precise medical notion")

        for issue in self.medical.scan_inappropriate(blob, "question"):
            issues.append(issue)
            score -= INAPPROPRIATE_PENALTIES[issue.severity]

        rule = self.rules.level_rule(level)
        if rule is not None:
            for term in self.level.forbidden_terms_in(blob, rule):
                add(IssueSeverity.MAJOR, IssueCategory.PEDAGOGICAL, "question",
                    f"content too advanced for {rule.name} ('{term}')", FORBIDDEN_TERM_PENALTY,
                    f"Remove '{term}'")

        return QuestionValidation(score=max(0.0, min(100.0, score)), issues=issues,
                                  warnings=warnings)
