"""
Level Validator

Applies the PASS or LAS rule table: too-advanced vocabulary, coverage of the
level's core vocabulary, recommended lengths and the difficulty cap.
"""

import logging
from typing import Any, List, Optional

from medquiz.schemas.quiz import DIFFICULTY_ORDER
from medquiz.services.content_validator import read_questions
from medquiz.services.medical_validator import question_text_blob, quiz_text_blob
from medquiz.services.rule_tables import DEFAULT_RULE_TABLES, LevelRule, RuleTables
from medquiz.services.text_similarity import contains_term, normalize
from medquiz.services.validation_types import (
    CheckReport,
    IssueCategory,
    IssueSeverity,
    RecommendationPriority,
    ValidationIssue,
    ValidationRecommendation,
    ValidationWarning,
    WarningCategory,
)

logger = logging.getLogger(__name__)

FORBIDDEN_TERM_PENALTY = 20.0
DIFFICULTY_PENALTY = 10.0
MIN_REQUIRED_COVERAGE = 0.30


class LevelValidator:
    """PASS/LAS specific checks. Unknown or missing levels are a no-op."""

    def __init__(self, rules: RuleTables = DEFAULT_RULE_TABLES):
        self.rules = rules

    def forbidden_terms_in(self, text: str, rule: LevelRule) -> List[str]:
        normalized = normalize(text)
        return [term for term in rule.forbidden_terms if contains_term(normalized, term)]

    def difficulty_exceeds(self, difficulty: Any, rule: LevelRule) -> bool:
        if not isinstance(difficulty, str) or difficulty not in DIFFICULTY_ORDER:
            return False
        return DIFFICULTY_ORDER[difficulty] > DIFFICULTY_ORDER[rule.max_difficulty]

    def validate(self, content: Any, level: Optional[str]) -> CheckReport:
        rule = self.rules.level_rule(level)
        if rule is None:
            return CheckReport(is_valid=True)

        issues: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        recommendations: List[ValidationRecommendation] = []
        penalty = 0.0

        for index, question in read_questions(content):
            path = f"questions[{index}]"

            for term in self.forbidden_terms_in(question_text_blob(question), rule):
                issues.append(ValidationIssue(
                    category=IssueCategory.PEDAGOGICAL,
                    severity=IssueSeverity.MAJOR,
                    field=path,
                    message=f"content too advanced for {rule.name} ('{term}')",
                    suggestion=f"Remove '{term}' or target a higher level",
                ))
                penalty += FORBIDDEN_TERM_PENALTY

            question_text = question.get("questionText")
            if isinstance(question_text, str):
                low, high = rule.question_length
                if not low <= len(question_text) <= high:
                    warnings.append(ValidationWarning(
                        category=WarningCategory.LEVEL_SPECIFIC,
                        message=f"question length {len(question_text)} outside the "
                                f"{rule.name} range {low}-{high}",
                        suggestion=f"Aim for {low}-{high} characters",
                        field=f"{path}.questionText",
                    ))

            explanation = question.get("explanation")
            if isinstance(explanation, str):
                low, high = rule.explanation_length
                if not low <= len(explanation) <= high:
                    warnings.append(ValidationWarning(
                        category=WarningCategory.LEVEL_SPECIFIC,
                        message=f"explanation length {len(explanation)} outside the "
                                f"{rule.name} range {low}-{high}",
                        suggestion=f"Aim for {low}-{high} characters",
                        field=f"{path}.explanation",
                    ))

            difficulty = question.get("difficulty")
            if self.difficulty_exceeds(difficulty, rule):
                issues.append(ValidationIssue(
                    category=IssueCategory.PEDAGOGICAL,
                    severity=IssueSeverity.MINOR,
                    field=f"{path}.difficulty",
                    message=f"difficulty '{difficulty}' above the {rule.name} maximum "
                            f"'{rule.max_difficulty}'",
                    suggestion=f"Lower the difficulty to {rule.max_difficulty} or below",
                ))
                penalty += DIFFICULTY_PENALTY

        normalized = normalize(quiz_text_blob(content))
        covered = [t for t in rule.required_terms if contains_term(normalized, t)]
        coverage = len(covered) / len(rule.required_terms) if rule.required_terms else 1.0
        if coverage < MIN_REQUIRED_COVERAGE:
            warnings.append(ValidationWarning(
                category=WarningCategory.LEVEL_SPECIFIC,
                message=f"only {coverage:.0%} of the core {rule.name} vocabulary is covered",
                suggestion="Use the level's core notions: " + ", ".join(rule.required_terms[:5]),
            ))
            recommendations.append(ValidationRecommendation(
                category="pedagogical",
                priority=RecommendationPriority.MEDIUM,
                action=f"Align the questions with the {rule.name} programme vocabulary",
                rationale=f"Core vocabulary coverage {coverage:.0%} is below "
                          f"{MIN_REQUIRED_COVERAGE:.0%}",
            ))

        if issues:
            logger.debug(f"Level {rule.name}: {len(issues)} issue(s), penalty {penalty}")

        return CheckReport(
            is_valid=not any(i.severity == IssueSeverity.MAJOR for i in issues),
            issues=issues,
            warnings=warnings,
            recommendations=recommendations,
            penalty=penalty,
            details={"level": rule.name, "required_coverage": coverage},
        )
