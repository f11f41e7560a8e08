"""
Validation Orchestrator

Two layers of scoring over the validators:

QuizQualityValidator - category scoring
    structure 30% / content 25% / medical 25% / pedagogical 20%.
    Valid when there are no critical issues, at most 2 major issues, an
    overall score >= 70 and every category above its own minimum.

ValidationOrchestrator - caller-facing decision
    structural pass 20% / business content 30% / quality score 50%.
    Strict mode requires every layer to be individually valid; lenient mode
    accepts when nothing is critical and either content or quality >= 70.

A structural failure short-circuits both layers with a score of 0.
Instances are built and injected explicitly; nothing here is global.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from medquiz.services.content_validator import BusinessContentValidator, read_questions
from medquiz.services.level_validator import LevelValidator
from medquiz.services.medical_validator import MedicalContentValidator
from medquiz.services.rule_tables import DEFAULT_RULE_TABLES, RuleTables
from medquiz.services.structural_validator import StructuralValidator
from medquiz.services.validation_types import (
    PRIORITY_RANK,
    IssueCategory,
    IssueSeverity,
    RecommendationPriority,
    ValidationIssue,
    ValidationMetadata,
    ValidationRecommendation,
    ValidationResult,
    ValidationSummary,
    ValidationWarning,
    count_severities,
)

logger = logging.getLogger(__name__)

CATEGORIES = ("structure", "content", "medical", "pedagogical")
STRICT = "strict"
LENIENT = "lenient"


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


def _structural_recommendation() -> ValidationRecommendation:
    return ValidationRecommendation(
        category="structure",
        priority=RecommendationPriority.HIGH,
        action="Fix the quiz structure before any other review",
        rationale="The content does not match the required quiz format",
    )


def _content_metadata(content: Any, level: Optional[str], terminology_ratio: float,
                      started: float) -> ValidationMetadata:
    questions = [q for _, q in read_questions(content)]
    question_lengths = [len(q["questionText"]) for q in questions
                        if isinstance(q.get("questionText"), str)]
    explanation_lengths = [len(q["explanation"]) for q in questions
                           if isinstance(q.get("explanation"), str)]
    distribution: Dict[str, int] = {}
    for question in questions:
        difficulty = question.get("difficulty")
        if isinstance(difficulty, str):
            distribution[difficulty] = distribution.get(difficulty, 0) + 1

    return ValidationMetadata(
        level=str(getattr(level, "value", level)) if level else None,
        question_count=len(questions),
        terminology_ratio=round(terminology_ratio, 4),
        average_question_length=(sum(question_lengths) / len(question_lengths)
                                 if question_lengths else 0.0),
        average_explanation_length=(sum(explanation_lengths) / len(explanation_lengths)
                                    if explanation_lengths else 0.0),
        difficulty_distribution=distribution,
        processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
    )


def category_recommendations(category_scores: Dict[str, float],
                             rules: RuleTables) -> List[ValidationRecommendation]:
    """One recommendation per category below its minimum, ranked by configured priority."""
    minimums = rules.thresholds.category_minimums
    below = [c for c in CATEGORIES if category_scores.get(c, 0.0) < minimums[c]]
    below.sort(key=lambda c: (
        PRIORITY_RANK[rules.category_priorities.get(c, RecommendationPriority.LOW)],
        CATEGORIES.index(c),
    ))
    return [
        ValidationRecommendation(
            category=c,
            priority=rules.category_priorities.get(c, RecommendationPriority.LOW),
            action=f"Improve {c} quality",
            rationale=f"{c} score {category_scores.get(c, 0.0):.0f} is below "
                      f"the minimum of {minimums[c]:.0f}",
        )
        for c in below
    ]


def merge_recommendations(first: List[ValidationRecommendation],
                          rest: List[ValidationRecommendation]) -> List[ValidationRecommendation]:
    """``first`` in order, then ``rest`` sorted high to low; duplicate actions dropped."""
    merged: List[ValidationRecommendation] = []
    seen = set()
    for rec in first + sorted(rest, key=lambda r: PRIORITY_RANK[r.priority]):
        if rec.action in seen:
            continue
        seen.add(rec.action)
        merged.append(rec)
    return merged


# =============================================================================
# CATEGORY SCORING
# =============================================================================

class QuizQualityValidator:
    """Runs every validator and scores the four categories."""

    def __init__(
        self,
        structural: Optional[StructuralValidator] = None,
        content: Optional[BusinessContentValidator] = None,
        medical: Optional[MedicalContentValidator] = None,
        level: Optional[LevelValidator] = None,
        rules: RuleTables = DEFAULT_RULE_TABLES,
    ):
        self.rules = rules
        self.structural = structural or StructuralValidator()
        self.content = content or BusinessContentValidator(rules)
        self.medical = medical or MedicalContentValidator(rules)
        self.level = level or LevelValidator(rules)

    def validate(self, content: Any, level: Optional[str] = None) -> ValidationResult:
        started = time.perf_counter()
        structural = self.structural.validate(content)

        if not structural.is_valid:
            return ValidationResult(
                is_valid=False,
                overall_score=0.0,
                category_scores={c: 0.0 for c in CATEGORIES},
                issues=list(structural.issues),
                warnings=list(structural.warnings),
                recommendations=[_structural_recommendation()],
                metadata=_content_metadata(content, level, 0.0, started),
            )

        content_report = self.content.validate(content)
        medical_report = self.medical.validate(content)
        level_report = self.level.validate(content, level)

        scores = {
            "structure": 100.0 - structural.penalty,
            "content": 100.0 - content_report.penalty,
            "medical": 100.0 - medical_report.penalty,
            "pedagogical": 100.0 - level_report.penalty,
        }
        if medical_report.details.get("has_inappropriate_content"):
            scores["medical"] -= self.rules.inappropriate_medical_penalty
            scores["content"] -= self.rules.inappropriate_content_penalty
        scores = {c: _clamp(s) for c, s in scores.items()}

        overall = _clamp(sum(scores[c] * self.rules.category_weights[c] for c in CATEGORIES))

        issues: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        validator_recommendations: List[ValidationRecommendation] = []
        for report in (structural, content_report, medical_report, level_report):
            report.merge_into(issues, warnings, validator_recommendations)

        counts = count_severities(issues)
        thresholds = self.rules.thresholds
        is_valid = (
            counts[IssueSeverity.CRITICAL] <= thresholds.max_critical_issues
            and counts[IssueSeverity.MAJOR] <= thresholds.max_major_issues
            and overall >= thresholds.min_overall_score
            and all(scores[c] >= thresholds.category_minimums[c] for c in CATEGORIES)
        )

        return ValidationResult(
            is_valid=is_valid,
            overall_score=round(overall, 2),
            category_scores=scores,
            issues=issues,
            warnings=warnings,
            recommendations=merge_recommendations(
                category_recommendations(scores, self.rules), validator_recommendations
            ),
            metadata=_content_metadata(
                content, level, medical_report.details.get("terminology_ratio", 0.0), started
            ),
        )


# =============================================================================
# ORCHESTRATOR
# =============================================================================

@dataclass
class QuickValidation:
    can_process: bool
    critical_issues: List[str] = field(default_factory=list)
    estimated_quality: str = "low"  # "high", "medium", "low"


@dataclass
class MedicalContentReport:
    medical_quality_score: float
    terminology_ratio: float
    is_appropriate_for_level: bool
    medical_issues: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass
class InappropriateContentReport:
    has_inappropriate_content: bool
    patterns: List[str] = field(default_factory=list)
    severity: str = "low"  # "high", "medium", "low"
    action_required: bool = False
    issues: List[ValidationIssue] = field(default_factory=list)


def estimate_quality(score: float) -> str:
    if score >= 80:
        return "high"
    if score >= 60:
        return "medium"
    return "low"


class ValidationOrchestrator:
    """
    Caller-facing validation entry point.

    Usage:
        orchestrator = ValidationOrchestrator()
        result = orchestrator.validate(content, level="PASS", mode="strict")
        if result.can_proceed_to_creation:
            ...
    """

    def __init__(
        self,
        structural: Optional[StructuralValidator] = None,
        quality: Optional[QuizQualityValidator] = None,
        rules: RuleTables = DEFAULT_RULE_TABLES,
    ):
        self.rules = rules
        self.structural = structural or StructuralValidator()
        self.quality = quality or QuizQualityValidator(structural=self.structural, rules=rules)

    @property
    def medical(self) -> MedicalContentValidator:
        return self.quality.medical

    def validate(self, content: Any, level: Optional[str] = None,
                 mode: str = LENIENT) -> ValidationResult:
        if mode not in (STRICT, LENIENT):
            logger.warning(f"Unknown validation mode '{mode}', using lenient")
            mode = LENIENT

        started = time.perf_counter()
        structural = self.structural.validate(content)

        if not structural.is_valid:
            logger.info(f"Structural validation failed with {len(structural.issues)} issue(s)")
            result = ValidationResult(
                is_valid=False,
                overall_score=0.0,
                category_scores={c: 0.0 for c in CATEGORIES},
                issues=list(structural.issues),
                warnings=list(structural.warnings),
                recommendations=[_structural_recommendation()],
                metadata=_content_metadata(content, level, 0.0, started),
                component_scores={"structure": 0.0, "content": 0.0, "quality": 0.0},
                can_proceed_to_creation=False,
            )
            result.summary = self._summarize(result)
            return result

        quality = self.quality.validate(content, level)
        content_score = quality.category_scores["content"]
        weights = self.rules.orchestrator_weights
        overall = _clamp(
            100.0 * weights["structure"]
            + content_score * weights["content"]
            + quality.overall_score * weights["quality"]
        )

        has_critical = bool(quality.critical_issues)
        content_valid = (
            not any(i.is_critical and i.category == IssueCategory.CONTENT for i in quality.issues)
            and content_score >= self.rules.thresholds.category_minimums["content"]
        )

        if mode == STRICT:
            is_valid = content_valid and quality.is_valid and not has_critical
            can_proceed = is_valid and not has_critical
        else:
            minimum = self.rules.thresholds.min_overall_score
            is_valid = not has_critical and (
                content_score >= minimum or quality.overall_score >= minimum
            )
            can_proceed = not has_critical

        metadata = quality.metadata
        metadata.processing_time_ms = round((time.perf_counter() - started) * 1000, 2)

        result = ValidationResult(
            is_valid=is_valid,
            overall_score=round(overall, 2),
            category_scores=dict(quality.category_scores),
            issues=quality.issues,
            warnings=quality.warnings,
            recommendations=quality.recommendations,
            metadata=metadata,
            component_scores={
                "structure": 100.0,
                "content": content_score,
                "quality": quality.overall_score,
            },
            can_proceed_to_creation=can_proceed,
        )
        result.summary = self._summarize(result)

        logger.info(
            f"Validation ({mode}) score={result.overall_score} valid={is_valid} "
            f"issues={len(result.issues)} warnings={len(result.warnings)}"
        )
        return result

    def _summarize(self, result: ValidationResult) -> ValidationSummary:
        counts = count_severities(result.issues)
        minimums = self.rules.thresholds.category_minimums
        strengths, weaknesses = [], []

        for category in CATEGORIES:
            score = result.category_scores.get(category, 0.0)
            if score >= minimums[category]:
                strengths.append(f"{category} score {score:.0f}/100")
            else:
                weaknesses.append(f"{category} score {score:.0f}/100 below {minimums[category]:.0f}")

        if counts[IssueSeverity.CRITICAL]:
            weaknesses.append(f"{counts[IssueSeverity.CRITICAL]} critical issue(s)")
        if result.metadata.terminology_ratio >= self.rules.thresholds.min_terminology_ratio:
            strengths.append("rich medical terminology")

        return ValidationSummary(
            total_issues=len(result.issues),
            critical_issues=counts[IssueSeverity.CRITICAL],
            major_issues=counts[IssueSeverity.MAJOR],
            minor_issues=counts[IssueSeverity.MINOR],
            warnings=len(result.warnings),
            strengths=strengths,
            weaknesses=weaknesses,
        )

    # -------------------------------------------------------------------------
    # Specialized checks
    # -------------------------------------------------------------------------

    def quick_validation(self, content: Any) -> QuickValidation:
        """Cheap pre-check: basic shape, content and inappropriate-content issues."""
        if not (isinstance(content, dict) and isinstance(content.get("quiz"), dict)
                and isinstance(content.get("questions"), list) and content["questions"]):
            return QuickValidation(can_process=False, critical_issues=["invalid quiz structure"])

        content_report = self.quality.content.validate(content)
        inappropriate = self.medical.scan_content(content)
        critical = [i.message for i in content_report.issues + inappropriate if i.is_critical]

        score = 100.0 - content_report.penalty
        if inappropriate:
            score -= self.rules.inappropriate_content_penalty

        return QuickValidation(
            can_process=not critical,
            critical_issues=critical,
            estimated_quality=estimate_quality(_clamp(score)),
        )

    def validate_medical_content(self, content: Any,
                                 level: Optional[str] = None) -> MedicalContentReport:
        result = self.quality.validate(content, level)
        return MedicalContentReport(
            medical_quality_score=result.category_scores["medical"],
            terminology_ratio=result.metadata.terminology_ratio,
            is_appropriate_for_level=(
                result.category_scores["pedagogical"]
                >= self.rules.thresholds.category_minimums["pedagogical"]
            ),
            medical_issues=[i.message for i in result.issues if i.category == IssueCategory.MEDICAL],
            suggestions=[r.action for r in result.recommendations if r.category == "medical"],
        )

    def detect_inappropriate_content(self, content: Any) -> InappropriateContentReport:
        """Accepts a quiz dict or plain text."""
        if isinstance(content, str):
            issues = self.medical.scan_inappropriate(content, "text")
        else:
            issues = self.medical.scan_content(content)

        counts = count_severities(issues)
        severity = "low"
        if counts[IssueSeverity.CRITICAL]:
            severity = "high"
        elif counts[IssueSeverity.MAJOR]:
            severity = "medium"

        return InappropriateContentReport(
            has_inappropriate_content=bool(issues),
            patterns=[i.pattern for i in issues if i.pattern],
            severity=severity,
            action_required=severity == "high",
            issues=issues,
        )

    def generate_report(self, result: ValidationResult) -> str:
        """Plain-text report for reviewers."""
        status = "VALID" if result.is_valid else "INVALID"
        lines = [
            "QUIZ VALIDATION REPORT",
            "=" * 40,
            f"Status: {status}",
            f"Overall score: {result.overall_score:.1f}/100",
            f"Can proceed to creation: {'yes' if result.can_proceed_to_creation else 'no'}",
            "",
            "Category scores:",
        ]
        for category in CATEGORIES:
            lines.append(f"  - {category}: {result.category_scores.get(category, 0.0):.1f}")

        if result.component_scores:
            lines.append("")
            lines.append("Components:")
            for name, score in result.component_scores.items():
                lines.append(f"  - {name}: {score:.1f}")

        metadata = result.metadata
        lines.extend([
            "",
            f"Questions: {metadata.question_count}",
            f"Terminology ratio: {metadata.terminology_ratio:.0%}",
            f"Average question length: {metadata.average_question_length:.0f}",
            f"Average explanation length: {metadata.average_explanation_length:.0f}",
        ])

        if result.issues:
            lines.append("")
            lines.append(f"Issues ({len(result.issues)}):")
            for issue in result.issues:
                lines.append(f"  [{issue.severity.value.upper()}] {issue.field}: {issue.message}")
                if issue.suggestion:
                    lines.append(f"      -> {issue.suggestion}")

        if result.warnings:
            lines.append("")
            lines.append(f"Warnings ({len(result.warnings)}):")
            for warning in result.warnings:
                lines.append(f"  - {warning.message}")

        if result.recommendations:
            lines.append("")
            lines.append("Recommendations:")
            for rec in result.recommendations:
                lines.append(f"  ({rec.priority.value}) {rec.action}")

        return "\n".join(lines)


def validate_quiz_content(content: Any, level: Optional[str] = None,
                          mode: str = LENIENT,
                          rules: RuleTables = DEFAULT_RULE_TABLES) -> ValidationResult:
    """Validate with a freshly wired orchestrator."""
    return ValidationOrchestrator(rules=rules).validate(content, level=level, mode=mode)
