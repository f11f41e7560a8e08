"""
Medical Content Validator

Two concerns:
- Terminology ratio: share of the reference medical vocabulary present in
  the quiz text, plus per-question vocabulary and vague-wording checks.
- Inappropriate content: regex categories for dangerous medical advice,
  discrimination, pseudoscience, alarmist tone and generally inappropriate
  language.

Does not penalize on its own. QuizQualityValidator applies the fixed
medical/content penalties when ``has_inappropriate_content`` is set.
"""

import logging
import re
from functools import lru_cache
from typing import Any, Dict, List, Pattern, Tuple

from medquiz.services.content_validator import read_options, read_questions, read_quiz_meta
from medquiz.services.rule_tables import DEFAULT_RULE_TABLES, RuleTables
from medquiz.services.text_similarity import contains_term, normalize, strip_diacritics
from medquiz.services.validation_types import (
    CheckReport,
    IssueCategory,
    RecommendationPriority,
    ValidationIssue,
    ValidationRecommendation,
    ValidationWarning,
    WarningCategory,
)

logger = logging.getLogger(__name__)


@lru_cache(maxsize=256)
def _compile(pattern: str) -> Tuple[Pattern, Pattern]:
    """Accented and accent-free variants of one content pattern."""
    return (
        re.compile(pattern, re.IGNORECASE),
        re.compile(strip_diacritics(pattern), re.IGNORECASE),
    )


def question_text_blob(question: Dict[str, Any]) -> str:
    """Question text, options and explanation joined into one string."""
    parts = [question.get("questionText"), question.get("explanation")]
    parts.extend(text for _, text, _ in read_options(question))
    return " ".join(p for p in parts if isinstance(p, str))


def quiz_text_blob(content: Any) -> str:
    meta = read_quiz_meta(content)
    parts = [meta.get("title"), meta.get("description")]
    parts.extend(question_text_blob(q) for _, q in read_questions(content))
    return " ".join(p for p in parts if isinstance(p, str))


class MedicalContentValidator:
    """Terminology ratio and inappropriate-content scan"""

    def __init__(self, rules: RuleTables = DEFAULT_RULE_TABLES):
        self.rules = rules
        self._reference_terms = rules.reference_terms()

    # -------------------------------------------------------------------------
    # Terminology
    # -------------------------------------------------------------------------

    def found_terms(self, text: str) -> List[str]:
        normalized = normalize(text)
        return [term for term in self._reference_terms if contains_term(normalized, term)]

    def terminology_ratio(self, text: str) -> float:
        """Unique reference terms found / unique reference terms"""
        if not self._reference_terms:
            return 0.0
        return len(self.found_terms(text)) / len(self._reference_terms)

    def has_medical_vocabulary(self, text: str) -> bool:
        normalized = normalize(text)
        return any(contains_term(normalized, term) for term in self._reference_terms)

    def vague_terms_in(self, text: str) -> List[str]:
        normalized = normalize(text)
        return [term for term in self.rules.vague_terms if contains_term(normalized, term)]

    # -------------------------------------------------------------------------
    # Inappropriate content
    # -------------------------------------------------------------------------

    def scan_inappropriate(self, text: str, field: str) -> List[ValidationIssue]:
        """One issue per matching pattern, severity taken from the rule table."""
        if not text:
            return []
        lowered = text.lower()
        unaccented = strip_diacritics(lowered)
        issues = []
        for category, patterns in self.rules.inappropriate_patterns.items():
            for entry in patterns:
                accented, plain = _compile(entry.pattern)
                if accented.search(lowered) or plain.search(unaccented):
                    issues.append(ValidationIssue(
                        category=IssueCategory.MEDICAL,
                        severity=entry.severity,
                        field=field,
                        message=f"inappropriate content ({category})",
                        suggestion=entry.suggestion,
                        pattern=entry.pattern,
                    ))
        return issues

    def scan_content(self, content: Any) -> List[ValidationIssue]:
        """Scan quiz metadata and every question."""
        meta = read_quiz_meta(content)
        meta_text = " ".join(
            v for v in (meta.get("title"), meta.get("description")) if isinstance(v, str)
        )
        issues = self.scan_inappropriate(meta_text, "quiz")
        for index, question in read_questions(content):
            issues.extend(self.scan_inappropriate(question_text_blob(question), f"questions[{index}]"))
        return issues

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate(self, content: Any) -> CheckReport:
        warnings: List[ValidationWarning] = []
        recommendations: List[ValidationRecommendation] = []
        thresholds = self.rules.thresholds

        ratio = self.terminology_ratio(quiz_text_blob(content))
        if ratio < thresholds.min_terminology_ratio:
            warnings.append(ValidationWarning(
                category=WarningCategory.QUALITY,
                message=f"low medical terminology ratio ({ratio:.2f})",
                suggestion="Use more precise medical vocabulary",
            ))
            recommendations.append(ValidationRecommendation(
                category="medical",
                priority=RecommendationPriority.MEDIUM,
                action="Enrich questions and explanations with precise medical terminology",
                rationale=f"Terminology ratio {ratio:.2f} is below "
                          f"{thresholds.min_terminology_ratio:.2f}",
            ))

        questions = read_questions(content)
        with_vocabulary = 0
        for index, question in questions:
            blob = question_text_blob(question)
            if self.has_medical_vocabulary(blob):
                with_vocabulary += 1
            else:
                warnings.append(ValidationWarning(
                    category=WarningCategory.QUALITY,
                    message=f"question {index + 1} uses no reference medical term",
                    suggestion="Anchor the question in a precise medical notion",
                    field=f"questions[{index}]",
                ))

            question_text = question.get("questionText")
            vague = self.vague_terms_in(question_text) if isinstance(question_text, str) else []
            if vague:
                warnings.append(ValidationWarning(
                    category=WarningCategory.STYLE,
                    message=f"question {index + 1} uses vague wording: {', '.join(vague)}",
                    suggestion="Replace vague wording with precise statements",
                    field=f"questions[{index}].questionText",
                ))

        if questions and with_vocabulary / len(questions) < thresholds.min_medical_vocabulary_coverage:
            recommendations.append(ValidationRecommendation(
                category="medical",
                priority=RecommendationPriority.HIGH,
                action="Rewrite questions that lack medical vocabulary",
                rationale=f"Only {with_vocabulary} of {len(questions)} questions use "
                          f"reference medical terms",
            ))

        issues = self.scan_content(content)
        if issues:
            logger.warning(f"Inappropriate content detected: {len(issues)} match(es)")

        return CheckReport(
            is_valid=not any(i.is_critical for i in issues),
            issues=issues,
            warnings=warnings,
            recommendations=recommendations,
            penalty=0.0,
            details={
                "terminology_ratio": ratio,
                "questions_with_medical_terms": with_vocabulary,
                "has_inappropriate_content": bool(issues),
            },
        )
