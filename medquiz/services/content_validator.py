"""
Business Content Validator

Quiz-level checks that a static schema cannot express:
- Duplicate and near-duplicate options
- Distractors that reuse most of the correct answer's vocabulary
- Duplicate question stems inside one quiz
- Question/explanation coherence (lexical)
- Testwiseness style cues (length cue, absolute terms, long options)

Works on raw content and skips anything it cannot read, so it can also
run on partially malformed drafts.
"""

import logging
from typing import Any, Dict, List, Tuple

from medquiz.services.rule_tables import DEFAULT_RULE_TABLES, RuleTables
from medquiz.services.text_similarity import (
    contains_term,
    normalize,
    similarity_ratio,
    token_overlap,
)
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

DUPLICATE_OPTION_PENALTY = 30.0
NEAR_DUPLICATE_PENALTY = 15.0
DISTRACTOR_OVERLAP_PENALTY = 10.0
DUPLICATE_QUESTION_PENALTY = 15.0

LONG_OPTION_CHARS = 180
SHORT_OPTION_CHARS = 8
MIN_TITLE_CHARS = 10
LENGTH_CUE_RATIO = 1.5


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def read_questions(content: Any) -> List[Tuple[int, Dict[str, Any]]]:
    """(index, question) pairs for every question that is a dict."""
    if not isinstance(content, dict) or not isinstance(content.get("questions"), list):
        return []
    return [(i, q) for i, q in enumerate(content["questions"]) if isinstance(q, dict)]


def read_options(question: Dict[str, Any]) -> List[Tuple[int, str, bool]]:
    """(index, text, is_correct) for every readable option."""
    options = question.get("options")
    if not isinstance(options, list):
        return []
    return [
        (i, option["text"], option.get("isCorrect") is True)
        for i, option in enumerate(options)
        if isinstance(option, dict) and isinstance(option.get("text"), str)
    ]


def read_quiz_meta(content: Any) -> Dict[str, Any]:
    if isinstance(content, dict) and isinstance(content.get("quiz"), dict):
        return content["quiz"]
    return {}


class BusinessContentValidator:
    """Option uniqueness, distractor quality and coherence checks."""

    def __init__(self, rules: RuleTables = DEFAULT_RULE_TABLES):
        self.rules = rules

    def validate(self, content: Any) -> CheckReport:
        issues: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        penalty = 0.0

        title = _text(read_quiz_meta(content).get("title")).strip()
        if title and len(title) < MIN_TITLE_CHARS:
            warnings.append(ValidationWarning(
                category=WarningCategory.STYLE,
                message=f"quiz title is short ({len(title)} characters)",
                suggestion="Use a descriptive title of at least 10 characters",
                field="quiz.title",
            ))

        seen_stems: Dict[str, int] = {}
        incoherent = 0
        questions = read_questions(content)

        for index, question in questions:
            question_issues, question_warnings, question_penalty = self.check_question(
                question, f"questions[{index}]"
            )
            issues.extend(question_issues)
            warnings.extend(question_warnings)
            penalty += question_penalty
            if any(w.field == f"questions[{index}].explanation" for w in question_warnings):
                incoherent += 1

            stem = normalize(_text(question.get("questionText")))
            if stem:
                if stem in seen_stems:
                    issues.append(ValidationIssue(
                        category=IssueCategory.CONTENT,
                        severity=IssueSeverity.MAJOR,
                        field=f"questions[{index}].questionText",
                        message=f"duplicate of question {seen_stems[stem] + 1}",
                        suggestion="Replace the repeated question with a new one",
                    ))
                    penalty += DUPLICATE_QUESTION_PENALTY
                else:
                    seen_stems[stem] = index

        recommendations = []
        if questions and incoherent > len(questions) / 2:
            recommendations.append(ValidationRecommendation(
                category="content",
                priority=RecommendationPriority.MEDIUM,
                action="Make explanations restate the key notions of their question",
                rationale=f"{incoherent} of {len(questions)} explanations share little vocabulary "
                          f"with their question",
            ))

        return CheckReport(
            is_valid=not any(i.is_critical for i in issues),
            issues=issues,
            warnings=warnings,
            recommendations=recommendations,
            penalty=penalty,
        )

    def check_question(self, question: Dict[str, Any],
                       path: str) -> Tuple[List[ValidationIssue], List[ValidationWarning], float]:
        """Option and coherence checks for one question."""
        issues: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        penalty = 0.0
        similarity = self.rules.similarity

        options = read_options(question)

        # Duplicates and near duplicates, each pair reported once
        for a in range(len(options)):
            for b in range(a + 1, len(options)):
                index_a, text_a, _ = options[a]
                index_b, text_b, _ = options[b]
                norm_a, norm_b = normalize(text_a), normalize(text_b)
                if not norm_a or not norm_b:
                    continue
                if norm_a == norm_b:
                    issues.append(ValidationIssue(
                        category=IssueCategory.CONTENT,
                        severity=IssueSeverity.CRITICAL,
                        field=f"{path}.options[{index_b}]",
                        message=f"duplicate options ({index_a + 1} and {index_b + 1})",
                        suggestion="Every option must be distinct",
                    ))
                    penalty += DUPLICATE_OPTION_PENALTY
                elif similarity_ratio(text_a, text_b) < similarity.near_duplicate_ratio:
                    issues.append(ValidationIssue(
                        category=IssueCategory.CONTENT,
                        severity=IssueSeverity.MAJOR,
                        field=f"{path}.options[{index_b}]",
                        message=f"near-duplicate options ({index_a + 1} and {index_b + 1})",
                        suggestion="Differentiate the wording of these options",
                    ))
                    penalty += NEAR_DUPLICATE_PENALTY

        correct = [o for o in options if o[2]]
        if len(correct) == 1:
            correct_index, correct_text, _ = correct[0]
            distractors = [o for o in options if not o[2]]
            for index, text, _ in distractors:
                if normalize(text) == normalize(correct_text):
                    continue  # already reported as duplicate
                overlap = token_overlap(correct_text, text)
                if overlap >= similarity.distractor_overlap:
                    issues.append(ValidationIssue(
                        category=IssueCategory.CONTENT,
                        severity=IssueSeverity.MAJOR,
                        field=f"{path}.options[{index}]",
                        message=f"distractor too close to the correct answer ({overlap:.0%} shared vocabulary)",
                        suggestion="Rewrite the distractor so it differs from the correct answer",
                    ))
                    penalty += DISTRACTOR_OVERLAP_PENALTY
            warnings.extend(self._length_cue(correct_text, [d[1] for d in distractors], path,
                                             correct_index))

        for index, text, is_correct in options:
            if len(text) > LONG_OPTION_CHARS:
                warnings.append(ValidationWarning(
                    category=WarningCategory.STYLE,
                    message=f"option {index + 1} is long ({len(text)} characters)",
                    suggestion="Keep options concise",
                    field=f"{path}.options[{index}]",
                ))
            elif len(text.strip()) < SHORT_OPTION_CHARS:
                warnings.append(ValidationWarning(
                    category=WarningCategory.STYLE,
                    message=f"option {index + 1} is very short",
                    suggestion="Give each option enough context to be plausible",
                    field=f"{path}.options[{index}]",
                ))
            normalized = normalize(text)
            for term in self.rules.absolute_terms:
                if contains_term(normalized, term):
                    warnings.append(ValidationWarning(
                        category=WarningCategory.STYLE,
                        message=f"option {index + 1} uses the absolute term '{term}'",
                        suggestion="Absolute wording makes options easy to eliminate"
                        if not is_correct else "Check that the absolute claim is really correct",
                        field=f"{path}.options[{index}]",
                    ))
                    break

        question_text = _text(question.get("questionText"))
        explanation = _text(question.get("explanation"))
        if question_text and explanation:
            coherence = token_overlap(question_text, explanation)
            if coherence < similarity.min_coherence:
                warnings.append(ValidationWarning(
                    category=WarningCategory.QUALITY,
                    message=f"explanation shares little vocabulary with the question "
                            f"(coherence {coherence:.2f})",
                    suggestion="Make the explanation address the notions asked in the question",
                    field=f"{path}.explanation",
                ))

        return issues, warnings, penalty

    def _length_cue(self, correct_text: str, distractors: List[str], path: str,
                    correct_index: int) -> List[ValidationWarning]:
        """Flag a correct answer much longer than every distractor"""
        if not distractors:
            return []
        longest_distractor = max(len(d) for d in distractors)
        if longest_distractor and len(correct_text) > longest_distractor * LENGTH_CUE_RATIO:
            return [ValidationWarning(
                category=WarningCategory.STYLE,
                message="correct answer is much longer than all distractors",
                suggestion="Shorten the correct answer or lengthen the distractors",
                field=f"{path}.options[{correct_index}]",
            )]
        return []
