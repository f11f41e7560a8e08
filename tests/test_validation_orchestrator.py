"""
Tests for quiz scoring and the validation orchestrator.

Tests cover:
- Category scoring and weighting
- Structural short-circuit
- Strict and lenient decision modes
- Inappropriate content penalties
- Quick checks, medical report and text report
"""

import pytest

from medquiz.services.rule_tables import RuleTables
from medquiz.services.validation_orchestrator import (
    QuizQualityValidator,
    ValidationOrchestrator,
    category_recommendations,
    estimate_quality,
    validate_quiz_content,
)
from medquiz.services.validation_types import IssueCategory, IssueSeverity, RecommendationPriority


ADVANCED_SENTENCE = (
    " La chirurgie, la prescription et la pathologie complexe relèvent "
    "d'années ultérieures."
)


@pytest.fixture
def orchestrator() -> ValidationOrchestrator:
    return ValidationOrchestrator()


@pytest.fixture
def quality_validator() -> QuizQualityValidator:
    return QuizQualityValidator()


# =============================================================================
# Category Scoring
# =============================================================================

class TestQuizQualityValidator:
    """Test category scoring"""

    @pytest.mark.unit
    def test_sample_quiz_scores_full_marks(self, quality_validator, sample_quiz_content):
        """A clean quiz scores 100 in every category"""
        result = quality_validator.validate(sample_quiz_content, "PASS")

        assert result.is_valid is True
        assert result.overall_score == 100.0
        assert set(result.category_scores.values()) == {100.0}
        assert result.metadata.question_count == 2
        assert result.metadata.difficulty_distribution == {"easy": 1, "medium": 1}

    @pytest.mark.unit
    def test_structural_failure_scores_zero(self, quality_validator, sample_quiz_content):
        """Nothing else runs when the structure is invalid"""
        sample_quiz_content["quiz"]["title"] = "Court"

        result = quality_validator.validate(sample_quiz_content, "PASS")

        assert result.is_valid is False
        assert result.overall_score == 0.0
        assert set(result.category_scores.values()) == {0.0}
        assert result.recommendations[0].category == "structure"

    @pytest.mark.unit
    def test_inappropriate_content_penalties(self, quality_validator, sample_quiz_content):
        """Inappropriate content costs 50 medical and 30 content points once"""
        sample_quiz_content["questions"][0]["questionText"] += " Et en cas d'auto-médication ?"

        result = quality_validator.validate(sample_quiz_content, "PASS")

        assert result.category_scores["medical"] == 50.0
        assert result.category_scores["content"] == 70.0
        # 100*0.30 + 70*0.25 + 50*0.25 + 100*0.20
        assert result.overall_score == pytest.approx(80.0)
        assert result.is_valid is False

    @pytest.mark.unit
    def test_too_many_major_issues(self, quality_validator, sample_quiz_content):
        """Three major issues make the quiz invalid despite a good overall score"""
        sample_quiz_content["questions"][1]["explanation"] += ADVANCED_SENTENCE

        result = quality_validator.validate(sample_quiz_content, "PASS")

        majors = result.issues_with_severity(IssueSeverity.MAJOR)
        assert len(majors) == 3
        assert result.category_scores["pedagogical"] == 40.0
        assert result.overall_score == pytest.approx(88.0)
        assert result.is_valid is False
        assert result.recommendations[0].category == "pedagogical"

    @pytest.mark.unit
    def test_custom_weights(self, sample_quiz_content):
        """Injected rule tables change the weighting"""
        rules = RuleTables(category_weights={
            "structure": 0.0, "content": 0.0, "medical": 0.0, "pedagogical": 1.0,
        })
        sample_quiz_content["questions"][0]["difficulty"] = "hard"

        result = QuizQualityValidator(rules=rules).validate(sample_quiz_content, "PASS")

        assert result.overall_score == pytest.approx(90.0)

    @pytest.mark.unit
    def test_category_recommendations_ranked_by_priority(self):
        """High-priority categories come first"""
        scores = {"structure": 100.0, "content": 50.0, "medical": 50.0, "pedagogical": 100.0}

        recommendations = category_recommendations(scores, RuleTables())

        assert [r.category for r in recommendations] == ["medical", "content"]
        assert recommendations[0].priority == RecommendationPriority.HIGH


# =============================================================================
# Orchestrator
# =============================================================================

class TestValidationOrchestrator:
    """Test the caller-facing decision"""

    @pytest.mark.unit
    def test_valid_quiz_in_strict_mode(self, orchestrator, sample_quiz_content):
        """A clean quiz passes strict validation and may be created"""
        result = orchestrator.validate(sample_quiz_content, level="PASS", mode="strict")

        assert result.is_valid is True
        assert result.can_proceed_to_creation is True
        assert result.overall_score == 100.0
        assert result.component_scores == {"structure": 100.0, "content": 100.0, "quality": 100.0}
        assert result.summary.critical_issues == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("mode", ["strict", "lenient"])
    def test_short_title_blocks_everything(self, orchestrator, sample_quiz_content, mode):
        """A structural failure scores zero in every mode"""
        sample_quiz_content["quiz"]["title"] = "Court"

        result = orchestrator.validate(sample_quiz_content, level="PASS", mode=mode)

        assert result.is_valid is False
        assert result.overall_score == 0.0
        assert result.can_proceed_to_creation is False
        assert any("title too short" in i.message for i in result.issues)
        assert result.summary is not None

    @pytest.mark.unit
    @pytest.mark.parametrize("mode", ["strict", "lenient"])
    def test_self_medication_is_rejected(self, orchestrator, sample_quiz_content, mode):
        """Critical medical content is rejected in both modes"""
        sample_quiz_content["questions"][0]["questionText"] = (
            "Quelle structure du cœur faut-il surveiller en cas d'auto-médication ?"
        )

        result = orchestrator.validate(sample_quiz_content, level="PASS", mode=mode)

        critical = result.critical_issues
        assert critical
        assert critical[0].category == IssueCategory.MEDICAL
        assert critical[0].pattern
        assert result.is_valid is False
        assert result.can_proceed_to_creation is False

    @pytest.mark.unit
    def test_forbidden_term_is_reported(self, orchestrator, sample_quiz_content):
        """A PASS-forbidden term is a major pedagogical issue, not a blocker"""
        sample_quiz_content["questions"][1]["explanation"] += (
            " La prescription médicamenteuse n'est pas abordée ici."
        )

        result = orchestrator.validate(sample_quiz_content, level="PASS", mode="strict")

        issue = result.issues[0]
        assert issue.category == IssueCategory.PEDAGOGICAL
        assert issue.severity == IssueSeverity.MAJOR
        assert "too advanced for PASS" in issue.message
        # 100*0.2 + 100*0.3 + 96*0.5
        assert result.overall_score == pytest.approx(98.0)
        assert result.is_valid is True

    @pytest.mark.unit
    def test_lenient_accepts_what_strict_rejects(self, orchestrator, sample_quiz_content):
        """Lenient mode only needs no critical issue and one good score"""
        sample_quiz_content["questions"][1]["explanation"] += ADVANCED_SENTENCE

        strict = orchestrator.validate(sample_quiz_content, level="PASS", mode="strict")
        lenient = orchestrator.validate(sample_quiz_content, level="PASS", mode="lenient")

        assert strict.is_valid is False
        assert strict.can_proceed_to_creation is False
        assert lenient.is_valid is True
        assert lenient.can_proceed_to_creation is True
        assert strict.overall_score == lenient.overall_score

    @pytest.mark.unit
    def test_unknown_mode_falls_back_to_lenient(self, orchestrator, sample_quiz_content):
        """An unknown mode behaves like lenient"""
        sample_quiz_content["questions"][1]["explanation"] += ADVANCED_SENTENCE

        result = orchestrator.validate(sample_quiz_content, level="PASS", mode="paranoid")

        assert result.is_valid is True

    @pytest.mark.unit
    @pytest.mark.parametrize("content", [None, [], "quiz", {}, {"quiz": {}, "questions": []}])
    def test_any_input_yields_a_result(self, orchestrator, content):
        """The orchestrator never raises on malformed input"""
        result = orchestrator.validate(content, level="PASS")

        assert result.is_valid is False
        assert result.overall_score == 0.0
        assert 0.0 <= result.overall_score <= 100.0

    @pytest.mark.unit
    def test_convenience_function(self, sample_quiz_content):
        """validate_quiz_content wires a fresh orchestrator"""
        result = validate_quiz_content(sample_quiz_content, level="PASS", mode="strict")

        assert result.is_valid is True

    @pytest.mark.unit
    def test_to_dict_uses_plain_values(self, orchestrator, sample_quiz_content):
        """Enums and datetimes are converted"""
        sample_quiz_content["quiz"]["title"] = "Court"

        data = orchestrator.validate(sample_quiz_content).to_dict()

        assert data["issues"][0]["severity"] == "major"
        assert data["issues"][0]["category"] == "structure"
        assert isinstance(data["metadata"]["validated_at"], str)


class TestSpecializedChecks:
    """Test quick validation, medical report, inappropriate detection and text report"""

    @pytest.mark.unit
    def test_quick_validation_on_clean_quiz(self, orchestrator, sample_quiz_content):
        """A clean quiz can be processed and is estimated high quality"""
        quick = orchestrator.quick_validation(sample_quiz_content)

        assert quick.can_process is True
        assert quick.critical_issues == []
        assert quick.estimated_quality == "high"

    @pytest.mark.unit
    def test_quick_validation_on_duplicate_options(self, orchestrator, sample_quiz_content):
        """Duplicate options stop processing"""
        sample_quiz_content["questions"][0]["options"][3]["text"] = "Le faisceau de His"

        quick = orchestrator.quick_validation(sample_quiz_content)

        assert quick.can_process is False
        assert "duplicate options (3 and 4)" in quick.critical_issues

    @pytest.mark.unit
    def test_quick_validation_on_bad_shape(self, orchestrator):
        """Content without questions cannot be processed"""
        quick = orchestrator.quick_validation({"quiz": {}, "questions": []})

        assert quick.can_process is False
        assert quick.estimated_quality == "low"

    @pytest.mark.unit
    def test_estimate_quality_bands(self):
        """80 and 60 are the band limits"""
        assert estimate_quality(80) == "high"
        assert estimate_quality(79.9) == "medium"
        assert estimate_quality(60) == "medium"
        assert estimate_quality(59) == "low"

    @pytest.mark.unit
    def test_validate_medical_content(self, orchestrator, sample_quiz_content):
        """Medical report on a clean PASS quiz"""
        report = orchestrator.validate_medical_content(sample_quiz_content, "PASS")

        assert report.medical_quality_score == 100.0
        assert report.is_appropriate_for_level is True
        assert report.medical_issues == []

    @pytest.mark.unit
    def test_detect_inappropriate_text(self, orchestrator):
        """Critical patterns require action"""
        report = orchestrator.detect_inappropriate_content(
            "Il suffit d'arrêter traitement dès que les symptômes disparaissent."
        )

        assert report.has_inappropriate_content is True
        assert report.severity == "high"
        assert report.action_required is True
        assert report.patterns

    @pytest.mark.unit
    def test_detect_alarmist_text(self, orchestrator):
        """Major-only matches are medium severity"""
        report = orchestrator.detect_inappropriate_content("Pas de panique en salle d'examen")

        assert report.severity == "medium"
        assert report.action_required is False

    @pytest.mark.unit
    def test_detect_on_clean_quiz(self, orchestrator, sample_quiz_content):
        """A clean quiz has nothing to report"""
        report = orchestrator.detect_inappropriate_content(sample_quiz_content)

        assert report.has_inappropriate_content is False
        assert report.severity == "low"
        assert report.patterns == []

    @pytest.mark.unit
    def test_generate_report(self, orchestrator, sample_quiz_content):
        """The text report lists status, scores and issues"""
        sample_quiz_content["questions"][0]["options"][3]["text"] = "Le faisceau de His"
        result = orchestrator.validate(sample_quiz_content, level="PASS")

        report = orchestrator.generate_report(result)

        assert report.startswith("QUIZ VALIDATION REPORT")
        assert "Status: INVALID" in report
        assert "[CRITICAL] questions[0].options[3]: duplicate options (3 and 4)" in report
