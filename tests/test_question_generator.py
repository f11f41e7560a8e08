"""
Tests for the generate-validate-retry loop.

Tests cover:
- Parsing raw model responses
- Single-question scoring
- Acceptance, retry with feedback and forced acceptance
- Failure when no attempt parses
- Audit events
"""

import json
import pytest
from unittest.mock import MagicMock

from medquiz.schemas.quiz import Difficulty, QuestionGenerationRequest, StudentLevel
from medquiz.services.audit_logger import AuditAction, AuditLogger, AuditStatus
from medquiz.services.errors import GenerationAttemptError, QuestionGenerationError
from medquiz.services.prompts import build_question_prompt
from medquiz.services.question_generator import (
    GenerationConfig,
    GenerationState,
    QuestionGenerator,
    generate_questions,
    parse_question_response,
)
from medquiz.services.question_validator import QuestionDraftValidator
from tests.mocks import (
    POOR_QUESTION,
    SAMPLE_QUESTION_BAROREFLEX,
    SAMPLE_QUESTION_SINUS_NODE,
    WEAK_QUESTION,
    ScriptedTextGenerator,
    question_json,
)


@pytest.fixture
def pass_request() -> QuestionGenerationRequest:
    return QuestionGenerationRequest(level=StudentLevel.PASS, count=1, domain="physiologie",
                                     user_id="user-123")


def _generator(responses, audit=None, max_attempts=3):
    text_generator = ScriptedTextGenerator(responses)
    generator = QuestionGenerator(
        text_generator,
        audit=audit or MagicMock(spec=AuditLogger),
        generation_config=GenerationConfig(max_attempts=max_attempts),
    )
    return generator, text_generator


# =============================================================================
# Response Parsing
# =============================================================================

class TestParseQuestionResponse:
    """Test turning raw model output into drafts"""

    @pytest.mark.unit
    def test_plain_json(self):
        """A clean JSON question parses"""
        draft = parse_question_response(question_json())

        assert draft.question_text == SAMPLE_QUESTION_SINUS_NODE["questionText"]
        assert draft.correct_option.text == "Le nœud sinusal (sino-atrial)"
        assert draft.difficulty == Difficulty.EASY

    @pytest.mark.unit
    def test_json_inside_prose_and_fences(self):
        """Surrounding text and code fences are ignored"""
        raw = "Voici la question :\n```json\n" + question_json() + "\n```\nBonne révision !"

        draft = parse_question_response(raw)

        assert len(draft.options) == 4

    @pytest.mark.unit
    def test_alternate_field_names(self):
        """optionText and estimatedDifficulty are accepted"""
        data = dict(SAMPLE_QUESTION_BAROREFLEX)
        data["options"] = [
            {"optionText": o["text"], "isCorrect": o["isCorrect"]} for o in data["options"]
        ]
        del data["difficulty"]
        data["estimatedDifficulty"] = "hard"

        draft = parse_question_response(json.dumps(data))

        assert draft.options[0].text == "Le baroréflexe via les barorécepteurs carotidiens"
        assert draft.difficulty == Difficulty.HARD

    @pytest.mark.unit
    def test_unknown_difficulty_defaults_to_medium(self):
        """Unrecognized difficulty falls back to medium"""
        draft = parse_question_response(question_json(difficulty="expert"))

        assert draft.difficulty == Difficulty.MEDIUM

    @pytest.mark.unit
    def test_generation_metadata_is_ignored(self):
        """The model cannot set its own quality score"""
        draft = parse_question_response(
            question_json(quality_score=0.99, forced_acceptance=True, tags="cardio")
        )

        assert draft.quality_score is None
        assert draft.forced_acceptance is False
        assert draft.tags == []

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["", "   ", "pas de JSON ici", "[1, 2, 3]", "{}"])
    def test_unusable_responses(self, raw):
        """Empty, non-JSON and shapeless responses raise GenerationAttemptError"""
        with pytest.raises(GenerationAttemptError):
            parse_question_response(raw)

    @pytest.mark.unit
    def test_two_correct_answers_rejected(self):
        """The one-correct-answer rule is enforced at parse time"""
        data = json.loads(question_json())
        data["options"][1]["isCorrect"] = True

        with pytest.raises(GenerationAttemptError) as exc_info:
            parse_question_response(json.dumps(data))

        assert "exactly one correct answer" in str(exc_info.value)
        assert exc_info.value.raw_response is not None

    @pytest.mark.unit
    def test_three_options_rejected(self):
        """A question needs four options"""
        data = json.loads(question_json())
        data["options"] = data["options"][:3]

        with pytest.raises(GenerationAttemptError):
            parse_question_response(json.dumps(data))


# =============================================================================
# Single Question Scoring
# =============================================================================

class TestQuestionDraftValidator:
    """Test single-question scores"""

    @pytest.mark.unit
    def test_good_question_scores_100(self):
        """A well-formed PASS question has no penalty"""
        validation = QuestionDraftValidator().validate(SAMPLE_QUESTION_SINUS_NODE, "PASS")

        assert validation.score == 100.0
        assert validation.issues == []

    @pytest.mark.unit
    def test_poor_question_scores(self):
        """Short stem, short explanation, tiny options and no vocabulary"""
        validator = QuestionDraftValidator()

        assert validator.validate(POOR_QUESTION, "PASS").score == 25.0
        assert validator.validate(WEAK_QUESTION, "PASS").score == 45.0

    @pytest.mark.unit
    def test_forbidden_term_penalty(self):
        """Level vocabulary is checked when a level is given"""
        question = dict(SAMPLE_QUESTION_BAROREFLEX)
        question["explanation"] += " La prescription n'est pas au programme."
        validator = QuestionDraftValidator()

        assert validator.validate(question, "PASS").score == 90.0
        assert validator.validate(question, None).score == 100.0

    @pytest.mark.unit
    def test_inappropriate_content_is_critical(self):
        """Self-medication advice is a critical issue"""
        question = dict(SAMPLE_QUESTION_SINUS_NODE)
        question["explanation"] += " L'auto-médication suffit en cas de palpitations."

        validation = QuestionDraftValidator().validate(question, "PASS")

        assert validation.has_critical is True
        assert validation.score == 50.0

    @pytest.mark.unit
    @pytest.mark.parametrize("question", [None, "texte", [], {}])
    def test_malformed_input_scores_low(self, question):
        """Malformed input is scored, never raised on"""
        validation = QuestionDraftValidator().validate(question, "PASS")

        assert validation.has_critical is True
        assert 0.0 <= validation.score < 50.0


# =============================================================================
# Retry Loop
# =============================================================================

class TestGenerationLoop:
    """Test acceptance, retries and forced acceptance"""

    @pytest.mark.unit
    def test_first_attempt_accepted(self, pass_request):
        """A good first draft is accepted without retry"""
        generator, text_generator = _generator([question_json()])

        drafts = generator.generate_questions(pass_request)

        assert len(drafts) == 1
        assert drafts[0].quality_score == 1.0
        assert drafts[0].forced_acceptance is False
        assert drafts[0].generation_attempts == 1
        assert text_generator.call_count == 1

    @pytest.mark.unit
    def test_forced_acceptance_keeps_best_attempt(self):
        """After three rejected drafts the best one is kept and tagged"""
        request = QuestionGenerationRequest(level="PASS", count=3, domain="cardiologie")
        generator, text_generator = _generator([
            question_json(SAMPLE_QUESTION_SINUS_NODE),
            question_json(POOR_QUESTION),
            question_json(WEAK_QUESTION),
            question_json(POOR_QUESTION),
            question_json(SAMPLE_QUESTION_BAROREFLEX),
        ])

        report = generator.generate_with_report(request)

        assert report.success is True
        assert len(report.drafts) == 3
        assert report.forced_acceptance_count == 1
        assert report.total_attempts == 5
        assert [o.state for o in report.outcomes] == [
            GenerationState.ACCEPTED,
            GenerationState.FORCED_ACCEPTED,
            GenerationState.ACCEPTED,
        ]

        forced = report.drafts[1]
        assert forced.quality_score == pytest.approx(0.45)
        assert forced.forced_acceptance is True
        assert forced.generation_attempts == 3
        assert forced.validation_issues
        assert forced.question_text == "Quoi ?"
        assert report.outcomes[1].retries == 2

    @pytest.mark.unit
    def test_forced_acceptance_prefers_draft_without_critical_issue(self, pass_request):
        """A higher-scoring draft with unsafe advice loses to a safe weak one"""
        unsafe = dict(
            SAMPLE_QUESTION_SINUS_NODE,
            explanation=SAMPLE_QUESTION_SINUS_NODE["explanation"] + " L'auto-médication suffit.",
        )
        generator, _ = _generator([
            question_json(unsafe),
            question_json(WEAK_QUESTION),
            question_json(WEAK_QUESTION),
        ])

        report = generator.generate_with_report(pass_request)

        unsafe_attempt = report.outcomes[0].attempts[0]
        assert unsafe_attempt.validation.has_critical is True
        assert unsafe_attempt.score == pytest.approx(0.50)

        forced = report.drafts[0]
        assert forced.forced_acceptance is True
        assert forced.quality_score == pytest.approx(0.45)
        assert forced.question_text == "Quoi ?"
        assert "auto-médication" not in forced.explanation

    @pytest.mark.unit
    def test_retry_prompt_carries_feedback(self, pass_request):
        """The second prompt lists the issues of the first draft"""
        generator, text_generator = _generator([
            question_json(POOR_QUESTION),
            question_json(),
        ])

        generator.generate_questions(pass_request)

        assert "TENTATIVE PRÉCÉDENTE" not in text_generator.prompts[0]
        assert "TENTATIVE PRÉCÉDENTE" in text_generator.prompts[1]
        assert "question too short or empty" in text_generator.prompts[1]

    @pytest.mark.unit
    def test_parse_failures_then_success(self, pass_request):
        """Unparseable responses count as attempts"""
        generator, _ = _generator(["pas du JSON", "{}", question_json()])

        report = generator.generate_with_report(pass_request)

        assert report.success is True
        outcome = report.outcomes[0]
        assert outcome.state == GenerationState.ACCEPTED
        assert len(outcome.attempt_errors) == 2
        assert report.drafts[0].generation_attempts == 3
        assert report.drafts[0].forced_acceptance is False

    @pytest.mark.unit
    def test_critical_issue_blocks_acceptance(self, pass_request):
        """A 70-point draft with duplicate options is still retried"""
        duplicate = json.loads(question_json())
        duplicate["options"][3]["text"] = "Le faisceau de His"
        generator, text_generator = _generator([json.dumps(duplicate), question_json()])

        drafts = generator.generate_questions(pass_request)

        assert text_generator.call_count == 2
        assert drafts[0].options[3].text == "Les fibres de Purkinje"

    @pytest.mark.unit
    def test_no_parseable_draft_fails(self, pass_request):
        """Generator errors on every attempt fail the question"""
        generator, _ = _generator([RuntimeError("rate limited")] * 3)

        with pytest.raises(QuestionGenerationError) as exc_info:
            generator.generate_questions(pass_request)

        assert exc_info.value.question_index == 1
        assert len(exc_info.value.attempt_errors) == 3
        assert "text generation failed: rate limited" in exc_info.value.attempt_errors[0]

    @pytest.mark.unit
    def test_report_never_raises(self, pass_request):
        """generate_with_report turns failure into a report"""
        generator, _ = _generator(["nope", "nope", "nope"])

        report = generator.generate_with_report(pass_request)

        assert report.success is False
        assert report.drafts == []
        assert report.errors
        assert report.outcomes[0].state == GenerationState.FAILED

    @pytest.mark.unit
    def test_batch_stops_at_first_failure(self):
        """Later questions are not generated once one fails"""
        request = QuestionGenerationRequest(level="LAS", count=2)
        generator, text_generator = _generator(["nope", "nope"], max_attempts=2)

        report = generator.generate_with_report(request)

        assert report.success is False
        assert len(report.outcomes) == 1
        assert text_generator.call_count == 2

    @pytest.mark.unit
    def test_attempt_budget_is_capped(self):
        """max_attempts is clamped to the hard maximum"""
        assert GenerationConfig(max_attempts=10).max_attempts == 3
        assert GenerationConfig(max_attempts=0).max_attempts == 1

    @pytest.mark.unit
    def test_count_above_limit(self):
        """Requests above the question limit are refused"""
        request = QuestionGenerationRequest(level="PASS", count=5)
        generator = QuestionGenerator(
            ScriptedTextGenerator([]),
            audit=MagicMock(spec=AuditLogger),
            generation_config=GenerationConfig(max_questions=2),
        )

        with pytest.raises(QuestionGenerationError):
            generator.generate_questions(request)
        assert generator.generate_with_report(request).success is False

    @pytest.mark.unit
    def test_plain_callable_generator(self, pass_request):
        """Any callable taking a prompt works as the text generator"""
        generator = QuestionGenerator(lambda prompt: question_json(),
                                      audit=MagicMock(spec=AuditLogger))

        assert len(generator.generate_questions(pass_request)) == 1

    @pytest.mark.unit
    def test_module_level_helper(self, pass_request):
        """generate_questions accepts an injected generator"""
        drafts = generate_questions(pass_request, text_generator=ScriptedTextGenerator([question_json()]),
                                    audit=MagicMock(spec=AuditLogger))

        assert drafts[0].quality_score == 1.0


class TestGenerationAudit:
    """Test audit events emitted by the loop"""

    @pytest.mark.unit
    def test_success_events(self, pass_request):
        """A batch records started and success"""
        audit = MagicMock(spec=AuditLogger)
        generator, _ = _generator([question_json()], audit=audit)

        generator.generate_questions(pass_request)

        calls = [(c.args[0], c.args[1]) for c in audit.record_event.call_args_list]
        assert calls == [
            (AuditAction.QUESTIONS_GENERATION, AuditStatus.STARTED),
            (AuditAction.QUESTIONS_GENERATION, AuditStatus.SUCCESS),
        ]

    @pytest.mark.unit
    def test_retry_and_failure_events(self, pass_request):
        """Each rejected attempt and the failed batch are recorded"""
        audit = MagicMock(spec=AuditLogger)
        generator, _ = _generator(["nope", "nope", "nope"], audit=audit)

        generator.generate_with_report(pass_request)

        actions = [(c.args[0], c.args[1]) for c in audit.record_event.call_args_list]
        assert actions.count((AuditAction.GENERATION_RETRY, AuditStatus.FAILED)) == 3
        assert actions[-1] == (AuditAction.QUESTIONS_GENERATION, AuditStatus.FAILED)


class TestPromptBuilder:
    """Test prompt construction"""

    @pytest.mark.unit
    def test_prompt_mentions_level_and_domain(self, pass_request):
        """Context lines reflect the request"""
        prompt = build_question_prompt(pass_request, 2)

        assert "PASS (1ère année)" in prompt
        assert "physiologie" in prompt
        assert prompt.rstrip().endswith("QUESTION 2:")

    @pytest.mark.unit
    def test_source_content_is_truncated(self):
        """Long course material is cut"""
        request = QuestionGenerationRequest(level="LAS", source_content="x" * 5000)

        prompt = build_question_prompt(request, 1)

        assert "x" * 2000 in prompt
        assert "x" * 2001 not in prompt
