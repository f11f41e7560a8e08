"""
Question Generator

Generates medical multiple-choice questions one at a time through a text
generation function, validating each result and retrying when it falls
short.

Each question runs through an explicit state machine:

    PENDING -> RETRYING(n) -> ACCEPTED | FORCED_ACCEPTED | FAILED

- ACCEPTED: a draft scored >= the acceptance threshold (0.5 by default)
  with no critical issue.
- FORCED_ACCEPTED: the attempt budget ran out; the best-scoring parsed
  draft is kept, tagged with its low score and issues, so one stubborn
  question never blocks the batch.
- FAILED: no attempt produced a parseable draft. Nothing can be accepted
  without breaking the 4-options/one-correct invariant, so the batch fails
  with QuestionGenerationError.

Generator exceptions and unparseable responses count as failed attempts.
"""

import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Union

from pydantic import ValidationError

from medquiz import config
from medquiz.schemas.quiz import Difficulty, QuestionDraft, QuestionGenerationRequest
from medquiz.services.audit_logger import AuditAction, AuditLogger, AuditStatus
from medquiz.services.errors import GenerationAttemptError, QuestionGenerationError
from medquiz.services.prompts import build_question_prompt
from medquiz.services.question_validator import QuestionDraftValidator, QuestionValidation
from medquiz.utils.openai_client import OpenAITextGenerator

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_DIFFICULTIES = {d.value for d in Difficulty}

PromptBuilder = Callable[[QuestionGenerationRequest, int, Optional[List[str]]], str]


class GenerationState(Enum):
    PENDING = "pending"
    RETRYING = "retrying"
    ACCEPTED = "accepted"
    FORCED_ACCEPTED = "forced_accepted"
    FAILED = "failed"


@dataclass
class GenerationConfig:
    max_attempts: int = config.MAX_GENERATION_ATTEMPTS
    accept_threshold: float = config.GENERATION_ACCEPT_THRESHOLD  # on a 0-1 scale
    max_questions: int = config.MAX_QUESTIONS_PER_QUIZ

    def __post_init__(self):
        self.max_attempts = max(1, min(config.HARD_MAX_GENERATION_ATTEMPTS, self.max_attempts))
        self.max_questions = max(1, min(config.HARD_MAX_QUESTIONS_PER_QUIZ, self.max_questions))


@dataclass
class GenerationAttempt:
    """One call to the text generator and what came of it"""
    index: int                                   # 1-based
    draft: Optional[QuestionDraft] = None
    validation: Optional[QuestionValidation] = None
    error: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def score(self) -> Optional[float]:
        """Validation score on a 0-1 scale, None when the attempt failed before validation."""
        if self.validation is None:
            return None
        return self.validation.score / 100.0


@dataclass
class QuestionOutcome:
    position: int                                # 1-based
    state: GenerationState = GenerationState.PENDING
    attempts: List[GenerationAttempt] = field(default_factory=list)
    draft: Optional[QuestionDraft] = None

    @property
    def retries(self) -> int:
        return max(0, len(self.attempts) - 1)

    @property
    def attempt_errors(self) -> List[str]:
        return [a.error for a in self.attempts if a.error]


@dataclass
class GenerationReport:
    success: bool
    drafts: List[QuestionDraft] = field(default_factory=list)
    outcomes: List[QuestionOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    forced_acceptance_count: int = 0
    total_attempts: int = 0
    processing_time_ms: float = 0.0


def parse_question_response(text: str) -> QuestionDraft:
    """
    Turn a raw model response into a QuestionDraft.

    Tolerates surrounding prose or code fences, ``optionText`` instead of
    ``text`` and ``estimatedDifficulty`` instead of ``difficulty``.

    Raises:
        GenerationAttemptError: not JSON, or not a valid 4-option question
    """
    if not isinstance(text, str) or not text.strip():
        raise GenerationAttemptError("empty response", raw_response=text)

    cleaned = text.strip()
    match = _JSON_OBJECT.search(cleaned)
    if match:
        cleaned = match.group(0)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise GenerationAttemptError(f"response is not valid JSON: {e}", raw_response=text)

    if not isinstance(parsed, dict):
        raise GenerationAttemptError("response is not a JSON object", raw_response=text)

    options = parsed.get("options")
    if isinstance(options, list):
        parsed["options"] = [
            {"text": o.get("text", o.get("optionText")), "isCorrect": o.get("isCorrect")}
            if isinstance(o, dict) else o
            for o in options
        ]

    difficulty = parsed.get("difficulty") or parsed.get("estimatedDifficulty")
    parsed["difficulty"] = difficulty if difficulty in _DIFFICULTIES else Difficulty.MEDIUM.value

    tags = parsed.get("tags")
    if tags is not None and not (isinstance(tags, list) and all(isinstance(t, str) for t in tags)):
        parsed.pop("tags")

    # Generation metadata is never taken from the model
    for key in ("quality_score", "validation_issues", "forced_acceptance", "generation_attempts"):
        parsed.pop(key, None)

    try:
        return QuestionDraft.model_validate(parsed)
    except ValidationError as e:
        reasons = "; ".join(err.get("msg", "invalid") for err in e.errors())
        raise GenerationAttemptError(f"invalid question shape: {reasons}", raw_response=text)


class QuestionGenerator:
    """
    Generate-validate-retry loop.

    Usage:
        generator = QuestionGenerator(OpenAITextGenerator(), audit=AuditLogger())
        drafts = generator.generate_questions(
            QuestionGenerationRequest(level="PASS", count=5, domain="physiologie")
        )
    """

    def __init__(
        self,
        text_generator: Union[Callable[[str], str], Any],
        validator: Optional[QuestionDraftValidator] = None,
        prompt_builder: PromptBuilder = build_question_prompt,
        audit: Optional[AuditLogger] = None,
        generation_config: Optional[GenerationConfig] = None,
    ):
        self._generate = getattr(text_generator, "generate_text", text_generator)
        self.validator = validator or QuestionDraftValidator()
        self.prompt_builder = prompt_builder
        self.audit = audit or AuditLogger()
        self.config = generation_config or GenerationConfig()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def generate_questions(self, request: QuestionGenerationRequest) -> List[QuestionDraft]:
        """
        Generate exactly ``request.count`` drafts.

        Raises:
            QuestionGenerationError: a question never produced a parseable draft,
                or the request exceeds the configured question limit
        """
        outcomes = self._generate_batch(request)
        failed = [o for o in outcomes if o.state == GenerationState.FAILED]
        if failed:
            outcome = failed[0]
            raise QuestionGenerationError(
                f"question {outcome.position} produced no usable draft after "
                f"{len(outcome.attempts)} attempt(s)",
                question_index=outcome.position,
                attempt_errors=outcome.attempt_errors,
            )
        return [o.draft for o in outcomes]

    def generate_with_report(self, request: QuestionGenerationRequest) -> GenerationReport:
        """Like generate_questions but never raises; failures are reported."""
        started = time.perf_counter()
        try:
            outcomes = self._generate_batch(request)
        except QuestionGenerationError as e:
            return GenerationReport(
                success=False,
                errors=[str(e)],
                processing_time_ms=(time.perf_counter() - started) * 1000,
            )
        except Exception as e:
            logger.error(f"Question generation crashed: {e}")
            return GenerationReport(
                success=False,
                errors=[f"unexpected error: {e}"],
                processing_time_ms=(time.perf_counter() - started) * 1000,
            )

        errors = []
        for outcome in outcomes:
            if outcome.state == GenerationState.FAILED:
                errors.append(
                    f"question {outcome.position} produced no usable draft: "
                    + "; ".join(outcome.attempt_errors)
                )

        success = not errors
        return GenerationReport(
            success=success,
            drafts=[o.draft for o in outcomes] if success else [],
            outcomes=outcomes,
            errors=errors,
            forced_acceptance_count=sum(
                1 for o in outcomes if o.state == GenerationState.FORCED_ACCEPTED
            ),
            total_attempts=sum(len(o.attempts) for o in outcomes),
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def _generate_batch(self, request: QuestionGenerationRequest) -> List[QuestionOutcome]:
        """Run every question sequentially; stops at the first FAILED question."""
        if request.count > self.config.max_questions:
            raise QuestionGenerationError(
                f"{request.count} questions requested, limit is {self.config.max_questions}"
            )

        started = time.perf_counter()
        audit_config = {
            "level": request.level.value,
            "count": request.count,
            "domain": request.domain,
            "category_id": request.category_id,
        }
        self.audit.record_event(AuditAction.QUESTIONS_GENERATION, AuditStatus.STARTED,
                                user_id=request.user_id, config=audit_config)
        logger.info(f"Generating {request.count} {request.level.value} question(s) "
                    f"(domain={request.domain or 'general'})")

        outcomes: List[QuestionOutcome] = []
        for position in range(1, request.count + 1):
            outcome = self._generate_one(request, position)
            outcomes.append(outcome)
            if outcome.state == GenerationState.FAILED:
                break

        duration_ms = (time.perf_counter() - started) * 1000
        forced = sum(1 for o in outcomes if o.state == GenerationState.FORCED_ACCEPTED)

        if outcomes and outcomes[-1].state == GenerationState.FAILED:
            self.audit.record_event(
                AuditAction.QUESTIONS_GENERATION, AuditStatus.FAILED,
                user_id=request.user_id, config=audit_config,
                error={"question": outcomes[-1].position, "attempts": outcomes[-1].attempt_errors},
                duration_ms=duration_ms,
            )
            logger.error(f"Question {outcomes[-1].position} failed; batch aborted")
        else:
            self.audit.record_event(
                AuditAction.QUESTIONS_GENERATION, AuditStatus.SUCCESS,
                user_id=request.user_id, config=audit_config,
                result={
                    "generated": len(outcomes),
                    "forced_acceptances": forced,
                    "total_attempts": sum(len(o.attempts) for o in outcomes),
                },
                duration_ms=duration_ms,
            )
            logger.info(f"Generated {len(outcomes)} question(s) in {duration_ms:.0f}ms "
                        f"({forced} forced)")
        return outcomes

    def _generate_one(self, request: QuestionGenerationRequest, position: int) -> QuestionOutcome:
        outcome = QuestionOutcome(position=position)
        feedback: Optional[List[str]] = None

        for index in range(1, self.config.max_attempts + 1):
            if index > 1:
                outcome.state = GenerationState.RETRYING

            attempt = self._attempt(request, position, index, feedback)
            outcome.attempts.append(attempt)

            if attempt.validation is not None and self._is_acceptable(attempt.validation):
                outcome.draft = self._tag(attempt, len(outcome.attempts), forced=False)
                outcome.state = GenerationState.ACCEPTED
                return outcome

            if attempt.error:
                feedback = [attempt.error]
                reason = attempt.error
            else:
                feedback = attempt.validation.issue_messages
                reason = f"score {attempt.score:.2f}, issues: {'; '.join(feedback) or 'none'}"

            logger.warning(f"Question {position} attempt {index}/{self.config.max_attempts} "
                           f"rejected: {reason}")
            self.audit.record_event(
                AuditAction.GENERATION_RETRY, AuditStatus.FAILED,
                user_id=request.user_id,
                config={"question": position, "attempt": index},
                error={"reason": reason},
                duration_ms=attempt.duration_ms,
            )

        parsed = [a for a in outcome.attempts if a.validation is not None]
        if not parsed:
            outcome.state = GenerationState.FAILED
            return outcome

        # Drafts without a critical issue outrank any score
        best = max(parsed, key=lambda a: (not a.validation.has_critical, a.validation.score))
        outcome.draft = self._tag(best, len(outcome.attempts), forced=True)
        outcome.state = GenerationState.FORCED_ACCEPTED
        logger.warning(
            f"Question {position}: forced acceptance of attempt {best.index} "
            f"with score {best.score:.2f} after {len(outcome.attempts)} attempts"
        )
        return outcome

    def _attempt(self, request: QuestionGenerationRequest, position: int, index: int,
                 feedback: Optional[List[str]]) -> GenerationAttempt:
        started = time.perf_counter()
        attempt = GenerationAttempt(index=index)
        try:
            prompt = self.prompt_builder(request, position, feedback)
            raw = self._generate(prompt)
            attempt.draft = parse_question_response(raw)
        except GenerationAttemptError as e:
            attempt.error = str(e)
        except Exception as e:
            # Infrastructure failure (network, rate limit after retries, ...)
            attempt.error = f"text generation failed: {e}"
        else:
            attempt.validation = self.validator.validate(attempt.draft, request.level.value)
        attempt.duration_ms = (time.perf_counter() - started) * 1000
        return attempt

    def _is_acceptable(self, validation: QuestionValidation) -> bool:
        return (validation.score / 100.0 >= self.config.accept_threshold
                and not validation.has_critical)

    def _tag(self, attempt: GenerationAttempt, attempts_used: int, forced: bool) -> QuestionDraft:
        return attempt.draft.model_copy(update={
            "quality_score": round(attempt.score, 4),
            "validation_issues": attempt.validation.issue_messages,
            "forced_acceptance": forced,
            "generation_attempts": attempts_used,
        })


def generate_questions(request: QuestionGenerationRequest,
                       text_generator: Optional[Callable[[str], str]] = None,
                       audit: Optional[AuditLogger] = None) -> List[QuestionDraft]:
    """Generate with a freshly wired QuestionGenerator (OpenAI by default)."""
    if text_generator is None:
        text_generator = OpenAITextGenerator()
    return QuestionGenerator(text_generator, audit=audit).generate_questions(request)
