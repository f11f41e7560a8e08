"""
Mock infrastructure for medquiz testing.
Provides a deterministic text generator, sample content and failing repositories.
"""

from .llm_mocks import (
    SAMPLE_QUESTION_SINUS_NODE,
    SAMPLE_QUESTION_BAROREFLEX,
    SAMPLE_QUIZ_CONTENT,
    POOR_QUESTION,
    WEAK_QUESTION,
    ScriptedTextGenerator,
    question_json,
    sample_quiz_content,
)
from .repository_mocks import FailingRepository

__all__ = [
    "SAMPLE_QUESTION_SINUS_NODE",
    "SAMPLE_QUESTION_BAROREFLEX",
    "SAMPLE_QUIZ_CONTENT",
    "POOR_QUESTION",
    "WEAK_QUESTION",
    "ScriptedTextGenerator",
    "question_json",
    "sample_quiz_content",
    "FailingRepository",
]
