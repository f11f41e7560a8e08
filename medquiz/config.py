"""
Runtime configuration for medquiz.

All settings come from environment variables (optionally loaded from a
.env file). Values are read once at import time.
"""

import os
import logging

from dotenv import load_dotenv

load_dotenv()

# Database URL - SQLite for local development
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medquiz.db")

# Railway/Heroku style URLs use postgres:// but SQLAlchemy requires postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

SLOW_QUERY_THRESHOLD_MS = int(os.getenv("SLOW_QUERY_THRESHOLD_MS", "100"))

# Language model
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_TEMPERATURE = float(os.getenv("OPENAI_TEMPERATURE", "0.7"))
OPENAI_MAX_TOKENS = int(os.getenv("OPENAI_MAX_TOKENS", "2000"))

# Generation loop. Attempts are hard capped at 3 per question.
HARD_MAX_GENERATION_ATTEMPTS = 3
MAX_GENERATION_ATTEMPTS = max(
    1, min(HARD_MAX_GENERATION_ATTEMPTS, int(os.getenv("MAX_GENERATION_ATTEMPTS", "3")))
)
GENERATION_ACCEPT_THRESHOLD = float(os.getenv("GENERATION_ACCEPT_THRESHOLD", "0.5"))

# Quiz size is hard capped at 20 questions
HARD_MAX_QUESTIONS_PER_QUIZ = 20
MAX_QUESTIONS_PER_QUIZ = max(
    1, min(HARD_MAX_QUESTIONS_PER_QUIZ, int(os.getenv("MAX_QUESTIONS_PER_QUIZ", "20")))
)

DEFAULT_QUIZ_DURATION_MINUTES = 15
DEFAULT_PASSING_SCORE = 70

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Configure root logging for scripts and workers embedding medquiz."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
