"""medquiz - validated AI generation of PASS/LAS medical quizzes."""

__version__ = "0.1.0"
