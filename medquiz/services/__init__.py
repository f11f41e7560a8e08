# Services module

# Validation
from medquiz.services.validation_orchestrator import (
    QuizQualityValidator,
    ValidationOrchestrator,
    validate_quiz_content,
)
from medquiz.services.structural_validator import StructuralValidator, sanitize
from medquiz.services.content_validator import BusinessContentValidator
from medquiz.services.medical_validator import MedicalContentValidator
from medquiz.services.level_validator import LevelValidator
from medquiz.services.question_validator import QuestionDraftValidator
from medquiz.services.rule_tables import DEFAULT_RULE_TABLES, RuleTables

# Generation and creation
from medquiz.services.question_generator import (
    GenerationState,
    QuestionGenerator,
    generate_questions,
)
from medquiz.services.quiz_creation import (
    CreationResult,
    QuizCreationTransaction,
    create_quiz_from_draft,
)
from medquiz.services.repository import QuizRepository, SQLAlchemyQuizRepository
from medquiz.services.audit_logger import AuditLogger
from medquiz.services.errors import (
    GenerationAttemptError,
    MedQuizError,
    QuestionGenerationError,
    RepositoryError,
)
