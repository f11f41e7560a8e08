"""
Pytest configuration and fixtures for medquiz tests.

Provides:
- Test database setup/teardown
- SQLAlchemy repository bound to the test database
- Sample quiz content and creation metadata
- Mock audit logger
"""

import pytest
import os
from typing import Generator, Dict, Any
from unittest.mock import MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

# Set test environment before importing medquiz
os.environ["DATABASE_URL"] = "sqlite:///./test_medquiz.db"
os.environ["OPENAI_API_KEY"] = "test-key-not-real"

from medquiz.database import Base, init_db
from medquiz.models.models import Question, Quiz, GenerationLog
from medquiz.schemas.quiz import QuizCreationMeta, QuizDraft
from medquiz.services.audit_logger import AuditLogger
from medquiz.services.repository import SQLAlchemyQuizRepository
from tests.mocks import sample_quiz_content as build_sample_quiz_content


# Test database setup
TEST_DATABASE_URL = "sqlite:///./test_medquiz.db"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database tables once per test session"""
    init_db(test_engine)
    yield
    # Cleanup after all tests
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()
    # Remove test database file
    if os.path.exists("./test_medquiz.db"):
        os.remove("./test_medquiz.db")


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Provide a database session; every table is emptied after the test"""
    session = TestingSessionLocal()

    yield session

    session.close()
    cleanup = TestingSessionLocal()
    for model in (Question, Quiz, GenerationLog):
        cleanup.query(model).delete()
    cleanup.commit()
    cleanup.close()


# =============================================================================
# Repository Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def repository(db: Session) -> SQLAlchemyQuizRepository:
    """Repository writing to the test database"""
    return SQLAlchemyQuizRepository(TestingSessionLocal)


@pytest.fixture(scope="function")
def audit() -> MagicMock:
    """Audit logger mock that records calls"""
    return MagicMock(spec=AuditLogger)


# =============================================================================
# Content Fixtures
# =============================================================================

@pytest.fixture
def sample_quiz_content() -> Dict[str, Any]:
    """A valid two-question PASS physiology quiz"""
    return build_sample_quiz_content()


@pytest.fixture
def sample_quiz_draft(sample_quiz_content: Dict[str, Any]) -> QuizDraft:
    """The sample quiz as a typed draft"""
    return QuizDraft.from_content(sample_quiz_content)


@pytest.fixture
def creation_meta() -> QuizCreationMeta:
    """Metadata for creating the sample quiz"""
    return QuizCreationMeta(
        category_id="cat-physiologie",
        level="PASS",
        user_id="user-123",
        course_id="course-ue2",
    )
