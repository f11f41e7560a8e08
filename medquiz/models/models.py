from sqlalchemy import Column, String, Integer, Float, Boolean, DateTime, JSON, Text
from datetime import datetime
import uuid
from medquiz.database import Base


def generate_uuid():
    return str(uuid.uuid4())


class Question(Base):
    __tablename__ = "questions"

    id = Column(String, primary_key=True, default=generate_uuid)
    question_text = Column(Text, nullable=False)
    question_type = Column(String, default="multipleChoice")
    options = Column(JSON, nullable=False)  # [{"id", "optionText", "isCorrect"}], always 4
    explanation = Column(Text, nullable=False)
    category_id = Column(String, nullable=False, index=True)
    course_id = Column(String, nullable=True, index=True)
    difficulty = Column(String, nullable=True, index=True)  # "easy", "medium", "hard"
    student_level = Column(String, nullable=False, index=True)  # "PASS", "LAS", "both"
    tags = Column(JSON, nullable=True)

    # AI generation metadata
    generated_by_ai = Column(Boolean, default=True)
    ai_generation_prompt = Column(Text, nullable=True)
    quality_score = Column(Float, nullable=True)  # 0-1 from the generation loop
    forced_acceptance = Column(Boolean, default=False, index=True)
    validated_by_expert = Column(Boolean, default=False)
    estimated_time_seconds = Column(Integer, nullable=True)

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(String, primary_key=True, default=generate_uuid)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    question_ids = Column(JSON, nullable=False)  # Ordered list of question ids
    category_id = Column(String, nullable=True, index=True)
    course_id = Column(String, nullable=True)
    student_level = Column(String, nullable=True)
    duration_minutes = Column(Integer, default=15)
    passing_score = Column(Integer, default=70)
    quiz_type = Column(String, default="standard")
    published = Column(Boolean, default=False, index=True)

    created_by = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class GenerationLog(Base):
    """Audit trail of generation, validation and creation events"""
    __tablename__ = "generation_logs"

    id = Column(String, primary_key=True, default=generate_uuid)
    user_id = Column(String, nullable=True, index=True)
    action = Column(String, nullable=False, index=True)  # "ai_questions_generation", "auto_quiz_creation", ...
    status = Column(String, nullable=False, index=True)  # "started", "success", "failed"
    config = Column(JSON, nullable=True)
    result = Column(JSON, nullable=True)
    error = Column(JSON, nullable=True)
    duration_ms = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
