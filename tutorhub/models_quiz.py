"""
Post-session assessment models: one quiz per session, immutable graded attempts
"""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class SessionQuiz(Base):
    """AI-authored quiz derived from a session's lesson summary"""

    __tablename__ = "session_quizzes"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(
        Integer, ForeignKey("tutoring_sessions.id"), unique=True, nullable=False, index=True
    )

    # Ordered list of {question, type, options, correctAnswer, explanation, topic}
    questions = Column(JSON, nullable=False)
    focus_areas = Column(JSON, nullable=False)
    difficulty = Column(String(10), nullable=False, default="medium")

    # Bumped in the same transaction as every attempt insert; regeneration is refused once > 0
    attempt_count = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    session = relationship("TutoringSession", back_populates="quiz")
    attempts = relationship("QuizAttempt", back_populates="quiz", order_by="QuizAttempt.id")

    __mapper_args__ = {"version_id_col": version}


class QuizAttempt(Base):
    """One fully graded submission; rows are insert-only"""

    __tablename__ = "quiz_attempts"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(Integer, ForeignKey("session_quizzes.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("tutoring_sessions.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    answers = Column(JSON, nullable=False)  # {"0": "...", "1": "..."}
    score = Column(Integer, nullable=False)  # 0-100
    correct_count = Column(Integer, nullable=False)
    total_questions = Column(Integer, nullable=False)
    detailed_results = Column(JSON, nullable=False)

    completed_at = Column(DateTime, nullable=False)

    quiz = relationship("SessionQuiz", back_populates="attempts")
