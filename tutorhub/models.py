import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), nullable=False, default="student")  # student, tutor, admin
    created_at = Column(DateTime, server_default=func.now())


class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)


class TutoringSession(Base):
    """A booked meeting between one tutor and one student"""

    __tablename__ = "tutoring_sessions"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=False, index=True, default=generate_public_id
    )

    tutor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=True)

    scheduled_at = Column(DateTime, nullable=False, index=True)
    duration = Column(Integer, nullable=False, default=60)  # minutes

    # Status workflow: pending → scheduled → in_progress → completed
    # scheduled and in_progress may also end in cancelled
    status = Column(String(20), default="pending", nullable=False, index=True)

    # Cancellation negotiation: none, requested_by_tutor, requested_by_student
    cancellation_state = Column(String(32), default="none", nullable=False)

    price_cents = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)  # Student's booking notes
    tutor_notes = Column(Text, nullable=True)

    # AI lesson summary: whatWasLearned, mistakes, strengths, practiceTasks
    ai_summary = Column(JSON, nullable=True)
    summary_generated_at = Column(DateTime, nullable=True)

    # Optimistic concurrency: every UPDATE is guarded by the version read
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    tutor = relationship("User", foreign_keys=[tutor_id])
    student = relationship("User", foreign_keys=[student_id])
    subject = relationship("Subject")
    quiz = relationship("SessionQuiz", back_populates="session", uselist=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def cancel_requested_by_tutor(self) -> bool:
        return self.cancellation_state == "requested_by_tutor"

    @property
    def cancel_requested_by_student(self) -> bool:
        return self.cancellation_state == "requested_by_student"


class Notification(Base):
    """In-app notification shown in the user's inbox"""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    session_id = Column(Integer, ForeignKey("tutoring_sessions.id"), nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
