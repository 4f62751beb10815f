import asyncio
import json
import os
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

# Keep the module-level engine off disk and email delivery off before the package loads
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RESEND_API_KEY"] = ""
os.environ["DB_LOG_SLOW_QUERIES"] = "false"

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from tutorhub import models_quiz  # noqa: E402, F401
from tutorhub.database import Base, build_engine, get_db  # noqa: E402
from tutorhub.main import app  # noqa: E402
from tutorhub.models import Subject, TutoringSession, User  # noqa: E402
from tutorhub.services.notification_service import (  # noqa: E402
    NotificationDispatcher,
    get_notification_dispatcher,
)
from tutorhub.services.text_generation import TextGenerationError, get_text_generator  # noqa: E402


class FakeTextGenerator:
    """Replays queued replies; an exception in the queue is raised instead"""

    def __init__(self, replies=None, delay=0.0):
        self.replies = list(replies or [])
        self.delay = delay
        self.prompts = []

    def queue(self, *replies):
        self.replies.extend(replies)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.replies:
            raise TextGenerationError("No reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def engine(tmp_path):
    """A fresh SQLite file per test so separate sessions can race each other"""
    engine = build_engine(f"sqlite:///{tmp_path / 'test_tutorhub.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def users(db):
    tutor = User(full_name="Tina Tutor", email="tina@example.com", role="tutor")
    other_tutor = User(full_name="Omar Tutor", email="omar@example.com", role="tutor")
    student = User(full_name="Sam Student", email="sam@example.com", role="student")
    other_student = User(full_name="Olga Student", email="olga@example.com", role="student")
    admin = User(full_name="Ada Admin", email="ada@example.com", role="admin")
    subject = Subject(name="Algebra")
    db.add_all([tutor, other_tutor, student, other_student, admin, subject])
    db.commit()
    return SimpleNamespace(
        tutor=tutor,
        other_tutor=other_tutor,
        student=student,
        other_student=other_student,
        admin=admin,
        subject=subject,
    )


@pytest.fixture
def make_session(db, users):
    """Insert a session directly in the given state"""

    def _make(status="scheduled", scheduled_at=None, duration=60, tutor=None, **fields):
        session = TutoringSession(
            tutor_id=(tutor or users.tutor).id,
            student_id=users.student.id,
            subject_id=users.subject.id,
            scheduled_at=scheduled_at or datetime(2026, 11, 2, 15, 0),
            duration=duration,
            status=status,
            **fields,
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    return _make


@pytest.fixture
def summary_reply():
    return "```json\n" + json.dumps(
        {
            "whatWasLearned": "Solving linear equations in one variable.",
            "mistakes": "- Sign errors when moving terms across the equals sign",
            "strengths": "Clear working and good persistence.",
            "practiceTasks": "1. Solve 10 equations with negative coefficients",
        }
    ) + "\n```"


@pytest.fixture
def quiz_reply():
    return json.dumps(
        {
            "questions": [
                {
                    "question": "What is 2 + 2?",
                    "type": "multiple_choice",
                    "options": ["2", "3", "4", "5"],
                    "correctAnswer": "4",
                    "explanation": "Two plus two is four.",
                    "topic": "Arithmetic",
                },
                {
                    "question": "Subtracting a negative number is the same as adding its absolute value.",
                    "type": "true_false",
                    "correctAnswer": "True",
                    "explanation": "a - (-b) = a + b.",
                    "topic": "Signs",
                },
                {
                    "question": "Solve x + 3 = 5",
                    "type": "multiple_choice",
                    "options": ["x = 2", "x = 3", "x = -2", "x = 8"],
                    "correctAnswer": "x = 2",
                    "explanation": "Subtract 3 from both sides.",
                    "topic": "Linear equations",
                },
            ],
            "focusAreas": ["Sign errors", "Linear equations"],
            "difficulty": "easy",
        }
    )


@pytest.fixture
def generator():
    return FakeTextGenerator()


@pytest.fixture
def client(session_factory, generator):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_text_generator] = lambda: generator
    app.dependency_overrides[get_notification_dispatcher] = lambda: NotificationDispatcher(
        session_factory
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    def _headers(user):
        return {"X-User-Id": str(user.id)}

    return _headers


@pytest.fixture
def later():
    """Offset helper for building non-overlapping schedules"""

    def _later(minutes):
        return datetime(2026, 11, 2, 15, 0) + timedelta(minutes=minutes)

    return _later
