"""Assessment service - Lesson summary, quiz generation and grading pipeline"""

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from ...errors import (
    Forbidden,
    ImmutableQuizError,
    MissingNotes,
    NotCompleted,
    QuizNotFound,
    RaceError,
    SummaryAlreadyAttached,
    SummaryMissing,
)
from ...models import TutoringSession, User
from ...models_quiz import QuizAttempt, SessionQuiz
from ...services.text_generation import TextGenerator
from ..sessions.lifecycle import SessionStatus
from ..sessions.schemas import LessonSummary
from ..sessions.service import SessionService, ensure_tutor_or_admin
from . import grading
from .quiz_generator import generate_session_quiz
from .repository import AssessmentRepository
from .summary import generate_lesson_summary

logger = logging.getLogger(__name__)


class AssessmentService:
    """Service layer for the post-session assessment pipeline"""

    def __init__(self, db: Session, generator: TextGenerator):
        self.db = db
        self.generator = generator
        self.repo = AssessmentRepository()
        self.sessions = SessionService(db)

    # ------------------------------------------------------------------
    # Lesson summary
    # ------------------------------------------------------------------

    @staticmethod
    def _check_summary_preconditions(session: TutoringSession) -> None:
        if session.status != SessionStatus.COMPLETED.value:
            raise NotCompleted("Lesson summaries can only be generated for completed sessions")
        if not session.tutor_notes or not session.tutor_notes.strip():
            raise MissingNotes()
        if session.ai_summary:
            raise SummaryAlreadyAttached()

    async def generate_summary(self, session_id: int, user: User) -> TutoringSession:
        """
        Generate and attach the lesson summary.

        Nothing is written unless the generator returns a complete summary, so a
        failed call can simply be retried.
        """
        session = self.sessions.get_session(session_id, user)
        ensure_tutor_or_admin(session, user)
        self._check_summary_preconditions(session)

        tutor_notes = session.tutor_notes
        subject = session.subject.name if session.subject else None
        student_name = session.student.full_name if session.student else None
        duration = session.duration
        # Release the read transaction while the generator runs
        self.db.rollback()

        logger.info(f"🤖 Generating lesson summary for session {session_id}")
        summary = await generate_lesson_summary(
            self.generator, tutor_notes, subject=subject, student_name=student_name, duration=duration
        )

        def attach(fresh: TutoringSession) -> None:
            self._check_summary_preconditions(fresh)
            fresh.ai_summary = summary.model_dump()
            fresh.summary_generated_at = datetime.utcnow()

        session = self.sessions.mutate(session_id, user, attach)
        logger.info(f"✅ Lesson summary attached to session {session_id}")
        return session

    # ------------------------------------------------------------------
    # Quiz generation
    # ------------------------------------------------------------------

    @staticmethod
    def _check_quiz_preconditions(session: TutoringSession, quiz: Optional[SessionQuiz]) -> None:
        if session.status != SessionStatus.COMPLETED.value or not session.ai_summary:
            raise SummaryMissing()
        if quiz is not None and (quiz.attempt_count or 0) > 0:
            raise ImmutableQuizError()

    async def generate_quiz(self, session_id: int, user: User) -> SessionQuiz:
        """Generate the session's quiz, replacing a previous one that nobody has taken"""
        session = self.sessions.get_session(session_id, user)
        ensure_tutor_or_admin(session, user)
        self._check_quiz_preconditions(session, self.repo.get_quiz_by_session(self.db, session_id))

        summary = LessonSummary(**session.ai_summary)
        subject = session.subject.name if session.subject else None
        student_name = session.student.full_name if session.student else None
        self.db.rollback()

        logger.info(f"🤖 Generating quiz for session {session_id}")
        generated = await generate_session_quiz(
            self.generator, summary, subject=subject, student_name=student_name
        )

        existing = self.repo.get_quiz_by_session(self.db, session_id, fresh=True)
        self._check_quiz_preconditions(session, existing)
        try:
            quiz = self.repo.save_quiz(self.db, session_id, existing, generated)
        except RaceError:
            # An attempt landing mid-generation makes the quiz immutable
            current = self.repo.get_quiz_by_session(self.db, session_id, fresh=True)
            if current is not None and (current.attempt_count or 0) > 0:
                raise ImmutableQuizError()
            raise

        logger.info(
            f"✅ Quiz {quiz.id} saved for session {session_id} ({len(quiz.questions)} questions)"
        )
        return quiz

    # ------------------------------------------------------------------
    # Quiz retrieval and grading
    # ------------------------------------------------------------------

    def _get_quiz_for(self, session: TutoringSession) -> SessionQuiz:
        quiz = self.repo.get_quiz_by_session(self.db, session.id)
        if not quiz:
            raise QuizNotFound()
        return quiz

    def get_quiz(self, session_id: int, user: User) -> tuple[SessionQuiz, Optional[QuizAttempt], bool]:
        """
        Return the quiz, the student's current attempt (if any) and whether answers
        may be revealed to the caller.
        """
        session = self.sessions.get_session(session_id, user)
        quiz = self._get_quiz_for(session)
        attempt = self.repo.get_latest_attempt(self.db, quiz.id, session.student_id)
        reveal_answers = user.id != session.student_id or attempt is not None
        return quiz, attempt, reveal_answers

    def get_attempts(self, session_id: int, user: User) -> list[QuizAttempt]:
        session = self.sessions.get_session(session_id, user)
        quiz = self._get_quiz_for(session)
        return self.repo.get_attempts(self.db, quiz.id, session.student_id)

    def submit_answers(self, session_id: int, answers: Mapping[Any, Any], user: User) -> QuizAttempt:
        """Grade a full submission and store it as a new, immutable attempt"""
        session = self.sessions.get_session(session_id, user)
        if user.id != session.student_id:
            raise Forbidden("Only the session's student can submit quiz answers")
        if session.status != SessionStatus.COMPLETED.value:
            raise NotCompleted("Quizzes can only be taken for completed sessions")
        quiz = self._get_quiz_for(session)

        graded = grading.grade(quiz.questions, answers)
        attempt = self.repo.create_attempt(self.db, quiz, user.id, graded)
        logger.info(
            f"✅ Quiz {quiz.id} attempt {attempt.id} by student {user.id}: "
            f"{graded.score}% ({graded.correct_count}/{graded.total_questions})"
        )
        return attempt
