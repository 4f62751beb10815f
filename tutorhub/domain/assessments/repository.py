"""Assessment repository - Database operations for quizzes and attempts"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...errors import RaceError
from ...models_quiz import QuizAttempt, SessionQuiz
from .grading import GradedSubmission
from .schemas import GeneratedQuiz

logger = logging.getLogger(__name__)


class AssessmentRepository:
    """Repository for quiz and attempt database operations"""

    @staticmethod
    def get_quiz_by_session(db: Session, session_id: int, fresh: bool = False) -> Optional[SessionQuiz]:
        query = db.query(SessionQuiz).filter(SessionQuiz.session_id == session_id)
        if fresh:
            query = query.populate_existing()
        return query.first()

    @staticmethod
    def get_latest_attempt(db: Session, quiz_id: int, student_id: int) -> Optional[QuizAttempt]:
        return (
            db.query(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz_id, QuizAttempt.student_id == student_id)
            .order_by(desc(QuizAttempt.id))
            .first()
        )

    @staticmethod
    def get_attempts(db: Session, quiz_id: int, student_id: int) -> list[QuizAttempt]:
        return (
            db.query(QuizAttempt)
            .filter(QuizAttempt.quiz_id == quiz_id, QuizAttempt.student_id == student_id)
            .order_by(QuizAttempt.id)
            .all()
        )

    @staticmethod
    def save_quiz(
        db: Session, session_id: int, existing: Optional[SessionQuiz], generated: GeneratedQuiz
    ) -> SessionQuiz:
        """
        Create the session's quiz, or overwrite `existing` in place.

        The caller has checked that `existing` has no attempts; the version guard on
        the UPDATE catches an attempt committed since that check.
        """
        questions = [q.model_dump(exclude_none=True) for q in generated.questions]
        if existing is None:
            quiz = SessionQuiz(
                session_id=session_id,
                questions=questions,
                focus_areas=generated.focusAreas,
                difficulty=generated.difficulty,
                attempt_count=0,
            )
            db.add(quiz)
        else:
            quiz = existing
            quiz.questions = questions
            quiz.focus_areas = generated.focusAreas
            quiz.difficulty = generated.difficulty

        try:
            db.commit()
        except (StaleDataError, IntegrityError) as e:
            db.rollback()
            logger.warning(f"⚠️ Lost quiz write for session {session_id}: {e}")
            raise RaceError("The quiz was modified concurrently. Please retry.") from e
        db.refresh(quiz)
        return quiz

    @staticmethod
    def create_attempt(
        db: Session, quiz: SessionQuiz, student_id: int, graded: GradedSubmission
    ) -> QuizAttempt:
        """
        Insert the attempt and bump the quiz's attempt counter in one transaction.

        Not retried on a lost write: the answers were graded against a quiz that has
        since been replaced, so the student must resubmit against the new one.
        """
        attempt = QuizAttempt(
            quiz_id=quiz.id,
            session_id=quiz.session_id,
            student_id=student_id,
            answers=graded.answers,
            score=graded.score,
            correct_count=graded.correct_count,
            total_questions=graded.total_questions,
            detailed_results=graded.detailed_results,
            completed_at=datetime.utcnow(),
        )
        db.add(attempt)
        quiz.attempt_count = (quiz.attempt_count or 0) + 1

        try:
            db.commit()
        except StaleDataError as e:
            db.rollback()
            logger.warning(f"⚠️ Quiz {quiz.id} changed while grading: {e}")
            raise RaceError("The quiz changed while your answers were being graded. Please retry.") from e
        db.refresh(attempt)
        return attempt
