"""Session repository - Database operations for tutoring sessions"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ...errors import RaceError
from ...models import Subject, TutoringSession, User

logger = logging.getLogger(__name__)


class SessionRepository:
    """Repository for tutoring session database operations"""

    @staticmethod
    def get_session_by_id(db: Session, session_id: int) -> Optional[TutoringSession]:
        return db.query(TutoringSession).filter(TutoringSession.id == session_id).first()

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_subject_by_id(db: Session, subject_id: int) -> Optional[Subject]:
        return db.query(Subject).filter(Subject.id == subject_id).first()

    @staticmethod
    def create_session(db: Session, **session_data) -> TutoringSession:
        session = TutoringSession(**session_data)
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    @staticmethod
    def save(db: Session, session: TutoringSession) -> TutoringSession:
        """
        Commit pending changes to a session.

        The UPDATE only matches the version that was read, so a concurrent writer
        makes this raise RaceError after rolling back.
        """
        try:
            db.commit()
        except StaleDataError as e:
            db.rollback()
            logger.warning(f"⚠️ Lost optimistic write on session {session.id}: {e}")
            raise RaceError() from e
        db.refresh(session)
        return session

    @staticmethod
    def get_overlapping_scheduled(
        db: Session, tutor_id: int, start: datetime, end: datetime, exclude_id: int
    ) -> list[TutoringSession]:
        """Scheduled sessions of the tutor whose time range intersects [start, end)"""
        # Sessions are at most a day long; narrow in SQL, intersect in Python
        candidates = (
            db.query(TutoringSession)
            .filter(
                TutoringSession.tutor_id == tutor_id,
                TutoringSession.status == "scheduled",
                TutoringSession.id != exclude_id,
                TutoringSession.scheduled_at >= start - timedelta(days=1),
                TutoringSession.scheduled_at < end,
            )
            .all()
        )
        return [
            s
            for s in candidates
            if s.scheduled_at < end
            and s.scheduled_at + timedelta(minutes=s.duration or 60) > start
        ]
