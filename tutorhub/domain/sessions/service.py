"""Session service - Lifecycle transitions and cancellation negotiation"""

import logging
from datetime import timedelta
from typing import Callable

from sqlalchemy.orm import Session

from ...errors import (
    Forbidden,
    MissingNotes,
    NotCompleted,
    NotesAlreadyAttached,
    RaceError,
    SessionNotFound,
    SlotConflict,
    TutorHubError,
)
from ...models import TutoringSession, User
from . import cancellation, lifecycle
from .cancellation import CancellationState, Decision, Role
from .lifecycle import SessionStatus
from .repository import SessionRepository
from .schemas import SessionCreate

logger = logging.getLogger(__name__)

# One automatic re-read after a lost optimistic write, then the conflict surfaces
MAX_WRITE_ATTEMPTS = 2


def party_role(session: TutoringSession, user: User) -> Role:
    """Role the user plays in this session; admins and outsiders have none"""
    if user.id == session.tutor_id:
        return Role.TUTOR
    if user.id == session.student_id:
        return Role.STUDENT
    raise Forbidden("Only the session's tutor or student can do this")


def ensure_can_view(session: TutoringSession, user: User) -> None:
    if user.role == "admin":
        return
    party_role(session, user)


def ensure_tutor_or_admin(session: TutoringSession, user: User) -> None:
    if user.role == "admin":
        return
    if user.id != session.tutor_id:
        raise Forbidden("Only the session's tutor can do this")


class SessionService:
    """Service layer for session lifecycle business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SessionRepository()

    def get_session(self, session_id: int, user: User) -> TutoringSession:
        session = self.repo.get_session_by_id(self.db, session_id)
        if not session:
            raise SessionNotFound()
        ensure_can_view(session, user)
        return session

    def create_session(self, data: SessionCreate, user: User) -> TutoringSession:
        """Book a session; it starts pending until the tutor confirms"""
        if user.role != "student":
            raise Forbidden("Only students can book sessions")

        tutor = self.repo.get_user_by_id(self.db, data.tutorId)
        if not tutor or tutor.role != "tutor":
            raise SessionNotFound("Tutor not found")
        if data.subjectId is not None and not self.repo.get_subject_by_id(self.db, data.subjectId):
            raise SessionNotFound("Subject not found")

        logger.info(f"📝 Booking session: student={user.id} tutor={tutor.id} at {data.scheduledAt}")
        return self.repo.create_session(
            self.db,
            tutor_id=tutor.id,
            student_id=user.id,
            subject_id=data.subjectId,
            scheduled_at=data.scheduledAt,
            duration=data.duration,
            price_cents=data.priceCents,
            notes=data.notes,
            status=SessionStatus.PENDING.value,
            cancellation_state=CancellationState.NONE.value,
        )

    def mutate(
        self, session_id: int, user: User, apply: Callable[[TutoringSession], None]
    ) -> TutoringSession:
        """
        Read, validate and write a session with compare-and-set.

        `apply` must raise before touching the row when the change is illegal. On a
        lost write the session is re-read and `apply` runs once more against the
        fresh state.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            session = self.get_session(session_id, user)
            try:
                apply(session)
            except TutorHubError:
                self.db.rollback()
                raise
            try:
                return self.repo.save(self.db, session)
            except RaceError:
                if attempt == MAX_WRITE_ATTEMPTS:
                    logger.error(f"❌ Session {session_id} write lost twice, giving up")
                    raise
                logger.info(f"🔁 Session {session_id} changed underneath us, retrying")
        raise RaceError()

    def update_status(self, session_id: int, new_status: SessionStatus, user: User) -> TutoringSession:
        """Move a session along the lifecycle workflow"""

        def apply(session: TutoringSession) -> None:
            next_status = lifecycle.transition(session.status, new_status)

            if (
                next_status is SessionStatus.CANCELLED
                and session.status == SessionStatus.SCHEDULED.value
                and user.role != "admin"
            ):
                raise Forbidden("Scheduled sessions are cancelled by mutual agreement")

            if next_status is SessionStatus.SCHEDULED:
                start = session.scheduled_at
                end = start + timedelta(minutes=session.duration or 60)
                clashes = self.repo.get_overlapping_scheduled(
                    self.db, session.tutor_id, start, end, exclude_id=session.id
                )
                if clashes:
                    logger.warning(
                        f"⚠️ Session {session.id} overlaps scheduled session(s) "
                        f"{[s.id for s in clashes]}"
                    )
                    raise SlotConflict()

            logger.info(f"✅ Session {session.id} transitioned: {session.status} → {next_status.value}")
            session.status = next_status.value
            if next_status is not SessionStatus.SCHEDULED:
                session.cancellation_state = CancellationState.NONE.value

        return self.mutate(session_id, user, apply)

    def attach_tutor_notes(self, session_id: int, notes: str, user: User) -> TutoringSession:
        """Attach the tutor's notes to a completed session, exactly once"""

        def apply(session: TutoringSession) -> None:
            ensure_tutor_or_admin(session, user)
            if session.status != SessionStatus.COMPLETED.value:
                raise NotCompleted("Tutor notes can be added once the session is completed")
            if not notes.strip():
                raise MissingNotes("Tutor notes cannot be blank")
            if session.tutor_notes and session.tutor_notes.strip():
                raise NotesAlreadyAttached()
            session.tutor_notes = notes.strip()

        return self.mutate(session_id, user, apply)

    def request_cancel(self, session_id: int, user: User) -> TutoringSession:
        def apply(session: TutoringSession) -> None:
            role = party_role(session, user)
            outcome = cancellation.request_cancel(session.status, session.cancellation_state, role)
            self._apply_outcome(session, outcome, f"{role.value} requested cancellation")

        return self.mutate(session_id, user, apply)

    def respond_to_cancel(self, session_id: int, decision: Decision, user: User) -> TutoringSession:
        def apply(session: TutoringSession) -> None:
            role = party_role(session, user)
            outcome = cancellation.respond_to_cancel(
                session.status, session.cancellation_state, role, decision
            )
            self._apply_outcome(session, outcome, f"{role.value} answered {Decision(decision).value}")

        return self.mutate(session_id, user, apply)

    @staticmethod
    def _apply_outcome(session: TutoringSession, outcome, reason: str) -> None:
        logger.info(
            f"✅ Session {session.id} cancellation ({reason}): "
            f"{session.status}/{session.cancellation_state} → {outcome.status.value}/{outcome.state.value}"
        )
        session.status = outcome.status.value
        session.cancellation_state = outcome.state.value
