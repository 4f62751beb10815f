"""
Session Notification Dispatcher
Fire-and-forget in-app + email notifications for session lifecycle and lesson-report events.
Runs after the response is sent (FastAPI BackgroundTasks); failures are logged, never raised.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from ..config import FRONTEND_URL
from ..database import SessionLocal
from ..email_service import EmailNotConfigured, send_email
from ..email_templates import session_notification_template
from ..models import Notification, TutoringSession, User

logger = logging.getLogger(__name__)


# event -> (recipient, title, body); recipient is "tutor", "student" or "counterparty"
SESSION_EVENTS = {
    "cancel_requested": (
        "counterparty",
        "Cancellation requested",
        "{actor} asked to cancel your {subject} session on {when}. Please accept or decline.",
    ),
    "cancel_rejected": (
        "counterparty",
        "Cancellation declined",
        "{actor} declined to cancel your {subject} session on {when}. The session is still on.",
    ),
    "session_cancelled": (
        "counterparty",
        "Session cancelled",
        "Your {subject} session on {when} has been cancelled.",
    ),
    "session_scheduled": (
        "student",
        "Session confirmed",
        "Your {subject} session on {when} is confirmed.",
    ),
    "session_started": (
        "counterparty",
        "Session started",
        "Your {subject} session has started.",
    ),
    "session_completed": (
        "counterparty",
        "Session completed",
        "Your {subject} session on {when} has been marked as completed.",
    ),
    "lesson_report_ready": (
        "student",
        "New lesson report available",
        "Your tutor has created a lesson report for your {subject} session. "
        "View the report and take the improvement quiz!",
    ),
    "lesson_report_ready_no_quiz": (
        "student",
        "New lesson report available",
        "Your tutor has created a lesson report for your {subject} session.",
    ),
    "quiz_ready": (
        "student",
        "Improvement quiz ready",
        "A quiz based on your {subject} lesson is ready for you.",
    ),
}


class NotificationDispatcher:
    """Writes in-app notifications and emails the recipient"""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    async def session_event(
        self, session_id: int, event: str, actor_id: Optional[int] = None
    ) -> Optional[int]:
        """
        Notify the right party about a session event.

        Returns the created notification id, or None when nothing was sent.
        """
        if event not in SESSION_EVENTS:
            logger.warning(f"⚠️ Unknown session notification event: {event}")
            return None

        recipient_kind, title, body_template = SESSION_EVENTS[event]
        db = self.session_factory()
        try:
            session = db.query(TutoringSession).filter(TutoringSession.id == session_id).first()
            if not session:
                logger.warning(f"⚠️ Session {session_id} vanished before {event} notification")
                return None

            recipient_id = self._resolve_recipient(session, recipient_kind, actor_id)
            actor = db.query(User).filter(User.id == actor_id).first() if actor_id else None

            body = body_template.format(
                actor=(actor.full_name or "The other party") if actor else "The other party",
                subject=session.subject.name if session.subject else "tutoring",
                when=session.scheduled_at.strftime("%b %d, %Y %H:%M"),
            )

            notification = Notification(
                user_id=recipient_id,
                type=event,
                title=title,
                body=body,
                session_id=session.id,
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)
            logger.info(f"✅ Notification {notification.id} ({event}) created for user {recipient_id}")

            recipient = db.query(User).filter(User.id == recipient_id).first()
            if recipient and recipient.email:
                await self._send_email(recipient, title, body, session.id)

            return notification.id
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Failed to dispatch {event} notification for session {session_id}: {e}")
            return None
        finally:
            db.close()

    @staticmethod
    def _resolve_recipient(session: TutoringSession, kind: str, actor_id: Optional[int]) -> int:
        if kind == "tutor":
            return session.tutor_id
        if kind == "student":
            return session.student_id
        # counterparty of whoever acted; admins acting notify the student
        if actor_id == session.student_id:
            return session.tutor_id
        return session.student_id

    @staticmethod
    async def _send_email(recipient: User, title: str, body: str, session_id: int) -> None:
        try:
            await send_email(
                to=recipient.email,
                subject=f"{title} - TutorHub",
                mjml_content=session_notification_template(
                    recipient.full_name or "there",
                    title,
                    body,
                    cta_url=f"{FRONTEND_URL}/sessions/{session_id}",
                ),
            )
        except EmailNotConfigured:
            logger.debug(f"ℹ️ Email skipped for user {recipient.id}: Resend not configured")
        except Exception as e:
            logger.error(f"❌ Failed to email user {recipient.id}: {e}")


def get_notification_dispatcher() -> NotificationDispatcher:
    """Dependency injection for NotificationDispatcher"""
    return NotificationDispatcher()
