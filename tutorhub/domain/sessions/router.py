"""Session router - FastAPI endpoints for booking, lifecycle and cancellation negotiation"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.notification_service import NotificationDispatcher, get_notification_dispatcher
from .cancellation import Decision
from .lifecycle import SessionStatus
from .schemas import (
    CancelResponseRequest,
    SessionCreate,
    SessionResponse,
    StatusUpdate,
    TutorNotesUpdate,
)
from .service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])

STATUS_EVENTS = {
    SessionStatus.SCHEDULED: "session_scheduled",
    SessionStatus.IN_PROGRESS: "session_started",
    SessionStatus.COMPLETED: "session_completed",
    SessionStatus.CANCELLED: "session_cancelled",
}


def get_session_service(db: Session = Depends(get_db)) -> SessionService:
    """Dependency injection for SessionService"""
    return SessionService(db)


@router.post("", response_model=SessionResponse)
async def create_session(
    data: SessionCreate,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Book a session with a tutor (starts pending)"""
    session = service.create_session(data, current_user)
    return SessionResponse.from_model(session)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Get a session the caller takes part in"""
    return SessionResponse.from_model(service.get_session(session_id, current_user))


@router.put("/{session_id}/status", response_model=SessionResponse)
async def update_session_status(
    session_id: int,
    data: StatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Move the session along its lifecycle"""
    session = service.update_status(session_id, data.status, current_user)
    background_tasks.add_task(
        notifier.session_event, session.id, STATUS_EVENTS[data.status], current_user.id
    )
    return SessionResponse.from_model(session)


@router.put("/{session_id}/tutor-notes", response_model=SessionResponse)
async def update_tutor_notes(
    session_id: int,
    data: TutorNotesUpdate,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Attach the tutor's notes to a completed session"""
    session = service.attach_tutor_notes(session_id, data.tutorNotes, current_user)
    return SessionResponse.from_model(session)


# ============================================================================
# CANCELLATION NEGOTIATION
# ============================================================================


@router.post("/{session_id}/cancel-request", response_model=SessionResponse)
async def request_cancel(
    session_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Ask the other party to cancel; cancels immediately if they already asked"""
    session = service.request_cancel(session_id, current_user)
    event = "session_cancelled" if session.status == SessionStatus.CANCELLED.value else "cancel_requested"
    background_tasks.add_task(notifier.session_event, session.id, event, current_user.id)
    return SessionResponse.from_model(session)


@router.post("/{session_id}/cancel-response", response_model=SessionResponse)
async def respond_to_cancel(
    session_id: int,
    data: CancelResponseRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Accept or decline the other party's cancellation request"""
    session = service.respond_to_cancel(session_id, data.decision, current_user)
    event = "session_cancelled" if data.decision is Decision.ACCEPT else "cancel_rejected"
    background_tasks.add_task(notifier.session_event, session.id, event, current_user.id)
    return SessionResponse.from_model(session)
