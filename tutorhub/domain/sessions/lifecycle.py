"""
Session status workflow

    pending → scheduled → in_progress → completed
                  │             │
                  └──────┬──────┘
                         ▼
                     cancelled

completed and cancelled are terminal.
"""

from enum import Enum

from ...errors import InvalidTransition


class SessionStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


VALID_TRANSITIONS = {
    SessionStatus.PENDING: {SessionStatus.SCHEDULED},
    SessionStatus.SCHEDULED: {SessionStatus.IN_PROGRESS, SessionStatus.CANCELLED},
    SessionStatus.IN_PROGRESS: {SessionStatus.COMPLETED, SessionStatus.CANCELLED},
    SessionStatus.COMPLETED: set(),  # Terminal state
    SessionStatus.CANCELLED: set(),  # Terminal state
}


def can_transition(current: str, new: str) -> bool:
    try:
        return SessionStatus(new) in VALID_TRANSITIONS[SessionStatus(current)]
    except ValueError:
        return False


def transition(current: str, new: str) -> SessionStatus:
    """
    Validate a status change and return the new status.

    Raises:
        InvalidTransition: the edge is not in the workflow (unknown statuses included)
    """
    if not can_transition(current, new):
        raise InvalidTransition(current, new)
    return SessionStatus(new)
