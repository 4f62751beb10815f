"""
Two-party cancellation negotiation for scheduled sessions.

Either party may ask to cancel; the other party accepts or rejects. When both parties
have asked, that is agreement and the session is cancelled on the spot, whichever
request arrived first. Every function here is pure: it takes the current status and
negotiation state and returns the outcome, or raises without side effects.
"""

from dataclasses import dataclass
from enum import Enum

from ...errors import (
    AlreadyRequested,
    NoPendingRequest,
    NotScheduled,
    SelfRequestConflict,
)
from .lifecycle import SessionStatus, transition


class Role(str, Enum):
    TUTOR = "tutor"
    STUDENT = "student"

    @property
    def counterparty(self) -> "Role":
        return Role.STUDENT if self is Role.TUTOR else Role.TUTOR


class CancellationState(str, Enum):
    NONE = "none"
    REQUESTED_BY_TUTOR = "requested_by_tutor"
    REQUESTED_BY_STUDENT = "requested_by_student"
    # Never stored: collapses into status=cancelled with state NONE
    MUTUALLY_CANCELLED = "mutually_cancelled"


class Decision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True)
class NegotiationOutcome:
    status: SessionStatus
    state: CancellationState

    @property
    def cancelled(self) -> bool:
        return self.status is SessionStatus.CANCELLED


def requested_by(role: Role) -> CancellationState:
    if role is Role.TUTOR:
        return CancellationState.REQUESTED_BY_TUTOR
    return CancellationState.REQUESTED_BY_STUDENT


def has_requested(state: CancellationState, role: Role) -> bool:
    return state is requested_by(role)


def _settle(status: SessionStatus, state: CancellationState) -> NegotiationOutcome:
    if state is CancellationState.MUTUALLY_CANCELLED:
        return NegotiationOutcome(
            status=transition(status, SessionStatus.CANCELLED),
            state=CancellationState.NONE,
        )
    return NegotiationOutcome(status=status, state=state)


def request_cancel(status: str, state: str, actor: Role) -> NegotiationOutcome:
    """
    Record the actor's wish to cancel.

    Raises:
        NotScheduled: session is not scheduled
        AlreadyRequested: actor already has an open request
    """
    status = SessionStatus(status)
    state = CancellationState(state)

    if status is not SessionStatus.SCHEDULED:
        raise NotScheduled()
    if has_requested(state, actor):
        raise AlreadyRequested()

    if has_requested(state, actor.counterparty):
        return _settle(status, CancellationState.MUTUALLY_CANCELLED)
    return _settle(status, requested_by(actor))


def respond_to_cancel(status: str, state: str, actor: Role, decision: Decision) -> NegotiationOutcome:
    """
    Accept or reject the counterparty's open request.

    Raises:
        NotScheduled: session is not scheduled
        SelfRequestConflict: the open request is the actor's own
        NoPendingRequest: the counterparty has not asked to cancel
    """
    status = SessionStatus(status)
    state = CancellationState(state)
    decision = Decision(decision)

    if status is not SessionStatus.SCHEDULED:
        raise NotScheduled()
    if has_requested(state, actor):
        raise SelfRequestConflict()
    if not has_requested(state, actor.counterparty):
        raise NoPendingRequest()

    if decision is Decision.ACCEPT:
        return _settle(status, CancellationState.MUTUALLY_CANCELLED)
    return _settle(status, CancellationState.NONE)
