# tests/test_cancellation.py
import pytest

from tutorhub.domain.sessions.cancellation import (
    CancellationState,
    Decision,
    Role,
    request_cancel,
    respond_to_cancel,
)
from tutorhub.domain.sessions.lifecycle import SessionStatus
from tutorhub.errors import (
    AlreadyRequested,
    NoPendingRequest,
    NotScheduled,
    SelfRequestConflict,
)


def test_role_counterparty():
    assert Role.TUTOR.counterparty is Role.STUDENT
    assert Role.STUDENT.counterparty is Role.TUTOR


@pytest.mark.parametrize("actor", [Role.TUTOR, Role.STUDENT])
def test_first_request_is_recorded(actor):
    outcome = request_cancel("scheduled", "none", actor)
    assert outcome.status is SessionStatus.SCHEDULED
    assert outcome.state.value == f"requested_by_{actor.value}"
    assert not outcome.cancelled


def test_tutor_requests_student_accepts():
    pending = request_cancel("scheduled", "none", Role.TUTOR)
    outcome = respond_to_cancel(pending.status, pending.state, Role.STUDENT, Decision.ACCEPT)
    assert outcome.cancelled
    assert outcome.state is CancellationState.NONE


def test_student_requests_tutor_rejects():
    pending = request_cancel("scheduled", "none", Role.STUDENT)
    outcome = respond_to_cancel(pending.status, pending.state, Role.TUTOR, "reject")
    assert outcome.status is SessionStatus.SCHEDULED
    assert outcome.state is CancellationState.NONE


def test_rejected_party_may_ask_again():
    pending = request_cancel("scheduled", "none", Role.STUDENT)
    cleared = respond_to_cancel(pending.status, pending.state, Role.TUTOR, Decision.REJECT)
    again = request_cancel(cleared.status, cleared.state, Role.STUDENT)
    assert again.state is CancellationState.REQUESTED_BY_STUDENT


@pytest.mark.parametrize("first", [Role.TUTOR, Role.STUDENT])
def test_both_requests_cancel_whichever_came_first(first):
    pending = request_cancel("scheduled", "none", first)
    outcome = request_cancel(pending.status, pending.state, first.counterparty)
    assert outcome.cancelled
    assert outcome.state is CancellationState.NONE


@pytest.mark.parametrize("actor", [Role.TUTOR, Role.STUDENT])
def test_duplicate_request_is_refused(actor):
    pending = request_cancel("scheduled", "none", actor)
    with pytest.raises(AlreadyRequested):
        request_cancel(pending.status, pending.state, actor)


@pytest.mark.parametrize("actor", [Role.TUTOR, Role.STUDENT])
def test_cannot_answer_own_request(actor):
    pending = request_cancel("scheduled", "none", actor)
    for decision in Decision:
        with pytest.raises(SelfRequestConflict):
            respond_to_cancel(pending.status, pending.state, actor, decision)


def test_response_without_request():
    with pytest.raises(NoPendingRequest):
        respond_to_cancel("scheduled", "none", Role.TUTOR, Decision.ACCEPT)


@pytest.mark.parametrize("status", ["pending", "in_progress", "completed", "cancelled"])
def test_negotiation_requires_scheduled(status):
    with pytest.raises(NotScheduled):
        request_cancel(status, "none", Role.TUTOR)
    with pytest.raises(NotScheduled):
        respond_to_cancel(status, "requested_by_student", Role.TUTOR, Decision.ACCEPT)


def test_negotiation_errors_are_state_errors():
    with pytest.raises(NotScheduled) as exc:
        request_cancel("completed", "none", Role.STUDENT)
    assert exc.value.status_code == 409
    assert exc.value.code == "not_scheduled"
