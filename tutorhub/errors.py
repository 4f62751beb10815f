"""
Domain error taxonomy

Every failure raised by the session and assessment services derives from TutorHubError and
carries the HTTP status and a stable machine-readable code. main.py turns them into
{"detail": ..., "code": ...} responses.
"""

from typing import Optional


class TutorHubError(Exception):
    status_code = 400
    code = "error"
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ============================================================================
# STATE ERRORS - illegal lifecycle / cancellation / pipeline transitions
# ============================================================================


class StateError(TutorHubError):
    status_code = 409
    code = "state_error"
    default_message = "Operation not allowed in the current session state"


class InvalidTransition(StateError):
    code = "invalid_transition"

    def __init__(self, current: str, requested: str):
        self.current = getattr(current, "value", current)
        self.requested = getattr(requested, "value", requested)
        super().__init__(f"Cannot move session from '{self.current}' to '{self.requested}'")


class NotScheduled(StateError):
    code = "not_scheduled"
    default_message = "Cancellation is only possible while the session is scheduled"


class AlreadyRequested(StateError):
    code = "already_requested"
    default_message = "You have already requested to cancel this session"


class NoPendingRequest(StateError):
    code = "no_pending_request"
    default_message = "There is no cancellation request to respond to"


class SelfRequestConflict(StateError):
    code = "self_request_conflict"
    default_message = "You cannot respond to your own cancellation request"


class SlotConflict(StateError):
    code = "slot_conflict"
    default_message = "Time slot already booked"


class NotCompleted(StateError):
    code = "not_completed"
    default_message = "Session must be completed first"


class MissingNotes(StateError):
    code = "missing_notes"
    default_message = "Tutor notes are required to generate a summary"


class NotesAlreadyAttached(StateError):
    code = "notes_already_attached"
    default_message = "Tutor notes have already been attached to this session"


class SummaryAlreadyAttached(StateError):
    code = "summary_already_attached"
    default_message = "A lesson summary already exists for this session"


class SummaryMissing(StateError):
    code = "summary_missing"
    default_message = "AI summary is required to generate a quiz. Please generate the summary first."


class ImmutableQuizError(StateError):
    code = "immutable_quiz"
    default_message = "This quiz already has attempts and can no longer be regenerated"


# ============================================================================
# CONTRACT ERRORS - malformed input or generator output
# ============================================================================


class ContractError(TutorHubError):
    status_code = 422
    code = "contract_error"
    default_message = "Malformed payload"


class IncompleteSubmission(ContractError):
    code = "incomplete_submission"
    default_message = "Every question must be answered exactly once"


class MalformedGeneratorOutput(ContractError):
    code = "malformed_generator_output"
    default_message = "Generated content did not match the expected structure"


# ============================================================================
# CONCURRENCY / EXTERNAL SERVICE ERRORS
# ============================================================================


class RaceError(TutorHubError):
    status_code = 409
    code = "race_error"
    default_message = "The session was modified concurrently. Please retry."


class ExternalServiceError(TutorHubError):
    status_code = 502
    code = "external_service_error"
    default_message = "The AI service is unavailable. Please try again."


class GenerationFailed(ExternalServiceError):
    code = "generation_failed"
    default_message = "Failed to generate AI summary. Please try again."


class QuizGenerationFailed(ExternalServiceError):
    code = "quiz_generation_failed"
    default_message = "Failed to generate quiz. Please try again."


# ============================================================================
# LOOKUP / ACCESS ERRORS
# ============================================================================


class NotFound(TutorHubError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class SessionNotFound(NotFound):
    code = "session_not_found"
    default_message = "Session not found"


class QuizNotFound(NotFound):
    code = "quiz_not_found"
    default_message = "Quiz not found for this session"


class NotificationNotFound(NotFound):
    code = "notification_not_found"
    default_message = "Notification not found"


class Forbidden(TutorHubError):
    status_code = 403
    code = "forbidden"
    default_message = "Not authorized to perform this action"


class Unauthenticated(TutorHubError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Not authenticated"
