"""Assessment router - lesson reports, improvement quizzes and grading"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...errors import QuizGenerationFailed, RaceError, StateError
from ...models import User
from ...services.notification_service import NotificationDispatcher, get_notification_dispatcher
from ...services.text_generation import TextGenerator, get_text_generator
from .schemas import (
    QuizAttemptResponse,
    QuizGenerationWarning,
    QuizResponse,
    QuizSubmission,
    QuizSubmissionResponse,
    QuizWithAttempt,
    SummaryResponse,
)
from .service import AssessmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Assessments"])


def get_assessment_service(
    db: Session = Depends(get_db),
    generator: TextGenerator = Depends(get_text_generator),
) -> AssessmentService:
    """Dependency injection for AssessmentService"""
    return AssessmentService(db, generator)


@router.post("/{session_id}/generate-summary", response_model=SummaryResponse)
async def generate_summary(
    session_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """
    Generate the lesson report from the tutor's notes, then try to build the
    improvement quiz. A quiz failure does not undo the report.
    """
    session = await service.generate_summary(session_id, current_user)
    response = SummaryResponse(
        sessionId=session.id,
        aiSummary=session.ai_summary,
        summaryGeneratedAt=session.summary_generated_at,
    )

    try:
        quiz = await service.generate_quiz(session_id, current_user)
        response.quizId = quiz.id
        event = "lesson_report_ready"
    except (QuizGenerationFailed, RaceError, StateError) as e:
        logger.warning(f"⚠️ Summary saved but quiz generation failed for session {session_id}: {e.message}")
        response.warning = QuizGenerationWarning(
            message="Lesson report saved, but the quiz could not be generated. You can retry quiz generation."
        )
        event = "lesson_report_ready_no_quiz"

    background_tasks.add_task(notifier.session_event, session_id, event, current_user.id)
    return response


@router.post("/{session_id}/generate-quiz", response_model=QuizResponse)
async def generate_quiz(
    session_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
    notifier: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """(Re)generate the improvement quiz; refused once the student has taken it"""
    quiz = await service.generate_quiz(session_id, current_user)
    background_tasks.add_task(notifier.session_event, session_id, "quiz_ready", current_user.id)
    return QuizResponse.from_model(quiz)


@router.get("/{session_id}/quiz", response_model=QuizWithAttempt)
async def get_quiz(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Get the session's quiz and the student's latest attempt, if any"""
    quiz, attempt, reveal_answers = service.get_quiz(session_id, current_user)
    return QuizWithAttempt(
        quiz=QuizResponse.from_model(quiz, reveal_answers=reveal_answers),
        attempt=QuizAttemptResponse.from_model(attempt) if attempt else None,
    )


@router.post("/{session_id}/quiz/submit", response_model=QuizSubmissionResponse)
async def submit_quiz(
    session_id: int,
    data: QuizSubmission,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    """Grade a complete set of answers"""
    attempt = service.submit_answers(session_id, data.answers, current_user)
    result = QuizAttemptResponse.from_model(attempt)
    return QuizSubmissionResponse(
        **result.model_dump(),
        message=(
            f"Quiz completed! You scored {attempt.score}% "
            f"({attempt.correct_count}/{attempt.total_questions} correct)"
        ),
    )


@router.get("/{session_id}/quiz/attempts", response_model=list[QuizAttemptResponse])
async def list_quiz_attempts(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: AssessmentService = Depends(get_assessment_service),
):
    """All of the student's attempts at this session's quiz, oldest first"""
    return [QuizAttemptResponse.from_model(a) for a in service.get_attempts(session_id, current_user)]
