# tests/test_assessment_service.py
import asyncio
import json

import pytest

from conftest import FakeTextGenerator
from tutorhub.domain.assessments.service import AssessmentService
from tutorhub.errors import (
    Forbidden,
    GenerationFailed,
    ImmutableQuizError,
    IncompleteSubmission,
    MissingNotes,
    NotCompleted,
    QuizGenerationFailed,
    QuizNotFound,
    RaceError,
    SummaryAlreadyAttached,
    SummaryMissing,
)
from tutorhub.models import TutoringSession
from tutorhub.models_quiz import QuizAttempt, SessionQuiz

SUMMARY = {
    "whatWasLearned": "Linear equations",
    "mistakes": "Sign errors",
    "strengths": "Persistence",
    "practiceTasks": "Ten practice equations",
}


@pytest.fixture
def completed(make_session):
    return make_session(status="completed", tutor_notes="Worked on linear equations; sign slips.")


@pytest.fixture
def summarized(make_session):
    return make_session(status="completed", tutor_notes="Linear equations", ai_summary=SUMMARY)


def run(coro):
    return asyncio.run(coro)


def test_summary_is_attached(db, users, completed, summary_reply):
    service = AssessmentService(db, FakeTextGenerator([summary_reply]))
    session = run(service.generate_summary(completed.id, users.tutor))
    assert session.ai_summary["mistakes"].startswith("- Sign errors")
    assert session.summary_generated_at is not None


def test_summary_preconditions(db, users, make_session, summarized):
    service = AssessmentService(db, FakeTextGenerator())
    with pytest.raises(NotCompleted):
        run(service.generate_summary(make_session(status="in_progress", tutor_notes="x").id, users.tutor))
    with pytest.raises(MissingNotes):
        run(service.generate_summary(make_session(status="completed").id, users.tutor))
    with pytest.raises(SummaryAlreadyAttached):
        run(service.generate_summary(summarized.id, users.tutor))


def test_only_tutor_or_admin_generates(db, users, completed, summary_reply):
    generator = FakeTextGenerator([summary_reply])
    service = AssessmentService(db, generator)
    with pytest.raises(Forbidden):
        run(service.generate_summary(completed.id, users.student))
    assert generator.prompts == []
    assert run(service.generate_summary(completed.id, users.admin)).ai_summary


def test_failed_summary_writes_nothing_and_can_be_retried(db, users, completed, summary_reply):
    generator = FakeTextGenerator([json.dumps({"whatWasLearned": "partial"}), summary_reply])
    service = AssessmentService(db, generator)

    with pytest.raises(GenerationFailed):
        run(service.generate_summary(completed.id, users.tutor))
    db.expire_all()
    assert db.get(TutoringSession, completed.id).ai_summary is None

    assert run(service.generate_summary(completed.id, users.tutor)).ai_summary is not None


def test_quiz_needs_summary(db, users, completed):
    with pytest.raises(SummaryMissing):
        run(AssessmentService(db, FakeTextGenerator()).generate_quiz(completed.id, users.tutor))


def test_quiz_generation_failure_stores_nothing(db, users, summarized):
    service = AssessmentService(db, FakeTextGenerator(["not json at all"]))
    with pytest.raises(QuizGenerationFailed):
        run(service.generate_quiz(summarized.id, users.tutor))
    with pytest.raises(QuizNotFound):
        service.get_quiz(summarized.id, users.tutor)


def test_quiz_is_replaced_until_first_attempt(db, users, summarized, quiz_reply):
    single = json.dumps(
        {
            "questions": [
                {
                    "question": "Is 3 odd?",
                    "type": "true_false",
                    "correctAnswer": "true",
                    "explanation": "3 = 2 * 1 + 1",
                    "topic": "Parity",
                }
            ]
        }
    )
    service = AssessmentService(db, FakeTextGenerator([quiz_reply, single, quiz_reply]))

    first = run(service.generate_quiz(summarized.id, users.tutor))
    second = run(service.generate_quiz(summarized.id, users.tutor))
    assert second.id == first.id
    assert len(second.questions) == 1

    service.submit_answers(summarized.id, {"0": "True"}, users.student)
    with pytest.raises(ImmutableQuizError):
        run(service.generate_quiz(summarized.id, users.tutor))

    quiz, _, _ = service.get_quiz(summarized.id, users.tutor)
    assert len(quiz.questions) == 1


def test_answers_hidden_from_student_until_attempt(db, users, summarized, quiz_reply):
    service = AssessmentService(db, FakeTextGenerator([quiz_reply]))
    run(service.generate_quiz(summarized.id, users.tutor))

    _, attempt, reveal = service.get_quiz(summarized.id, users.student)
    assert attempt is None and reveal is False
    _, _, tutor_reveal = service.get_quiz(summarized.id, users.tutor)
    assert tutor_reveal is True

    service.submit_answers(summarized.id, {"0": "4", "1": "true", "2": "x = 3"}, users.student)
    _, attempt, reveal = service.get_quiz(summarized.id, users.student)
    assert reveal is True
    assert attempt.score == 67


def test_submission_rules(db, users, summarized, quiz_reply):
    service = AssessmentService(db, FakeTextGenerator([quiz_reply]))
    with pytest.raises(QuizNotFound):
        service.submit_answers(summarized.id, {"0": "4"}, users.student)

    run(service.generate_quiz(summarized.id, users.tutor))
    with pytest.raises(Forbidden):
        service.submit_answers(summarized.id, {"0": "4", "1": "true", "2": "x = 2"}, users.tutor)
    with pytest.raises(IncompleteSubmission):
        service.submit_answers(summarized.id, {"0": "4", "1": "true"}, users.student)
    assert service.get_attempts(summarized.id, users.student) == []


def test_retakes_are_kept_and_latest_is_current(db, users, summarized, quiz_reply):
    service = AssessmentService(db, FakeTextGenerator([quiz_reply]))
    quiz = run(service.generate_quiz(summarized.id, users.tutor))

    service.submit_answers(summarized.id, {"0": "3", "1": "false", "2": "x = 3"}, users.student)
    service.submit_answers(summarized.id, {"0": "4", "1": "true", "2": "x = 2"}, users.student)

    attempts = service.get_attempts(summarized.id, users.tutor)
    assert [a.score for a in attempts] == [0, 100]
    _, latest, _ = service.get_quiz(summarized.id, users.student)
    assert latest.id == attempts[-1].id
    db.refresh(quiz)
    assert quiz.attempt_count == 2


class SubmitsBeforeReplying:
    """Generator whose reply arrives only after the student has taken the current quiz"""

    def __init__(self, session_factory, session_id, student, reply):
        self.session_factory = session_factory
        self.session_id = session_id
        self.student = student
        self.reply = reply

    async def generate(self, prompt: str) -> str:
        other = self.session_factory()
        try:
            AssessmentService(other, FakeTextGenerator()).submit_answers(
                self.session_id, {"0": "4", "1": "true", "2": "x = 2"}, self.student
            )
        finally:
            other.close()
        return self.reply


def test_attempt_landing_during_regeneration_keeps_quiz(
    db, session_factory, users, summarized, quiz_reply
):
    run(AssessmentService(db, FakeTextGenerator([quiz_reply])).generate_quiz(summarized.id, users.tutor))
    replacement = json.dumps(
        {
            "questions": [
                {
                    "question": "Is 3 odd?",
                    "type": "true_false",
                    "correctAnswer": "true",
                    "explanation": "3 = 2 * 1 + 1",
                    "topic": "Parity",
                }
            ]
        }
    )
    generator = SubmitsBeforeReplying(session_factory, summarized.id, users.student, replacement)

    with pytest.raises(ImmutableQuizError):
        run(AssessmentService(db, generator).generate_quiz(summarized.id, users.tutor))

    fresh = session_factory()
    try:
        quiz = fresh.query(SessionQuiz).filter(SessionQuiz.session_id == summarized.id).one()
        assert len(quiz.questions) == 3
        assert quiz.questions[0]["question"] == "What is 2 + 2?"
        assert quiz.attempt_count == 1
        assert fresh.query(QuizAttempt).count() == 1
    finally:
        fresh.close()


def test_regeneration_during_grading_rejects_the_stale_attempt(
    db, session_factory, users, summarized, quiz_reply
):
    run(AssessmentService(db, FakeTextGenerator([quiz_reply])).generate_quiz(summarized.id, users.tutor))
    replacement = json.dumps(
        {
            "questions": [
                {
                    "question": "Is 4 even?",
                    "type": "true_false",
                    "correctAnswer": "true",
                    "explanation": "4 = 2 * 2",
                    "topic": "Parity",
                }
            ]
        }
    )

    # The student's session has the three-question quiz loaded
    student_side = AssessmentService(db, FakeTextGenerator())
    quiz, _, _ = student_side.get_quiz(summarized.id, users.student)
    assert len(quiz.questions) == 3

    tutor_db = session_factory()
    try:
        run(
            AssessmentService(tutor_db, FakeTextGenerator([replacement])).generate_quiz(
                summarized.id, users.tutor
            )
        )
    finally:
        tutor_db.close()

    with pytest.raises(RaceError):
        student_side.submit_answers(summarized.id, {"0": "4", "1": "true", "2": "x = 2"}, users.student)

    db.expire_all()
    assert db.query(QuizAttempt).count() == 0
    stored = db.query(SessionQuiz).filter(SessionQuiz.session_id == summarized.id).one()
    assert stored.questions[0]["question"] == "Is 4 even?"
    assert stored.attempt_count == 0
