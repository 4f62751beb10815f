"""Assessment domain schemas - lesson reports, quizzes and graded attempts"""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel

from ...models_quiz import QuizAttempt, SessionQuiz
from ..sessions.schemas import LessonSummary


class QuizQuestion(BaseModel):
    question: str
    type: Literal["multiple_choice", "true_false"]
    options: Optional[list[str]] = None
    correctAnswer: str
    explanation: str
    topic: str


class GeneratedQuiz(BaseModel):
    """A generated quiz that passed validation, not yet stored"""

    questions: list[QuizQuestion]
    focusAreas: list[str]
    difficulty: Literal["easy", "medium", "hard"]


class QuestionView(BaseModel):
    """Question as shown to a student; answers stay hidden until they have an attempt"""

    question: str
    type: str
    options: Optional[list[str]] = None
    correctAnswer: Optional[str] = None
    explanation: Optional[str] = None
    topic: str


class QuizResponse(BaseModel):
    id: int
    sessionId: int
    questions: list[QuestionView]
    focusAreas: list[str]
    difficulty: str
    totalQuestions: int
    createdAt: Optional[datetime]
    updatedAt: Optional[datetime]

    @classmethod
    def from_model(cls, quiz: SessionQuiz, reveal_answers: bool = True) -> "QuizResponse":
        questions = []
        for q in quiz.questions:
            view = QuestionView(
                question=q["question"],
                type=q["type"],
                options=q.get("options"),
                topic=q["topic"],
            )
            if reveal_answers:
                view.correctAnswer = q["correctAnswer"]
                view.explanation = q["explanation"]
            questions.append(view)
        return cls(
            id=quiz.id,
            sessionId=quiz.session_id,
            questions=questions,
            focusAreas=quiz.focus_areas,
            difficulty=quiz.difficulty,
            totalQuestions=len(quiz.questions),
            createdAt=quiz.created_at,
            updatedAt=quiz.updated_at,
        )


class QuestionResult(BaseModel):
    questionIndex: int
    question: str
    studentAnswer: str
    correctAnswer: str
    isCorrect: bool
    explanation: str
    topic: str


class QuizAttemptResponse(BaseModel):
    id: int
    quizId: int
    sessionId: int
    studentId: int
    answers: dict[str, str]
    score: int
    correctCount: int
    totalQuestions: int
    detailedResults: list[QuestionResult]
    completedAt: datetime

    @classmethod
    def from_model(cls, attempt: QuizAttempt) -> "QuizAttemptResponse":
        return cls(
            id=attempt.id,
            quizId=attempt.quiz_id,
            sessionId=attempt.session_id,
            studentId=attempt.student_id,
            answers=attempt.answers,
            score=attempt.score,
            correctCount=attempt.correct_count,
            totalQuestions=attempt.total_questions,
            detailedResults=[QuestionResult(**r) for r in attempt.detailed_results],
            completedAt=attempt.completed_at,
        )


class QuizWithAttempt(BaseModel):
    quiz: QuizResponse
    attempt: Optional[QuizAttemptResponse] = None


class QuizSubmission(BaseModel):
    """answers maps question index ("0".."n-1") to the chosen answer"""

    answers: dict[str, str]


class QuizSubmissionResponse(QuizAttemptResponse):
    message: str


class QuizGenerationWarning(BaseModel):
    type: Literal["quiz_generation_failed"] = "quiz_generation_failed"
    message: str


class SummaryResponse(BaseModel):
    sessionId: int
    aiSummary: LessonSummary
    summaryGeneratedAt: Optional[datetime]
    quizId: Optional[int] = None
    warning: Optional[QuizGenerationWarning] = None
