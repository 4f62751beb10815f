"""Session domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import TutoringSession
from .cancellation import Decision
from .lifecycle import SessionStatus


class LessonSummary(BaseModel):
    """AI-authored recap of a completed session"""

    whatWasLearned: str
    mistakes: str
    strengths: str
    practiceTasks: str


class SessionCreate(BaseModel):
    """Schema for booking a new session"""

    tutorId: int
    subjectId: Optional[int] = None
    scheduledAt: datetime
    duration: int = Field(60, gt=0, le=24 * 60)
    priceCents: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: SessionStatus


class TutorNotesUpdate(BaseModel):
    tutorNotes: str

    @field_validator("tutorNotes")
    @classmethod
    def notes_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Tutor notes are required")
        return v


class CancelResponseRequest(BaseModel):
    decision: Decision


class SessionResponse(BaseModel):
    """Schema for session response"""

    id: int
    publicId: str
    tutorId: int
    studentId: int
    subjectId: Optional[int]
    scheduledAt: datetime
    duration: int
    status: str
    cancelRequestedByTutor: bool
    cancelRequestedByStudent: bool
    priceCents: Optional[int]
    notes: Optional[str]
    tutorNotes: Optional[str]
    aiSummary: Optional[LessonSummary]
    summaryGeneratedAt: Optional[datetime]
    createdAt: Optional[datetime]
    updatedAt: Optional[datetime]

    @classmethod
    def from_model(cls, session: TutoringSession) -> "SessionResponse":
        return cls(
            id=session.id,
            publicId=session.public_id,
            tutorId=session.tutor_id,
            studentId=session.student_id,
            subjectId=session.subject_id,
            scheduledAt=session.scheduled_at,
            duration=session.duration,
            status=session.status,
            cancelRequestedByTutor=session.cancel_requested_by_tutor,
            cancelRequestedByStudent=session.cancel_requested_by_student,
            priceCents=session.price_cents,
            notes=session.notes,
            tutorNotes=session.tutor_notes,
            aiSummary=LessonSummary(**session.ai_summary) if session.ai_summary else None,
            summaryGeneratedAt=session.summary_generated_at,
            createdAt=session.created_at,
            updatedAt=session.updated_at,
        )
