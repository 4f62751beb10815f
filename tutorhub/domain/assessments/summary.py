"""
Lesson summary generation

Turns a tutor's free-form notes into the four-part lesson report. The reply is accepted
whole or not at all; nothing is written here, the caller persists a validated result.
"""

import asyncio
import logging
from typing import Any, Optional

from ...config import GENERATION_TIMEOUT_SECONDS
from ...errors import GenerationFailed, MalformedGeneratorOutput
from ...services.text_generation import TextGenerationError, TextGenerator, extract_json_object
from ..sessions.schemas import LessonSummary

logger = logging.getLogger(__name__)

SUMMARY_FIELDS = ("whatWasLearned", "mistakes", "strengths", "practiceTasks")


def build_summary_prompt(
    tutor_notes: str,
    subject: Optional[str] = None,
    student_name: Optional[str] = None,
    duration: Optional[int] = None,
) -> str:
    details = "\n".join(
        line
        for line in (
            f"- Subject: {subject}" if subject else "",
            f"- Student: {student_name}" if student_name else "",
            f"- Duration: {duration} minutes" if duration else "",
        )
        if line
    )
    return f"""You are an educational assistant helping to create structured lesson summaries for students and their parents.

Based on the following tutor's notes from a tutoring session, generate a clear, professional summary with the following sections:

**Session Details:**
{details}

**Tutor's Notes:**
{tutor_notes}

Please generate a structured summary with exactly these four sections:

1. **What Was Learned**: Summarize the main topics, concepts, and skills covered in the session. Be specific about what was taught.

2. **Mistakes & Areas for Improvement**: Identify common mistakes the student made or areas where they struggled. Be constructive and specific.

3. **Strengths**: Highlight what the student did well, their achievements, and positive behaviors during the session.

4. **Practice Tasks**: Provide 3-5 specific, actionable tasks or exercises the student should work on before the next session.

Format your response as a JSON object with these exact keys: "whatWasLearned", "mistakes", "strengths", "practiceTasks". Each value should be a clear, well-formatted string (you can use markdown formatting like bullet points)."""


def parse_summary(payload: dict[str, Any]) -> LessonSummary:
    """
    Validate a decoded summary reply.

    Raises:
        MalformedGeneratorOutput: a field is missing, not a string, or blank
    """
    missing = [
        field
        for field in SUMMARY_FIELDS
        if not isinstance(payload.get(field), str) or not payload[field].strip()
    ]
    if missing:
        logger.error(f"AI Response missing fields {missing}: {payload}")
        raise MalformedGeneratorOutput(f"AI response missing required fields: {', '.join(missing)}")
    return LessonSummary(**{field: payload[field].strip() for field in SUMMARY_FIELDS})


async def generate_lesson_summary(
    generator: TextGenerator,
    tutor_notes: str,
    subject: Optional[str] = None,
    student_name: Optional[str] = None,
    duration: Optional[int] = None,
    timeout: float = GENERATION_TIMEOUT_SECONDS,
) -> LessonSummary:
    """
    Ask the text generator for a lesson summary.

    Raises:
        GenerationFailed: provider error, timeout, or a reply that fails validation
    """
    prompt = build_summary_prompt(tutor_notes, subject, student_name, duration)
    try:
        reply = await asyncio.wait_for(generator.generate(prompt), timeout=timeout)
        return parse_summary(extract_json_object(reply))
    except asyncio.TimeoutError as e:
        logger.error(f"❌ Lesson summary generation timed out after {timeout}s")
        raise GenerationFailed("AI summary generation timed out. Please try again.") from e
    except TextGenerationError as e:
        raise GenerationFailed(str(e)) from e
    except MalformedGeneratorOutput as e:
        raise GenerationFailed(f"{e.message}. Please try again.") from e
