"""
Quiz generation from a lesson summary

The model's reply is validated question by question; a single bad question rejects the
whole quiz so that nothing partial is ever stored or graded against.
"""

import asyncio
import logging
from typing import Any, Optional

from ...config import GENERATION_TIMEOUT_SECONDS
from ...errors import MalformedGeneratorOutput, QuizGenerationFailed
from ...services.text_generation import TextGenerationError, TextGenerator, extract_json_object
from ..sessions.schemas import LessonSummary
from .schemas import GeneratedQuiz, QuizQuestion

logger = logging.getLogger(__name__)

QUESTION_TYPES = ("multiple_choice", "true_false")
DIFFICULTIES = ("easy", "medium", "hard")
DEFAULT_FOCUS_AREAS = ["General Review"]
DEFAULT_DIFFICULTY = "medium"


def build_quiz_prompt(
    summary: LessonSummary, subject: Optional[str] = None, student_name: Optional[str] = None
) -> str:
    details = "\n".join(
        line
        for line in (
            f"Subject: {subject}" if subject else "",
            f"Student: {student_name}" if student_name else "",
        )
        if line
    )
    return f"""You are an educational assessment specialist creating a personalized quiz to help a student improve.

Based on the following lesson summary, create a quiz that:
1. Focuses primarily on the student's weak areas and mistakes
2. Tests understanding of what was learned
3. Reinforces the practice tasks

**Session Details:**
{details}

**Lesson Summary:**

What Was Learned:
{summary.whatWasLearned}

Mistakes & Areas for Improvement:
{summary.mistakes}

Strengths:
{summary.strengths}

Practice Tasks:
{summary.practiceTasks}

**Instructions:**
Create a quiz with 8-10 questions that will help the student improve. The questions should:
- 60% focused on the mistakes/weak areas
- 30% on testing understanding of what was learned
- 10% on practice tasks
- Mix of multiple choice (4 options) and true/false questions
- Each question must include a detailed explanation of the correct answer
- Questions should be challenging but fair
- Focus on conceptual understanding, not memorization

Format your response as a JSON object with this structure:
{{
  "questions": [
    {{
      "question": "Question text here?",
      "type": "multiple_choice" or "true_false",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correctAnswer": "The correct option text" or "true"/"false",
      "explanation": "Detailed explanation of why this is correct",
      "topic": "Brief topic name this question covers"
    }}
  ],
  "focusAreas": ["Area 1", "Area 2", "Area 3"],
  "difficulty": "medium"
}}

Only multiple_choice questions have "options", and their "correctAnswer" must be copied exactly from "options".
Ensure all questions are clear, educational, and directly related to the session content."""


def _non_blank(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def parse_question(index: int, raw: Any) -> QuizQuestion:
    """
    Validate one generated question.

    Raises:
        MalformedGeneratorOutput: describing the first problem found
    """
    if not isinstance(raw, dict):
        raise MalformedGeneratorOutput(f"Question {index + 1} is not an object")

    for field in ("question", "type", "correctAnswer", "explanation", "topic"):
        if not _non_blank(raw.get(field)):
            raise MalformedGeneratorOutput(f"Question {index + 1} is missing '{field}'")

    qtype = raw["type"].strip()
    if qtype not in QUESTION_TYPES:
        raise MalformedGeneratorOutput(f"Question {index + 1} has unknown type '{qtype}'")
    correct = raw["correctAnswer"]

    if qtype == "multiple_choice":
        options = raw.get("options")
        if not isinstance(options, list) or not options or not all(_non_blank(o) for o in options):
            raise MalformedGeneratorOutput(f"Question {index + 1} needs a non-empty list of options")
        if correct not in options:
            raise MalformedGeneratorOutput(
                f"Question {index + 1}: correct answer is not one of the options"
            )
    else:
        options = None
        if correct.strip().lower() not in ("true", "false"):
            raise MalformedGeneratorOutput(
                f"Question {index + 1}: true/false answer must be 'true' or 'false'"
            )
        correct = correct.strip().lower()

    return QuizQuestion(
        question=raw["question"].strip(),
        type=qtype,
        options=options,
        correctAnswer=correct,
        explanation=raw["explanation"].strip(),
        topic=raw["topic"].strip(),
    )


def parse_quiz(payload: dict[str, Any]) -> GeneratedQuiz:
    """
    Validate a decoded quiz reply; missing focus areas and difficulty get defaults.

    Raises:
        MalformedGeneratorOutput: no questions, or any invalid question
    """
    raw_questions = payload.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        logger.error(f"AI Response missing or invalid questions: {payload}")
        raise MalformedGeneratorOutput("AI response missing required fields")

    questions = [parse_question(i, q) for i, q in enumerate(raw_questions)]

    focus_areas = payload.get("focusAreas")
    if not isinstance(focus_areas, list) or not focus_areas or not all(_non_blank(a) for a in focus_areas):
        focus_areas = list(DEFAULT_FOCUS_AREAS)

    difficulty = payload.get("difficulty")
    if difficulty not in DIFFICULTIES:
        difficulty = DEFAULT_DIFFICULTY

    return GeneratedQuiz(questions=questions, focusAreas=focus_areas, difficulty=difficulty)


async def generate_session_quiz(
    generator: TextGenerator,
    summary: LessonSummary,
    subject: Optional[str] = None,
    student_name: Optional[str] = None,
    timeout: float = GENERATION_TIMEOUT_SECONDS,
) -> GeneratedQuiz:
    """
    Ask the text generator for a quiz built on the lesson summary.

    Raises:
        QuizGenerationFailed: provider error, timeout, or a reply that fails validation
    """
    prompt = build_quiz_prompt(summary, subject, student_name)
    try:
        reply = await asyncio.wait_for(generator.generate(prompt), timeout=timeout)
        return parse_quiz(extract_json_object(reply))
    except asyncio.TimeoutError as e:
        logger.error(f"❌ Quiz generation timed out after {timeout}s")
        raise QuizGenerationFailed("Quiz generation timed out. Please try again.") from e
    except TextGenerationError as e:
        raise QuizGenerationFailed(str(e)) from e
    except MalformedGeneratorOutput as e:
        logger.error(f"❌ Rejected generated quiz: {e.message}")
        raise QuizGenerationFailed(f"Invalid quiz format in AI response: {e.message}") from e
