"""
Deterministic quiz grading.

Multiple-choice answers must match the stored option exactly (after trimming); true/false
answers are compared case-insensitively. The score is a whole percentage rounded half up,
so 2 of 3 is 67 and 1 of 8 is 13.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping, Sequence

from ...errors import IncompleteSubmission


@dataclass(frozen=True)
class GradedSubmission:
    answers: dict[str, str]
    correct_count: int
    total_questions: int
    score: int
    detailed_results: list[dict[str, Any]] = field(default_factory=list)


def _index_of(key: Any) -> int:
    if isinstance(key, bool):
        raise IncompleteSubmission(f"Invalid question index {key!r}")
    if isinstance(key, int):
        return key
    if isinstance(key, str) and key.isdigit() and str(int(key)) == key:
        return int(key)
    raise IncompleteSubmission(f"Invalid question index {key!r}")


def normalize_answers(answers: Mapping[Any, Any], total_questions: int) -> list[str]:
    """
    Order the submitted answers by question index.

    Raises:
        IncompleteSubmission: keys are not exactly 0..n-1 or a value is not a string
    """
    if total_questions <= 0:
        raise IncompleteSubmission("This quiz has no questions")

    ordered: dict[int, str] = {}
    for key, value in answers.items():
        index = _index_of(key)
        if index in ordered:
            raise IncompleteSubmission(f"Question {index} was answered twice")
        if not isinstance(value, str):
            raise IncompleteSubmission(f"Answer to question {index} must be text")
        ordered[index] = value

    if set(ordered) != set(range(total_questions)):
        missing = sorted(set(range(total_questions)) - set(ordered))
        extra = sorted(set(ordered) - set(range(total_questions)))
        detail = []
        if missing:
            detail.append(f"unanswered: {missing}")
        if extra:
            detail.append(f"unknown: {extra}")
        raise IncompleteSubmission(
            f"Expected answers for all {total_questions} questions ({'; '.join(detail)})"
        )

    return [ordered[i] for i in range(total_questions)]


def is_correct(question: Mapping[str, Any], answer: str) -> bool:
    given = answer.strip()
    expected = question["correctAnswer"].strip()
    if question["type"] == "true_false":
        return given.lower() == expected.lower()
    return given == expected


def percent_score(correct_count: int, total_questions: int) -> int:
    ratio = Decimal(correct_count * 100) / Decimal(total_questions)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def grade(questions: Sequence[Mapping[str, Any]], answers: Mapping[Any, Any]) -> GradedSubmission:
    """
    Grade a full submission in one pass.

    Raises:
        IncompleteSubmission: the answer map does not cover every question exactly once
    """
    total = len(questions)
    ordered = normalize_answers(answers, total)

    detailed_results = []
    correct_count = 0
    for index, (question, answer) in enumerate(zip(questions, ordered)):
        correct = is_correct(question, answer)
        correct_count += correct
        detailed_results.append(
            {
                "questionIndex": index,
                "question": question["question"],
                "studentAnswer": answer.strip(),
                "correctAnswer": question["correctAnswer"],
                "isCorrect": correct,
                "explanation": question["explanation"],
                "topic": question["topic"],
            }
        )

    return GradedSubmission(
        answers={str(i): a for i, a in enumerate(ordered)},
        correct_count=correct_count,
        total_questions=total,
        score=percent_score(correct_count, total),
        detailed_results=detailed_results,
    )
