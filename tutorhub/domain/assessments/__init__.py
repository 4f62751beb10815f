"""Assessments domain - lesson reports, improvement quizzes and grading"""

from .router import router

__all__ = ["router"]
