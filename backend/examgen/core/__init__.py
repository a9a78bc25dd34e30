# backend/examgen/core/__init__.py
"""
Core package for the PDF Exam Generator.
Exposes the question/score schemas and the grading engine.
"""

from .schemas import (
    Question,
    QuestionKind,
    ScoreResult,
    RateLimit,
    UploadResponse,
    GradeRequest,
    GradeResponse,
)
from .grading import letter_for_index, index_for_letter, is_correct, evaluate, score

__all__ = [
    "Question",
    "QuestionKind",
    "ScoreResult",
    "RateLimit",
    "UploadResponse",
    "GradeRequest",
    "GradeResponse",
    "letter_for_index",
    "index_for_letter",
    "is_correct",
    "evaluate",
    "score",
]
