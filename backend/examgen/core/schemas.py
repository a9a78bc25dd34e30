from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QuestionKind(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    FILL_IN_BLANK = "fill_in_blank"
    IDENTIFICATION = "identification"


# Kinds graded by letter indirection against `options`
CHOICE_KINDS = (QuestionKind.MULTIPLE_CHOICE.value, QuestionKind.IDENTIFICATION.value)


# ------------------------------------------------------------
# Question & score models
# ------------------------------------------------------------
class Question(BaseModel):
    """A generated quiz question, as produced by the generation service.

    `kind` stays a plain string so that an unknown kind is accepted and simply
    never graded correct.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    text: str = Field(alias="question")
    kind: str = Field(alias="type")
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None     # letter for choice kinds, literal text otherwise


class ScoreResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    percentage: float = Field(ge=0, le=100)  # unrounded
    correct_count: int = Field(ge=0)
    total: int = Field(ge=0)


class RateLimit(BaseModel):
    remaining: int = Field(ge=0)
    reset_time: datetime


# ------------------------------------------------------------
# Request / response models
# ------------------------------------------------------------
class UploadResponse(BaseModel):
    status: str = "ok"
    questions: List[Question]
    rate_limit: Optional[RateLimit] = None


class GradeRequest(BaseModel):
    questions: List[Question]
    answers: Dict[int, str] = Field(default_factory=dict)


class QuestionResult(BaseModel):
    index: int
    correct: bool
    user_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    correct_option: Optional[str] = None    # option text the correct letter points at


class GradeResponse(BaseModel):
    status: str = "ok"
    results: List[QuestionResult]
    score: ScoreResult
    band: str
    message: str
