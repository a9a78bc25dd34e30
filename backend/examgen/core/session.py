# backend/examgen/core/session.py
"""
Caller-side quiz session.

The session is one of four states, each carrying only the data that is valid in
it:

    Empty -> Loaded -> Answering -> Scored
                ^                      |
                +---- new upload ------+

A separate `loading` flag is raised while a generation request is in flight;
answers and stale scores are discarded *before* the request goes out, so a
response can never be graded against answers given for a previous file.
"""

import logging
from typing import Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from .grading import score
from .schemas import Question, ScoreResult

logger = logging.getLogger("examgen.session")


class SessionError(RuntimeError):
    """Raised for a transition the current session state does not allow."""


# ------------------------------------------------------------
# States
# ------------------------------------------------------------
class Empty(BaseModel):
    model_config = ConfigDict(frozen=True)
    state: Literal["empty"] = "empty"


class Loaded(BaseModel):
    model_config = ConfigDict(frozen=True)
    state: Literal["loaded"] = "loaded"
    questions: List[Question]


class Answering(BaseModel):
    model_config = ConfigDict(frozen=True)
    state: Literal["answering"] = "answering"
    questions: List[Question]
    answers: Dict[int, str] = Field(default_factory=dict)


class Scored(BaseModel):
    model_config = ConfigDict(frozen=True)
    state: Literal["scored"] = "scored"
    questions: List[Question]
    answers: Dict[int, str]
    result: ScoreResult


SessionState = Union[Empty, Loaded, Answering, Scored]


# ------------------------------------------------------------
# Session
# ------------------------------------------------------------
class QuizSession:
    def __init__(self) -> None:
        self.state: SessionState = Empty()
        self.loading: bool = False

    @property
    def questions(self) -> List[Question]:
        return list(getattr(self.state, "questions", []))

    @property
    def answers(self) -> Dict[int, str]:
        return dict(getattr(self.state, "answers", {}))

    @property
    def result(self) -> Optional[ScoreResult]:
        return self.state.result if isinstance(self.state, Scored) else None

    @property
    def can_submit(self) -> bool:
        # A quiz with no questions is complete as soon as it is loaded
        return (
            not self.loading
            and isinstance(self.state, (Loaded, Answering))
            and len(self.answers) == len(self.state.questions)
        )

    # ---- Upload cycle
    def begin_upload(self) -> None:
        """Discard the current quiz and mark a generation request as pending."""
        if self.loading:
            raise SessionError("A generation request is already in progress")
        self.state = Empty()
        self.loading = True

    def finish_upload(self, questions: Sequence[Question]) -> None:
        if not self.loading:
            raise SessionError("No generation request is in progress")
        self.loading = False
        self.state = Loaded(questions=list(questions))
        logger.debug(f"Session loaded with {len(questions)} questions")

    def fail_upload(self) -> None:
        self.loading = False
        self.state = Empty()

    # ---- Answering
    def record_answer(self, index: int, value: str) -> None:
        if self.loading:
            raise SessionError("Answers are locked while questions are being generated")
        if not isinstance(self.state, (Loaded, Answering)):
            raise SessionError(f"Cannot record an answer in state '{self.state.state}'")

        total = len(self.state.questions)
        if not 0 <= index < total:
            raise SessionError(f"Question index {index} out of range [0, {total})")

        answers = dict(getattr(self.state, "answers", {}))
        answers[index] = value
        self.state = Answering(questions=self.state.questions, answers=answers)

    # ---- Submit
    def submit(self) -> ScoreResult:
        """Score the quiz once. Re-submitting a scored quiz returns the same result."""
        if isinstance(self.state, Scored):
            return self.state.result
        if not self.can_submit:
            raise SessionError("Every question must be answered before submitting")

        answers = self.answers
        result = score(self.state.questions, answers)
        self.state = Scored(
            questions=self.state.questions,
            answers=answers,
            result=result,
        )
        logger.info(f"Quiz scored: {result.correct_count}/{result.total} ({result.percentage:.1f}%)")
        return result
