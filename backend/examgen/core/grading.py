# backend/examgen/core/grading.py
"""
Answer evaluation and scoring.

Choice questions (multiple choice, identification) store their correct answer
as the positional letter of the right option, so grading maps the user's
selected option text back to its letter and compares letters. Fill-in-blank
questions compare text after trimming and case-folding.

Everything here is pure: no logging, no I/O, no exceptions for well-typed input.
"""

from typing import Mapping, Optional, Sequence, List, Tuple

from .schemas import CHOICE_KINDS, Question, QuestionKind, ScoreResult

MAX_OPTIONS = 26


# ------------------------------------------------------------
# Letter labels
# ------------------------------------------------------------
def letter_for_index(i: int) -> str:
    """0 -> 'A', 1 -> 'B', ... 25 -> 'Z'. No wraparound past 'Z'."""
    if not 0 <= i < MAX_OPTIONS:
        raise ValueError(f"No option letter for index {i}; at most {MAX_OPTIONS} options are supported")
    return chr(ord("A") + i)


def index_for_letter(letter: Optional[str]) -> Optional[int]:
    """Inverse of letter_for_index, or None if `letter` isn't a single A-Z letter."""
    if not letter:
        return None
    s = letter.strip().upper()
    if len(s) != 1 or not "A" <= s <= "Z":
        return None
    return ord(s) - ord("A")


def correct_option(question: Question) -> Optional[str]:
    """Option text the correct letter points at, if it resolves."""
    if question.kind not in CHOICE_KINDS or not question.options:
        return None
    idx = index_for_letter(question.correct_answer)
    if idx is None or idx >= len(question.options):
        return None
    return question.options[idx]


# ------------------------------------------------------------
# Grading
# ------------------------------------------------------------
def is_correct(question: Question, user_answer: Optional[str]) -> bool:
    if not user_answer or not question.correct_answer:
        return False

    if question.kind == QuestionKind.FILL_IN_BLANK.value:
        return user_answer.strip().lower() == question.correct_answer.strip().lower()

    if question.kind in CHOICE_KINDS:
        options = question.options or []
        # list.index semantics: duplicates resolve to the lowest position
        try:
            selected = options.index(user_answer)
        except ValueError:
            return False
        if selected >= MAX_OPTIONS:
            return False
        return letter_for_index(selected) == question.correct_answer.strip()

    return False


def evaluate(questions: Sequence[Question], answers: Mapping[int, str]) -> List[bool]:
    """Per-question correctness, in question order. Missing indices count as unanswered."""
    return [is_correct(q, answers.get(i)) for i, q in enumerate(questions)]


def score(questions: Sequence[Question], answers: Mapping[int, str]) -> ScoreResult:
    total = len(questions)
    correct_count = sum(evaluate(questions, answers))
    percentage = (correct_count / total) * 100 if total else 0.0
    return ScoreResult(percentage=percentage, correct_count=correct_count, total=total)


# ------------------------------------------------------------
# Score bands (display feedback)
# ------------------------------------------------------------
SCORE_BANDS: List[Tuple[float, str, str]] = [
    (80.0, "excellent", "Excellent work!"),
    (60.0, "good", "Good job!"),
    (0.0, "keep_practicing", "Keep practicing!"),
]


def score_band(percentage: float) -> Tuple[str, str]:
    """Return (band, message) for a percentage."""
    for threshold, band, message in SCORE_BANDS:
        if percentage >= threshold:
            return band, message
    return SCORE_BANDS[-1][1], SCORE_BANDS[-1][2]
