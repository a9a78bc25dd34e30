from __future__ import annotations

import fitz
import pytest

from examgen.core.schemas import Question


def make_question(kind: str, correct_answer: str | None, options: list[str] | None = None, text: str = "Q?") -> Question:
    return Question(question=text, type=kind, options=options, correct_answer=correct_answer)


@pytest.fixture
def capitals_quiz() -> list[Question]:
    return [
        make_question("multiple_choice", "A", ["Paris", "London", "Rome"], "Capital of France?"),
        make_question("multiple_choice", "B", ["2", "3", "4"], "1 + 2?"),
        make_question("multiple_choice", "C", ["Dog", "Cat", "Bird"], "Which one flies?"),
    ]


@pytest.fixture
def pdf_bytes() -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Photosynthesis converts light energy into chemical energy.")
    data = doc.tobytes()
    doc.close()
    return data
