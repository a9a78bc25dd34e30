from __future__ import annotations

import fitz
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

import examgen.app as app_module
from conftest import make_question


@pytest.fixture
def client(monkeypatch):
    app_module.limiter.reset()
    monkeypatch.setattr(app_module.limiter, "limit", 2)
    return TestClient(app_module.app)


@pytest.fixture
def fake_generator(monkeypatch):
    calls = []

    async def fake_generate_questions(document_text, kind, n, model_name, api_key):
        calls.append({"text": document_text, "kind": kind, "n": n})
        return [make_question(kind, "B", ["Paris", "London"], "Capital of the UK?")]

    monkeypatch.setattr(app_module, "generate_questions", fake_generate_questions)
    return calls


def upload(client, content: bytes, content_type: str = "application/pdf", **form):
    data = {"questionType": "identification", **form}
    return client.post("/upload", files={"file": ("notes.pdf", content, content_type)}, data=data)


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_upload_returns_questions_and_advisory(client, fake_generator, pdf_bytes):
    resp = upload(client, pdf_bytes, n="3")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["questions"] == [
        {"question": "Capital of the UK?", "type": "identification", "options": ["Paris", "London"], "correct_answer": "B"}
    ]
    assert body["rate_limit"]["remaining"] == 1
    assert "reset_time" in body["rate_limit"]
    assert fake_generator[0]["kind"] == "identification"
    assert fake_generator[0]["n"] == 3
    assert "Photosynthesis" in fake_generator[0]["text"]


def test_upload_rejects_non_pdf(client, fake_generator):
    resp = upload(client, b"hello", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.json()["error"] == "Please select a valid PDF file"
    assert fake_generator == []


def test_upload_rejects_unreadable_pdf(client, fake_generator):
    resp = upload(client, b"definitely not a pdf")
    assert resp.status_code == 400
    assert resp.json() == {"status": "error", "error": "Please select a valid PDF file"}
    assert fake_generator == []


def test_upload_rejects_pdf_without_text(client, fake_generator):
    doc = fitz.open()
    doc.new_page()
    blank = doc.tobytes()
    doc.close()

    resp = upload(client, blank)
    assert resp.status_code == 400
    assert resp.json() == {"status": "error", "error": "Please select a valid PDF file"}
    assert fake_generator == []
    assert app_module.limiter.peek("testclient").remaining == 2


def test_pdf_extraction_runs_in_threadpool(client, fake_generator, monkeypatch, pdf_bytes):
    offloaded = []

    async def recording_threadpool(func, *args):
        offloaded.append(func)
        return func(*args)

    monkeypatch.setattr(app_module, "run_in_threadpool", recording_threadpool)
    assert upload(client, pdf_bytes).status_code == 200
    assert offloaded == [app_module.extract_pdf_text]


def test_upload_rejects_unknown_question_type(client, fake_generator, pdf_bytes):
    resp = upload(client, pdf_bytes, questionType="essay")
    assert resp.status_code == 422
    assert resp.json()["status"] == "error"


def test_upload_rate_limit(client, fake_generator, pdf_bytes):
    assert upload(client, pdf_bytes).status_code == 200
    assert upload(client, pdf_bytes).status_code == 200

    resp = upload(client, pdf_bytes)
    assert resp.status_code == 429
    body = resp.json()
    assert body["message"].startswith("Daily question generation limit reached")
    assert body["rate_limit"]["remaining"] == 0
    assert len(fake_generator) == 2


def test_failed_generation_does_not_spend_quota(client, monkeypatch, pdf_bytes):
    async def failing(**kwargs):
        raise HTTPException(status_code=500, detail="Model returned no usable questions")

    monkeypatch.setattr(app_module, "generate_questions", failing)
    resp = upload(client, pdf_bytes)

    assert resp.status_code == 500
    assert resp.json()["error"] == "Model returned no usable questions"
    assert app_module.limiter.peek("testclient").remaining == 2


def test_missing_api_key(client, monkeypatch, pdf_bytes):
    async def no_key(**kwargs):
        raise RuntimeError("OPENAI_API_KEY missing. Provide via env or param.")

    monkeypatch.setattr(app_module, "generate_questions", no_key)
    resp = upload(client, pdf_bytes)
    assert resp.status_code == 500
    assert resp.json()["error"] == "OpenAI API key is missing."


def test_grade(client):
    payload = {
        "questions": [
            {"question": "Capital of France?", "type": "multiple_choice", "options": ["Paris", "London", "Rome"], "correct_answer": "A"},
            {"question": "1 + 2?", "type": "multiple_choice", "options": ["2", "3", "4"], "correct_answer": "B"},
            {"question": "Which one flies?", "type": "multiple_choice", "options": ["Dog", "Cat", "Bird"], "correct_answer": "C"},
        ],
        "answers": {"0": "Paris", "1": "3", "2": "Fish"},
    }
    resp = client.post("/grade", json=payload)

    assert resp.status_code == 200
    body = resp.json()
    assert [r["correct"] for r in body["results"]] == [True, True, False]
    assert body["results"][2]["correct_option"] == "Bird"
    assert body["results"][2]["user_answer"] == "Fish"
    assert body["score"]["correct_count"] == 2
    assert body["score"]["total"] == 3
    assert body["score"]["percentage"] == pytest.approx(66.6666667)
    assert body["band"] == "good"


def test_grade_empty_quiz(client):
    body = client.post("/grade", json={"questions": [], "answers": {}}).json()
    assert body["score"] == {"percentage": 0.0, "correct_count": 0, "total": 0}
    assert body["band"] == "keep_practicing"
    assert body["results"] == []
