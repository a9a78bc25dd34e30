# backend/examgen/core/openai_qg.py

import os, json, logging, re
from typing import Dict, Any, List, Optional

import fitz  # PyMuPDF
from openai import AsyncOpenAI
from fastapi import HTTPException

from .grading import MAX_OPTIONS, index_for_letter, letter_for_index
from .schemas import CHOICE_KINDS, Question, QuestionKind

logger = logging.getLogger("examgen.qg")

# ------------------------------------------------------------
# Global OpenAI client (async)
# ------------------------------------------------------------
_client: AsyncOpenAI | None = None

def configure_openai(api_key: str | None = None) -> AsyncOpenAI:
    """Create or reuse an AsyncOpenAI client."""
    global _client
    if _client is None:
        key = api_key or os.getenv("OPENAI_API_KEY", "")
        if not key:
            raise RuntimeError("OPENAI_API_KEY missing. Provide via env or param.")
        _client = AsyncOpenAI(api_key=key)
        logger.info("OpenAI async client configured (global instance).")
    return _client

# ------------------------------------------------------------
# Prompt templates
# ------------------------------------------------------------
KIND_INSTRUCTIONS = {
    QuestionKind.MULTIPLE_CHOICE.value: (
        "Each question has exactly 4 'options'. 'correct_answer' is the LETTER "
        "('A', 'B', 'C' or 'D') of the correct option, never the option text."
    ),
    QuestionKind.IDENTIFICATION.value: (
        "Each question describes a term, person, or concept from the document and asks the "
        "student to identify it. Provide 4 'options' (candidate terms). 'correct_answer' is the "
        "LETTER ('A', 'B', 'C' or 'D') of the correct option, never the option text."
    ),
    QuestionKind.FILL_IN_BLANK.value: (
        "Each question is a sentence from the document's key ideas with one important word "
        "or short phrase replaced by '_____'. Set 'options' to null. 'correct_answer' is "
        "the missing word or phrase exactly."
    ),
}

QG_SYSTEM_TEMPLATE = (
    "You are a strict exam generator. You write quiz questions ONLY about the document text "
    "provided by the user.\n"
    "Question type: {kind}.\n"
    "{kind_instructions}\n\n"
    "Output rules:\n"
    "- Output ONLY JSON (no markdown, no commentary outside JSON).\n"
    "- You MUST return EXACTLY N questions.\n"
    "- Each item MUST have keys: ['question','type','options','correct_answer'].\n"
    "- 'type' MUST be '{kind}' for every item.\n\n"
    "Quality rules:\n"
    "- Cover different parts of the document; avoid repeating the same fact.\n"
    "- Distractor options must be plausible and distinct from each other.\n"
    "- Answers must be supported by the document text.\n"
)

# ------------------------------------------------------------
# PDF text
# ------------------------------------------------------------
def extract_pdf_text(content: bytes, max_chars: int | None = None) -> str:
    """Extract plain text from an in-memory PDF, optionally truncated to `max_chars`."""
    try:
        doc = fitz.open(stream=content, filetype="pdf")
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Could not read PDF: {e}")

    with doc:
        if doc.page_count == 0:
            raise HTTPException(status_code=400, detail="Could not read PDF: no pages")
        pages = [page.get_text("text") for page in doc]

    text = re.sub(r"[ \t]+", " ", "\n".join(pages)).strip()
    if max_chars and len(text) > max_chars:
        logger.info(f"Truncating PDF text from {len(text)} to {max_chars} chars")
        text = text[:max_chars]
    return text

# ------------------------------------------------------------
# Helpers
# ------------------------------------------------------------
def _parse_json_response(text: str) -> List[Dict[str, Any]]:
    if not text:
        raise HTTPException(status_code=500, detail="Empty response from model")

    try:
        data = json.loads(text)
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and "questions" in data and isinstance(data["questions"], list):
            return data["questions"]
    except Exception:
        pass

    start, end = text.find("["), text.rfind("]")
    if start != -1 and end != -1:
        snippet = text[start:end+1]
        try:
            return json.loads(snippet)
        except Exception:
            pass

    cleaned = re.sub(r",\s*([}\]])", r"\1", text)
    try:
        data = json.loads(cleaned)
        if isinstance(data, list):
            return data
        if isinstance(data, dict) and "questions" in data:
            return data["questions"]
    except Exception as e:
        logger.error(f"Failed after cleaning JSON: {e}")

    raise HTTPException(status_code=500, detail=f"Invalid JSON from model. Raw output: {text[:500]}...")

def _has_letter_labels(opts: List[Any]) -> bool:
    """True when every option starts with its own label in sequence: "A. ...", "B) ...", ..."""
    if not opts or len(opts) > MAX_OPTIONS:
        return False
    for i, o in enumerate(opts):
        if not isinstance(o, str) or not re.match(rf"^{letter_for_index(i)}[\.\)]\s+\S", o.strip()):
            return False
    return True

def _normalize_options(opts: Any) -> List[str] | None:
    if opts is None:
        return None
    if isinstance(opts, dict):
        # {"A": "...", "B": "..."} keyed by letter
        return [str(opts[k]).strip() for k in sorted(opts)]
    if isinstance(opts, list):
        labelled = _has_letter_labels(opts)
        normed = []
        for o in opts:
            if isinstance(o, str):
                normed.append(o.strip()[2:].strip() if labelled else o.strip())
            elif isinstance(o, dict) and "content" in o:
                normed.append(str(o["content"]).strip())
            else:
                normed.append(str(o))
        return normed
    return [str(opts)]

def _normalize_correct_answer(kind: str, ans: Any, options: List[str] | None) -> str:
    """Coerce the model's answer into the wire encoding: letter for choice kinds, text otherwise."""
    if ans is None:
        return ""
    s = str(ans).strip()
    if kind not in CHOICE_KINDS:
        return s

    # Model answered with the option text instead of its letter
    if options and s in options and len(s) > 1:
        idx = options.index(s)
        if idx < MAX_OPTIONS:
            return letter_for_index(idx)
    m = re.match(r"^\(?([A-Za-z])(?:[\.\):]|\s|$)", s)
    if m:
        return m.group(1).upper()
    return s

def _validate_question(q: Question) -> Optional[str]:
    """Return why a generated question is unusable, or None if it can be served."""
    if q.kind not in {k.value for k in QuestionKind}:
        return f"unknown type '{q.kind}'"
    if not q.text.strip():
        return "empty question text"
    if not q.correct_answer:
        return "empty correct_answer"
    if q.kind in CHOICE_KINDS:
        if not q.options:
            return "choice question without options"
        if len(q.options) > MAX_OPTIONS:
            return f"{len(q.options)} options exceeds the {MAX_OPTIONS} letter labels"
        idx = index_for_letter(q.correct_answer)
        if idx is None or idx >= len(q.options):
            return f"correct_answer '{q.correct_answer}' does not name one of {len(q.options)} options"
    return None

def _deduplicate(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    unique_items = []
    for q in items:
        sig = str(q.get("question", "")).strip().lower()
        if sig not in seen:
            seen.add(sig)
            unique_items.append(q)
    return unique_items

def build_questions(items: List[Dict[str, Any]], kind: str) -> List[Question]:
    """Turn raw model items into validated Questions, dropping unusable ones."""
    objects = []
    for raw in items:
        if isinstance(raw, dict):
            objects.append(raw)
        else:
            logger.warning(f"Integrity warning: dropping non-object item {raw!r}")

    questions: List[Question] = []
    for raw in _deduplicate(objects):
        qkind = str(raw.get("type") or kind).strip().lower()
        options = _normalize_options(raw.get("options")) if qkind in CHOICE_KINDS else None
        q = Question(
            question=str(raw.get("question") or ""),
            type=qkind,
            options=options,
            correct_answer=_normalize_correct_answer(qkind, raw.get("correct_answer", raw.get("answer")), options),
        )
        problem = _validate_question(q)
        if problem:
            logger.warning(f"Integrity warning: dropping generated question ({problem}): {q.text[:80]!r}")
            continue
        questions.append(q)
    return questions

# ------------------------------------------------------------
# Main generator
# ------------------------------------------------------------
async def generate_questions(
    document_text: str,
    kind: str = QuestionKind.MULTIPLE_CHOICE.value,
    n: int = 10,
    model_name: str = "gpt-4o-mini",
    api_key: str | None = None,
) -> List[Question]:
    client = configure_openai(api_key)
    system_prompt = QG_SYSTEM_TEMPLATE.format(kind=kind, kind_instructions=KIND_INSTRUCTIONS[kind])
    user_prompt = (
        f"Generate {n} '{kind}' questions about the following document. "
        f"Return a JSON list with exactly {n} objects.\n\n"
        f"DOCUMENT:\n{document_text}"
    )

    resp = await client.chat.completions.create(
        model=model_name,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    )
    raw = resp.choices[0].message.content or ""
    questions = build_questions(_parse_json_response(raw), kind)

    if len(questions) > n:
        questions = questions[:n]
    if not questions:
        raise HTTPException(status_code=500, detail="Model returned no usable questions")

    logger.info(f"Generated {len(questions)} '{kind}' questions (requested {n}).")
    return questions
