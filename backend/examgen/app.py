# backend/examgen/app.py

import logging
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from examgen.core.client import accepts_file
from examgen.core.config import Settings
from examgen.core.grading import correct_option, evaluate, score, score_band
from examgen.core.openai_qg import extract_pdf_text, generate_questions
from examgen.core.rate_limit import DailyRateLimiter
from examgen.core.schemas import (
    GradeRequest,
    GradeResponse,
    QuestionKind,
    QuestionResult,
    UploadResponse,
)

# ------------------------------------------------------------
# Setup
# ------------------------------------------------------------
settings = Settings.from_env()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger("examgen")

limiter = DailyRateLimiter(settings.daily_limit)

app = FastAPI(title="PDF Exam Generator API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Middleware to log requests (bodies are PDFs, so only their size is logged)
class LogRequestMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        size = request.headers.get("content-length", "0")
        logger.info(f"Incoming {request.method} {request.url.path} bytes={size}")
        return await call_next(request)

app.add_middleware(LogRequestMiddleware)


INVALID_PDF = "Please select a valid PDF file"

def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "error", "error": message, **extra})

def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may hold the raised exception object, which isn't JSON serialisable
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]

# ------------------------------------------------------------
# Exception handlers
# ------------------------------------------------------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "status": "error",
            "detail": jsonable_errors(exc),
        },
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": str(exc)},
    )

# ------------------------------------------------------------
# Routes
# ------------------------------------------------------------
@app.post("/upload", response_model=UploadResponse)
async def upload(
    request: Request,
    file: UploadFile = File(...),
    question_type: QuestionKind = Form(QuestionKind.MULTIPLE_CHOICE, alias="questionType"),
    n: Optional[int] = Form(None, ge=1, le=50),
):
    if not accepts_file(file.filename, file.content_type):
        logger.warning(f"Rejected upload filename={file.filename} content_type={file.content_type}")
        return _error(400, INVALID_PDF)

    content = await file.read()
    try:
        # PyMuPDF parsing is CPU-bound; keep it off the event loop
        text = await run_in_threadpool(extract_pdf_text, content, settings.max_pdf_chars)
    except HTTPException as e:
        logger.warning(f"Rejected upload filename={file.filename}: {e.detail}")
        return _error(400, INVALID_PDF)
    if not text:
        logger.warning(f"Rejected upload filename={file.filename}: no extractable text")
        return _error(400, INVALID_PDF)

    client_id = request.client.host if request.client else "anonymous"
    allowed, advisory = limiter.hit(client_id)
    if not allowed:
        return JSONResponse(
            status_code=429,
            content={
                "status": "error",
                "message": (
                    "Daily question generation limit reached. "
                    f"Try again after {advisory.reset_time.isoformat()}."
                ),
                "rate_limit": advisory.model_dump(mode="json"),
            },
        )

    try:
        questions = await generate_questions(
            document_text=text,
            kind=question_type.value,
            n=n or settings.question_count,
            model_name=settings.model_name,
            api_key=settings.openai_api_key or None,
        )
    except RuntimeError as e:
        limiter.refund(client_id)
        logger.error(f"RuntimeError: {e}")
        return _error(500, "OpenAI API key is missing.")
    except HTTPException as e:
        limiter.refund(client_id)
        logger.error(f"Generation failed: {e.detail}")
        return _error(e.status_code, str(e.detail))
    except Exception as e:
        limiter.refund(client_id)
        logger.error("Exception during generate_questions", exc_info=True)
        return _error(500, f"Generation failed: {e}")

    return UploadResponse(questions=questions, rate_limit=limiter.peek(client_id))

@app.post("/grade", response_model=GradeResponse)
def grade(req: GradeRequest):
    correctness = evaluate(req.questions, req.answers)
    result = score(req.questions, req.answers)
    band, message = score_band(result.percentage)

    results = [
        QuestionResult(
            index=i,
            correct=ok,
            user_answer=req.answers.get(i),
            correct_answer=q.correct_answer,
            correct_option=correct_option(q),
        )
        for i, (q, ok) in enumerate(zip(req.questions, correctness))
    ]
    logger.debug(f"Graded {result.total} questions: {result.correct_count} correct")

    return GradeResponse(results=results, score=result, band=band, message=message)

@app.get("/healthz")
def healthz():
    return {"ok": True}
