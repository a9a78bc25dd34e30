# backend/examgen/core/config.py

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

# ------------------------------------------------------------
# Ensure environment is loaded early
# ------------------------------------------------------------
load_dotenv()


class Settings(BaseModel):
    openai_api_key: str = ""
    model_name: str = "gpt-4o-mini"
    question_count: int = 10
    daily_limit: int = 5                 # generations per client per day
    max_pdf_chars: int = 12000           # text sent to the model per upload
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    api_url: str = "http://localhost:8000"
    http_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.getenv("EXAMGEN_CORS_ORIGINS", "*")
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY", ""),
            model_name=os.getenv("EXAMGEN_MODEL", "gpt-4o-mini"),
            question_count=int(os.getenv("EXAMGEN_QUESTION_COUNT", "10")),
            daily_limit=int(os.getenv("EXAMGEN_DAILY_LIMIT", "5")),
            max_pdf_chars=int(os.getenv("EXAMGEN_MAX_PDF_CHARS", "12000")),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=os.getenv("EXAMGEN_LOG_LEVEL", "INFO").upper(),
            api_url=os.getenv("EXAMGEN_API_URL", "http://localhost:8000"),
            http_timeout=float(os.getenv("EXAMGEN_HTTP_TIMEOUT", "60")),
        )
