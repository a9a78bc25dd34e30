# backend/examgen/core/client.py
"""
HTTP client for the question-generation service.

The base URL is passed in explicitly; nothing here reads the environment except
`ExamGenClient.from_settings`.
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from .config import Settings
from .schemas import QuestionKind, RateLimit, UploadResponse

logger = logging.getLogger("examgen.client")

PDF_CONTENT_TYPE = "application/pdf"


def accepts_file(filename: Optional[str], content_type: Optional[str]) -> bool:
    """Boolean PDF accept/reject for a selected file."""
    if content_type:
        return content_type.split(";")[0].strip().lower() == PDF_CONTENT_TYPE
    return bool(filename) and filename.lower().endswith(".pdf")


class GenerationServiceError(RuntimeError):
    """The service rejected the upload or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RateLimitExceeded(GenerationServiceError):
    def __init__(self, message: str, rate_limit: Optional[RateLimit] = None):
        super().__init__(message, status_code=429)
        self.rate_limit = rate_limit


class ExamGenClient:
    def __init__(
        self,
        base_url: str,
        timeout: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "ExamGenClient":
        return cls(settings.api_url, timeout=settings.http_timeout, **kwargs)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ExamGenClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def upload(
        self,
        content: bytes,
        filename: str = "document.pdf",
        question_type: str = QuestionKind.MULTIPLE_CHOICE.value,
        n: Optional[int] = None,
    ) -> UploadResponse:
        data = {"questionType": question_type}
        if n is not None:
            data["n"] = str(n)
        files = {"file": (filename, content, PDF_CONTENT_TYPE)}

        try:
            resp = self._http.post("/upload", data=data, files=files)
        except httpx.HTTPError as e:
            logger.error(f"Upload to {self.base_url} failed: {e}")
            raise GenerationServiceError("An error occurred while processing your request") from e

        if resp.status_code == 429:
            body = _json_or_empty(resp)
            advisory = body.get("rate_limit")
            try:
                rate_limit = RateLimit.model_validate(advisory) if advisory else None
            except ValidationError:
                logger.warning(f"Ignoring malformed rate-limit advisory: {advisory!r}")
                rate_limit = None
            raise RateLimitExceeded(body.get("message") or "Rate limit exceeded", rate_limit)
        if resp.is_error:
            body = _json_or_empty(resp)
            message = body.get("error") or "An error occurred while processing your request"
            logger.error(f"Upload rejected: status={resp.status_code} body={body}")
            raise GenerationServiceError(message, status_code=resp.status_code)

        try:
            return UploadResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Unexpected upload response: status={resp.status_code} body={resp.text[:200]!r}")
            raise GenerationServiceError(
                "The service returned an unexpected response", status_code=resp.status_code
            ) from e


def _json_or_empty(resp: httpx.Response) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
