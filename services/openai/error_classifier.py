"""Map transport and HTTP failures onto the assistant service error kinds.

Every failure raised by `AssistantClient` and surfaced by the conversation
orchestrator is one of the `AssistantServiceError` subclasses below, so the
message shown to the user reads the same regardless of which call failed.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Mapping, Optional

import httpx
import openai
from pydantic import ValidationError

from models.assistant_models import APIErrorDetail, Run

DEFAULT_RETRY_AFTER_SECONDS = 1


class ErrorKind(str, Enum):
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    SERVER = "server"
    INVALID_RESPONSE = "invalid_response"
    DECODE = "decode"
    REMOTE = "remote"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN = "unknown"
    RUN_FAILED = "run_failed"


class AssistantServiceError(Exception):
    """Base class for classified assistant service failures."""

    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class NetworkError(AssistantServiceError):
    kind = ErrorKind.NETWORK

    def __init__(self, detail: str = "connection failed") -> None:
        super().__init__(f"Network error: {detail}")


class RateLimitedError(AssistantServiceError):
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, retry_after: int = DEFAULT_RETRY_AFTER_SECONDS) -> None:
        super().__init__(f"Rate limit exceeded. Try again in {retry_after} seconds.")
        self.retry_after = retry_after

    def to_payload(self) -> dict:
        return {**super().to_payload(), "retry_after": self.retry_after}


class ServerError(AssistantServiceError):
    kind = ErrorKind.SERVER

    def __init__(self) -> None:
        super().__init__("OpenAI server error. Try again later.")


class InvalidResponseError(AssistantServiceError):
    kind = ErrorKind.INVALID_RESPONSE

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Invalid response: HTTP {status_code}")
        self.status_code = status_code

    def to_payload(self) -> dict:
        return {**super().to_payload(), "status_code": self.status_code}


class DecodeError(AssistantServiceError):
    kind = ErrorKind.DECODE

    def __init__(self, detail: str = "unexpected response body") -> None:
        super().__init__(f"Error decoding response: {detail}")


class RemoteError(AssistantServiceError):
    """Non-2xx response carrying a structured `{"error": {...}}` body."""

    kind = ErrorKind.REMOTE

    def __init__(self, remote_message: str, code: Any = None) -> None:
        super().__init__(f"API Error: {remote_message}")
        self.remote_message = remote_message
        self.code = code


class InvalidRequestError(AssistantServiceError):
    kind = ErrorKind.INVALID_REQUEST

    def __init__(self, detail: Optional[str] = None) -> None:
        super().__init__(f"Invalid request: {detail}" if detail else "Invalid request")


class UnknownError(AssistantServiceError):
    kind = ErrorKind.UNKNOWN

    def __init__(self) -> None:
        super().__init__("An unknown error occurred")


class RunFailedError(AssistantServiceError):
    """A run reached a terminal status other than `completed`."""

    kind = ErrorKind.RUN_FAILED

    def __init__(self, run: Run) -> None:
        detail = run.last_error.message if run.last_error and run.last_error.message else None
        message = f"Run {run.status}."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
        self.run = run
        self.status = run.status

    def to_payload(self) -> dict:
        return {**super().to_payload(), "status": self.status, "run_id": self.run.id}


class ConversationBusyError(InvalidRequestError):
    """A send was attempted while the previous one is still in flight."""

    def __init__(self) -> None:
        super().__init__("a response is still in progress")


def parse_retry_after(headers: Optional[Mapping[str, str]]) -> int:
    """Return the integer `Retry-After` hint, or the 1 second default."""
    if not headers:
        return DEFAULT_RETRY_AFTER_SECONDS
    raw = headers.get("retry-after") or headers.get("Retry-After")
    try:
        seconds = int(str(raw).strip())
    except (TypeError, ValueError):
        return DEFAULT_RETRY_AFTER_SECONDS
    return seconds if seconds >= 0 else DEFAULT_RETRY_AFTER_SECONDS


def decode_error_body(body: Any) -> Optional[APIErrorDetail]:
    """Return the structured error carried by `body`, if it has one.

    Accepts the full envelope (`{"error": {...}}`), the inner error object
    (the SDK strips the envelope before attaching it to its exceptions), or
    the raw text/bytes of either.
    """
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return None
    if not isinstance(body, Mapping):
        return None
    inner = body.get("error", body)
    if not isinstance(inner, Mapping):
        return None
    try:
        return APIErrorDetail.model_validate(inner)
    except ValidationError:
        return None


def classify_status(
    http_status: int,
    body: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> AssistantServiceError:
    """Classify a non-2xx HTTP response."""
    if http_status == 429:
        return RateLimitedError(parse_retry_after(headers))
    if http_status == 500:
        return ServerError()
    detail = decode_error_body(body)
    if detail is not None:
        return RemoteError(detail.message, code=detail.code)
    return InvalidResponseError(http_status)


def classify(
    raw_error: Optional[BaseException],
    http_status: Optional[int] = None,
    body: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> AssistantServiceError:
    """Return the domain error for a low-level failure.

    Args:
        raw_error: Exception raised by the transport, SDK or decoder (may be None
            when only a status is known).
        http_status: HTTP status code, when the failure came from a response.
        body: Response body (decoded JSON, text or bytes), if any.
        headers: Response headers, used for the rate-limit hint.
    """
    if isinstance(raw_error, AssistantServiceError):
        return raw_error

    if isinstance(raw_error, openai.APIStatusError):
        response_headers = headers if headers is not None else raw_error.response.headers
        error_body = body if body is not None else raw_error.body
        return classify_status(raw_error.status_code, error_body, response_headers)

    if http_status is not None and not 200 <= http_status <= 299:
        return classify_status(http_status, body, headers)

    if isinstance(raw_error, openai.APIResponseValidationError):
        return DecodeError(str(raw_error))
    if isinstance(raw_error, (openai.APIConnectionError, httpx.TransportError, OSError)):
        return NetworkError(str(raw_error) or raw_error.__class__.__name__)
    if isinstance(raw_error, (ValidationError, json.JSONDecodeError, UnicodeDecodeError)):
        return DecodeError(_first_line(raw_error))
    return UnknownError()


def _first_line(exc: BaseException) -> str:
    text = str(exc).strip()
    return text.splitlines()[0] if text else exc.__class__.__name__
