"""
Retry policy: response parsing, outcome classification and backoff schedule.

Shared by the synchronous and asynchronous clients. The retry loop decides
only on the tag returned by ``classify``; it never inspects error messages.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..exceptions import (
    HttpError,
    PayloadError,
    TransactLabError,
    TransportError,
)


@dataclass(frozen=True)
class Retryable:
    """Failure that may succeed on another attempt."""

    error: TransactLabError
    reason: str
    status: Optional[int] = None


@dataclass(frozen=True)
class Terminal:
    """Failure that must be surfaced immediately."""

    error: TransactLabError
    status: Optional[int] = None


Outcome = Union[Retryable, Terminal]


def classify(error: TransactLabError) -> Outcome:
    """
    Classify a failed attempt.

    Transport errors (network, timeout), HTTP 429 and HTTP 5xx are retryable.
    Every other error, including other 4xx and malformed 2xx bodies, is
    terminal.
    """
    if isinstance(error, TransportError):
        return Retryable(error=error, reason=error.kind)
    if isinstance(error, HttpError):
        if error.status_code == 429 or error.status_code >= 500:
            return Retryable(error=error, reason=str(error.status_code), status=error.status_code)
        return Terminal(error=error, status=error.status_code)
    return Terminal(error=error)


def backoff_delay_ms(backoff_ms: int, attempt: int) -> int:
    """
    Delay before the attempt after ``attempt`` (1-indexed).

    Examples:
        >>> [backoff_delay_ms(1000, n) for n in (1, 2, 3)]
        [1000, 2000, 4000]
    """
    return backoff_ms * 2 ** (attempt - 1)


def _error_message(status: int, body: Any) -> str:
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, dict):
            message = message.get("message")
        if message:
            return f"HTTP {status}: {message}"
    return f"HTTP {status}: Request failed"


def parse_response(status: int, text: str, headers: Dict[str, str]) -> Any:
    """
    Turn a raw HTTP exchange into a result.

    Args:
        status: HTTP status code
        text: Response body text
        headers: Response headers

    Returns:
        Parsed JSON body ({} for an empty body)

    Raises:
        HttpError: Non-2xx status; carries parsed JSON or raw text body
        PayloadError: 2xx status with a body that is not JSON
    """
    if 200 <= status < 300:
        if not text:
            return {}
        try:
            return json.loads(text)
        except ValueError as e:
            raise PayloadError(f"Invalid JSON response: {e}") from e

    try:
        body = json.loads(text) if text else {}
    except ValueError:
        body = text

    request_id = headers.get("X-Request-Id") or headers.get("x-request-id")
    raise HttpError(_error_message(status, body), status_code=status, body=body, request_id=request_id)
