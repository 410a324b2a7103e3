"""
Structured JSON Logging for TransactLab SDK

Provides a JSON formatter for structured logging output and helpers that keep
secrets out of log lines.
"""

import json
import logging
import sys
from typing import Any, Dict

REDACTED = "***REDACTED***"

SENSITIVE_KEYS = {
    "api_key",
    "apikey",
    "secret",
    "token",
    "password",
    "authorization",
}


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format a log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON string with timestamp, logger name, level, message
        """
        payload: Dict[str, Any] = {
            "ts": int(record.created * 1000),  # milliseconds
            "name": record.name,
            "level": record.levelname,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        for field in ("method", "url", "status", "attempt", "idempotency_key"):
            if hasattr(record, field):
                payload[field] = getattr(record, field)

        return json.dumps(payload, default=str)


def setup_structured_logger(level: int = logging.INFO) -> None:
    """
    Configure structured JSON logging for the SDK.

    Args:
        level: Logging level (default: logging.INFO)

    Example:
        >>> from transactlab_sdk.logging_setup import setup_structured_logger
        >>> setup_structured_logger(logging.DEBUG)
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    sdk_logger = logging.getLogger("transactlab_sdk")
    sdk_logger.setLevel(level)
    sdk_logger.handlers = [handler]
    sdk_logger.propagate = False


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(sensitive in lowered for sensitive in SENSITIVE_KEYS)


def sanitize_for_logging(data: Any) -> Any:
    """
    Redact sensitive values before logging.

    Args:
        data: Dictionary (or list) to sanitize

    Returns:
        Sanitized copy

    Example:
        >>> sanitize_for_logging({"x-sandbox-secret": "sk_123", "amount": 100})
        {'x-sandbox-secret': '***REDACTED***', 'amount': 100}
    """
    if isinstance(data, dict):
        return {
            key: REDACTED if _is_sensitive(str(key)) else sanitize_for_logging(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize_for_logging(item) for item in data]
    return data
