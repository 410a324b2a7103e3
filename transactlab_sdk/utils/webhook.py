"""
Webhook signature verification.
"""

import hashlib
import hmac
import json
import logging
import time
from typing import Dict, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import PayloadError, SignatureError
from ..models import WebhookEvent

logger = logging.getLogger("transactlab_sdk.webhook")

# Checked in order, case-insensitively; first match wins
SIGNATURE_HEADERS = (
    "TL-Signature",
    "tl-signature",
    "x-tl-signature",
    "x-webhook-signature",
    "signature",
)


def find_signature_header(headers: Mapping[str, str]) -> Optional[str]:
    """
    Return the first accepted signature header value present in ``headers``.

    Args:
        headers: Inbound request headers (any casing)

    Returns:
        Header value, or None when no accepted header is present
    """
    lowered: Dict[str, str] = {}
    for name, value in headers.items():
        lowered.setdefault(name.lower(), value)

    for name in SIGNATURE_HEADERS:
        value = lowered.get(name.lower())
        if value:
            return value
    return None


def parse_signature_header(header: str) -> Dict[str, str]:
    """
    Parse a structured signature header.

    Header format: "t=<timestamp>,s=<signature>"

    Args:
        header: Signature header value

    Returns:
        Dictionary of components

    Raises:
        SignatureError: If header format is invalid

    Examples:
        >>> parse_signature_header("t=1705420800,s=abc123")
        {'t': '1705420800', 's': 'abc123'}
    """
    if not header:
        raise SignatureError("Missing signature header")

    parts = {}
    for pair in header.split(","):
        try:
            key, value = pair.split("=", 1)
        except ValueError:
            raise SignatureError("Invalid signature header format")
        parts[key.strip()] = value.strip()
    return parts


def extract_signature(header: str) -> str:
    """Return the hex signature from a bare or structured header value."""
    header = header.strip()
    if "=" not in header:
        return header
    return parse_signature_header(header).get("s", "")


def compute_signature(raw_body: bytes, secret: str) -> str:
    """HMAC-SHA256 of the raw body, hex encoded."""
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def generate_signature(
    raw_body: Union[bytes, str],
    secret: str,
    timestamp: Optional[int] = None,
) -> str:
    """
    Generate a structured signature header for testing.

    Args:
        raw_body: Request body
        secret: Webhook secret
        timestamp: Optional unix timestamp (default: current time)

    Returns:
        Signature header value "t=<timestamp>,s=<hex>"
    """
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    if timestamp is None:
        timestamp = int(time.time())
    return f"t={timestamp},s={compute_signature(raw_body, secret)}"


class WebhookVerifier:
    """
    Authenticates inbound webhook callbacks.

    Implements HMAC-SHA256 verification over the raw body with constant-time
    comparison. Accepts a bare hex digest or a "t=...,s=..." structured value
    in any of the ``SIGNATURE_HEADERS``.

    Examples:
        >>> verifier = WebhookVerifier(config.webhook_secret)
        >>> event = verifier.verify(request.get_data(), request.headers)
        >>> event.type
        'payment.completed'
    """

    def __init__(self, secret: str):
        if not secret:
            raise SignatureError("Webhook secret not configured")
        self._secret = secret

    def verify_signature(self, raw_body: bytes, headers: Mapping[str, str]) -> None:
        """
        Check the signature of ``raw_body``.

        Raises:
            SignatureError: Missing header or signature mismatch
        """
        header = find_signature_header(headers)
        if not header:
            raise SignatureError("Missing signature header")

        received = extract_signature(header).lower()
        expected = compute_signature(raw_body, self._secret)

        # Constant-time comparison
        if not received or not hmac.compare_digest(
            received.encode("utf-8"), expected.encode("utf-8")
        ):
            logger.warning("Webhook signature verification failed")
            raise SignatureError("Invalid webhook signature")

    def verify(self, raw_body: Union[bytes, str], headers: Mapping[str, str]) -> WebhookEvent:
        """
        Verify signature and parse the webhook event.

        Args:
            raw_body: Raw request body, exactly as received
            headers: Request headers

        Returns:
            Parsed webhook event

        Raises:
            SignatureError: If signature verification fails
            PayloadError: If the signature is valid but the body is not a JSON object
        """
        if isinstance(raw_body, str):
            raw_body = raw_body.encode("utf-8")

        self.verify_signature(raw_body, headers)

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PayloadError(f"Invalid JSON payload: {e}") from e

        if not isinstance(payload, dict):
            raise PayloadError("Webhook payload must be a JSON object")

        try:
            event = WebhookEvent.model_validate(payload)
        except PydanticValidationError as e:
            raise PayloadError(f"Invalid webhook event: {e}") from e

        logger.debug("Webhook verified (type=%s)", event.type)
        return event
