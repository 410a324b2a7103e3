"""
Exception classes for TransactLab SDK.
"""

from typing import Any, Dict, List, Optional


class TransactLabError(Exception):
    """Base exception for all TransactLab SDK errors."""

    kind = "error"


class ConfigError(TransactLabError):
    """
    Configuration error.

    Raised when configuration is missing, invalid or cannot be decrypted.
    Configuration errors are fatal and never retried.
    """

    kind = "config"


class VaultDecryptError(ConfigError):
    """Vault exists but the password is missing, wrong, or the file was tampered with."""

    kind = "vault_decrypt_failed"


class MissingEnvError(ConfigError):
    """No vault is present and required environment variables are absent."""

    kind = "missing_env"

    def __init__(self, missing: List[str]):
        super().__init__(
            f"Missing required environment variables: {', '.join(missing)}"
        )
        self.missing = list(missing)


class InvalidConfigError(ConfigError):
    """
    Configuration failed validation.

    Attributes:
        errors: Mapping of dotted field path to validation message
    """

    kind = "invalid"

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class ValidationError(TransactLabError):
    """
    Input validation error.

    Raised when a call argument is missing or not usable (e.g. a non-numeric amount).
    """

    kind = "validation"

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        """
        Initialize validation error.

        Args:
            message: Error message
            fields: Names of the offending arguments
        """
        super().__init__(message)
        self.fields = fields or []


class TransportError(TransactLabError):
    """
    Transport-level failure.

    Raised when the request never produced an HTTP response. Always retryable.
    """

    kind = "transport"
    retryable = True


class NetworkError(TransportError):
    """Network connectivity error."""

    kind = "network"


class RequestTimeoutError(TransportError):
    """Request did not complete within the configured timeout."""

    kind = "timeout"


class HttpError(TransactLabError):
    """
    HTTP error exception.

    Raised when the API returns a non-2xx response. Carries the status code and
    the parsed JSON body, or the raw text when the body is not JSON.
    """

    kind = "http"

    def __init__(
        self,
        message: str,
        status_code: int,
        body: Any = None,
        request_id: Optional[str] = None,
    ):
        """
        Initialize HTTP error.

        Args:
            message: Error message
            status_code: HTTP status code
            body: Parsed response body (dict) or raw response text
            request_id: Request ID for debugging
        """
        super().__init__(message)
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.request_id = request_id

    @property
    def retryable(self) -> bool:
        return self.status_code == 429 or self.status_code >= 500

    def __repr__(self) -> str:
        return (
            f"HttpError(message={self.args[0]!r}, "
            f"status_code={self.status_code}, "
            f"request_id={self.request_id!r})"
        )


class SignatureError(TransactLabError):
    """
    Webhook signature verification error.

    Raised when the signature header is missing or does not match. The message
    never says which part of the signature was wrong.
    """

    kind = "signature"


class PayloadError(TransactLabError):
    """
    Malformed payload.

    Raised when a successful response or a correctly signed webhook body is not
    valid JSON.
    """

    kind = "payload"
