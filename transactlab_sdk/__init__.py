"""
TransactLab Server-Side Python SDK

Checkout sessions, subscriptions, payment processing and webhook
verification for the TransactLab payment sandbox.
"""

from .__version__ import __version__
from .async_client import AsyncTransactLab
from .client import TransactLab
from .config import ConfigStore
from .exceptions import (
    ConfigError,
    HttpError,
    InvalidConfigError,
    MissingEnvError,
    NetworkError,
    PayloadError,
    RequestTimeoutError,
    SignatureError,
    TransactLabError,
    TransportError,
    ValidationError,
    VaultDecryptError,
)
from .http import AsyncRetryingHttpClient, RetryingHttpClient
from .models import Configuration, WebhookEvent, WebhookResponse
from .utils.webhook import WebhookVerifier

__all__ = [
    "TransactLab",
    "AsyncTransactLab",
    "ConfigStore",
    "Configuration",
    "RetryingHttpClient",
    "AsyncRetryingHttpClient",
    "WebhookVerifier",
    "WebhookEvent",
    "WebhookResponse",
    "TransactLabError",
    "ConfigError",
    "VaultDecryptError",
    "MissingEnvError",
    "InvalidConfigError",
    "ValidationError",
    "TransportError",
    "NetworkError",
    "RequestTimeoutError",
    "HttpError",
    "SignatureError",
    "PayloadError",
    "__version__",
]
