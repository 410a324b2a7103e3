"""
TransactLab SDK Data Models
"""

from typing import Any, Dict, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

SANDBOX_BASE_URL = "https://transactlab-backend.onrender.com/api/v1"
PRODUCTION_BASE_URL = "https://api.transactlab.com/api/v1"

_SECRET_FIELDS = {"api_key", "webhook_secret"}


def default_base_url(environment: Optional[str]) -> str:
    """Return the API base URL for an environment name."""
    return PRODUCTION_BASE_URL if environment == "production" else SANDBOX_BASE_URL


def is_valid_url(value: str) -> bool:
    """Check that a string is an absolute http(s) URL with a host."""
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _check_url(value: Optional[str], required: bool) -> Optional[str]:
    if not value:
        if required:
            raise ValueError("URL is required")
        return value
    if not is_valid_url(value):
        raise ValueError(f"Invalid URL: {value}")
    return value


class _FrozenModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class Urls(_FrozenModel):
    """Redirect and callback targets"""

    success: str
    cancel: str
    callback: str
    frontend: Optional[str] = None

    @field_validator("success", "cancel", "callback")
    @classmethod
    def validate_required_url(cls, v):
        return _check_url(v, required=True)

    @field_validator("frontend")
    @classmethod
    def validate_optional_url(cls, v):
        return _check_url(v, required=False)


class RetryPolicy(_FrozenModel):
    """Retry policy for outbound requests"""

    max_attempts: int = Field(3, ge=1, le=10, description="Total attempts, first included")
    backoff_ms: int = Field(1000, ge=100, le=10000, description="Base backoff delay in ms")


class IdempotencyPolicy(_FrozenModel):
    """Client-side idempotency cache policy"""

    enabled: bool = True
    ttl_seconds: int = Field(3600, ge=0, description="Cache entry lifetime in seconds")


class Configuration(_FrozenModel):
    """
    SDK configuration.

    Immutable once validated. Serialized with camelCase keys
    (``apiKey``, ``retries.maxAttempts``...) so vault files stay compatible
    with the Node.js runtime.
    """

    api_key: str = Field(..., min_length=1, description="Sandbox secret sent as x-sandbox-secret")
    webhook_secret: str = Field(..., min_length=1, description="HMAC key for inbound webhooks")
    urls: Urls
    environment: Literal["sandbox", "production"] = "sandbox"
    base_url: str = Field(..., description="API base URL")
    retries: RetryPolicy = Field(default_factory=RetryPolicy)
    timeout: int = Field(30000, ge=1000, le=300000, description="Per-request timeout in ms")
    idempotency: IdempotencyPolicy = Field(default_factory=IdempotencyPolicy)

    @model_validator(mode="before")
    @classmethod
    def fill_base_url(cls, data: Any) -> Any:
        if isinstance(data, dict) and "baseUrl" not in data and "base_url" not in data:
            data = dict(data)
            data["baseUrl"] = default_base_url(data.get("environment"))
        return data

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        return _check_url(v, required=True).rstrip("/")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")

    def __repr_args__(self):
        for name, value in super().__repr_args__():
            yield name, "***REDACTED***" if name in _SECRET_FIELDS else value


class WebhookEvent(BaseModel):
    """Verified inbound webhook payload. Unknown fields are preserved."""

    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    data: Any = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(exclude_unset=True)
        data.update(self.model_extra or {})
        return data


class WebhookResponse(BaseModel):
    """Framework-agnostic result of a webhook handler invocation"""

    status_code: int
    body: Dict[str, Any] = Field(default_factory=dict)
