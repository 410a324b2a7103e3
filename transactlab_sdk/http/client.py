"""
Synchronous HTTP client with retries and idempotency.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from ..__version__ import __version__
from ..exceptions import TransactLabError
from ..logging_setup import sanitize_for_logging
from ..metrics import metrics_idempotency_hit, metrics_request, metrics_retry
from ..models import Configuration
from ..utils.idempotency import MISSING, IdempotencyCache, derive_idempotency_key
from .adapter import HTTPAdapter
from .requests_adapter import RequestsAdapter
from .retry import Terminal, backoff_delay_ms, classify, parse_response

logger = logging.getLogger("transactlab_sdk.http")

USER_AGENT = f"TransactLab-Python-SDK/{__version__}"


def build_headers(extra: Optional[Dict[str, str]], idempotency_key: Optional[str]) -> Dict[str, str]:
    """Default headers merged with per-request headers."""
    headers = {
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key
    if extra:
        headers.update(extra)
    return headers


class RetryingHttpClient:
    """
    HTTP client with bounded retries, exponential backoff and an idempotency cache.

    Retry, timeout and idempotency policy come from the Configuration the client
    was built with. Each client owns its own IdempotencyCache.

    Examples:
        >>> http = RetryingHttpClient(config)
        >>> body = {"amount": 300000, "currency": "NGN"}
        >>> http.post(
        ...     f"{config.base_url}/sandbox/sessions",
        ...     body,
        ...     headers={"x-sandbox-secret": config.api_key},
        ...     idempotency_key=derive_idempotency_key("POST", "/sandbox/sessions", body),
        ... )
    """

    def __init__(
        self,
        config: Configuration,
        adapter: Optional[HTTPAdapter] = None,
        cache: Optional[IdempotencyCache] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize HTTP client.

        Args:
            config: Validated SDK configuration
            adapter: Optional custom HTTP adapter (default: RequestsAdapter)
            cache: Optional idempotency cache (default: a new private cache)
            sleep: Sleep function used for backoff, in seconds
        """
        self.config = config
        self.adapter = adapter or RequestsAdapter()
        self.cache = cache if cache is not None else IdempotencyCache()
        self._sleep = sleep

    @staticmethod
    def generate_idempotency_key(method: str, url: str, body: Optional[Any] = None) -> str:
        return derive_idempotency_key(method, url, body)

    def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Any] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """
        Make HTTP request with retries and error handling.

        Args:
            method: HTTP method
            url: Absolute request URL
            headers: Extra request headers
            body: JSON request body
            idempotency_key: Idempotency key; a cached response for it is
                returned without any network call

        Returns:
            Parsed JSON response

        Raises:
            HttpError: Non-2xx response (after retries for 429/5xx)
            TransportError: Network failure or timeout after all attempts
            PayloadError: 2xx response with malformed JSON
        """
        method = method.upper()
        use_cache = bool(idempotency_key) and self.config.idempotency.enabled

        if use_cache:
            cached = self.cache.get(idempotency_key, MISSING)
            if cached is not MISSING:
                logger.debug("Idempotency cache hit for %s %s", method, url)
                metrics_idempotency_hit()
                return cached

        request_headers = build_headers(headers, idempotency_key)
        max_attempts = self.config.retries.max_attempts
        timeout = self.config.timeout / 1000.0

        for attempt in range(1, max_attempts + 1):
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Request %s %s attempt %d/%d headers=%s body=%s",
                    method,
                    url,
                    attempt,
                    max_attempts,
                    sanitize_for_logging(request_headers),
                    sanitize_for_logging(body),
                )

            start = time.monotonic()
            status = None
            try:
                status, text, resp_headers = self.adapter.send(
                    method=method,
                    url=url,
                    headers=request_headers,
                    json=body,
                    timeout=timeout,
                )
                metrics_request(method, str(status), time.monotonic() - start)
                logger.debug("Response %d %s", status, text[:1000] if text else "")
                result = parse_response(status, text, resp_headers)

            except TransactLabError as e:
                if status is None:
                    metrics_request(method, e.kind, time.monotonic() - start)

                outcome = classify(e)
                if isinstance(outcome, Terminal):
                    raise
                if attempt == max_attempts:
                    logger.error(
                        "%s %s failed after %d attempts: %s", method, url, attempt, e
                    )
                    raise

                delay_ms = backoff_delay_ms(self.config.retries.backoff_ms, attempt)
                logger.warning(
                    "%s %s attempt %d/%d failed (%s), retrying in %dms",
                    method,
                    url,
                    attempt,
                    max_attempts,
                    outcome.reason,
                    delay_ms,
                )
                metrics_retry(outcome.reason)
                self._sleep(delay_ms / 1000.0)
                continue

            if use_cache:
                self.cache.set(idempotency_key, result, self.config.idempotency.ttl_seconds)
            return result

        # max_attempts >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")

    def get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Make GET request."""
        return self.request("GET", url, headers=headers, idempotency_key=idempotency_key)

    def post(
        self,
        url: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Make POST request."""
        return self.request("POST", url, headers=headers, body=body, idempotency_key=idempotency_key)

    def put(
        self,
        url: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Make PUT request."""
        return self.request("PUT", url, headers=headers, body=body, idempotency_key=idempotency_key)

    def delete(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Make DELETE request."""
        return self.request("DELETE", url, headers=headers, idempotency_key=idempotency_key)

    def close(self) -> None:
        self.adapter.close()
