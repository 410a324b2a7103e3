"""
Asynchronous HTTP client with retries and idempotency.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from ..exceptions import TransactLabError
from ..logging_setup import sanitize_for_logging
from ..metrics import metrics_idempotency_hit, metrics_request, metrics_retry
from ..models import Configuration
from ..utils.idempotency import MISSING, IdempotencyCache, derive_idempotency_key
from .adapter import AsyncHTTPAdapter
from .aiohttp_adapter import AiohttpAdapter
from .client import build_headers
from .retry import Terminal, backoff_delay_ms, classify, parse_response

logger = logging.getLogger("transactlab_sdk.http.async")


class AsyncRetryingHttpClient:
    """
    Asynchronous RetryingHttpClient.

    Same retry, timeout and idempotency contract as the synchronous client;
    each attempt and each backoff sleep is a suspension point.
    """

    def __init__(
        self,
        config: Configuration,
        adapter: Optional[AsyncHTTPAdapter] = None,
        cache: Optional[IdempotencyCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config
        self.adapter = adapter or AiohttpAdapter()
        self.cache = cache if cache is not None else IdempotencyCache()
        self._sleep = sleep

    @staticmethod
    def generate_idempotency_key(method: str, url: str, body: Optional[Any] = None) -> str:
        return derive_idempotency_key(method, url, body)

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Any] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """
        Make an async HTTP request with retries.

        See RetryingHttpClient.request for the contract.
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
                    "Request %s %s attempt %d/%d body=%s",
                    method,
                    url,
                    attempt,
                    max_attempts,
                    sanitize_for_logging(body),
                )

            start = time.monotonic()
            status = None
            try:
                status, text, resp_headers = await self.adapter.send(
                    method=method,
                    url=url,
                    headers=request_headers,
                    json=body,
                    timeout=timeout,
                )
                metrics_request(method, str(status), time.monotonic() - start)
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
                await self._sleep(delay_ms / 1000.0)
                continue

            if use_cache:
                self.cache.set(idempotency_key, result, self.config.idempotency.ttl_seconds)
            return result

        raise AssertionError("unreachable")

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None, idempotency_key: Optional[str] = None) -> Any:
        return await self.request("GET", url, headers=headers, idempotency_key=idempotency_key)

    async def post(
        self,
        url: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        return await self.request("POST", url, headers=headers, body=body, idempotency_key=idempotency_key)

    async def put(
        self,
        url: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        return await self.request("PUT", url, headers=headers, body=body, idempotency_key=idempotency_key)

    async def delete(self, url: str, headers: Optional[Dict[str, str]] = None, idempotency_key: Optional[str] = None) -> Any:
        return await self.request("DELETE", url, headers=headers, idempotency_key=idempotency_key)

    async def close(self) -> None:
        await self.adapter.close()
