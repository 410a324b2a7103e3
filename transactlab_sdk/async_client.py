"""
Asynchronous TransactLab SDK client.
"""

import asyncio
import inspect
import logging
import threading
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

from .client import (
    PROCESS_PATH,
    SESSIONS_PATH,
    SUBSCRIPTIONS_PATH,
    build_checkout_url,
    build_session_payload,
    build_subscription_payload,
    require_fields,
    webhook_rejection,
    webhook_success,
)
from .config import ConfigStore, merge_config
from .exceptions import PayloadError, SignatureError
from .http.adapter import AsyncHTTPAdapter
from .http.async_client import AsyncRetryingHttpClient
from .models import Configuration, WebhookEvent, WebhookResponse
from .utils.idempotency import derive_idempotency_key
from .utils.webhook import WebhookVerifier

logger = logging.getLogger("transactlab_sdk.client.async")


class AsyncTransactLab:
    """
    Asynchronous TransactLab SDK client.

    Same operations as TransactLab, for asyncio applications (FastAPI,
    aiohttp...). Configuration loading is synchronous and happens in the
    constructor.

    Examples:
        >>> async def main():
        ...     async with AsyncTransactLab() as tl:
        ...         session = await tl.create_session(
        ...             amount=3000,
        ...             currency="NGN",
        ...             description="Order #12345",
        ...             customer_email="buyer@example.com",
        ...         )
        >>>
        >>> asyncio.run(main())
    """

    def __init__(
        self,
        config: Optional[Configuration] = None,
        *,
        config_store: Optional[ConfigStore] = None,
        vault_password: Optional[str] = None,
        adapter: Optional[AsyncHTTPAdapter] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._store = config_store or ConfigStore()
        self._adapter = adapter
        self._sleep = sleep
        self._lock = threading.Lock()

        if config is None:
            config = self._store.load(vault_password)
        self._apply(config)

    async def __aenter__(self) -> "AsyncTransactLab":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _apply(self, config: Configuration) -> None:
        http = AsyncRetryingHttpClient(config, adapter=self._adapter, sleep=self._sleep)
        verifier = WebhookVerifier(config.webhook_secret)
        self._adapter = http.adapter
        self._state = (config, http, verifier)

    @property
    def config(self) -> Configuration:
        return self._state[0]

    @property
    def http(self) -> AsyncRetryingHttpClient:
        return self._state[1]

    async def create_session(
        self,
        amount: Any,
        currency: str,
        description: str,
        customer_email: str,
        customer_name: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a checkout session. See TransactLab.create_session."""
        config, http, _ = self._state
        payload = build_session_payload(
            config,
            amount,
            currency,
            description,
            customer_email,
            customer_name=customer_name,
            metadata=metadata,
            success_url=success_url,
            cancel_url=cancel_url,
        )
        return await http.post(
            f"{config.base_url}{SESSIONS_PATH}",
            payload,
            headers={"x-sandbox-secret": config.api_key},
            idempotency_key=derive_idempotency_key("POST", SESSIONS_PATH, payload),
        )

    async def create_subscription(
        self,
        plan_id: str,
        customer_email: str,
        customer_name: Optional[str] = None,
        trial_days: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        charge_now: bool = True,
    ) -> Dict[str, Any]:
        """Create a subscription. See TransactLab.create_subscription."""
        config, http, _ = self._state
        payload = build_subscription_payload(
            config,
            plan_id,
            customer_email,
            customer_name=customer_name,
            trial_days=trial_days,
            metadata=metadata,
            success_url=success_url,
            cancel_url=cancel_url,
            charge_now=charge_now,
        )
        return await http.post(
            f"{config.base_url}{SUBSCRIPTIONS_PATH}",
            payload,
            headers={"x-sandbox-secret": config.api_key},
            idempotency_key=derive_idempotency_key("POST", SUBSCRIPTIONS_PATH, payload),
        )

    async def process_payment(self, session_id: str, payment_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        require_fields("process_payment", session_id=session_id)
        config, http, _ = self._state
        return await http.post(
            f"{config.base_url}{PROCESS_PATH.format(session_id=session_id)}",
            payment_data or {},
            headers={"x-sandbox-secret": config.api_key},
        )

    def checkout_url(self, session_id: str) -> str:
        require_fields("checkout_url", session_id=session_id)
        return build_checkout_url(self.config, session_id)

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        return self._state[2].verify(raw_body, headers)

    def handle_webhook(
        self, handler: Callable[[WebhookEvent], Any]
    ) -> Callable[[bytes, Mapping[str, str]], Awaitable[WebhookResponse]]:
        """
        Build an async webhook request handler.

        ``handler`` may be a plain function or a coroutine function. Response
        mapping is the same as TransactLab.handle_webhook.
        """

        async def process(raw_body: bytes, headers: Mapping[str, str]) -> WebhookResponse:
            try:
                event = self.verify_webhook(raw_body, headers)
            except (SignatureError, PayloadError) as e:
                logger.warning("Webhook rejected: %s", e.kind)
                return webhook_rejection(e)

            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                logger.exception("Webhook handler failed")
                return WebhookResponse(status_code=500, body={"error": str(e)})

            return webhook_success(result)

        return process

    def get_config(self) -> Configuration:
        return self.config

    def update_config(self, updates: Mapping[str, Any]) -> Configuration:
        with self._lock:
            if self._store.current is not None:
                config = self._store.update(updates)
            else:
                config = merge_config(self.config, updates)
            self._apply(config)
        return config

    def reload_config(self, vault_password: Optional[str] = None) -> Configuration:
        with self._lock:
            config = self._store.reload(vault_password)
            self._apply(config)
        return config

    async def close(self) -> None:
        await self.http.close()
