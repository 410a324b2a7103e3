"""
Synchronous TransactLab SDK client.
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import ConfigStore, merge_config
from .exceptions import PayloadError, SignatureError, ValidationError
from .http.adapter import HTTPAdapter
from .http.client import RetryingHttpClient
from .models import Configuration, WebhookEvent, WebhookResponse
from .utils.currency import to_minor_units
from .utils.idempotency import derive_idempotency_key
from .utils.webhook import WebhookVerifier

logger = logging.getLogger("transactlab_sdk.client")

SESSIONS_PATH = "/sandbox/sessions"
SUBSCRIPTIONS_PATH = "/sandbox/subscriptions"
PROCESS_PATH = "/checkout/process/{session_id}"

DEFAULT_FRONTEND_URL = "http://localhost:3000"

WebhookHandler = Callable[[WebhookEvent], Optional[Mapping[str, Any]]]


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(operation: str, **fields: Any) -> None:
    """
    Raise ValidationError naming every missing field.

    Args:
        operation: Operation name for the message
        **fields: Field name -> value
    """
    missing: List[str] = [name for name, value in fields.items() if _is_missing(value)]
    if missing:
        raise ValidationError(
            f"{operation}: missing required fields: {', '.join(missing)}", fields=missing
        )


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def build_session_payload(
    config: Configuration,
    amount: Any,
    currency: Optional[str],
    description: Optional[str],
    customer_email: Optional[str],
    customer_name: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate session arguments and build the request body (amount in minor units)."""
    require_fields(
        "create_session",
        amount=amount,
        currency=currency,
        description=description,
        customer_email=customer_email,
    )
    if not isinstance(currency, str):
        raise ValidationError("create_session: currency must be a string", fields=["currency"])
    amount_minor = to_minor_units(amount, currency)
    if amount_minor <= 0:
        raise ValidationError("create_session: amount must be positive", fields=["amount"])

    return _drop_none(
        {
            "amount": amount_minor,
            "currency": currency,
            "description": description,
            "customerEmail": customer_email,
            "customerName": customer_name,
            "metadata": metadata or {},
            "success_url": success_url or config.urls.success,
            "cancel_url": cancel_url or config.urls.cancel,
        }
    )


def build_subscription_payload(
    config: Configuration,
    plan_id: Optional[str],
    customer_email: Optional[str],
    customer_name: Optional[str] = None,
    trial_days: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    success_url: Optional[str] = None,
    cancel_url: Optional[str] = None,
    charge_now: bool = True,
) -> Dict[str, Any]:
    """Validate subscription arguments and build the request body."""
    require_fields("create_subscription", plan_id=plan_id, customer_email=customer_email)

    return _drop_none(
        {
            "planId": plan_id,
            "customerEmail": customer_email,
            "customerName": customer_name,
            "trialDays": trial_days,
            "metadata": metadata or {},
            "success_url": success_url or config.urls.success,
            "cancel_url": cancel_url or config.urls.cancel,
            "chargeNow": charge_now,
        }
    )


def build_checkout_url(config: Configuration, session_id: str) -> str:
    frontend = (config.urls.frontend or DEFAULT_FRONTEND_URL).rstrip("/")
    return f"{frontend}/checkout/{session_id}"


def webhook_success(result: Any) -> WebhookResponse:
    """Wrap a handler result in the ``{"received": True, ...}`` envelope."""
    body: Dict[str, Any] = {"received": True}
    if isinstance(result, Mapping):
        body.update(result)
    elif result is not None:
        body["result"] = result
    return WebhookResponse(status_code=200, body=body)


def webhook_rejection(error: Exception) -> WebhookResponse:
    if isinstance(error, SignatureError):
        return WebhookResponse(status_code=401, body={"error": "Invalid webhook signature"})
    return WebhookResponse(status_code=400, body={"error": "Invalid webhook payload"})


class TransactLab:
    """
    Synchronous TransactLab SDK client.

    Creates checkout sessions and subscriptions, processes payments and
    authenticates inbound webhooks.

    Features:
    - Configuration from encrypted vault or TL_* environment variables
    - Automatic idempotency keys for session and subscription creation
    - Retries with exponential backoff for network errors, 429 and 5xx
    - Framework-agnostic webhook handling

    Examples:
        >>> tl = TransactLab(vault_password=os.getenv("TL_VAULT_PASSWORD"))
        >>> session = tl.create_session(
        ...     amount=3000,
        ...     currency="NGN",
        ...     description="Order #12345",
        ...     customer_email="buyer@example.com",
        ... )
        >>> session["data"]["checkoutUrl"]
    """

    def __init__(
        self,
        config: Optional[Configuration] = None,
        *,
        config_store: Optional[ConfigStore] = None,
        vault_password: Optional[str] = None,
        adapter: Optional[HTTPAdapter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize TransactLab client.

        Args:
            config: Validated configuration; loaded from ``config_store`` when omitted
            config_store: Configuration store (default: ConfigStore())
            vault_password: Password for the encrypted vault
            adapter: Optional custom HTTP adapter
            sleep: Sleep function used for retry backoff

        Raises:
            ConfigError: If configuration cannot be loaded or is invalid
        """
        self._store = config_store or ConfigStore()
        self._adapter = adapter
        self._sleep = sleep
        self._lock = threading.Lock()

        if config is None:
            config = self._store.load(vault_password)
        self._apply(config)

    def _apply(self, config: Configuration) -> None:
        http = RetryingHttpClient(config, adapter=self._adapter, sleep=self._sleep)
        verifier = WebhookVerifier(config.webhook_secret)
        self._adapter = http.adapter
        # Readers see either the old trio or the new one
        self._state = (config, http, verifier)

    @property
    def config(self) -> Configuration:
        return self._state[0]

    @property
    def http(self) -> RetryingHttpClient:
        return self._state[1]

    @property
    def verifier(self) -> WebhookVerifier:
        return self._state[2]

    def _auth_headers(self, config: Configuration) -> Dict[str, str]:
        return {"x-sandbox-secret": config.api_key}

    # ========================================================================
    # Sessions & Subscriptions
    # ========================================================================

    def create_session(
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
        """
        Create a checkout session for a one-time payment.

        Args:
            amount: Amount in major currency units (converted to minor units)
            currency: Currency code (e.g., 'NGN', 'USD')
            description: Payment description
            customer_email: Customer email
            customer_name: Customer name
            metadata: Custom metadata
            success_url: Success redirect URL (default: from config)
            cancel_url: Cancel redirect URL (default: from config)

        Returns:
            Remote response, unmodified

        Raises:
            ValidationError: If a required field is missing
            HttpError: On API errors
            TransportError: On network failure after retries
        """
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
        idempotency_key = derive_idempotency_key("POST", SESSIONS_PATH, payload)

        logger.info("Creating session (%s %s)", payload["amount"], payload["currency"])
        return http.post(
            f"{config.base_url}{SESSIONS_PATH}",
            payload,
            headers=self._auth_headers(config),
            idempotency_key=idempotency_key,
        )

    def create_subscription(
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
        """
        Create a subscription for recurring payments.

        Args:
            plan_id: Plan ID
            customer_email: Customer email
            customer_name: Customer name
            trial_days: Trial period in days
            metadata: Custom metadata
            success_url: Success redirect URL (default: from config)
            cancel_url: Cancel redirect URL (default: from config)
            charge_now: Charge immediately

        Returns:
            Remote response, unmodified
        """
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
        idempotency_key = derive_idempotency_key("POST", SUBSCRIPTIONS_PATH, payload)

        logger.info("Creating subscription (plan=%s)", plan_id)
        return http.post(
            f"{config.base_url}{SUBSCRIPTIONS_PATH}",
            payload,
            headers=self._auth_headers(config),
            idempotency_key=idempotency_key,
        )

    def process_payment(self, session_id: str, payment_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Process payment for a session.

        Not idempotency-keyed: repeated calls may be distinct payment attempts
        against the same session.

        Args:
            session_id: Session ID
            payment_data: Payment data

        Returns:
            Payment result
        """
        require_fields("process_payment", session_id=session_id)
        config, http, _ = self._state

        logger.info("Processing payment for session %s", session_id)
        return http.post(
            f"{config.base_url}{PROCESS_PATH.format(session_id=session_id)}",
            payment_data or {},
            headers=self._auth_headers(config),
        )

    def checkout_url(self, session_id: str) -> str:
        """Checkout page URL for a session on the configured frontend."""
        require_fields("checkout_url", session_id=session_id)
        return build_checkout_url(self.config, session_id)

    # ========================================================================
    # Webhooks
    # ========================================================================

    def verify_webhook(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookEvent:
        """
        Verify webhook signature and parse the event.

        Raises:
            SignatureError: If signature verification fails
            PayloadError: If the body is not a JSON object
        """
        return self.verifier.verify(raw_body, headers)

    def handle_webhook(self, handler: WebhookHandler) -> Callable[[bytes, Mapping[str, str]], WebhookResponse]:
        """
        Build a webhook request handler.

        The returned function takes the raw body and headers of an inbound
        request and never raises:

        - invalid signature: 401, ``handler`` is not called
        - valid signature, malformed body: 400
        - ``handler`` returns: 200 with ``{"received": True, **result}``
        - ``handler`` raises: 500 with ``{"error": str(exc)}``

        Args:
            handler: Called with the verified WebhookEvent

        Returns:
            Function (raw_body, headers) -> WebhookResponse

        Examples:
            >>> on_webhook = tl.handle_webhook(lambda event: {"type": event.type})
            >>> @app.route("/webhooks/transactlab", methods=["POST"])
            ... def webhook():
            ...     result = on_webhook(request.get_data(), request.headers)
            ...     return jsonify(result.body), result.status_code
        """

        def process(raw_body: bytes, headers: Mapping[str, str]) -> WebhookResponse:
            try:
                event = self.verify_webhook(raw_body, headers)
            except (SignatureError, PayloadError) as e:
                logger.warning("Webhook rejected: %s", e.kind)
                return webhook_rejection(e)

            try:
                result = handler(event)
            except Exception as e:
                logger.exception("Webhook handler failed")
                return WebhookResponse(status_code=500, body={"error": str(e)})

            return webhook_success(result)

        return process

    # ========================================================================
    # Configuration Management
    # ========================================================================

    def get_config(self) -> Configuration:
        return self.config

    def update_config(self, updates: Mapping[str, Any]) -> Configuration:
        """
        Update configuration.

        The merged configuration is validated before anything changes; on
        failure the client keeps its current configuration.

        Args:
            updates: Fields to change (camelCase or snake_case)

        Raises:
            InvalidConfigError: If the merged configuration is invalid
        """
        with self._lock:
            if self._store.current is not None:
                config = self._store.update(updates)
            else:
                config = merge_config(self.config, updates)
            self._apply(config)
        return config

    def reload_config(self, vault_password: Optional[str] = None) -> Configuration:
        """Reload configuration from vault/environment and rebuild the transport."""
        with self._lock:
            config = self._store.reload(vault_password)
            self._apply(config)
        return config

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "TransactLab":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
