"""
Tests for the asynchronous client.
"""

import asyncio
import hashlib
import hmac

import aiohttp
import pytest
from aiohttp import test_utils, web

from transactlab_sdk import AsyncTransactLab
from transactlab_sdk.exceptions import (
    HttpError,
    InvalidConfigError,
    NetworkError,
    PayloadError,
    RequestTimeoutError,
    ValidationError,
)
from transactlab_sdk.http import AiohttpAdapter, AsyncRetryingHttpClient

from .support import BASE_URL, WEBHOOK_SECRET, DummyAsyncAdapter, fail, make_config, ok

SESSION_RESPONSE = {"success": True, "data": {"sessionId": "sess_1"}}


@pytest.fixture
def record_sleep(sleeps):
    async def sleep(delay):
        sleeps.append(delay)

    return sleep


@pytest.mark.asyncio
async def test_create_session(record_sleep):
    adapter = DummyAsyncAdapter(ok(SESSION_RESPONSE))
    client = AsyncTransactLab(make_config(), adapter=adapter, sleep=record_sleep)

    first = await client.create_session(120, "NGN", "Order #1", "buyer@example.com")
    second = await client.create_session(120, "NGN", "Order #1", "buyer@example.com")

    assert first == second == SESSION_RESPONSE
    assert len(adapter.requests) == 1
    request = adapter.requests[0]
    assert request["url"] == f"{BASE_URL}/sandbox/sessions"
    assert request["json"]["amount"] == 12000
    assert request["headers"]["x-sandbox-secret"] == "sk_sandbox_test_123"
    assert "Idempotency-Key" in request["headers"]


@pytest.mark.asyncio
async def test_create_subscription(record_sleep):
    adapter = DummyAsyncAdapter(ok({"success": True}))
    client = AsyncTransactLab(make_config(), adapter=adapter, sleep=record_sleep)

    await client.create_subscription("plan_monthly", "buyer@example.com", charge_now=False)
    assert adapter.requests[0]["json"]["chargeNow"] is False


@pytest.mark.asyncio
async def test_process_payment_not_cached(record_sleep):
    adapter = DummyAsyncAdapter(ok({"success": True}))
    client = AsyncTransactLab(make_config(), adapter=adapter, sleep=record_sleep)

    await client.process_payment("sess_1", {"paymentMethod": "card"})
    await client.process_payment("sess_1", {"paymentMethod": "card"})

    assert len(adapter.requests) == 2
    assert "Idempotency-Key" not in adapter.requests[0]["headers"]


@pytest.mark.asyncio
async def test_validation_before_network(record_sleep):
    adapter = DummyAsyncAdapter()
    client = AsyncTransactLab(make_config(), adapter=adapter, sleep=record_sleep)

    with pytest.raises(ValidationError):
        await client.create_session(None, "NGN", "Order", "buyer@example.com")
    assert adapter.requests == []


@pytest.mark.asyncio
async def test_retries_with_backoff(record_sleep, sleeps):
    adapter = DummyAsyncAdapter(fail(429))
    http = AsyncRetryingHttpClient(make_config(), adapter=adapter, sleep=record_sleep)

    with pytest.raises(HttpError) as exc:
        await http.post(f"{BASE_URL}/sandbox/sessions", {"amount": 1})

    assert exc.value.status_code == 429
    assert len(adapter.requests) == 3
    assert sleeps == [0.1, 0.2]


@pytest.mark.asyncio
async def test_timeout_then_success(record_sleep, sleeps):
    adapter = DummyAsyncAdapter(RequestTimeoutError("timed out"), ok({"success": True}))
    http = AsyncRetryingHttpClient(make_config(), adapter=adapter, sleep=record_sleep)

    assert await http.get(f"{BASE_URL}/health") == {"success": True}
    assert sleeps == [0.1]


@pytest.mark.asyncio
async def test_payload_error_not_retried(record_sleep):
    adapter = DummyAsyncAdapter((200, "{broken", {}))
    http = AsyncRetryingHttpClient(make_config(), adapter=adapter, sleep=record_sleep)

    with pytest.raises(PayloadError):
        await http.get(f"{BASE_URL}/health")
    assert len(adapter.requests) == 1


@pytest.mark.asyncio
async def test_handle_webhook_with_coroutine_handler(record_sleep):
    client = AsyncTransactLab(make_config(), adapter=DummyAsyncAdapter(), sleep=record_sleep)
    body = b'{"type":"payment.completed"}'
    signature = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()

    async def handler(event):
        return {"type": event.type}

    process = client.handle_webhook(handler)

    accepted = await process(body, {"x-tl-signature": signature})
    assert accepted.status_code == 200
    assert accepted.body == {"received": True, "type": "payment.completed"}

    rejected = await process(body, {"x-tl-signature": "0" * 64})
    assert rejected.status_code == 401


@pytest.mark.asyncio
async def test_handle_webhook_handler_error(record_sleep):
    client = AsyncTransactLab(make_config(), adapter=DummyAsyncAdapter(), sleep=record_sleep)
    body = b'{"type":"payment.failed"}'
    signature = hmac.new(WEBHOOK_SECRET.encode(), body, hashlib.sha256).hexdigest()

    async def handler(event):
        raise ValueError("boom")

    response = await client.handle_webhook(handler)(body, {"signature": signature})
    assert response.status_code == 500
    assert response.body == {"error": "boom"}


@pytest.mark.asyncio
async def test_context_manager_closes_adapter(record_sleep):
    adapter = DummyAsyncAdapter()
    async with AsyncTransactLab(make_config(), adapter=adapter, sleep=record_sleep) as client:
        assert client.checkout_url("sess_1").endswith("/checkout/sess_1")

    assert adapter.closed is True


@pytest.mark.asyncio
async def test_update_config_keeps_adapter(record_sleep):
    adapter = DummyAsyncAdapter(ok(SESSION_RESPONSE))
    client = AsyncTransactLab(make_config(), adapter=adapter, sleep=record_sleep)

    client.update_config({"baseUrl": "https://other.transactlab.test/api/v1"})
    await client.create_session(1, "USD", "Order", "buyer@example.com")

    assert adapter.requests[0]["url"].startswith("https://other.transactlab.test/api/v1")


@pytest.mark.asyncio
async def test_config_swap_holds_lock(record_sleep, monkeypatch):
    client = AsyncTransactLab(make_config(), adapter=DummyAsyncAdapter(), sleep=record_sleep)
    apply = client._apply
    held = []

    def locked_apply(config):
        held.append(client._lock.locked())
        apply(config)

    monkeypatch.setattr(client, "_apply", locked_apply)
    client.update_config({"timeout": 2000})

    assert held == [True]
    assert not client._lock.locked()
    assert client.get_config().timeout == 2000


@pytest.mark.asyncio
async def test_failed_update_releases_lock(record_sleep):
    client = AsyncTransactLab(make_config(), adapter=DummyAsyncAdapter(), sleep=record_sleep)

    with pytest.raises(InvalidConfigError):
        client.update_config({"baseUrl": "not a url"})

    assert not client._lock.locked()
    assert client.update_config({"timeout": 5000}).timeout == 5000


@pytest.mark.asyncio
async def test_non_string_currency(record_sleep):
    adapter = DummyAsyncAdapter()
    client = AsyncTransactLab(make_config(), adapter=adapter, sleep=record_sleep)

    with pytest.raises(ValidationError) as exc:
        await client.create_session(100, 123, "Order", "buyer@example.com")

    assert exc.value.fields == ["currency"]
    assert adapter.requests == []


@pytest.mark.asyncio
async def test_cached_null_body_is_a_hit(record_sleep):
    adapter = DummyAsyncAdapter(ok(None))
    http = AsyncRetryingHttpClient(make_config(), adapter=adapter, sleep=record_sleep)

    assert await http.post(f"{BASE_URL}/sandbox/sessions", {}, idempotency_key="key_1") is None
    assert await http.post(f"{BASE_URL}/sandbox/sessions", {}, idempotency_key="key_1") is None
    assert len(adapter.requests) == 1


def sandbox_app() -> web.Application:
    calls = {"flaky": 0}

    async def sessions(request):
        body = await request.json()
        return web.json_response(
            {"success": True, "echo": body, "secret": request.headers.get("x-sandbox-secret")}
        )

    async def slow(request):
        await asyncio.sleep(1.5)
        return web.json_response({"success": True})

    async def flaky(request):
        calls["flaky"] += 1
        if calls["flaky"] == 1:
            return web.json_response({"message": "unavailable"}, status=503)
        return web.json_response({"success": True, "attempt": calls["flaky"]})

    app = web.Application()
    app.router.add_post("/sandbox/sessions", sessions)
    app.router.add_post("/slow", slow)
    app.router.add_post("/flaky", flaky)
    return app


class TestAiohttpAdapter:
    """aiohttp transport against a local server."""

    @pytest.mark.asyncio
    async def test_send(self):
        adapter = AiohttpAdapter()
        assert adapter.session is None

        async with test_utils.TestServer(sandbox_app()) as server:
            status, text, headers = await adapter.send(
                "POST",
                str(server.make_url("/sandbox/sessions")),
                {"x-sandbox-secret": "sk_1"},
                json={"amount": 100},
                timeout=5.0,
            )

        assert status == 200
        assert '"echo": {"amount": 100}' in text
        assert '"secret": "sk_1"' in text
        assert headers["Content-Type"].startswith("application/json")
        assert adapter.session is not None

        await adapter.close()
        assert adapter.session.closed

    @pytest.mark.asyncio
    async def test_total_timeout(self):
        adapter = AiohttpAdapter()
        async with test_utils.TestServer(sandbox_app()) as server:
            with pytest.raises(RequestTimeoutError):
                await adapter.send("POST", str(server.make_url("/slow")), {}, json={}, timeout=0.2)
        await adapter.close()

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with test_utils.TestServer(sandbox_app()) as server:
            url = str(server.make_url("/sandbox/sessions"))

        async with AiohttpAdapter() as adapter:
            with pytest.raises(NetworkError):
                await adapter.send("POST", url, {}, json={}, timeout=2.0)

    @pytest.mark.asyncio
    async def test_external_session_left_open(self):
        async with aiohttp.ClientSession() as session:
            adapter = AiohttpAdapter(session=session)
            await adapter.close()
            assert not session.closed

    @pytest.mark.asyncio
    async def test_client_retries_through_aiohttp(self, record_sleep, sleeps):
        adapter = AiohttpAdapter()
        http = AsyncRetryingHttpClient(make_config(), adapter=adapter, sleep=record_sleep)

        async with test_utils.TestServer(sandbox_app()) as server:
            result = await http.post(str(server.make_url("/flaky")), {"amount": 1})

        await http.close()
        assert result == {"success": True, "attempt": 2}
        assert sleeps == [0.1]

    @pytest.mark.asyncio
    async def test_client_timeout_through_aiohttp(self, record_sleep):
        config = make_config(timeout=1000, retries={"maxAttempts": 1, "backoffMs": 100})
        http = AsyncRetryingHttpClient(config, adapter=AiohttpAdapter(), sleep=record_sleep)

        async with test_utils.TestServer(sandbox_app()) as server:
            with pytest.raises(RequestTimeoutError):
                await http.post(str(server.make_url("/slow")), {})

        await http.close()
