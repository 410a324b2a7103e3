"""
Test doubles shared across the test suite.
"""

import json
import threading
import time
from contextlib import contextmanager
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, Iterator, List, Optional, Tuple

from transactlab_sdk.http.adapter import AsyncHTTPAdapter, HTTPAdapter
from transactlab_sdk.models import Configuration

BASE_URL = "https://sandbox.transactlab.test/api/v1"
WEBHOOK_SECRET = "whsec_test_secret_123"


def ok(body: Any, status: int = 200) -> Tuple[int, str, Dict[str, str]]:
    return status, json.dumps(body), {"Content-Type": "application/json"}


def fail(status: int, body: Any = None) -> Tuple[int, str, Dict[str, str]]:
    text = body if isinstance(body, str) else json.dumps(body or {"message": "error"})
    return status, text, {"X-Request-Id": "req_test_123"}


class DummyAdapter(HTTPAdapter):
    """
    Scripted HTTP adapter for testing.

    Each send() consumes the next scripted item; the last item repeats.
    Exceptions in the script are raised instead of returned.
    """

    def __init__(self, *script: Any):
        self.script: List[Any] = list(script) or [ok({"success": True})]
        self.requests: List[Dict[str, Any]] = []

    def send(self, method, url, headers, json=None, timeout=30.0):
        """Record the request and play back the next scripted item."""
        self.requests.append(
            {"method": method, "url": url, "headers": headers, "json": json, "timeout": timeout}
        )
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def last_request(self) -> Optional[Dict[str, Any]]:
        return self.requests[-1] if self.requests else None


class DummyAsyncAdapter(AsyncHTTPAdapter):
    """Async variant of DummyAdapter."""

    def __init__(self, *script: Any):
        self._sync = DummyAdapter(*script)
        self.closed = False

    @property
    def requests(self) -> List[Dict[str, Any]]:
        return self._sync.requests

    async def send(self, method, url, headers, json=None, timeout=30.0):
        return self._sync.send(method, url, headers, json=json, timeout=timeout)

    async def close(self) -> None:
        self.closed = True


def make_config(**overrides: Any) -> Configuration:
    data: Dict[str, Any] = {
        "apiKey": "sk_sandbox_test_123",
        "webhookSecret": WEBHOOK_SECRET,
        "urls": {
            "success": "https://merchant.test/success",
            "cancel": "https://merchant.test/cancel",
            "callback": "https://merchant.test/webhooks/transactlab",
            "frontend": "https://checkout.transactlab.test",
        },
        "environment": "sandbox",
        "baseUrl": BASE_URL,
        "retries": {"maxAttempts": 3, "backoffMs": 100},
        "timeout": 1000,
        "idempotency": {"enabled": True, "ttlSeconds": 3600},
    }
    data.update(overrides)
    return Configuration.model_validate(data)



class TrickleHandler(BaseHTTPRequestHandler):
    """
    Local endpoint answering 200 with a JSON body sent one byte at a time.

    ``delay`` is the pause between bytes; 0 sends the body at once.
    """

    body = b'{"success":true,"n":1}'
    delay = 0.3

    def do_POST(self):
        self.rfile.read(int(self.headers.get("Content-Length") or 0))
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(self.body)))
        self.end_headers()
        try:
            if not self.delay:
                self.wfile.write(self.body)
                return
            for i in range(len(self.body)):
                self.wfile.write(self.body[i : i + 1])
                self.wfile.flush()
                time.sleep(self.delay)
        except (BrokenPipeError, ConnectionResetError):
            pass

    def log_message(self, format, *args):
        pass


@contextmanager
def local_http_server(handler: type) -> Iterator[str]:
    """Serve ``handler`` on an ephemeral localhost port; yields the base URL."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        host, port = server.server_address[:2]
        yield f"http://{host}:{port}"
    finally:
        server.shutdown()
        server.server_close()
