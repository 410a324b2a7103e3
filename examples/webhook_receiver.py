"""
Webhook receiver example.

Verifies inbound TransactLab webhooks and dispatches them by event type.

Usage:
    # Flask webhook endpoint (configuration from TL_* variables or vault)
    python examples/webhook_receiver.py --server

    # Standalone verification
    echo '{"type":"payment.completed"}' | python examples/webhook_receiver.py "t=1705420800,s=abc..."
"""

import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from transactlab_sdk import TransactLab, WebhookEvent
from transactlab_sdk.exceptions import PayloadError, SignatureError
from transactlab_sdk.utils.webhook import WebhookVerifier


def handle_payment_completed(data: dict) -> dict:
    session_id = data.get("sessionId")
    print(f"Payment completed: {session_id} ({data.get('amount')} {data.get('currency')})")
    return {"sessionId": session_id}


def handle_payment_failed(data: dict) -> dict:
    print(f"Payment failed: {data.get('sessionId')} ({data.get('reason', 'unknown')})")
    return {"sessionId": data.get("sessionId")}


def handle_subscription_event(data: dict) -> dict:
    print(f"Subscription update: {data.get('subscriptionId')} -> {data.get('status')}")
    return {"subscriptionId": data.get("subscriptionId")}


HANDLERS = {
    "payment.completed": handle_payment_completed,
    "payment.failed": handle_payment_failed,
    "subscription.created": handle_subscription_event,
    "subscription.cancelled": handle_subscription_event,
}


def process_webhook_event(event: WebhookEvent) -> dict:
    """
    Dispatch a verified event.

    Unknown event types are acknowledged so the sender does not retry them.
    """
    handler = HANDLERS.get(event.type or "")
    if handler is None:
        print(f"Unhandled event type: {event.type}")
        return {"ignored": True}
    return handler(event.data or {})


# ============================================================================
# Flask Webhook Endpoint
# ============================================================================

def create_flask_app():
    """
    Create Flask app with webhook endpoint.

    Usage:
        python examples/webhook_receiver.py --server
    """
    try:
        from flask import Flask, jsonify, request
    except ImportError:
        print("Error: Flask not installed. Run: pip install 'transactlab-sdk[examples]'")
        sys.exit(1)

    client = TransactLab(vault_password=os.getenv("TL_VAULT_PASSWORD"))
    on_webhook = client.handle_webhook(process_webhook_event)

    app = Flask(__name__)

    @app.route("/webhooks/transactlab", methods=["POST"])
    def transactlab_webhook():
        """TransactLab webhook endpoint."""
        # Signature is over the raw body
        result = on_webhook(request.get_data(), request.headers)
        return jsonify(result.body), result.status_code

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({"status": "healthy"}), 200

    return app


# ============================================================================
# CLI Interface
# ============================================================================

def main():
    """Main CLI interface."""
    if len(sys.argv) > 1 and sys.argv[1] == "--server":
        print("Webhook endpoint: http://localhost:5000/webhooks/transactlab")
        create_flask_app().run(host="0.0.0.0", port=5000)

    elif len(sys.argv) > 1:
        raw_body = sys.stdin.buffer.read()

        try:
            verifier = WebhookVerifier(os.getenv("TL_WEBHOOK_SECRET", ""))
            event = verifier.verify(raw_body, {"TL-Signature": sys.argv[1]})
        except (SignatureError, PayloadError) as e:
            print(f"Verification failed ({e.kind}): {e}")
            sys.exit(1)

        print(f"Verified event: {event.type}")
        process_webhook_event(event)

    else:
        print("Usage:")
        print("  python examples/webhook_receiver.py --server")
        print("  echo '{...}' | python examples/webhook_receiver.py 't=...,s=...'")
        sys.exit(1)


if __name__ == "__main__":
    main()
