"""
Synchronous checkout example.

Creates a checkout session and prints the hosted checkout URL.

Usage:
    export TL_API_KEY="sk_sandbox_..."
    export TL_WEBHOOK_SECRET="whsec_..."
    export TL_SUCCESS_URL="https://shop.example.com/success"
    export TL_CANCEL_URL="https://shop.example.com/cancel"
    export TL_CALLBACK_URL="https://shop.example.com/webhooks/transactlab"
    python examples/checkout_server.py

    # Or, with an encrypted vault in the working directory
    export TL_VAULT_PASSWORD="..."
    python examples/checkout_server.py
"""

import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from transactlab_sdk import TransactLab
from transactlab_sdk.exceptions import ConfigError, HttpError, TransportError, ValidationError
from transactlab_sdk.logging_setup import setup_structured_logger


def main():
    """
    Main checkout flow demonstration.
    """
    setup_structured_logger(os.getenv("TL_LOG_LEVEL", "INFO"))

    try:
        client = TransactLab(vault_password=os.getenv("TL_VAULT_PASSWORD"))
    except ConfigError as e:
        print(f"Configuration error ({e.kind}): {e}")
        sys.exit(1)

    print("=" * 60)
    print("TransactLab SDK - Checkout Example")
    print("=" * 60)

    with client:
        try:
            print("\n[1] Creating checkout session...")
            session = client.create_session(
                amount=3000,  # NGN 3,000.00, sent as 300000 kobo
                currency="NGN",
                description="Order #12345",
                customer_email="buyer@example.com",
                customer_name="Ada Buyer",
                metadata={"orderId": "12345"},
            )
            data = session.get("data", {})
            session_id = data.get("sessionId")

            print(f"Session created: {session_id}")
            print(f"  Checkout URL: {data.get('checkoutUrl') or client.checkout_url(session_id)}")

            print("\n[2] Creating the same session again (served from idempotency cache)...")
            again = client.create_session(
                amount=3000,
                currency="NGN",
                description="Order #12345",
                customer_email="buyer@example.com",
                customer_name="Ada Buyer",
                metadata={"orderId": "12345"},
            )
            print(f"Same session: {again.get('data', {}).get('sessionId') == session_id}")

            print("\n[3] Creating subscription...")
            subscription = client.create_subscription(
                plan_id=os.getenv("TL_PLAN_ID", "plan_monthly"),
                customer_email="buyer@example.com",
                trial_days=14,
            )
            print(f"Subscription: {subscription.get('data')}")

        except ValidationError as e:
            print(f"\nValidation error: {e}")
            print(f"  Fields: {', '.join(e.fields)}")

        except HttpError as e:
            print(f"\nAPI error: {e}")
            print(f"  Status Code: {e.status_code}")
            print(f"  Request ID: {e.request_id}")

        except TransportError as e:
            print(f"\nTransport error ({e.kind}): {e}")


if __name__ == "__main__":
    main()
