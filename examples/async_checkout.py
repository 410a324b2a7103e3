"""
Asynchronous checkout example using async/await.

Usage:
    export TL_API_KEY="sk_sandbox_..."   # plus the other TL_* variables
    python examples/async_checkout.py
"""

import asyncio
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from transactlab_sdk import AsyncTransactLab
from transactlab_sdk.exceptions import HttpError, TransportError


async def main():
    """
    Create several sessions concurrently.
    """
    async with AsyncTransactLab(vault_password=os.getenv("TL_VAULT_PASSWORD")) as client:
        tasks = [
            client.create_session(
                amount=1000 * (i + 1),
                currency="USD",
                description=f"Concurrent order {i + 1}",
                customer_email="buyer@example.com",
            )
            for i in range(3)
        ]

        results = await asyncio.gather(*tasks, return_exceptions=True)

        for i, result in enumerate(results, 1):
            if isinstance(result, HttpError):
                print(f"  Session {i}: failed - HTTP {result.status_code} ({result.request_id})")
            elif isinstance(result, TransportError):
                print(f"  Session {i}: failed - {result.kind}")
            elif isinstance(result, Exception):
                print(f"  Session {i}: failed - {result}")
            else:
                print(f"  Session {i}: created - {result.get('data', {}).get('sessionId')}")


if __name__ == "__main__":
    asyncio.run(main())
