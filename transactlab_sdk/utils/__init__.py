"""
Utility modules for TransactLab SDK.
"""

from .currency import to_minor_units
from .idempotency import IdempotencyCache, derive_idempotency_key
from .webhook import WebhookVerifier, generate_signature, parse_signature_header

__all__ = [
    "to_minor_units",
    "IdempotencyCache",
    "derive_idempotency_key",
    "WebhookVerifier",
    "generate_signature",
    "parse_signature_header",
]
