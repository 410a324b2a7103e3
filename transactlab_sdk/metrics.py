"""
Prometheus Metrics for TransactLab SDK

Provides counters and histograms for outbound request monitoring.
Host application should expose the prometheus_client registry.
"""

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger("transactlab_sdk.metrics")

# Attempts by method and status code ("timeout"/"network" when no response)
REQUEST_COUNT = Counter(
    "transactlab_sdk_requests_total",
    "Total number of SDK HTTP attempts",
    ["method", "code"],
)

REQUEST_LATENCY = Histogram(
    "transactlab_sdk_request_latency_seconds",
    "SDK HTTP attempt latency in seconds",
    ["method"],
)

RETRY_COUNT = Counter(
    "transactlab_sdk_retries_total",
    "Retries scheduled by the SDK",
    ["reason"],
)

IDEMPOTENCY_HITS = Counter(
    "transactlab_sdk_idempotency_hits_total",
    "Requests answered from the idempotency cache",
)


def metrics_request(method: str, code: str, latency: float) -> None:
    """
    Record metrics for one HTTP attempt.

    Args:
        method: HTTP method
        code: HTTP status code, or transport error kind
        latency: Attempt duration in seconds
    """
    try:
        REQUEST_COUNT.labels(method=method, code=str(code)).inc()
        REQUEST_LATENCY.labels(method=method).observe(latency)
    except Exception as e:
        # Metrics failures should not break requests
        logger.debug("Failed to record metrics: %s", e)


def metrics_retry(reason: str) -> None:
    try:
        RETRY_COUNT.labels(reason=reason).inc()
    except Exception as e:
        logger.debug("Failed to record metrics: %s", e)


def metrics_idempotency_hit() -> None:
    try:
        IDEMPOTENCY_HITS.inc()
    except Exception as e:
        logger.debug("Failed to record metrics: %s", e)
