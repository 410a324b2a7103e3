"""
HTTP transport for TransactLab SDK.
"""

from .adapter import AsyncHTTPAdapter, HTTPAdapter
from .aiohttp_adapter import AiohttpAdapter
from .async_client import AsyncRetryingHttpClient
from .client import RetryingHttpClient
from .requests_adapter import RequestsAdapter
from .retry import Retryable, Terminal, backoff_delay_ms, classify

__all__ = [
    "HTTPAdapter",
    "AsyncHTTPAdapter",
    "RequestsAdapter",
    "AiohttpAdapter",
    "RetryingHttpClient",
    "AsyncRetryingHttpClient",
    "Retryable",
    "Terminal",
    "backoff_delay_ms",
    "classify",
]
