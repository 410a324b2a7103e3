"""
Base HTTP adapter interfaces.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple


class HTTPAdapter(ABC):
    """
    Abstract base class for HTTP adapters.

    An adapter performs exactly one HTTP exchange. Retries, idempotency and
    response classification live in RetryingHttpClient.
    """

    @abstractmethod
    def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Optional[Any] = None,
        timeout: float = 30.0,
    ) -> Tuple[int, str, Dict[str, str]]:
        """
        Send HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            url: Request URL
            headers: Request headers
            json: JSON request body
            timeout: Request timeout in seconds

        Returns:
            Tuple of (status_code, response_text, response_headers)

        Raises:
            NetworkError: On network connectivity issues
            RequestTimeoutError: On request timeout
        """
        raise NotImplementedError

    def close(self) -> None:
        """Release pooled connections."""


class AsyncHTTPAdapter(ABC):
    """Asynchronous counterpart of HTTPAdapter."""

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Optional[Any] = None,
        timeout: float = 30.0,
    ) -> Tuple[int, str, Dict[str, str]]:
        raise NotImplementedError

    async def close(self) -> None:
        """Release pooled connections."""
