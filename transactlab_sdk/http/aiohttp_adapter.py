"""
Aiohttp-based HTTP adapter (asynchronous).
"""

import asyncio
from typing import Any, Dict, Optional, Tuple

import aiohttp

from ..exceptions import NetworkError, RequestTimeoutError
from .adapter import AsyncHTTPAdapter


class AiohttpAdapter(AsyncHTTPAdapter):
    """
    Asynchronous HTTP adapter using aiohttp library.

    Features:
    - Non-blocking requests for async applications
    - Connection pooling
    - Wall-clock timeout per request (ClientTimeout.total)
    """

    def __init__(self, session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize aiohttp adapter.

        Args:
            session: Optional aiohttp.ClientSession instance
        """
        self._external_session = session is not None
        self.session = session

    async def __aenter__(self) -> "AiohttpAdapter":
        """Context manager entry."""
        self._get_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit."""
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession()
        return self.session

    async def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Optional[Any] = None,
        timeout: float = 30.0,
    ) -> Tuple[int, str, Dict[str, str]]:
        """
        Send HTTP request using aiohttp library.

        Args:
            method: HTTP method
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
        session = self._get_session()
        timeout_obj = aiohttp.ClientTimeout(total=timeout)

        try:
            async with session.request(
                method=method,
                url=url,
                headers=headers,
                json=json,
                timeout=timeout_obj,
            ) as response:
                text = await response.text()
                return (
                    response.status,
                    text,
                    dict(response.headers),
                )

        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"Request timeout after {timeout}s") from e

        except aiohttp.ClientError as e:
            raise NetworkError(f"Request failed: {e}") from e

    async def close(self) -> None:
        """Close the session."""
        if not self._external_session and self.session and not self.session.closed:
            await self.session.close()
