"""
Requests-based HTTP adapter (synchronous).
"""

from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Dict, Optional, Tuple

import requests

from ..exceptions import NetworkError, RequestTimeoutError
from .adapter import HTTPAdapter


class RequestsAdapter(HTTPAdapter):
    """
    Synchronous HTTP adapter using requests library.

    Features:
    - Connection pooling via session
    - Wall-clock timeout per request

    requests only bounds the connect phase and each socket read, so a server
    trickling bytes could hold a call open indefinitely. The exchange runs on
    a worker thread and the caller waits at most ``timeout`` seconds for it;
    on expiry the streamed response is closed and RequestTimeoutError raised.

    No urllib3 retry strategy is mounted: attempts are counted and spaced by
    RetryingHttpClient.
    """

    def __init__(self, session: Optional[requests.Session] = None, max_workers: Optional[int] = None):
        """
        Initialize requests adapter.

        Args:
            session: Optional requests.Session instance
            max_workers: Worker threads for in-flight requests (default: executor default)
        """
        self._external_session = session is not None
        self.session = session or requests.Session()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="transactlab-http"
        )

    def send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        json: Optional[Any] = None,
        timeout: float = 30.0,
    ) -> Tuple[int, str, Dict[str, str]]:
        """
        Send HTTP request using requests library.

        Args:
            method: HTTP method
            url: Request URL
            headers: Request headers
            json: JSON request body
            timeout: Wall-clock limit for the whole exchange, in seconds

        Returns:
            Tuple of (status_code, response_text, response_headers)

        Raises:
            NetworkError: On network connectivity issues
            RequestTimeoutError: If the exchange does not complete within ``timeout``
        """
        in_flight: Dict[str, requests.Response] = {}

        def exchange() -> Tuple[int, str, Dict[str, str]]:
            response = self.session.request(
                method=method,
                url=url,
                headers=headers,
                json=json,
                timeout=(timeout, timeout),
                stream=True,
            )
            in_flight["response"] = response
            with response:
                return (
                    response.status_code,
                    response.text,
                    dict(response.headers),
                )

        future = self._executor.submit(exchange)
        try:
            return future.result(timeout=timeout)

        except FutureTimeoutError as e:
            future.cancel()
            response = in_flight.get("response")
            if response is not None:
                # Unblocks the worker still reading the body
                response.close()
            raise RequestTimeoutError(f"Request timeout after {timeout}s") from e

        except requests.exceptions.Timeout as e:
            raise RequestTimeoutError(f"Request timeout after {timeout}s: {e}") from e

        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Request failed: {e}") from e

    def close(self) -> None:
        self._executor.shutdown(wait=False)
        if not self._external_session:
            self.session.close()
