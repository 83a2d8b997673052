"""HTTP client for the chat backend.

Hides httpx details from the rest of the engine: connection reuse, timeouts,
and the translation of transport failures into ``modelchat.errors`` types.
"""

import logging
from typing import Any

import httpx

from .errors import HttpError, NetworkError

logger = logging.getLogger(__name__)


class BackendClient:
    """Thin async client for the chat backend's REST API.

    Example:
        >>> async with BackendClient("http://localhost:3001") as client:
        ...     data = await client.get_json("/api/chat/models")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Backend base URL
            timeout: Seconds before any request fails with NetworkError
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def http(self) -> httpx.AsyncClient:
        """Underlying httpx client, for streaming requests."""
        return self._http

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and fail on transport errors or non-2xx status.

        Raises:
            NetworkError: No response was received
            HttpError: The backend answered with a non-2xx status
        """
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise NetworkError(f"Cannot reach backend at {self._base_url}: {e}") from e

        check_response(response)
        return response

    async def send(self, request: httpx.Request) -> httpx.Response:
        """Send a prebuilt request with the same error translation as ``request``."""
        try:
            response = await self._http.send(request)
        except httpx.TransportError as e:
            logger.warning("%s %s failed: %s", request.method, request.url.path, e)
            raise NetworkError(f"Cannot reach backend at {self._base_url}: {e}") from e

        check_response(response)
        return response

    async def get_json(self, path: str) -> Any:
        response = await self.request("GET", path)
        return decode_json(response)

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


def decode_json(response: httpx.Response) -> Any:
    """Parse a JSON body, treating malformed JSON as an HTTP failure."""
    try:
        return response.json()
    except ValueError as e:
        raise HttpError(response.status_code, f"Malformed JSON response: {e}") from e


def check_response(response: httpx.Response) -> None:
    """Raise HttpError for a non-2xx response, carrying its text body."""
    if response.is_success:
        return

    body = response.text.strip()
    logger.debug("HTTP %d from %s: %s", response.status_code, response.request.url, body)
    raise HttpError(response.status_code, body)
