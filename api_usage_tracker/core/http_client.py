"""
HTTP client adapter for gateway billing endpoints.

Bearer-token authenticated JSON requests with a fixed timeout and no retries.
"""

import logging
from typing import Any, Dict, Optional

import httpx

lib_logger = logging.getLogger("api_usage_tracker")

REQUEST_TIMEOUT_SECONDS = 30.0


class TransportError(Exception):
    """Request failed, returned a non-2xx status, or the body was not JSON."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class UsageHttpClient:
    """Async JSON client bound to one API key.

    Use as an async context manager so the underlying connection pool is
    closed when the detection session ends:

        async with UsageHttpClient(api_key) as client:
            body = await client.get_json(url)
    """

    def __init__(
        self,
        api_key: str,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.default_headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        try:
            self._client = httpx.AsyncClient(
                headers=self.default_headers,
                timeout=timeout,
                transport=transport,
            )
        except UnicodeEncodeError as e:
            raise TransportError("API key cannot be sent as an HTTP header", "") from e

    async def __aenter__(self) -> "UsageHttpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """Execute a single request and return the decoded JSON body.

        Args:
            method: HTTP method
            url: Absolute request URL
            headers: Extra headers merged over the defaults
            params: Query string parameters

        Returns:
            Decoded JSON body (any JSON type)

        Raises:
            TransportError: On network failure, timeout, non-2xx status
                or a body that is not valid JSON
        """
        try:
            response = await self._client.request(
                method, url, headers=headers, params=params
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            lib_logger.debug(f"{method} {url} returned HTTP {e.response.status_code}")
            raise TransportError(
                f"HTTP {e.response.status_code} from {url}",
                url,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            lib_logger.debug(f"{method} {url} failed: {e!r}")
            raise TransportError(f"Request to {url} failed: {e}", url) from e

        try:
            return response.json()
        except ValueError as e:
            lib_logger.debug(f"{method} {url} returned a non-JSON body")
            raise TransportError(
                f"Non-JSON response from {url}",
                url,
                status_code=response.status_code,
            ) from e

    async def get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        return await self.request("GET", url, params=params)
