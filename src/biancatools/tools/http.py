"""Shared async REST plumbing for the GitHub and memory-store adapters.

Maps HTTP failures onto the error taxonomy so handlers can simply let
adapter errors propagate.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from ..errors import ErrorKind, ToolException

logger = logging.getLogger("biancatools.tools.http")


def _response_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        for key in ("message", "detail", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase


def classify_status(response: httpx.Response) -> ErrorKind:
    """Map an HTTP error status onto an error kind."""
    status = response.status_code
    if status == 401:
        return ErrorKind.AUTH_FAILURE
    if status == 429 or (status == 403 and response.headers.get("x-ratelimit-remaining") == "0"):
        return ErrorKind.RATE_LIMITED
    if status == 403:
        return ErrorKind.AUTH_FAILURE
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 422:
        return ErrorKind.INVALID_PARAMS
    return ErrorKind.INTERNAL


def error_from_response(service: str, response: httpx.Response) -> ToolException:
    message = _response_message(response)
    return ToolException.create(
        classify_status(response),
        f"{service} API error ({response.status_code}): {message}",
        {"service": service, "status": response.status_code, "response": message},
    )


class RestClient(ABC):
    """Lazy httpx.AsyncClient with credential check and error mapping.

    Args:
        base_url: API root
        timeout: Per-request timeout in seconds
        user_agent: User-Agent header value
        transport: Optional httpx transport (httpx.MockTransport in tests)
    """

    service: str = "HTTP"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        user_agent: str = "BiancaTools",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @abstractmethod
    def auth_headers(self) -> dict[str, str]:
        """Credential headers. Raise AUTH_FAILURE when the credential is missing."""
        ...

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create httpx async client."""
        if self._client is None:
            headers = {"User-Agent": self._user_agent, **self.auth_headers()}
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        """Close the httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body (None if empty).

        Raises:
            ToolException: AUTH_FAILURE, RATE_LIMITED, NOT_FOUND, INVALID_PARAMS,
                TIMEOUT or INTERNAL depending on the failure
        """
        client = self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise ToolException.create(
                ErrorKind.TIMEOUT,
                f"{self.service} request timed out after {self._timeout}s",
                {"service": self.service, "path": path},
            ) from e
        except httpx.TransportError as e:
            raise ToolException.create(
                ErrorKind.INTERNAL,
                f"{self.service} network error: {e}",
                {"service": self.service, "path": path, "type": type(e).__name__},
            ) from e

        if response.is_error:
            logger.debug(f"{method} {path} -> {response.status_code}")
            raise error_from_response(self.service, response)
        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)
