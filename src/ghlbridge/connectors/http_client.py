"""Async HTTP transport over httpx.

AsyncHTTPClient applies a RequestPolicy to every exchange:
- httpx.Timeout built from the policy's connect/read/total limits
- transport retries with exponential backoff (never for HTTP statuses)
- httpx failures mapped onto the ConnectorError hierarchy

Every HTTP status comes back as an HTTPResponse. Deciding what a 401 or a
404 means is left to the dispatcher and the fallback chains.
"""

import asyncio
import json as json_module
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from .base import (
    ConnectionError,
    ConnectorError,
    RequestPolicy,
    TimeoutError,
)


@dataclass
class HTTPResponse:
    """One provider answer, detached from the httpx response object."""

    status_code: int
    headers: Dict[str, str]
    body: bytes
    reason_phrase: str = ""
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parse the body as JSON (raises ValueError when it is not)."""
        return json_module.loads(self.body)


@runtime_checkable
class HTTPTransport(Protocol):
    """Anything able to perform one HTTP exchange."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> HTTPResponse:
        ...


class AsyncHTTPClient:
    """HTTPTransport backed by httpx.AsyncClient."""

    def __init__(
        self,
        policy: Optional[RequestPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            policy: Timeouts, transport retries and default headers
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
        """
        self.policy = policy or RequestPolicy()
        self._transport = transport

    def _merged_headers(self, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = {"User-Agent": self.policy.user_agent, **self.policy.default_headers}
        merged.update(headers or {})
        return merged

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.policy.connect_timeout,
            read=self.policy.read_timeout,
            write=self.policy.read_timeout,
            pool=self.policy.total_timeout,
        )

    def _backoff(self, attempt: int) -> float:
        return self.policy.retry_delay * (self.policy.retry_backoff ** attempt)

    def _map_error(self, url: str, error: httpx.HTTPError) -> ConnectorError:
        if isinstance(error, httpx.TimeoutException):
            return TimeoutError(
                f"Request to {url} timed out after {self.policy.read_timeout}s",
                timeout_seconds=self.policy.read_timeout,
            )
        if isinstance(error, httpx.ConnectError):
            return ConnectionError(f"Failed to connect to {url}: {error}")
        return ConnectorError(f"HTTP error: {error}")

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> HTTPResponse:
        """Perform one HTTP exchange.

        Returns:
            HTTPResponse for any status code

        Raises:
            TimeoutError: On request timeout (after retries)
            ConnectionError: On connection failure (after retries)
            ConnectorError: On any other transport failure
        """
        merged = self._merged_headers(headers)
        attempts = self.policy.max_retries + 1

        for attempt in range(attempts):
            started = time.monotonic()
            try:
                async with httpx.AsyncClient(timeout=self._timeout(), transport=self._transport) as client:
                    response = await client.request(method, url, json=json, headers=merged)
            except httpx.HTTPError as e:
                error = self._map_error(url, e)
                if attempt + 1 >= attempts:
                    raise error from e
                await asyncio.sleep(self._backoff(attempt))
                continue

            return HTTPResponse(
                status_code=response.status_code,
                headers=dict(response.headers),
                body=response.content,
                reason_phrase=response.reason_phrase,
                elapsed_seconds=time.monotonic() - started,
            )

        raise ConnectorError(f"No attempts made for {method} {url}")
