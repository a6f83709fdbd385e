"""Dummy transport for offline use.

DummyTransport implements the HTTPTransport protocol without making
any real network calls. Used for:
- Unit tests
- Local development without provider credentials
- Dry runs of the CLI

It can be configured to return specific responses per URL, header or
method, to raise specific errors, and it records every call for
assertions.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .base import ConnectorError
from .http_client import HTTPResponse

_REASONS = {
    200: "OK",
    201: "Created",
    204: "No Content",
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    422: "Unprocessable Entity",
    500: "Internal Server Error",
}


@dataclass
class DummyResponse:
    """Canned response for DummyTransport.

    `data` is JSON-encoded unless `text` is given; `error` is raised instead
    of returning a response.
    """

    status_code: int = 200
    data: Any = None
    text: Optional[str] = None
    error: Optional[ConnectorError] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def to_http(self) -> HTTPResponse:
        if self.text is not None:
            body = self.text.encode("utf-8")
        elif self.data is not None:
            body = json.dumps(self.data).encode("utf-8")
        else:
            body = b""
        return HTTPResponse(
            status_code=self.status_code,
            headers=dict(self.headers),
            body=body,
            reason_phrase=_REASONS.get(self.status_code, ""),
        )


@dataclass
class DummyRequest:
    """One recorded call."""

    method: str
    url: str
    headers: Dict[str, str]
    json: Any = None

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None


@dataclass
class _Rule:
    method: str
    url_contains: str
    responses: List[DummyResponse]
    header: Optional[str] = None
    header_value: Optional[str] = None

    def matches(self, request: DummyRequest) -> bool:
        if self.method != "*" and self.method != request.method.upper():
            return False
        if self.url_contains not in request.url:
            return False
        if self.header is not None and request.header(self.header) != self.header_value:
            return False
        return True

    def next_response(self) -> DummyResponse:
        # Responses are consumed in order; the last one repeats.
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class DummyTransport:
    """Dummy transport for testing.

    Returns canned responses without making real network calls.
    Rules are matched in registration order; unmatched requests get
    `default` (404 by default).
    """

    def __init__(self, default: Optional[DummyResponse] = None):
        self._rules: List[_Rule] = []
        self._handler: Optional[Callable[[DummyRequest], Optional[DummyResponse]]] = None
        self.default = default or DummyResponse(404, {"message": "Not found"})
        self._call_log: List[DummyRequest] = []

    def add(
        self,
        method: str,
        url_contains: str,
        *responses: DummyResponse,
        header: Optional[str] = None,
        header_value: Optional[str] = None,
    ) -> "DummyTransport":
        """Register canned responses for requests matching method and URL substring.

        Args:
            method: HTTP method, or "*" for any
            url_contains: Substring the request URL must contain
            responses: Responses returned in order (the last one repeats)
            header: Optional header name that must be present
            header_value: Exact value required for `header`
        """
        if not responses:
            raise ValueError("At least one response is required")
        self._rules.append(
            _Rule(method.upper(), url_contains, list(responses), header, header_value)
        )
        return self

    def set_handler(self, handler: Callable[[DummyRequest], Optional[DummyResponse]]) -> None:
        """Set a callable consulted before the rules; returning None falls through."""
        self._handler = handler

    def clear(self) -> None:
        """Clear all rules and the call log."""
        self._rules.clear()
        self._handler = None
        self._call_log.clear()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Any] = None,
    ) -> HTTPResponse:
        request = DummyRequest(method.upper(), url, dict(headers or {}), json)
        self._call_log.append(request)

        response: Optional[DummyResponse] = None
        if self._handler is not None:
            response = self._handler(request)
        if response is None:
            for rule in self._rules:
                if rule.matches(request):
                    response = rule.next_response()
                    break
        if response is None:
            response = self.default

        if response.error is not None:
            raise response.error
        return response.to_http()

    # Assertions helpers

    @property
    def calls(self) -> List[DummyRequest]:
        """Get log of all requests."""
        return list(self._call_log)

    def call_count(self, url_contains: str = "", method: str = "*") -> int:
        """Count requests whose URL contains `url_contains`."""
        return sum(
            1
            for call in self._call_log
            if url_contains in call.url and (method == "*" or call.method == method.upper())
        )

    def was_called(self, url_contains: str, method: str = "*") -> bool:
        return self.call_count(url_contains, method) > 0
