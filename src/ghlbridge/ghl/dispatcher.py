"""Request dispatch with auth rotation.

Executes one logical HTTP request against a ResolvedContext, tolerating a
stale primary auth method:

1. Attempt order is the context's primary candidate, then the remaining
   candidates, de-duplicated by (header, value).
2. A 401 whose body says the token is invalid rejects that candidate and
   the next one is tried.
3. Any other response (including other 401/403/5xx) is final. If it was
   produced by a non-primary candidate, that candidate is promoted on the
   shared context so later calls start with it.

If every candidate is rejected the last response is returned, not raised.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from ghlbridge.connectors.base import (
    DEFAULT_POLICY,
    AuthCandidate,
    ConfigurationError,
    RequestPolicy,
)
from ghlbridge.connectors.http_client import HTTPTransport
from ghlbridge.ghl.context import ResolvedContext
from ghlbridge.ghl.hints import DEFAULT_HINTS, ResponseHints
from ghlbridge.ghl.strategy import try_in_order

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of one HTTP attempt."""

    status_code: int
    status_text: str
    text: str
    auth_used: AuthCandidate
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Optional[Any]:
        """Parsed body, or None when it is not JSON."""
        try:
            return json.loads(self.text)
        except ValueError:
            return None

    def summary(self, limit: int = 200) -> str:
        return f"{self.status_code} {self.status_text}: {self.text[:limit]}"


def build_standard_headers(
    method: str,
    has_body: bool,
    policy: RequestPolicy = DEFAULT_POLICY,
) -> Dict[str, str]:
    """Accept + API version, plus Content-Type for anything that may carry a body."""
    headers = {
        "Accept": "application/json",
        "Version": policy.api_version,
    }
    if has_body or method.upper() != "GET":
        headers["Content-Type"] = "application/json"
    return headers


class RequestDispatcher:
    """Sends requests for a context, rotating auth candidates on invalid-token 401s."""

    def __init__(
        self,
        transport: HTTPTransport,
        hints: ResponseHints = DEFAULT_HINTS,
        policy: RequestPolicy = DEFAULT_POLICY,
    ):
        self.transport = transport
        self.hints = hints
        self.policy = policy

    def _headers_for(
        self,
        auth: AuthCandidate,
        method: str,
        body: Optional[Any],
        extra_headers: Optional[Dict[str, str]],
    ) -> Dict[str, str]:
        headers = dict(extra_headers or {})
        present = {k.lower() for k in headers}
        for key, value in build_standard_headers(method, body is not None, self.policy).items():
            if key.lower() not in present:
                headers[key] = value
        headers.update(auth.get_headers())
        return headers

    async def dispatch(
        self,
        context: ResolvedContext,
        method: str,
        url: str,
        body: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> DispatchResult:
        """Execute one logical request.

        Args:
            context: Resolved context (its primary may be promoted in place)
            method: HTTP method
            url: Absolute URL
            body: JSON-serializable body
            headers: Extra headers; they win over the standard ones

        Returns:
            The first non-invalid-token response, else the last response

        Raises:
            ConfigurationError: If the context has no auth candidates
            ConnectorError: On transport failures
        """
        candidates = context.auth.attempt_order()
        if not candidates:
            raise ConfigurationError(
                "No authentication headers available for GHL request.", connector_name="ghl"
            )

        async def attempt(auth: AuthCandidate) -> Tuple[bool, DispatchResult]:
            response = await self.transport.request(
                method.upper(),
                url,
                headers=self._headers_for(auth, method, body, headers),
                json=body,
            )
            result = DispatchResult(
                status_code=response.status_code,
                status_text=response.reason_phrase,
                text=response.text,
                auth_used=auth,
                headers=response.headers,
            )
            if self.hints.is_invalid_token(result.status_code, result.text):
                logger.debug(f"{auth.label} rejected as invalid token for {method.upper()} {url}")
                return False, result
            return True, result

        run = await try_in_order(candidates, attempt)

        if run.winner is not None:
            context.promote(run.winner.candidate)
            return run.winner.result

        rejected = " | ".join(
            f"{a.candidate.label} -> {a.result.status_code} {a.result.status_text}" for a in run.attempts
        )
        logger.warning(f"All auth headers reported invalid token: {rejected}")
        return run.last.result
