"""Core connector abstractions.

Defines the pieces shared by every call to the provider:
- AuthTemplate / AuthCandidate: how a credential is attached to a request
- RequestPolicy: timeouts, transport retries, default headers
- ConnectorError hierarchy: typed exceptions

Tokens are treated as opaque bearer secrets. Nothing here inspects
or refreshes them.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# =============================================================================
# Authentication
# =============================================================================


@dataclass(frozen=True)
class AuthCandidate:
    """One concrete way to attach a credential to a request.

    The value is fully rendered (e.g. "Bearer <token>"), so two candidates
    are interchangeable exactly when header name and value match.
    """

    header: str
    value: str
    label: str

    @property
    def key(self) -> Tuple[str, str]:
        """Identity used for de-duplication."""
        return (self.header.lower(), self.value)

    def get_headers(self) -> Dict[str, str]:
        """Get authorization header."""
        return {self.header: self.value}

    def same_as(self, other: Optional["AuthCandidate"]) -> bool:
        return other is not None and self.key == other.key


@dataclass(frozen=True)
class AuthTemplate:
    """Header scheme that renders an AuthCandidate from a token.

    Typical usage: Authorization: Bearer <token> or X-API-Key: <token>
    """

    header_name: str = "Authorization"
    header_prefix: str = "Bearer"
    label: str = ""

    def render(self, token: str) -> AuthCandidate:
        """Render the candidate for a token (pure function of template and token)."""
        value = f"{self.header_prefix} {token}" if self.header_prefix else token
        label = self.label or self._default_label()
        return AuthCandidate(header=self.header_name, value=value, label=label)

    def _default_label(self) -> str:
        if self.header_prefix:
            return f"{self.header_name}: {self.header_prefix} <token>"
        return f"{self.header_name}: <token>"


BEARER_TEMPLATE = AuthTemplate("Authorization", "Bearer")

# Header schemes a private integration token may be accepted under,
# in the order they are probed.
PIT_AUTH_TEMPLATES: List[AuthTemplate] = [
    BEARER_TEMPLATE,
    AuthTemplate("Authorization", ""),
    AuthTemplate("X-API-Key", ""),
    AuthTemplate("X-Auth-Token", ""),
]


def dedupe_candidates(candidates: List[Optional[AuthCandidate]]) -> List[AuthCandidate]:
    """Drop empty entries and repeated (header, value) pairs, keeping first order."""
    seen = set()
    ordered: List[AuthCandidate] = []
    for candidate in candidates:
        if candidate is None:
            continue
        if candidate.key in seen:
            continue
        seen.add(candidate.key)
        ordered.append(candidate)
    return ordered


# =============================================================================
# Request Policy
# =============================================================================

API_VERSION = "2021-07-28"


@dataclass
class RequestPolicy:
    """Policy for HTTP requests: timeouts, transport retries, headers.

    Used by http_client to enforce consistent behavior.
    """

    # Timeouts
    connect_timeout: float = 10.0  # seconds
    read_timeout: float = 15.0  # seconds
    total_timeout: float = 30.0  # seconds

    # Transport retries (connect/timeout errors only, never HTTP statuses)
    max_retries: int = 0
    retry_delay: float = 0.5  # base delay in seconds
    retry_backoff: float = 2.0  # exponential backoff multiplier

    # Headers
    user_agent: str = "ghlbridge/0.3"
    api_version: str = API_VERSION
    default_headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def with_timeout(cls, seconds: float) -> "RequestPolicy":
        """Policy with every per-request timeout bounded by `seconds`."""
        return cls(
            connect_timeout=min(10.0, seconds),
            read_timeout=seconds,
            total_timeout=seconds,
        )


DEFAULT_POLICY = RequestPolicy()

PROBE_POLICY = RequestPolicy(
    connect_timeout=5.0,
    read_timeout=8.0,
    total_timeout=10.0,
)


# =============================================================================
# Connector Error Hierarchy
# =============================================================================


class ConnectorError(Exception):
    """Base exception for connector errors."""

    def __init__(self, message: str, connector_name: str = "", details: Optional[Dict[str, Any]] = None):
        self.connector_name = connector_name
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(ConnectorError):
    """Configuration is unusable (missing credential, no auth candidates)."""

    pass


class ConnectionError(ConnectorError):
    """Failed to connect to the service."""

    pass


class TimeoutError(ConnectorError):
    """Request timed out."""

    def __init__(
        self,
        message: str = "Request timed out",
        connector_name: str = "",
        timeout_seconds: Optional[float] = None,
    ):
        super().__init__(message, connector_name, {"timeout_seconds": timeout_seconds})
        self.timeout_seconds = timeout_seconds


class ProbeDeadlineExceeded(ConnectorError):
    """The context probe sweep ran past its overall deadline."""

    def __init__(self, deadline_seconds: float, connector_name: str = "ghl"):
        super().__init__(
            f"Probe sweep exceeded {deadline_seconds:.1f}s deadline",
            connector_name,
            {"deadline_seconds": deadline_seconds},
        )
        self.deadline_seconds = deadline_seconds
