"""Connector layer for the provider HTTP API.

Key components:
- AuthTemplate / AuthCandidate: header schemes for attaching a credential
- RequestPolicy: timeouts, transport retries, default headers
- AsyncHTTPClient: httpx wrapper with policy enforcement
- DummyTransport: offline transport without network calls
"""

from .base import (
    API_VERSION,
    BEARER_TEMPLATE,
    DEFAULT_POLICY,
    PIT_AUTH_TEMPLATES,
    PROBE_POLICY,
    # Authentication
    AuthCandidate,
    AuthTemplate,
    # Error hierarchy
    ConfigurationError,
    ConnectionError,
    ConnectorError,
    ProbeDeadlineExceeded,
    # Request policy
    RequestPolicy,
    TimeoutError,
    dedupe_candidates,
)
from .dummy import DummyRequest, DummyResponse, DummyTransport
from .http_client import AsyncHTTPClient, HTTPResponse, HTTPTransport

__all__ = [
    # Auth
    "AuthCandidate",
    "AuthTemplate",
    "BEARER_TEMPLATE",
    "PIT_AUTH_TEMPLATES",
    "dedupe_candidates",
    # Policy
    "API_VERSION",
    "RequestPolicy",
    "DEFAULT_POLICY",
    "PROBE_POLICY",
    # Errors
    "ConnectorError",
    "ConfigurationError",
    "ConnectionError",
    "TimeoutError",
    "ProbeDeadlineExceeded",
    # Transports
    "AsyncHTTPClient",
    "HTTPResponse",
    "HTTPTransport",
    "DummyTransport",
    "DummyResponse",
    "DummyRequest",
]
