"""Test configuration and fixtures."""

import base64
import json
from typing import Any, Dict, List, Optional

import pytest

from ghlbridge.config import AdapterConfig
from ghlbridge.connectors import AuthCandidate, DummyTransport
from ghlbridge.ghl.cache import ContextCache
from ghlbridge.ghl.classifier import TokenKind
from ghlbridge.ghl.context import AuthState, ResolvedContext

PIT_TOKEN = "pit-0123456789abcdef"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_jwt(payload: Any) -> str:
    """Unsigned JWT with the given payload (signatures are never checked)."""

    def encode(obj: Any) -> str:
        raw = json.dumps(obj).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")

    return f"{encode({'alg': 'HS256', 'typ': 'JWT'})}.{encode(payload)}.signature"


def make_context(
    candidates: List[AuthCandidate],
    location_id: Optional[str] = "loc_1",
    base_url: str = "https://api.example.test",
) -> ResolvedContext:
    """Context with a known auth candidate list, bypassing the resolver."""
    return ResolvedContext(
        config=AdapterConfig(api_key=PIT_TOKEN),
        auth=AuthState(candidates[0], candidates),
        base_url=base_url,
        versioned_base_url=base_url,
        token_kind=TokenKind.PIT,
        token_preview="pit-01...cdef",
        location_id=location_id,
    )


def invalid_token_body() -> Dict[str, str]:
    return {"message": "Invalid API Key"}


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ContextCache:
    """Fresh cache per test, driven by the fake clock."""
    return ContextCache(ttl_seconds=600, clock=clock)


@pytest.fixture
def transport() -> DummyTransport:
    return DummyTransport()


@pytest.fixture
def pit_config() -> AdapterConfig:
    return AdapterConfig(api_key=PIT_TOKEN)
