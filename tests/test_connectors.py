"""Tests for connector layer.

Tests cover:
- Auth header templates and candidates
- Request policy
- Error hierarchy
- DummyTransport functionality
- AsyncHTTPClient over httpx.MockTransport

No network calls - all tests are offline.
"""

import httpx
import pytest

from ghlbridge.connectors import (
    BEARER_TEMPLATE,
    DEFAULT_POLICY,
    PIT_AUTH_TEMPLATES,
    PROBE_POLICY,
    AsyncHTTPClient,
    AuthCandidate,
    AuthTemplate,
    ConfigurationError,
    ConnectionError,
    ConnectorError,
    DummyResponse,
    DummyTransport,
    HTTPTransport,
    ProbeDeadlineExceeded,
    RequestPolicy,
    TimeoutError,
    dedupe_candidates,
)

# =============================================================================
# Authentication Tests
# =============================================================================


class TestAuthTemplate:
    """Tests for AuthTemplate rendering."""

    def test_bearer(self):
        """Bearer template prefixes the token."""
        candidate = BEARER_TEMPLATE.render("abc")
        assert candidate.get_headers() == {"Authorization": "Bearer abc"}
        assert candidate.label == "Authorization: Bearer <token>"

    def test_raw_header(self):
        """Empty prefix sends the token as-is."""
        candidate = AuthTemplate("X-API-Key", "").render("abc")
        assert candidate.get_headers() == {"X-API-Key": "abc"}
        assert candidate.label == "X-API-Key: <token>"

    def test_custom_label(self):
        assert AuthTemplate("X-Auth-Token", "", label="auth token").render("abc").label == "auth token"

    def test_pit_templates_order(self):
        """PIT schemes are tried Bearer, raw Authorization, X-API-Key, X-Auth-Token."""
        headers = [t.render("t").get_headers() for t in PIT_AUTH_TEMPLATES]
        assert headers == [
            {"Authorization": "Bearer t"},
            {"Authorization": "t"},
            {"X-API-Key": "t"},
            {"X-Auth-Token": "t"},
        ]


class TestAuthCandidate:
    """Tests for candidate identity."""

    def test_same_as_ignores_header_case_and_label(self):
        a = AuthCandidate("Authorization", "Bearer t", "a")
        b = AuthCandidate("authorization", "Bearer t", "b")
        assert a.same_as(b)
        assert not a.same_as(None)

    def test_dedupe_keeps_first(self):
        a = AuthCandidate("Authorization", "t", "first")
        b = AuthCandidate("authorization", "t", "second")
        c = AuthCandidate("X-API-Key", "t", "key")
        assert dedupe_candidates([a, None, b, c]) == [a, c]


# =============================================================================
# Request Policy Tests
# =============================================================================


class TestRequestPolicy:
    """Tests for RequestPolicy."""

    def test_default_values(self):
        """RequestPolicy has sensible defaults."""
        policy = RequestPolicy()
        assert policy.connect_timeout == 10.0
        assert policy.read_timeout == 15.0
        assert policy.max_retries == 0
        assert policy.api_version == "2021-07-28"

    def test_with_timeout(self):
        policy = RequestPolicy.with_timeout(4.0)
        assert policy.connect_timeout == 4.0
        assert policy.total_timeout == 4.0

    def test_probe_policy_is_tighter(self):
        assert PROBE_POLICY.total_timeout < DEFAULT_POLICY.total_timeout


# =============================================================================
# Connector Error Tests
# =============================================================================


class TestConnectorErrors:
    """Tests for connector error hierarchy."""

    def test_connector_error_base(self):
        """ConnectorError stores basic info."""
        error = ConnectorError("Test error", connector_name="ghl", details={"key": "value"})
        assert str(error) == "Test error"
        assert error.connector_name == "ghl"
        assert error.details == {"key": "value"}

    def test_configuration_error(self):
        assert isinstance(ConfigurationError("missing key"), ConnectorError)

    def test_timeout_error(self):
        """TimeoutError stores timeout_seconds."""
        error = TimeoutError(timeout_seconds=30.0)
        assert error.timeout_seconds == 30.0

    def test_probe_deadline(self):
        error = ProbeDeadlineExceeded(60)
        assert error.deadline_seconds == 60
        assert "60.0s" in str(error)


# =============================================================================
# DummyTransport Tests
# =============================================================================


class TestDummyTransport:
    """Tests for DummyTransport."""

    def test_implements_protocol(self):
        assert isinstance(DummyTransport(), HTTPTransport)

    @pytest.mark.asyncio
    async def test_default_not_found(self):
        response = await DummyTransport().request("GET", "https://x.test/alpha")
        assert response.status_code == 404
        assert response.json() == {"message": "Not found"}

    @pytest.mark.asyncio
    async def test_responses_consumed_in_order(self):
        transport = DummyTransport().add("GET", "/alpha", DummyResponse(500), DummyResponse(200, {"n": 1}))

        first = await transport.request("GET", "https://x.test/alpha")
        second = await transport.request("GET", "https://x.test/alpha")
        third = await transport.request("GET", "https://x.test/alpha")

        assert [first.status_code, second.status_code, third.status_code] == [500, 200, 200]

    @pytest.mark.asyncio
    async def test_header_rule(self):
        transport = DummyTransport().add(
            "*", "/alpha", DummyResponse(200, {}), header="X-API-Key", header_value="k"
        )

        matched = await transport.request("POST", "https://x.test/alpha", headers={"x-api-key": "k"})
        unmatched = await transport.request("POST", "https://x.test/alpha", headers={"X-API-Key": "other"})

        assert matched.status_code == 200
        assert unmatched.status_code == 404

    @pytest.mark.asyncio
    async def test_handler_falls_through(self):
        transport = DummyTransport().add("GET", "/alpha", DummyResponse(201, {}))
        transport.set_handler(lambda request: DummyResponse(202) if "/beta" in request.url else None)

        assert (await transport.request("GET", "https://x.test/alpha")).status_code == 201
        assert (await transport.request("GET", "https://x.test/beta")).status_code == 202

    @pytest.mark.asyncio
    async def test_error_raised(self):
        transport = DummyTransport().add("GET", "/alpha", DummyResponse(error=ConnectionError("refused")))
        with pytest.raises(ConnectionError):
            await transport.request("GET", "https://x.test/alpha")

    @pytest.mark.asyncio
    async def test_call_log(self):
        transport = DummyTransport()
        await transport.request("get", "https://x.test/alpha", json={"a": 1})
        await transport.request("POST", "https://x.test/beta")

        assert transport.calls[0].method == "GET"
        assert transport.calls[0].json == {"a": 1}
        assert transport.call_count() == 2
        assert transport.call_count("/beta", method="POST") == 1
        assert transport.was_called("/alpha")

        transport.clear()
        assert transport.calls == []


# =============================================================================
# AsyncHTTPClient Tests
# =============================================================================


class TestAsyncHTTPClient:
    """Tests for AsyncHTTPClient over a mock httpx transport."""

    @pytest.mark.asyncio
    async def test_returns_every_status(self):
        """Error statuses are returned, not raised."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "Invalid API Key"})

        client = AsyncHTTPClient(transport=httpx.MockTransport(handler))
        response = await client.request("GET", "https://x.test/users/me")

        assert response.status_code == 401
        assert response.reason_phrase == "Unauthorized"
        assert response.json() == {"message": "Invalid API Key"}
        assert not response.ok

    @pytest.mark.asyncio
    async def test_sends_headers_and_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["headers"] = request.headers
            seen["body"] = request.content
            return httpx.Response(200, json={"ok": True})

        client = AsyncHTTPClient(transport=httpx.MockTransport(handler))
        response = await client.request("POST", "https://x.test/alpha", headers={"X-API-Key": "k"}, json={"a": 1})

        assert response.ok
        assert seen["headers"]["x-api-key"] == "k"
        assert seen["headers"]["user-agent"] == "ghlbridge/0.3"
        assert b'"a"' in seen["body"]

    @pytest.mark.asyncio
    async def test_timeout_mapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        client = AsyncHTTPClient(transport=httpx.MockTransport(handler))
        with pytest.raises(TimeoutError):
            await client.request("GET", "https://x.test/alpha")

    @pytest.mark.asyncio
    async def test_connect_error_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json={})

        policy = RequestPolicy(max_retries=1, retry_delay=0.0)
        client = AsyncHTTPClient(policy=policy, transport=httpx.MockTransport(handler))
        response = await client.request("GET", "https://x.test/alpha")

        assert response.status_code == 200
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_connect_error_exhausted(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        client = AsyncHTTPClient(transport=httpx.MockTransport(handler))
        with pytest.raises(ConnectionError):
            await client.request("PUT", "https://x.test/alpha", json={})
