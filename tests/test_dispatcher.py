"""Tests for request dispatch with auth rotation.

Tests cover:
- Standard headers and header precedence
- Rotation on invalid-token 401s only
- Self-healing promotion of the working candidate
- Returning (not raising) when every candidate is rejected
"""

import pytest
from conftest import make_context

from ghlbridge.connectors import (
    AuthTemplate,
    ConfigurationError,
    ConnectionError,
    DummyResponse,
    DummyTransport,
)
from ghlbridge.ghl.dispatcher import RequestDispatcher, build_standard_headers
from ghlbridge.ghl.hints import PhraseSet, ResponseHints

URL = "https://api.example.test/contacts"

BEARER = AuthTemplate("Authorization", "Bearer").render("tok")
RAW = AuthTemplate("Authorization", "").render("tok")
API_KEY = AuthTemplate("X-API-Key", "").render("tok")

INVALID = DummyResponse(401, {"message": "Invalid API Key"})


def by_auth(responses):
    """Handler answering per auth candidate label."""

    def handler(request):
        for candidate, response in responses.items():
            if request.header(candidate.header) == candidate.value:
                return response
        return None

    return handler


class TestStandardHeaders:
    """Tests for build_standard_headers()."""

    def test_get_without_body(self):
        headers = build_standard_headers("GET", False)
        assert headers["Accept"] == "application/json"
        assert headers["Version"] == "2021-07-28"
        assert "Content-Type" not in headers

    def test_post_has_content_type(self):
        assert build_standard_headers("POST", False)["Content-Type"] == "application/json"


class TestRequestDispatcher:
    """Tests for RequestDispatcher.dispatch()."""

    @pytest.mark.asyncio
    async def test_primary_succeeds(self, transport):
        """First candidate answering normally is used; nothing rotates."""
        transport.add("GET", "/contacts", DummyResponse(200, {"contacts": []}))
        context = make_context([BEARER, RAW, API_KEY])

        result = await RequestDispatcher(transport).dispatch(context, "GET", URL)

        assert result.status_code == 200
        assert result.auth_used == BEARER
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_rotates_to_second_candidate_and_promotes(self, transport):
        """Only candidate 2 answers -> result uses it and it becomes primary."""
        transport.set_handler(by_auth({
            BEARER: INVALID,
            RAW: DummyResponse(200, {"ok": True}),
            API_KEY: INVALID,
        }))
        context = make_context([BEARER, RAW, API_KEY])
        dispatcher = RequestDispatcher(transport)

        result = await dispatcher.dispatch(context, "GET", URL)

        assert result.auth_used == RAW
        assert context.auth_method == RAW

        # Next call starts with the promoted candidate
        transport.clear()
        transport.add("GET", "/contacts", DummyResponse(200, {}))
        await dispatcher.dispatch(context, "GET", URL)
        assert transport.calls[0].header("Authorization") == "tok"

    @pytest.mark.asyncio
    async def test_all_invalid_returns_last(self, transport):
        """Every candidate rejected -> last response returned, no exception."""
        transport.add("*", "/contacts", INVALID)
        context = make_context([BEARER, RAW, API_KEY])

        result = await RequestDispatcher(transport).dispatch(context, "GET", URL)

        assert result.status_code == 401
        assert result.auth_used == API_KEY
        assert len(transport.calls) == 3
        assert context.auth_method == BEARER

    @pytest.mark.asyncio
    async def test_other_401_is_final(self, transport):
        """A 401 without invalid-token wording does not rotate."""
        transport.add("GET", "/contacts", DummyResponse(401, {"message": "The token does not have access"}))
        context = make_context([BEARER, RAW])

        result = await RequestDispatcher(transport).dispatch(context, "GET", URL)

        assert result.status_code == 401
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_is_final(self, transport):
        """5xx is returned as-is from the candidate that produced it."""
        transport.set_handler(by_auth({BEARER: INVALID, RAW: DummyResponse(503, text="down")}))
        context = make_context([BEARER, RAW, API_KEY])

        result = await RequestDispatcher(transport).dispatch(context, "POST", URL, body={"a": 1})

        assert result.status_code == 503
        assert result.text == "down"
        assert context.auth_method == RAW

    @pytest.mark.asyncio
    async def test_headers_attached(self, transport):
        """Standard headers, caller headers and the auth header are all sent."""
        transport.add("POST", "/contacts", DummyResponse(201, {"id": "c1"}))
        context = make_context([API_KEY])

        await RequestDispatcher(transport).dispatch(
            context, "POST", URL, body={"email": "a@b.com"}, headers={"Version": "2099-01-01"}
        )

        call = transport.calls[0]
        assert call.header("X-API-Key") == "tok"
        assert call.header("Content-Type") == "application/json"
        assert call.header("Version") == "2099-01-01"
        assert call.json == {"email": "a@b.com"}

    @pytest.mark.asyncio
    async def test_injected_hints(self, transport):
        """Custom phrase sets change what counts as an invalid token."""
        hints = ResponseHints(invalid_token=PhraseSet.of(["token expired"]))
        transport.set_handler(by_auth({
            BEARER: DummyResponse(401, {"message": "Token expired"}),
            RAW: DummyResponse(200, {}),
        }))
        context = make_context([BEARER, RAW])

        result = await RequestDispatcher(transport, hints=hints).dispatch(context, "GET", URL)

        assert result.auth_used == RAW

    @pytest.mark.asyncio
    async def test_no_candidates_raises(self, transport):
        """An empty candidate list is a configuration error."""

        class EmptyAuth:
            def attempt_order(self):
                return []

        context = make_context([BEARER])
        context.auth = EmptyAuth()

        with pytest.raises(ConfigurationError):
            await RequestDispatcher(transport).dispatch(context, "GET", URL)

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self):
        """Transport failures are not swallowed by the dispatcher."""
        transport = DummyTransport(default=DummyResponse(error=ConnectionError("refused")))
        context = make_context([BEARER])

        with pytest.raises(ConnectionError):
            await RequestDispatcher(transport).dispatch(context, "GET", URL)
