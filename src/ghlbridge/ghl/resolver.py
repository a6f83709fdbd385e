"""Context resolution.

Produces a ResolvedContext for the configured credential. The location id
is taken from the first source that yields one:

1. explicit `location_id` argument
2. configured REVIVE_GHL_LOCATION_ID
3. location claim decoded from a JWT credential
4. discovery by probing (private integration tokens only)
5. configured fallback location (disabled unless configured)

Probing walks base URL x auth scheme x identity endpoint in a fixed order
and issues one GET per combination:

- 2xx with an extractable location id: full success, stop.
- 2xx without one: keep going.
- 401/403 saying the token lacks scope: remember as the best partial
  context (auth works, location unknown) and keep going.
- anything else: note it and keep going.

Whatever the sweep ends with is cached per credential for the cache TTL,
so the sweep runs at most once per TTL window.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ghlbridge.config import AdapterConfig
from ghlbridge.connectors.base import (
    BEARER_TEMPLATE,
    PIT_AUTH_TEMPLATES,
    PROBE_POLICY,
    AuthCandidate,
    ConfigurationError,
    ConnectorError,
    RequestPolicy,
)
from ghlbridge.connectors.http_client import HTTPTransport
from ghlbridge.ghl.cache import ContextCache, shared_cache
from ghlbridge.ghl.classifier import TokenKind, classify_token, mask_token
from ghlbridge.ghl.context import AuthState, LocationSource, ResolvedContext
from ghlbridge.ghl.dispatcher import build_standard_headers
from ghlbridge.ghl.hints import DEFAULT_HINTS, ResponseHints
from ghlbridge.ghl.strategy import try_in_order
from ghlbridge.ghl.urls import (
    build_base_candidates,
    build_user_endpoints,
    ensure_versioned_base,
    sanitize_base_url,
)

logger = logging.getLogger(__name__)

DEFAULT_PROBE_DEADLINE_SECONDS = 60.0


class ProbeOutcome(str, Enum):
    SUCCESS = "success"
    NO_LOCATION = "no_location"
    PARTIAL = "partial"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeCandidate:
    base_url: str
    auth: AuthCandidate
    endpoint: str


@dataclass(frozen=True)
class ProbeAttempt:
    candidate: ProbeCandidate
    outcome: ProbeOutcome
    location_id: Optional[str] = None


def extract_location_id(payload: Any) -> Optional[str]:
    """Find a location id in an identity payload, trying known shapes in order."""
    if not isinstance(payload, dict):
        return None

    def nested(obj: Any, key: str) -> Any:
        return obj.get(key) if isinstance(obj, dict) else None

    locations = payload.get("locations")
    first_location = locations[0] if isinstance(locations, list) and locations else None

    for value in (
        payload.get("locationId"),
        payload.get("location_id"),
        nested(payload.get("location"), "id"),
        nested(payload.get("user"), "locationId"),
        nested(first_location, "id"),
    ):
        if isinstance(value, str) and value:
            return value
    return None


def render_pit_candidates(token: str) -> List[AuthCandidate]:
    return [template.render(token) for template in PIT_AUTH_TEMPLATES]


def build_probe_candidates(base_url: Optional[str], auth_candidates: List[AuthCandidate]) -> List[ProbeCandidate]:
    """Cartesian product base x auth x endpoint, in declaration order."""
    return [
        ProbeCandidate(base, auth, endpoint)
        for base, auth in itertools.product(build_base_candidates(base_url), auth_candidates)
        for endpoint in build_user_endpoints(base)
    ]


class ContextResolver:
    """Resolves (and caches) the provider context for one adapter config."""

    def __init__(
        self,
        config: AdapterConfig,
        transport: HTTPTransport,
        cache: Optional[ContextCache] = None,
        hints: ResponseHints = DEFAULT_HINTS,
        probe_policy: RequestPolicy = PROBE_POLICY,
        probe_deadline_seconds: Optional[float] = DEFAULT_PROBE_DEADLINE_SECONDS,
    ):
        self.config = config
        self.transport = transport
        self.cache = cache if cache is not None else shared_cache
        self.hints = hints
        self.probe_policy = probe_policy
        self.probe_deadline_seconds = probe_deadline_seconds
        self._inflight: Dict[str, asyncio.Lock] = {}
        self._unprobed: Optional[ResolvedContext] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve(self, location_id: Optional[str] = None) -> ResolvedContext:
        """Resolve the context, probing only when a PIT still lacks a location.

        Raises:
            ConfigurationError: If no credential is configured
        """
        api_key = self.config.api_key
        if not api_key:
            raise ConfigurationError(
                "GHL API key not configured. Add REVIVE_GHL_API_KEY to your environment variables.",
                connector_name="ghl",
            )

        diagnostics: List[str] = []
        classification = classify_token(api_key)

        location, source = self._explicit_location(location_id, diagnostics)

        if classification.kind == TokenKind.JWT:
            if location is None:
                diagnostics.append("Detected JWT token. Attempting to decode location_id.")
                if classification.location_hint:
                    location, source = classification.location_hint, LocationSource.JWT
                    diagnostics.append(f"Extracted location_id {location} from JWT payload.")
                else:
                    diagnostics.append(classification.note or "No location claim in JWT.")
            context = self._jwt_context(diagnostics)
        else:
            diagnostics.append("Detected Private Integration Token (PIT). Resolving auth context.")
            base = self.cache.get(api_key)
            if base is not None:
                diagnostics.append("Using cached PIT auth context.")
            elif location is None:
                base = await self._probe_single_flight(api_key)
            if base is None:
                context = self._unprobed_pit_context(diagnostics)
            else:
                context = base.derive(diagnostics=[*diagnostics, *base.diagnostics])
                if location is None and base.location_id:
                    location, source = base.location_id, LocationSource.PIT

        if location is None:
            fallback = self.config.effective_fallback_location_id()
            if fallback:
                location, source = fallback, LocationSource.FALLBACK
                message = "Using fallback location_id. Set REVIVE_GHL_LOCATION_ID to override this value."
                context.diagnostics.append(message)
                logger.warning(message)

        context.location_id = location
        context.location_source = source if location else None
        logger.info(
            f"Resolved GHL context for {context.token_preview}: location={location} "
            f"({source.value if location and source else 'none'}), base={context.versioned_base_url}, "
            f"auth={context.auth_method.label}"
        )
        return context

    async def probe(self, api_key: str) -> ResolvedContext:
        """Run the full probe sweep and cache its outcome."""
        auth_candidates = render_pit_candidates(api_key)
        candidates = build_probe_candidates(self.config.base_url, auth_candidates)
        diagnostics: List[str] = []

        async def attempt(candidate: ProbeCandidate) -> Tuple[bool, ProbeAttempt]:
            result = await self._probe_one(candidate, diagnostics)
            return result.outcome == ProbeOutcome.SUCCESS, result

        run = await try_in_order(candidates, attempt, deadline_seconds=self.probe_deadline_seconds)
        if run.deadline_error is not None:
            diagnostics.append(f"Probe stopped early: {run.deadline_error}")
            logger.warning(str(run.deadline_error))

        if run.winner is not None:
            chosen = run.winner.result.candidate
            location = run.winner.result.location_id
        else:
            partials = [a.result for a in run.attempts if a.result.outcome == ProbeOutcome.PARTIAL]
            if partials:
                chosen = partials[-1].candidate
                diagnostics.append(f"No full match; keeping partial context {chosen.auth.label} @ {chosen.base_url}")
            else:
                chosen = candidates[0]
                diagnostics.append("No probe matched; defaulting to first base URL and auth scheme.")
            location = None

        base_url = sanitize_base_url(chosen.base_url)
        context = ResolvedContext(
            config=self.config,
            auth=AuthState(chosen.auth, auth_candidates),
            base_url=base_url,
            versioned_base_url=ensure_versioned_base(base_url),
            token_kind=TokenKind.PIT,
            token_preview=mask_token(api_key),
            location_id=location,
            location_source=LocationSource.PIT if location else None,
            diagnostics=diagnostics,
        )
        self.cache.set(api_key, context)
        return context

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _explicit_location(
        self, location_id: Optional[str], diagnostics: List[str]
    ) -> Tuple[Optional[str], Optional[LocationSource]]:
        if location_id and location_id.strip():
            return location_id.strip(), LocationSource.OPTIONS
        if self.config.location_id:
            diagnostics.append("Using REVIVE_GHL_LOCATION_ID from environment.")
            return self.config.location_id, LocationSource.ENV
        return None, None

    async def _probe_single_flight(self, api_key: str) -> ResolvedContext:
        lock = self._inflight.setdefault(api_key, asyncio.Lock())
        async with lock:
            # Another task may have finished the sweep while we waited.
            cached = self.cache.get(api_key)
            if cached is not None:
                return cached
            return await self.probe(api_key)

    async def _probe_one(self, candidate: ProbeCandidate, diagnostics: List[str]) -> ProbeAttempt:
        endpoint = candidate.endpoint
        diagnostics.append(f"Trying {endpoint} with {candidate.auth.label}")
        headers = build_standard_headers("GET", False, self.probe_policy)
        headers.update(candidate.auth.get_headers())

        try:
            response = await asyncio.wait_for(
                self.transport.request("GET", endpoint, headers=headers),
                self.probe_policy.total_timeout,
            )
        except asyncio.TimeoutError:
            diagnostics.append(f"{endpoint} error: timed out after {self.probe_policy.total_timeout}s")
            return ProbeAttempt(candidate, ProbeOutcome.ERROR)
        except ConnectorError as e:
            diagnostics.append(f"{endpoint} error: {e}")
            return ProbeAttempt(candidate, ProbeOutcome.ERROR)

        body = response.text
        diagnostics.append(f"{endpoint} -> {response.status_code} {response.reason_phrase}")

        if response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            location = extract_location_id(payload)
            if location:
                diagnostics.append(f"Extracted location_id {location}")
                return ProbeAttempt(candidate, ProbeOutcome.SUCCESS, location)
            diagnostics.append(f"{endpoint} answered without a location id")
            return ProbeAttempt(candidate, ProbeOutcome.NO_LOCATION)

        if self.hints.is_partial_success(response.status_code, body):
            diagnostics.append(f"Token recognized but missing scope for {endpoint}")
            return ProbeAttempt(candidate, ProbeOutcome.PARTIAL)

        diagnostics.append(f"{endpoint} failed: {body[:120]}")
        return ProbeAttempt(candidate, ProbeOutcome.FAILED)

    def _jwt_context(self, diagnostics: List[str]) -> ResolvedContext:
        base_url = sanitize_base_url(self.config.base_url)
        return ResolvedContext(
            config=self.config,
            auth=AuthState(BEARER_TEMPLATE.render(self.config.api_key)),
            base_url=base_url,
            versioned_base_url=ensure_versioned_base(base_url),
            token_kind=TokenKind.JWT,
            token_preview=mask_token(self.config.api_key),
            diagnostics=diagnostics,
        )

    def _unprobed_pit_context(self, diagnostics: List[str]) -> ResolvedContext:
        # Location already known: skip the sweep and let auth rotation pick the scheme.
        # The auth state is kept for the resolver's lifetime so promotions stick.
        if self._unprobed is None:
            candidates = render_pit_candidates(self.config.api_key)
            base_url = build_base_candidates(self.config.base_url)[0]
            self._unprobed = ResolvedContext(
                config=self.config,
                auth=AuthState(candidates[0], candidates),
                base_url=base_url,
                versioned_base_url=ensure_versioned_base(base_url),
                token_kind=TokenKind.PIT,
                token_preview=mask_token(self.config.api_key),
            )
        diagnostics.append("Location known; skipping probe and relying on auth rotation.")
        return self._unprobed.derive(diagnostics=diagnostics)
