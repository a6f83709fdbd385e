"""Operation fallback chains.

Which endpoint and payload shape the provider accepts for a given action
depends on the account's plan and API generation. A logical operation is
therefore an ordered list of OperationCandidates; the chain dispatches
them in order and the first 2xx with a JSON body wins. When every
candidate fails the attempts are folded into one error message.

Custom fields are the worst case: the accepted encoding is undocumented,
so updates go through the PayloadStrategy variants in a fixed order.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ghlbridge.connectors.base import ConfigurationError, ConnectorError
from ghlbridge.ghl.context import ResolvedContext
from ghlbridge.ghl.dispatcher import DispatchResult, RequestDispatcher

logger = logging.getLogger(__name__)

ERROR_BODY_LIMIT = 200


@dataclass
class OperationCandidate:
    """One endpoint + payload shape for a logical action."""

    url: str
    build_body: Optional[Callable[[], Any]] = None
    method: str = "POST"
    label: str = ""

    def body(self) -> Any:
        return self.build_body() if self.build_body else None

    @property
    def name(self) -> str:
        return self.label or self.url


@dataclass
class CandidateAttempt:
    candidate: OperationCandidate
    result: Optional[DispatchResult] = None
    error: Optional[str] = None

    def describe(self) -> str:
        if self.result is None:
            return f"{self.candidate.url} -> {self.error}"
        return f"{self.candidate.url} -> {self.result.summary(ERROR_BODY_LIMIT)}"


@dataclass
class ChainResult:
    """Outcome of a fallback chain."""

    success: bool
    payload: Any = None
    winner: Optional[OperationCandidate] = None
    result: Optional[DispatchResult] = None
    attempts: List[CandidateAttempt] = field(default_factory=list)
    error: Optional[str] = None


class FallbackChain:
    """Drives OperationCandidates through the dispatcher until one succeeds."""

    def __init__(self, dispatcher: RequestDispatcher, require_json: bool = True):
        self.dispatcher = dispatcher
        self.require_json = require_json

    async def run(
        self,
        context: ResolvedContext,
        candidates: List[OperationCandidate],
        operation: str = "operation",
    ) -> ChainResult:
        """Try candidates in declaration order.

        Raises:
            ConfigurationError: Propagated from the dispatcher (never a runtime condition)
        """
        attempts: List[CandidateAttempt] = []

        for candidate in candidates:
            logger.debug(f"Trying {operation} endpoint {candidate.name}")
            try:
                result = await self.dispatcher.dispatch(
                    context, candidate.method, candidate.url, body=candidate.body()
                )
            except ConfigurationError:
                raise
            except ConnectorError as e:
                attempts.append(CandidateAttempt(candidate, error=str(e)))
                logger.warning(f"{operation} endpoint error: {attempts[-1].describe()}")
                continue

            attempt = CandidateAttempt(candidate, result=result)
            attempts.append(attempt)

            if not result.ok:
                logger.warning(f"{operation} endpoint failed: {attempt.describe()}")
                continue

            payload = result.json()
            if payload is None and self.require_json:
                attempt.error = "non-JSON response"
                logger.warning(
                    f"{operation} endpoint returned non-JSON response: "
                    f"{result.status_code} {result.status_text}"
                )
                continue

            logger.info(f"{operation} endpoint succeeded: {candidate.name}")
            return ChainResult(
                success=True,
                payload=payload,
                winner=candidate,
                result=result,
                attempts=attempts,
            )

        return ChainResult(success=False, attempts=attempts, error=aggregate_error(operation, attempts))


def aggregate_error(operation: str, attempts: List[CandidateAttempt]) -> str:
    """One message naming every attempted endpoint and its status."""
    if not attempts:
        return f"No {operation} endpoints to try."
    details = " | ".join(
        f"{a.describe()} (non-JSON response)" if a.error and a.result is not None else a.describe()
        for a in attempts
    )
    return f"All {operation} endpoints failed: {details}"


# =============================================================================
# Custom-field payload strategies
# =============================================================================


class PayloadStrategy(str, Enum):
    """Encodings for contact custom fields, tried in declaration order."""

    ARRAY_OF_PAIRS = "array_of_pairs"  # customField: [{name, value}]
    KEYED_OBJECT = "keyed_object"  # customField: {name: value}
    FLATTENED = "flattened"  # {name: value} at top level
    SNAKE_CASE = "snake_case"  # customField: {snake_name: value}


CUSTOM_FIELD_STRATEGIES = list(PayloadStrategy)


def snake_key(name: str) -> str:
    return "_".join(name.lower().split())


def build_custom_field_payload(
    strategy: PayloadStrategy,
    base: Dict[str, Any],
    fields: Dict[str, str],
) -> Dict[str, Any]:
    """Merge `fields` into `base` using one encoding."""
    payload = dict(base)
    if strategy == PayloadStrategy.ARRAY_OF_PAIRS:
        payload["customField"] = [{"name": k, "value": v} for k, v in fields.items()]
    elif strategy == PayloadStrategy.KEYED_OBJECT:
        payload["customField"] = dict(fields)
    elif strategy == PayloadStrategy.FLATTENED:
        payload.update(fields)
    elif strategy == PayloadStrategy.SNAKE_CASE:
        payload["customField"] = {snake_key(k): v for k, v in fields.items()}
    return payload


def custom_field_candidates(
    url: str,
    base: Dict[str, Any],
    fields: Dict[str, str],
    method: str = "PUT",
    strategies: Optional[List[PayloadStrategy]] = None,
) -> List[OperationCandidate]:
    """One candidate per strategy against the same URL."""
    return [
        OperationCandidate(
            url=url,
            method=method,
            label=f"{url} [{strategy.value}]",
            build_body=lambda s=strategy: build_custom_field_payload(s, base, fields),
        )
        for strategy in (strategies or CUSTOM_FIELD_STRATEGIES)
    ]


def tag_only_candidate(url: str, tags: List[str], method: str = "PUT") -> OperationCandidate:
    """Minimal update used when every custom-field encoding is refused."""
    return OperationCandidate(
        url=url,
        method=method,
        label=f"{url} [tag_only]",
        build_body=lambda: {"tags": list(tags)},
    )
