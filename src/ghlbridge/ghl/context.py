"""Resolved provider context.

A ResolvedContext is everything needed to address the provider for one
credential: which base URL answers, which auth header scheme it accepts,
and which location (tenant) calls are scoped to.

The auth part lives in a shared AuthState. Contexts derived from the same
cache entry share it, so when the dispatcher promotes a better auth
candidate every later call using that entry sees the switch.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from ghlbridge.config import AdapterConfig
from ghlbridge.connectors.base import AuthCandidate, dedupe_candidates
from ghlbridge.ghl.classifier import TokenKind

logger = logging.getLogger(__name__)


class LocationSource(str, Enum):
    """Where the location id came from, highest priority first."""

    OPTIONS = "options"
    ENV = "env"
    JWT = "jwt"
    PIT = "pit"
    FALLBACK = "fallback"


class AuthState:
    """Primary auth candidate plus the ordered alternatives.

    Exactly one candidate is primary at any time. Swapping it is guarded by
    a lock so concurrent dispatches cannot lose a promotion.
    """

    def __init__(self, primary: AuthCandidate, candidates: Optional[List[AuthCandidate]] = None):
        self._lock = threading.Lock()
        self._primary = primary
        self._candidates = dedupe_candidates([primary, *(candidates or [])])

    @property
    def primary(self) -> AuthCandidate:
        return self._primary

    @property
    def candidates(self) -> List[AuthCandidate]:
        return list(self._candidates)

    def attempt_order(self) -> List[AuthCandidate]:
        """Primary first, then the remaining candidates, without duplicates."""
        with self._lock:
            return dedupe_candidates([self._primary, *self._candidates])

    def promote(self, candidate: AuthCandidate) -> bool:
        """Make `candidate` primary. Returns True if the primary changed."""
        with self._lock:
            if candidate.same_as(self._primary):
                return False
            self._primary = candidate
            if all(not candidate.same_as(c) for c in self._candidates):
                self._candidates.append(candidate)
            return True

    def __repr__(self) -> str:
        return f"AuthState(primary={self._primary.label!r}, candidates={len(self._candidates)})"


@dataclass
class ResolvedContext:
    """Outcome of (possibly partial) context resolution.

    `location_id` may be None; callers must handle that.
    """

    config: AdapterConfig
    auth: AuthState
    base_url: str
    versioned_base_url: str
    token_kind: TokenKind
    token_preview: str
    location_id: Optional[str] = None
    location_source: Optional[LocationSource] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def auth_method(self) -> AuthCandidate:
        """Current primary auth candidate."""
        return self.auth.primary

    @property
    def auth_candidates(self) -> List[AuthCandidate]:
        return self.auth.candidates

    def promote(self, candidate: AuthCandidate) -> bool:
        """Switch the shared primary candidate, logging when it changes."""
        switched = self.auth.promote(candidate)
        if switched:
            message = f"Switched auth header to {candidate.label}"
            logger.info(message)
            self.diagnostics.append(message)
        return switched

    def note(self, message: str) -> None:
        """Append a line to the diagnostic trace."""
        self.diagnostics.append(message)
        logger.debug(message)

    def derive(self, **changes: Any) -> "ResolvedContext":
        """Copy sharing the same AuthState, with a fresh diagnostic trace."""
        changes.setdefault("diagnostics", list(self.diagnostics))
        return replace(self, **changes)

    def to_report(self, diagnostics_tail: int = 10) -> Dict[str, Any]:
        """Summary safe to show to operators (no full credential)."""
        return {
            "token_preview": self.token_preview,
            "token_type": self.token_kind.value,
            "location_id": self.location_id,
            "location_source": self.location_source.value if self.location_source else None,
            "environment": self.config.environment.value,
            "base_url": self.base_url,
            "versioned_base_url": self.versioned_base_url,
            "auth_header": self.auth_method.header,
            "auth_strategy": self.auth_method.label,
            "diagnostics": self.diagnostics[-diagnostics_tail:],
        }
