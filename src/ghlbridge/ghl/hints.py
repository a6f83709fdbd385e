"""Response classification by body wording.

The provider signals "bad token" and "valid token, missing scope" only
through free-text error bodies. The phrases live here as swappable
data so tests can inject fixtures and wording changes never touch the
probing or rotation loops.
"""

from dataclasses import dataclass, field
from typing import Iterable, Tuple

INVALID_TOKEN_PHRASES = (
    "api key is invalid",
    "invalid api key",
    "invalid token",
    "unauthorized, switch to the new api token",
)

PARTIAL_SUCCESS_PHRASES = (
    "scope",
    "permission",
    "switch to the new api token",
    "does not have access",
    "token does not have",
)


@dataclass(frozen=True)
class PhraseSet:
    """Case-insensitive substring predicate."""

    phrases: Tuple[str, ...] = ()

    @classmethod
    def of(cls, phrases: Iterable[str]) -> "PhraseSet":
        return cls(tuple(p.lower() for p in phrases))

    def matches(self, text: str) -> bool:
        lower = (text or "").lower()
        return any(phrase in lower for phrase in self.phrases)


@dataclass(frozen=True)
class ResponseHints:
    """Status + wording rules used by the resolver and the dispatcher."""

    invalid_token: PhraseSet = field(default_factory=lambda: PhraseSet.of(INVALID_TOKEN_PHRASES))
    partial_success: PhraseSet = field(default_factory=lambda: PhraseSet.of(PARTIAL_SUCCESS_PHRASES))

    def is_invalid_token(self, status_code: int, body: str) -> bool:
        """401 whose body says the credential itself was rejected."""
        return status_code == 401 and self.invalid_token.matches(body)

    def is_partial_success(self, status_code: int, body: str) -> bool:
        """401/403 whose body says the token is known but lacks scope."""
        if status_code not in (401, 403):
            return False
        return self.partial_success.matches(body)


DEFAULT_HINTS = ResponseHints()
