"""Credential classification.

Looks only at the *shape* of a token to choose a dispatch strategy:
- Private integration tokens (PIT) carry a fixed prefix and need active
  discovery of their auth header scheme and location.
- Anything else is treated as a legacy JWT whose payload may carry a
  location claim that can be read without a network call.

Signatures are never checked. Everything in this module is pure.
"""

import base64
import binascii
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

PIT_PREFIXES = ("pit-",)

LOCATION_CLAIMS = ("location_id", "locationId")


class TokenKind(str, Enum):
    """Credential format."""

    PIT = "pit"
    JWT = "jwt"


@dataclass(frozen=True)
class TokenClassification:
    """Result of classifying a credential.

    `location_hint` is only ever set for JWTs. `note` explains why no hint
    is available, for the diagnostic trace.
    """

    kind: TokenKind
    location_hint: Optional[str] = None
    note: Optional[str] = None


def mask_token(token: str) -> str:
    """Preview a token without exposing it (first 6 and last 4 characters)."""
    if not token:
        return ""
    if len(token) <= 10:
        return token
    return f"{token[:6]}...{token[-4:]}"


def is_pit(token: str) -> bool:
    return token.startswith(PIT_PREFIXES)


def _b64url_decode(segment: str) -> bytes:
    padded = segment + "=" * (-len(segment) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def decode_jwt_payload(token: str) -> Any:
    """Decode the middle segment of a JWT as JSON.

    Raises:
        ValueError: On wrong segment count, bad base64 or non-JSON payload
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError(f"expected 3 segments, got {len(parts)}")
    try:
        raw = _b64url_decode(parts[1])
        return json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError) as e:
        raise ValueError(f"payload is not base64url: {e}") from e


def classify_token(token: str) -> TokenClassification:
    """Classify a credential and, for JWTs, extract a best-effort location hint.

    Never raises for malformed JWTs; they simply yield no hint.
    """
    if is_pit(token):
        return TokenClassification(TokenKind.PIT)

    try:
        payload = decode_jwt_payload(token)
    except ValueError as e:
        return TokenClassification(TokenKind.JWT, note=f"Could not decode JWT payload: {e}")

    if not isinstance(payload, dict):
        return TokenClassification(TokenKind.JWT, note="JWT payload is not an object")

    for claim in LOCATION_CLAIMS:
        value = payload.get(claim)
        if isinstance(value, str) and value.strip():
            return TokenClassification(TokenKind.JWT, location_hint=value.strip())

    return TokenClassification(TokenKind.JWT, note="JWT payload has no location claim")


# =============================================================================
# Key shape validation
# =============================================================================

_JWT_SHAPE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$")


@dataclass(frozen=True)
class CredentialValidation:
    ok: bool
    message: str


def validate_api_key(api_key: str) -> CredentialValidation:
    """Check that a key looks like something the provider could accept."""
    if not api_key:
        return CredentialValidation(False, "Missing API key")
    if is_pit(api_key):
        if len(api_key) <= len(PIT_PREFIXES[0]):
            return CredentialValidation(False, "Private integration token is empty after its prefix.")
        return CredentialValidation(True, "Private integration token; auth scheme is discovered on first use.")
    if _JWT_SHAPE.match(api_key):
        return CredentialValidation(True, "JWT-shaped API key.")
    return CredentialValidation(
        False,
        "Keys must be a private integration token (pit-...) or a three-part JWT.",
    )
