"""URL helpers for the provider's two API hosts."""

from typing import Dict, List, Optional
from urllib.parse import urlencode

from ghlbridge.config import DEFAULT_BASE_URL

SERVICES_BASE_URL = "https://services.leadconnectorhq.com"

LEGACY_HOST = "gohighlevel.com"


def sanitize_base_url(url: Optional[str]) -> str:
    """Strip trailing slashes, falling back to the default base."""
    if not url:
        return DEFAULT_BASE_URL
    return url.rstrip("/")


def ensure_versioned_base(base_url: str) -> str:
    """Append /v1 to legacy-host bases that lack it."""
    sanitized = sanitize_base_url(base_url)
    if LEGACY_HOST in sanitized and not sanitized.endswith("/v1"):
        return f"{sanitized}/v1"
    return sanitized


def join_url(base_url: str, path: str) -> str:
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def with_query(url: str, params: Dict[str, Optional[str]]) -> str:
    """Append query parameters, skipping None values."""
    clean = {k: v for k, v in params.items() if v is not None}
    if not clean:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(clean)}"


def _unique(items: List[str]) -> List[str]:
    seen = set()
    ordered = []
    for item in items:
        if item and item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered


def build_base_candidates(base_url: Optional[str]) -> List[str]:
    """Base URLs a private integration token is probed against, in order."""
    sanitized = sanitize_base_url(base_url)
    without_version = sanitized[: -len("/v1")] if sanitized.endswith("/v1") else sanitized
    return _unique([
        SERVICES_BASE_URL,
        sanitized,
        f"{without_version}/v1",
        without_version,
        DEFAULT_BASE_URL,
    ])


def build_user_endpoints(base_url: str) -> List[str]:
    """Identity ("who am I") endpoints under a base URL."""
    sanitized = sanitize_base_url(base_url)
    endpoints = [join_url(sanitized, "users/me")]
    if not sanitized.endswith("/v1"):
        endpoints.append(join_url(sanitized, "v1/users/me"))
    return _unique(endpoints)
