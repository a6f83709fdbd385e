"""Configuration and environment handling for the GHL bridge."""

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

GHL_ENV_VARS = {
    "api_key": "REVIVE_GHL_API_KEY",
    "base_url": "REVIVE_GHL_BASE_URL",
    "sandbox_flag": "REVIVE_GHL_SANDBOX",
    "location_id": "REVIVE_GHL_LOCATION_ID",
    "fallback_location_id": "REVIVE_GHL_FALLBACK_LOCATION_ID",
    "hardcoded_fallback": "REVIVE_GHL_ENABLE_HARDCODED_FALLBACK",
}

DEFAULT_BASE_URL = "https://rest.gohighlevel.com/v1"

# Last-resort location for accounts provisioned before location-scoped tokens.
# Only consulted when REVIVE_GHL_ENABLE_HARDCODED_FALLBACK is set.
HARDCODED_FALLBACK_LOCATION_ID = "3wQD2SH7L4R72I2FaIgS"

TRUE_VALUES = {"1", "true", "yes", "on"}


def read_boolean(value: Optional[str]) -> bool:
    """Interpret a boolean-ish environment string."""
    if not value:
        return False
    return value.strip().lower() in TRUE_VALUES


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class GhlEnvironment(str, Enum):
    """Provider environment selected by the sandbox flag."""

    SANDBOX = "sandbox"
    PRODUCTION = "production"


@dataclass(frozen=True)
class AdapterConfig:
    """Static deployment configuration for the GHL adapter.

    Immutable once read. The credential is never rendered in full by repr().
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    environment: GhlEnvironment = GhlEnvironment.PRODUCTION
    location_id: Optional[str] = None
    fallback_location_id: Optional[str] = None
    use_hardcoded_fallback: bool = False

    def __repr__(self) -> str:
        from ghlbridge.ghl.classifier import mask_token

        return (
            f"AdapterConfig(api_key='{mask_token(self.api_key)}', base_url='{self.base_url}', "
            f"environment='{self.environment.value}', location_id={self.location_id!r})"
        )

    def effective_fallback_location_id(self) -> Optional[str]:
        """Location used when no other source yields one, or None if disabled."""
        if self.fallback_location_id:
            return self.fallback_location_id
        if self.use_hardcoded_fallback:
            return HARDCODED_FALLBACK_LOCATION_ID
        return None


def load_adapter_config(env: Optional[Mapping[str, str]] = None) -> AdapterConfig:
    """Read the adapter configuration from an environment mapping.

    Args:
        env: Mapping to read from (defaults to os.environ)

    Returns:
        AdapterConfig snapshot
    """
    if env is None:
        env = os.environ

    sandbox = read_boolean(env.get(GHL_ENV_VARS["sandbox_flag"]))
    return AdapterConfig(
        api_key=(env.get(GHL_ENV_VARS["api_key"]) or "").strip(),
        base_url=_clean(env.get(GHL_ENV_VARS["base_url"])) or DEFAULT_BASE_URL,
        environment=GhlEnvironment.SANDBOX if sandbox else GhlEnvironment.PRODUCTION,
        location_id=_clean(env.get(GHL_ENV_VARS["location_id"])),
        fallback_location_id=_clean(env.get(GHL_ENV_VARS["fallback_location_id"])),
        use_hardcoded_fallback=read_boolean(env.get(GHL_ENV_VARS["hardcoded_fallback"])),
    )


class Config:
    """Central configuration object."""

    def __init__(self):
        # Load .env file if it exists
        env_path = Path(__file__).parent.parent.parent / ".env"
        if env_path.exists():
            load_dotenv(env_path)

        # Context cache and probing
        self.cache_ttl_seconds: float = float(os.getenv("REVIVE_GHL_CACHE_TTL_S", "600"))
        self.request_timeout_seconds: float = float(os.getenv("REVIVE_GHL_TIMEOUT_S", "15"))
        self.probe_deadline_seconds: float = float(
            os.getenv("REVIVE_GHL_PROBE_DEADLINE_S", "60")
        )

        # Logging
        self.log_level: str = os.getenv("REVIVE_GHL_LOG_LEVEL", "INFO")

    def adapter(self) -> AdapterConfig:
        """Snapshot the adapter configuration from the current environment."""
        return load_adapter_config()


# Global config instance
config = Config()
