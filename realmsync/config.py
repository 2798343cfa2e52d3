"""
Configuration settings for R.A.V.N. Realmsync.

Uses environment variables (prefix RAVN_) or a .env file. Settings are read
fresh by every provider call so a changed token or base URL is picked up by
the next request without rebuilding the client.
"""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://hero-vault.ravn-quest.online"


class VaultSettings(BaseSettings):
    """Hero Vault settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RAVN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Per-user token; each player supplies their own
    player_api_token: str = Field(default="")

    # Per-deployment base URL, so staging/dev can be targeted
    api_base_url: str = Field(default=DEFAULT_BASE_URL)

    # Local environment
    system_id: str = ""
    world_id: str = ""

    # Transport
    request_timeout: Optional[float] = 30.0

    # Refuse to overwrite a character with data from another game system
    enforce_system_match: bool = True

    @field_validator("player_api_token", "api_base_url", "system_id", "world_id", mode="before")
    @classmethod
    def strip_whitespace(cls, v):
        """Trim pasted values; None becomes empty."""
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v


def load_settings() -> VaultSettings:
    """Read settings from the environment. Not cached."""
    return VaultSettings()


def get_player_token() -> str:
    """Current player API token, or an empty string."""
    return load_settings().player_api_token


def get_api_base_url() -> str:
    """Configured base URL without trailing slash, or the default."""
    raw = load_settings().api_base_url or DEFAULT_BASE_URL
    return raw.removesuffix("/") or DEFAULT_BASE_URL


def get_system_id() -> str:
    """Game system of the local world, or an empty string."""
    return load_settings().system_id
