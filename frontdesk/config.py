"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# Find .env file
# =============================================================================

def find_env_file() -> str:
    """Find the .env file relative to project root."""
    candidates = [
        "config/.env",
        ".env",
        Path(__file__).parent.parent / "config" / ".env",
    ]

    for candidate in candidates:
        path = Path(candidate)
        if path.exists():
            return str(path)

    return "config/.env"  # Default


ENV_FILE = find_env_file()


# =============================================================================
# Settings Classes
# =============================================================================


class RelayConfigError(RuntimeError):
    """Raised when the relay cannot start with the current configuration."""


class RelaySettings(BaseSettings):
    """Proxy relay settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="RELAY_",
        extra="ignore",
        populate_by_name=True,
    )

    # Deployed spreadsheet script, the single upstream
    upstream_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GOOGLE_SCRIPT_URL", "RELAY_UPSTREAM_URL"),
    )
    host: str = Field(default="0.0.0.0", validation_alias=AliasChoices("HOST", "RELAY_HOST"))
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "RELAY_PORT"))

    allowed_origin: str = "https://booking.hotelomshivshankar.com"
    upstream_timeout_seconds: float = 30.0
    read_retries: int = 0

    @field_validator("upstream_url")
    @classmethod
    def blank_url_is_missing(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("read_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Read retries cannot be negative")
        return v

    def require_upstream(self) -> str:
        """Return the upstream URL or refuse to continue."""
        if not self.upstream_url:
            raise RelayConfigError("Missing GOOGLE_SCRIPT_URL in environment variables.")
        return self.upstream_url


class StoreSettings(BaseSettings):
    """Settings for dashboard code talking to the relay."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        env_prefix="STORE_",
        extra="ignore",
    )

    api_url: str = "http://localhost:3000/api"
    timeout_seconds: float = 30.0


class AppSettings(BaseSettings):
    """Application-level settings."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "console"] = "console"


class Settings(BaseSettings):
    """Main settings container with lazy loading."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache for sub-settings
    _relay: RelaySettings | None = None
    _store: StoreSettings | None = None
    _app: AppSettings | None = None

    @property
    def relay(self) -> RelaySettings:
        if self._relay is None:
            self._relay = RelaySettings()
        return self._relay

    @property
    def store(self) -> StoreSettings:
        if self._store is None:
            self._store = StoreSettings()
        return self._store

    @property
    def app(self) -> AppSettings:
        if self._app is None:
            self._app = AppSettings()
        return self._app


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
