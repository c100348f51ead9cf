"""
registry_sdk.tier0_core.config
────────────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic; invalid values fail at
startup, not at the first registry call.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistryConfig(BaseSettings):
    """
    Typed SDK configuration. Registry connection settings use the
    conventional SCHEMA_REGISTRY_* names; SDK-internal knobs are
    prefixed with REGISTRY_SDK_.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ───────────────────────────────────────────────────────────
    app_name: str = Field(default="registry-sdk", alias="APP_NAME")
    environment: str = Field(default="development", alias="APP_ENV")

    # ── Schema registry ───────────────────────────────────────────────────────
    registry_url: str = Field(default="http://localhost:8081", alias="SCHEMA_REGISTRY_URL")
    registry_username: str | None = Field(default=None, alias="SCHEMA_REGISTRY_USERNAME")
    registry_password: SecretStr | None = Field(default=None, alias="SCHEMA_REGISTRY_PASSWORD")
    registry_timeout: float = Field(default=30.0, alias="SCHEMA_REGISTRY_TIMEOUT")

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="REGISTRY_SDK_LOG_LEVEL")
    log_format: str = Field(default="json", alias="REGISTRY_SDK_LOG_FORMAT")

    # ── Error reporting ───────────────────────────────────────────────────────
    error_backend: str = Field(default="none", alias="REGISTRY_SDK_ERROR_BACKEND")

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("registry_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"registry timeout must be positive, got {v!r}")
        return v

    @property
    def has_credentials(self) -> bool:
        return bool(
            self.registry_username
            and self.registry_password
            and self.registry_password.get_secret_value()
        )


@lru_cache(maxsize=1)
def get_config() -> RegistryConfig:
    """
    Return the process-wide SDK config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return RegistryConfig()


def _reset_config() -> None:
    """Clear the config cache (tests only)."""
    get_config.cache_clear()


__all__ = ["RegistryConfig", "get_config"]
