"""
Deployment BFF - Configuration Settings
Platform API connection, logging, CORS, and topology ordering preferences.
"""

from typing import List, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PREFERRED_ORDER = "development,staging,production"


class Settings(BaseSettings):
    """Deployment BFF settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Runtime ───────────────────────────────────────────────────────
    environment: str = Field(default="dev", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_allowed_origins: str = Field(default="*", alias="CORS_ALLOWED_ORIGINS")

    # ── Platform API ──────────────────────────────────────────────────
    platform_api_url: str = Field(default="http://localhost:8080/api/v1", alias="PLATFORM_API_URL")
    platform_api_token: Optional[str] = Field(default=None, alias="PLATFORM_API_TOKEN")
    platform_api_timeout_seconds: float = Field(default=30.0, alias="PLATFORM_API_TIMEOUT_SECONDS")

    # ── Topology ordering ─────────────────────────────────────────────
    preferred_environment_order: str = Field(
        default=DEFAULT_PREFERRED_ORDER, alias="PREFERRED_ENVIRONMENT_ORDER",
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = ["dev", "development", "staging", "prod", "production", "test"]
        if v.lower() not in allowed:
            print(f"[SETTINGS] Warning: environment '{v}' not in {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level '{v}'")
        return level

    @field_validator("platform_api_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("PLATFORM_API_TIMEOUT_SECONDS must be positive")
        return v

    @property
    def preferred_order(self) -> List[str]:
        """Curated tie-break list, lower-cased, in priority order."""
        return [n.strip().lower() for n in self.preferred_environment_order.split(",") if n.strip()]

    @property
    def cors_origins(self) -> List[str]:
        raw = self.cors_allowed_origins.strip()
        if raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]


settings = Settings()
