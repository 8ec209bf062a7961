"""
Application configuration from environment variables.
Settings class using pydantic-settings with optional validation.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from backend root so it loads when running from backend/ or project root
_BACKEND_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    """
    Application settings loaded from environment and .env.
    All fields optional with defaults for local dev; validate for production.
    """

    # Supabase (credential store + user JWTs)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""
    SUPABASE_JWT_SECRET: str = ""

    # Application
    ENVIRONMENT: str = "development"
    # Store as string so env never triggers json.loads; parsed in cors_origins_list.
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated origins or JSON array",
        validation_alias="CORS_ORIGINS",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def normalize_cors_origins(cls, v: object) -> str:
        """Ensure we always have a string (avoid empty env causing json.loads in pydantic-settings)."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return "http://localhost:3000"
        if isinstance(v, list):
            return ",".join(str(x).strip() for x in v if str(x).strip())
        return str(v).strip()

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # HubSpot OAuth app (explicit env names so HUBSPOT_* are always read)
    hubspot_client_id: str = Field(
        default="",
        description="HubSpot OAuth app client id",
        validation_alias="HUBSPOT_CLIENT_ID",
    )
    hubspot_client_secret: str = Field(
        default="",
        description="HubSpot OAuth app client secret",
        validation_alias="HUBSPOT_CLIENT_SECRET",
    )
    hubspot_redirect_uri: str = Field(
        default="",
        description="Redirect URI registered for the OAuth app; sent with refresh grants",
        validation_alias="HUBSPOT_REDIRECT_URI",
    )
    hubspot_token_url: str = Field(
        default="https://api.hubapi.com/oauth/v1/token",
        validation_alias="HUBSPOT_TOKEN_URL",
    )
    hubspot_api_base_url: str = Field(
        default="https://api.hubapi.com",
        validation_alias="HUBSPOT_API_BASE_URL",
    )

    # Token lifecycle
    hubspot_refresh_margin_seconds: int = Field(
        default=600,
        description="Refresh on demand when the token expires within this many seconds",
        validation_alias="HUBSPOT_REFRESH_MARGIN_SECONDS",
    )
    hubspot_refresh_interval_seconds: int = Field(
        default=300,
        description="How often the proactive refresh scan runs",
        validation_alias="HUBSPOT_REFRESH_INTERVAL_SECONDS",
    )
    hubspot_refresh_lookahead_seconds: int = Field(
        default=600,
        description="Proactive scan refreshes tokens expiring within this window",
        validation_alias="HUBSPOT_REFRESH_LOOKAHEAD_SECONDS",
    )
    hubspot_scheduler_enabled: bool = Field(
        default=True,
        validation_alias="HUBSPOT_SCHEDULER_ENABLED",
    )
    hubspot_request_timeout_seconds: float = Field(
        default=30,
        validation_alias="HUBSPOT_REQUEST_TIMEOUT_SECONDS",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS_ORIGINS from comma-separated or JSON array string."""
        raw = (self.cors_origins or "").strip()
        if not raw:
            return ["http://localhost:3000"]
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [x.strip() for x in parsed if isinstance(x, str) and x.strip()]
            except ValueError:
                pass
        return [x.strip() for x in raw.split(",") if x.strip()] or ["http://localhost:3000"]

    @field_validator("hubspot_api_base_url", "hubspot_token_url", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v

    def validate_for_production(self) -> None:
        """
        Call to validate that required env vars are set (e.g. on startup in production).
        Raises ValueError with missing keys.
        """
        missing: List[str] = []
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_KEY:
            missing.append("SUPABASE_SERVICE_KEY")
        if not self.SUPABASE_JWT_SECRET:
            missing.append("SUPABASE_JWT_SECRET")
        if not self.hubspot_client_id:
            missing.append("HUBSPOT_CLIENT_ID")
        if not self.hubspot_client_secret:
            missing.append("HUBSPOT_CLIENT_SECRET")
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
