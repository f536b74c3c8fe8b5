"""Configuration management for the InvoTrack POS integration service."""

import logging
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class InvoTrackConfig(BaseSettings):
    """Configuration for POS integration, scanning and the HTTP API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    caspit_base_url: str = Field(
        default="https://app.caspit.biz/api/v1",
        description="Caspit REST API base URL",
    )

    hashavshevet_base_url: str = Field(
        default="https://api.hashavshevet.co.il/v1",
        description="Hashavshevet REST API base URL (overridable per connection)",
    )

    http_timeout_sec: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Timeout for vendor HTTP requests in seconds",
    )

    token_lifetime_sec: int = Field(
        default=600,
        ge=60,
        le=86400,
        description="Assumed lifetime of a vendor access token",
    )

    token_safety_margin_sec: int = Field(
        default=60,
        ge=0,
        le=3600,
        description="Tokens are treated as expired this long before their lifetime ends",
    )

    max_pages: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Hard cap on pages fetched in one paginated sync",
    )

    caspit_page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Page size Caspit returns on list endpoints",
    )

    hashavshevet_page_size: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Page size requested from Hashavshevet list endpoints",
    )

    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key used by the invoice scanner",
    )

    mock: bool = Field(
        default=False,
        description="Use mock scan data instead of calling OpenAI API",
    )

    model: str = Field(default="gpt-4o-mini", description="Vision model used for scanning")

    max_tokens: int = Field(
        default=4096,
        ge=1,
        le=128000,
        description="Maximum tokens for scanner responses",
    )

    openai_timeout_sec: float = Field(
        default=180.0,
        ge=10.0,
        le=600.0,
        description="OpenAI API request timeout in seconds",
    )

    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="LLM temperature (0 = deterministic)",
    )

    api_host: str = Field(
        default="0.0.0.0",
        description="API host address",
    )

    api_port: int = Field(
        default=8000,
        description="API port",
    )

    api_keys: str = Field(
        default="",
        description="Comma-separated API keys for authentication",
    )

    allow_api_key_auth: bool = Field(
        default=True,
        description="Accept configured API keys as bearer tokens",
    )

    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")

    supabase_service_role_key: Optional[str] = Field(
        default=None, description="Supabase service role key"
    )

    supabase_storage_bucket: str = Field(
        default="invoice-images",
        description="Storage bucket for original/compressed invoice images",
    )

    @field_validator("caspit_base_url", "hashavshevet_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs so paths can be appended with a single slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Base URL must start with http:// or https://: '{v}'")
        return v.rstrip("/")

    def get_api_keys(self) -> set[str]:
        """Parse API keys from comma-separated string."""
        return {k.strip() for k in self.api_keys.split(",") if k.strip()}

    def validate_config(self) -> None:
        """Validate configuration at startup. Raises ValueError if invalid."""
        errors = []

        if not self.mock and not self.openai_api_key:
            errors.append("OPENAI_API_KEY required when mock mode is disabled")

        if self.token_safety_margin_sec >= self.token_lifetime_sec:
            errors.append(
                "TOKEN_SAFETY_MARGIN_SEC must be smaller than TOKEN_LIFETIME_SEC"
            )

        if self.temperature < 0 or self.temperature > 2:
            errors.append("TEMPERATURE must be between 0 and 2")

        if self.openai_timeout_sec < 10 or self.openai_timeout_sec > 600:
            errors.append("OPENAI_TIMEOUT_SEC must be between 10 and 600")

        if bool(self.supabase_url) != bool(self.supabase_service_role_key):
            errors.append(
                "SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set together"
            )

        if errors:
            raise ValueError(
                "Configuration validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors)
            )


_config_instance = None


def get_config() -> InvoTrackConfig:
    """Get or create global configuration instance."""
    global _config_instance
    if _config_instance is None:
        _config_instance = InvoTrackConfig()
        _config_instance.validate_config()
        logger.info("Configuration validated successfully")
    return _config_instance


def get_config_unvalidated() -> InvoTrackConfig:
    """Get or create global configuration instance without validation."""
    global _config_instance
    if _config_instance is None:
        _config_instance = InvoTrackConfig()
    return _config_instance


def reload_config() -> InvoTrackConfig:
    """Reload configuration (useful for testing)."""
    global _config_instance
    _config_instance = InvoTrackConfig()
    return _config_instance
