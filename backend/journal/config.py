from __future__ import annotations

from functools import lru_cache

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from journal.core.errors import ConfigurationError


class Settings(BaseSettings):
    """Enrichment job settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="JOURNAL_",
        extra="ignore",
        case_sensitive=False,
    )

    # Application
    log_level: str = "INFO"

    # Supabase (database + blob storage)
    supabase_url: str = Field(min_length=1)
    supabase_service_role_key: str = Field(min_length=1)
    storage_bucket: str = Field(min_length=1)

    # OpenAI
    openai_api_key: str = Field(min_length=1)
    openai_timeout: float = 120.0  # seconds per request, enforced by the SDK

    tag_model: str = "gpt-4o-mini"
    ocr_model: str = "gpt-4o-mini"
    transcription_model: str = "gpt-4o-mini-transcribe"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached settings instance.

    Raises pydantic's ValidationError when a required variable is missing.
    """
    return Settings()


def load_settings() -> Settings:
    """Return settings, turning missing or blank values into ConfigurationError."""
    try:
        return get_settings()
    except ValidationError as err:
        fields = sorted({
            "JOURNAL_" + str(e["loc"][0]).upper() for e in err.errors() if e.get("loc")
        })
        raise ConfigurationError(
            "missing or invalid environment variables: " + ", ".join(fields)
        ) from err
