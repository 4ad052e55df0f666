from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the Songsmith worker process."""

    model_config = SettingsConfigDict(
        env_prefix="SONGSMITH_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = "127.0.0.1"
    port: int = Field(default=5000, ge=1, le=65535)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the API from a browser.",
    )
    upload_dir: Path = Field(
        default=Path("uploads"),
        description="Directory holding in-flight reference uploads.",
    )
    max_upload_bytes: int = Field(
        default=25 * 1024 * 1024,
        ge=1,
        description="Largest reference upload accepted by generate-music.",
    )
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SONGSMITH_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_base_url: str = Field(default="https://api.openai.com/v1", max_length=256)
    openai_model: str = Field(
        default="gpt-3.5-turbo",
        max_length=128,
        description="Chat completion model used to draft lyrics.",
    )
    replicate_api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SONGSMITH_REPLICATE_API_TOKEN", "REPLICATE_API_TOKEN"),
    )
    replicate_base_url: str = Field(default="https://api.replicate.com/v1", max_length=256)
    replicate_model: str = Field(
        default="minimax/music-01",
        max_length=128,
        description="Replicate model (owner/name) that renders the track.",
    )
    request_timeout_seconds: float = Field(default=60.0, gt=0.0, le=600.0)
    poll_interval_seconds: float = Field(
        default=2.0,
        ge=0.0,
        le=60.0,
        description="Wait between prediction status reads.",
    )
    poll_max_attempts: int = Field(
        default=30,
        ge=1,
        le=1000,
        description="Status reads before a prediction is reported as timed out.",
    )
    poll_transport_retries: int = Field(
        default=0,
        ge=0,
        le=10,
        description="Re-reads allowed per attempt when a status read fails in transport.",
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
