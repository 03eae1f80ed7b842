from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from a .env file if present (local dev only)
load_dotenv()


class Settings(BaseSettings):
    """Application configuration loaded from environment variables or .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General
    project_id: Optional[str] = Field(default=None, description="GCP project ID")
    log_level: str = Field("INFO")

    # Vision provider / OpenAI
    vision_provider: str = Field("openai")
    openai_api_key: Optional[str] = Field(
        default=None,
        description="Fallback key when none is stored in the options store.",
    )
    openai_model: str = Field("gpt-4.1-mini")
    openai_base_url: str = Field("https://api.openai.com/v1")
    openai_timeout: float = Field(60.0, ge=60.0, description="Seconds; vision calls can be slow.")
    openai_max_tokens: int = Field(300)

    # Image normalisation before the API call
    image_max_width: int = Field(256, ge=1)
    image_max_height: int = Field(256, ge=1)
    image_quality: int = Field(50, ge=1, le=100)
    image_detail: str = Field("low", description="'low' | 'high' | 'auto'")

    # Where media URLs are directly readable from disk
    media_base_url: Optional[str] = Field(default=None, description="e.g. https://cdn.example.com/media")
    media_root: Optional[Path] = Field(default=None, description="Directory mirroring media_base_url")
    tmp_dir: Optional[Path] = Field(default=None, description="Scratch dir for fetched images")

    # Firebase
    firebase_credentials_json: Optional[str] = Field(
        default=None,
        validation_alias="GOOGLE_APPLICATION_CREDENTIALS",
        description="Path to service-account JSON file or JSON string itself.",
    )

    # Cloud Storage (media bucket)
    bucket_name: str = Field("alttext-media")
    public_images: bool = Field(False, description="If true, uploads are made public instead of using signed URLs.")
    image_max_dim: int = Field(2048, description="Maximum width or height for compressed uploads (pixels).")
    upload_quality: int = Field(85, ge=1, le=100, description="JPEG quality for compressed uploads.")

    # Request guards
    api_nonce: str = Field(..., description="Shared secret expected in the X-AltText-Nonce header.")
    upload_roles: list[str] = Field(default=["administrator", "editor", "author"])
    manage_roles: list[str] = Field(default=["administrator"])

    # Bulk runner / CLI
    bulk_delay_seconds: float = Field(0.5, ge=0.0)
    service_url: str = Field("http://localhost:8000")
    service_role: str = Field("administrator")


@lru_cache()
def get_settings() -> Settings:  # pragma: no cover
    """Return a cached Settings instance so it is only parsed once."""

    return Settings()
