"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables (or a .env file)
with sensible defaults. Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock mode enables local development without a Backblaze account.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    For lists (like cors_origins), use comma-separated values in env.
    """

    # API Configuration
    api_title: str = "Shared Gallery API"
    api_version: str = "v1"

    # Backblaze B2 (S3-compatible) Storage Configuration
    b2_bucket_name: str = Field(
        default="",
        description="B2 bucket holding the shared gallery"
    )
    b2_region: str = Field(
        default="us-west-004",
        description="B2 region, e.g. us-west-004"
    )
    b2_endpoint: Optional[str] = Field(
        default=None,
        description="S3-compatible endpoint URL. Derived from the region if not provided."
    )
    b2_key_id: str = Field(
        default="",
        description="B2 application key ID"
    )
    b2_application_key: str = Field(
        default="",
        description="B2 application key secret"
    )
    b2_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of real B2. Enables local dev without object storage."
    )

    # Gallery Behavior
    upload_prefix: str = Field(
        default="images/",
        description="Key prefix for every gallery object. Listing only looks under this prefix."
    )
    multipart_url_expiry_seconds: int = Field(
        default=3600,
        description="Lifetime of presigned part upload URLs."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins. Use * for development only."
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse comma-separated CORS origins into a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def b2_endpoint_url(self) -> str:
        """
        Resolve the S3-compatible endpoint for B2.

        B2 endpoints follow the pattern: https://s3.{region}.backblazeb2.com
        """
        if self.b2_endpoint:
            return self.b2_endpoint
        return f"https://s3.{self.b2_region}.backblazeb2.com"

    def validate_required_fields(self) -> list[str]:
        """
        Return the names of required settings that are not set.

        Nothing is required in mock mode. This is separate from Pydantic
        validation because the app still starts without storage
        credentials; the gallery endpoints refuse to work instead.
        """
        if self.b2_mock_mode:
            return []

        missing = []
        if not self.b2_bucket_name:
            missing.append("B2_BUCKET_NAME")
        if not self.b2_key_id:
            missing.append("B2_KEY_ID")
        if not self.b2_application_key:
            missing.append("B2_APPLICATION_KEY")
        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache means we only load settings once per process.
    For tests, call get_settings.cache_clear() or override the dependency.
    """
    return Settings()
