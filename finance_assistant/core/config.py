"""
Configuration management for the Finance Assistant service.

This module centralizes environment-driven configuration using Pydantic's
`BaseSettings`. All components consume the shared `settings` instance to
ensure consistent configuration across the API, stores and the Kafka producer.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import AnyUrl, Field, PositiveInt, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General application settings
    API_TITLE: str = "Finance Assistant API"
    API_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field("development", pattern=r"^(development|staging|production)$")
    HOST: str = "0.0.0.0"
    PORT: PositiveInt = 8080
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Document store
    MONGODB_URL: AnyUrl = Field("mongodb://localhost:27017")
    MONGODB_DATABASE: str = "finance"

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["localhost:9092"])
    KAFKA_TOPIC_DOCUMENTS: str = "documents"
    KAFKA_CLIENT_ID: str = "finance-assistant"
    KAFKA_REQUEST_TIMEOUT_MS: PositiveInt = 15000
    KAFKA_MAX_REQUEST_SIZE: PositiveInt = 16 * 1024 * 1024
    KAFKA_COMPRESSION_TYPE: Optional[str] = Field("gzip", pattern=r"^(gzip|snappy|lz4|zstd)$")
    KAFKA_RETRY_BACKOFF_MS: PositiveInt = 100

    # Uploads
    MAX_UPLOAD_SIZE: PositiveInt = 10 * 1024 * 1024
    ALLOWED_EXTENSIONS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: [".pdf", ".doc", ".docx", ".xls", ".xlsx", ".png", ".jpg", ".jpeg"]
    )

    # Monitoring / tracing
    ENABLE_TRACING: bool = True
    OTEL_EXPORTER_OTLP_ENDPOINT: Optional[AnyUrl] = None
    OTEL_EXPORTER_OTLP_HEADERS: Optional[str] = None

    @field_validator("ALLOWED_ORIGINS", "KAFKA_BOOTSTRAP_SERVERS", mode="before")
    def _split_list(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("ALLOWED_EXTENSIONS", mode="before")
    def _split_extensions(cls, value: str | List[str]) -> List[str]:
        """Accept `.pdf,.png` style strings and normalize to lowercase dotted suffixes."""
        if isinstance(value, str):
            value = [item.strip() for item in value.split(",") if item.strip()]
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value]


@lru_cache()
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()


# Singleton-style settings instance for modules that prefer direct access.
settings = get_settings()
