from __future__ import annotations

import json

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    app_name: str = "estate-listings-api"
    environment: str = "dev"

    database_url: str

    # Uploads / image storage
    upload_max_bytes: int = 5 * MIB
    upload_compress_threshold_bytes: int = MIB
    upload_timeout_seconds: float = 30.0
    # GridFS default chunk size
    blob_chunk_size_bytes: int = 255 * 1024
    image_cache_control: str = "public, max-age=31536000"

    # Geocoding (Nominatim-compatible)
    geocoder_base_url: str = "https://nominatim.openstreetmap.org"
    geocoder_user_agent: str = "estate-listings-api/0.1"
    geocoder_timeout_seconds: float = 10.0
    geocoder_suggestion_limit: int = 5

    # Client workflow
    api_base_url: str = "http://localhost:8000"
    api_timeout_seconds: float = 60.0

    # Error reporting
    sentry_dsn: str | None = None
    sentry_environment: str | None = None
    sentry_enabled_environments: list[str] = ["staging", "prod"]
    sentry_traces_sample_rate: float = 0.0

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    # CORS
    cors_allowed_origins: list[str] = []
    cors_allowed_methods: list[str] = ["GET", "POST", "OPTIONS"]
    cors_allowed_headers: list[str] = ["Content-Type"]
    cors_allow_credentials: bool = False

    # DB pooling
    # - "null" external pooler (pgbouncer) handles pooling
    # - "queue" for Postgres
    db_pool: str = "queue"
    db_pool_size: int = 10
    db_max_overflow: int = 10
    # create tables at startup instead of running alembic (local sqlite)
    db_create_all: bool = False

    @model_validator(mode="after")
    def _validate(self) -> Settings:
        self.cors_allowed_origins = self._parse_env_list(self.cors_allowed_origins)
        self.cors_allowed_methods = self._parse_env_list(self.cors_allowed_methods)
        self.cors_allowed_headers = self._parse_env_list(self.cors_allowed_headers)
        self.sentry_enabled_environments = self._parse_env_list(self.sentry_enabled_environments)

        if self.cors_allow_credentials and any(origin == "*" for origin in self.cors_allowed_origins):
            raise ValueError("cors_allowed_origins cannot include '*' when cors_allow_credentials is true")

        if self.upload_max_bytes <= 0:
            raise ValueError("upload_max_bytes must be positive")
        if self.upload_compress_threshold_bytes > self.upload_max_bytes:
            raise ValueError("upload_compress_threshold_bytes cannot exceed upload_max_bytes")
        if self.blob_chunk_size_bytes <= 0:
            raise ValueError("blob_chunk_size_bytes must be positive")
        return self

    @staticmethod
    def _parse_env_list(raw_value: list[str] | str) -> list[str]:
        if isinstance(raw_value, list):
            return [item.strip() for item in raw_value if item.strip()]

        value = raw_value.strip()
        if not value:
            return []

        if value.startswith("["):
            parsed = json.loads(value)
            if not isinstance(parsed, list):
                raise ValueError("list config must deserialize to a list")
            return [str(item).strip() for item in parsed if str(item).strip()]

        return [item.strip() for item in value.split(",") if item.strip()]


settings = Settings()
