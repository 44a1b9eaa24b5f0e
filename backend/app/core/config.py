import json
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment."""

    API_V1_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "KADD-AI"
    BACKEND_CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:9002"]
    LOG_LEVEL: str = Field(default="INFO", description="Root logging level")
    LOG_FORMAT: str | None = Field(
        default=None,
        description="Custom logging formatter pattern (optional).",
    )
    LOG_DATE_FORMAT: str | None = Field(
        default=None,
        description="Custom logging date format (optional).",
    )
    LOG_FILE: str | None = Field(
        default=None,
        description="Optional path to a file where logs should be written.",
    )
    GEMINI_API_KEY: str | None = Field(default=None)
    ANNOTATION_MODEL: str = Field(default="gemini-2.0-flash-preview-image-generation")
    ANNOTATION_TIMEOUT_SECONDS: float = Field(default=60.0, description="Timeout per annotation request (seconds)")
    REPORT_MODEL: str = Field(default="gemini-2.0-flash")
    REPORT_TIMEOUT_SECONDS: float = Field(default=30.0, description="Timeout per report request (seconds)")
    REPORT_TEMPERATURE: float = Field(default=0.3)
    DEFECT_DETECTOR: str = Field(default="mock", description="Defect detector implementation")
    MAX_UPLOAD_BYTES: int = Field(default=10 * 1024 * 1024, description="Largest accepted upload (bytes)")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def _coerce_origins(cls, value):  # noqa: D401 - simple normalizer
        if isinstance(value, str):
            if value.lstrip().startswith("["):
                return json.loads(value)
            items = [item.strip() for item in value.split(",")]
            return [item for item in items if item]
        return value


settings = Settings()
