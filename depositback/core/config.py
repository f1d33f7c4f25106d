"""
DepositBack Configuration
Pydantic Settings for environment-based configuration.
Single source of truth for all app settings.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Use .env file for local development, env vars for production.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # App Identity
    # ==========================================================================
    app_name: str = "DepositBack"
    app_version: str = "1.0.0"
    app_description: str = """
## DepositBack - Texas Security Deposit Report

Presentation service for the tenant case report: key dates, the action plan
with its cross-referenced statutes and lease clauses, the demand letter, and
the downloadable PDF.

Scoring, lease extraction, PDF rendering and payment all live in the
analysis backend configured by `API_BASE_URL`.
"""
    debug: bool = False
    enable_docs: bool = True

    # ==========================================================================
    # Server
    # ==========================================================================
    host: str = "0.0.0.0"
    port: int = 8000

    # ==========================================================================
    # Analysis Backend
    # ==========================================================================
    api_base_url: str = "http://localhost:5000"
    api_timeout_seconds: float = 30.0

    @field_validator("api_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Paths are joined as f"{base}/api/...", so drop any trailing slash."""
        if v and isinstance(v, str):
            return v.rstrip("/")
        return v

    # ==========================================================================
    # Documents
    # ==========================================================================
    document_retention_hours: int = 72  # Backend deletes generated PDFs after this
    download_dir: str = "downloads"
    download_revoke_delay_ms: int = 150  # Temp file kept this long after hand-off

    # ==========================================================================
    # Report View
    # ==========================================================================
    view_transition_ms: int = 200
    steps_preview_count: int = 3
    letter_response_days: int = 14

    # ==========================================================================
    # Observability
    # ==========================================================================
    log_level: str = "INFO"
    log_json_format: bool = False
    log_file: str = ""

    # ==========================================================================
    # Deployment
    # ==========================================================================
    cors_origins: str = ""  # Comma-separated list of allowed origins. Leave empty for secure defaults.

    @property
    def cors_origins_list(self) -> list[str]:
        """
        Parse CORS origins into a list with secure defaults.
        - If explicit origins set: use those
        - If empty: restrict to localhost only
        """
        if self.cors_origins:
            if self.cors_origins == "*":
                return ["*"]
            return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

        return [
            "http://localhost:8000",
            "http://127.0.0.1:8000",
            "http://localhost:3000",  # React dev server
            "http://127.0.0.1:3000",
        ]


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Use dependency injection: Depends(get_settings)
    """
    return Settings()
