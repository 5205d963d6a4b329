"""
Core configuration using Pydantic Settings.
Loads from environment variables.
"""

from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = Field(default="cycle-ats", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development", alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    # API
    api_v1_prefix: str = Field(default="/api/v1", alias="API_V1_PREFIX")
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        alias="ALLOWED_ORIGINS",
    )

    # Database
    database_url: str = Field(..., alias="DATABASE_URL")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Redis (round locks)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    round_lock_backend: Literal["local", "redis"] = Field(
        default="local", alias="ROUND_LOCK_BACKEND"
    )
    round_lock_timeout: int = Field(default=600, alias="ROUND_LOCK_TIMEOUT")
    round_lock_blocking_timeout: int = Field(
        default=30, alias="ROUND_LOCK_BLOCKING_TIMEOUT"
    )

    # Advancement
    advancement_concurrency: int = Field(
        default=5, ge=1, le=50, alias="ADVANCEMENT_CONCURRENCY"
    )
    default_verdict_policy: Literal["last_writer_wins", "admin_override"] = Field(
        default="last_writer_wins", alias="DEFAULT_VERDICT_POLICY"
    )

    # Celery
    celery_broker_url: str = Field(
        default="redis://localhost:6379/1", alias="CELERY_BROKER_URL"
    )
    celery_result_backend: str = Field(
        default="redis://localhost:6379/2", alias="CELERY_RESULT_BACKEND"
    )

    # Auth
    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Logging
    log_request_body: bool = Field(default=False, alias="LOG_REQUEST_BODY")
    log_response_body: bool = Field(default=False, alias="LOG_RESPONSE_BODY")
    log_max_body_size: int = Field(default=1024, alias="LOG_MAX_BODY_SIZE")
    json_logs: bool = Field(default=True, alias="JSON_LOGS")

    # Email
    email_enabled: bool = Field(default=True, alias="EMAIL_ENABLED")
    smtp_host: str = Field(default="smtp.gmail.com", alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    from_email: str = Field(default="noreply@example.com", alias="FROM_EMAIL")
    from_name: str = Field(default="Recruiting Team", alias="FROM_NAME")
    organization_name: str = Field(default="UConsulting", alias="ORGANIZATION_NAME")


# Global settings instance
settings = Settings()
