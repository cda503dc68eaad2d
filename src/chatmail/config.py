"""Configuration management for chatmail.

This module handles application configuration using Pydantic settings.
Configuration can be loaded from environment variables or .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with
    the CHATMAIL_ prefix (e.g., CHATMAIL_FETCH_BATCH_SIZE).
    """

    model_config = SettingsConfigDict(
        env_prefix="CHATMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Gmail Configuration
    gmail_credentials_path: Path = Field(
        default=Path("credentials.json"),
        description="Path to Gmail API credentials file",
    )
    gmail_token_path: Path = Field(
        default=Path("token.json"),
        description="Path to Gmail API token file",
    )
    gmail_scope: str = Field(
        default="https://www.googleapis.com/auth/gmail.modify",
        description=(
            "OAuth scope used for Gmail access. Sending, archiving and marking "
            "messages as read all require gmail.modify."
        ),
    )
    gmail_user_id: str = Field(
        default="me",
        description="Gmail API user id for all requests",
    )
    user_email: str | None = Field(
        default=None,
        description=(
            "Address of the authenticated user. When unset it is read from the "
            "Gmail profile after authentication."
        ),
    )

    # Sync Configuration
    list_page_size: int = Field(
        default=100,
        description="Number of thread ids requested per listing page",
    )
    fetch_batch_size: int = Field(
        default=10,
        description="Thread detail fetches issued concurrently per batch",
    )
    page_delay_seconds: float = Field(
        default=0.05,
        description="Pause between listing pages to stay under upstream rate limits",
    )
    publish_every_batches: int = Field(
        default=5,
        description="Publish an intermediate conversation snapshot every N batches",
    )

    # Send Configuration
    send_echo_delay_seconds: float = Field(
        default=1.0,
        description="Wait before looking up the sent copy of an outgoing message",
    )
    max_attachment_bytes: int = Field(
        default=25 * 1024 * 1024,
        description="Maximum combined attachment size accepted for sending",
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )
    max_retries: int = Field(
        default=3,
        description="Maximum number of retries for transient Gmail API failures",
    )
    retry_delay_seconds: float = Field(
        default=1.0,
        description="Initial delay between retries in seconds",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
