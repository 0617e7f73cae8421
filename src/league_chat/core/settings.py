"""Application settings and configuration.

This module defines all configuration options for the League Chat service.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="League Chat", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Identity provider token verification
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 30,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./league_chat.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Live delivery: "memory" keeps fan-out inside one process, "redis" shares
    # sessions and events between instances.
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    live_backend: Literal["memory", "redis"] = Field(default="memory", alias="LIVE_BACKEND")
    live_queue_size: int = Field(default=256, alias="LIVE_QUEUE_SIZE")
    live_send_timeout_seconds: float = Field(default=5.0, alias="LIVE_SEND_TIMEOUT_SECONDS")

    # Blob store ownership check for media URLs
    media_bucket: str = Field(default="league-chat-media", alias="MEDIA_BUCKET")
    media_region: str = Field(default="eu-north-1", alias="MEDIA_REGION")
    media_cdn_url: str | None = Field(default=None, alias="MEDIA_CDN_URL")

    # Messaging limits
    message_page_size: int = Field(default=50, alias="MESSAGE_PAGE_SIZE")
    message_page_max: int = Field(default=100, alias="MESSAGE_PAGE_MAX")
    ephemeral_max_seconds: int = Field(default=300, alias="EPHEMERAL_MAX_SECONDS")
    max_emoji_length: int = Field(default=16, alias="MAX_EMOJI_LENGTH")
    max_group_name_length: int = Field(default=100, alias="MAX_GROUP_NAME_LENGTH")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def media_bucket_url(self) -> str:
        """Return the public base URL of the media bucket (with trailing slash)."""
        return f"https://{self.media_bucket}.s3.{self.media_region}.amazonaws.com/"


settings = Settings()  # type: ignore[call-arg]
