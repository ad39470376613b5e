"""Application settings and configuration.

This module defines all configuration options for the goal-chat service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Goal Chat", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    debug: bool = Field(default=False, alias="DEBUG")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Database configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./goal_chat.db",
        alias="DATABASE_URL",
    )
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    create_tables_on_startup: bool = Field(default=True, alias="CREATE_TABLES_ON_STARTUP")

    # Profile projection
    file_base_url: str = Field(default="", alias="FILE_BASE_URL")

    # Notification service port
    notification_service_url: str | None = Field(
        default=None,
        alias="NOTIFICATION_SERVICE_URL",
    )
    notification_timeout_seconds: float = Field(
        default=3.0,
        alias="NOTIFICATION_TIMEOUT_SECONDS",
    )

    # Presence backend: "memory" for a single process, "redis" when shared
    presence_backend: str = Field(default="memory", alias="PRESENCE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    presence_key_prefix: str = Field(default="chat:presence", alias="PRESENCE_KEY_PREFIX")

    # Behaviour switches for known gaps in the socket protocol
    surface_read_errors: bool = Field(default=False, alias="SURFACE_READ_ERRORS")
    enforce_bound_identity: bool = Field(default=False, alias="ENFORCE_BOUND_IDENTITY")

    # Pagination
    chat_default_page_size: int = Field(default=20, alias="CHAT_DEFAULT_PAGE_SIZE")
    chat_max_page_size: int = Field(default=100, alias="CHAT_MAX_PAGE_SIZE")

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

        Converts async driver URLs to their synchronous counterparts for
        operations like Alembic migrations.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()  # type: ignore[call-arg]
