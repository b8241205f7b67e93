"""Application settings using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServerSettings(BaseSettings):
    """Authentication server configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SERVER__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    host: str = Field(default="127.0.0.1", description="API server host")
    port: int = Field(default=8200, description="API server port")
    reload: bool = Field(default=False, description="Auto-reload on code changes")
    api_prefix: str = Field(default="/v1", description="Prefix for all mounted routes")
    mount_path: str = Field(
        default="/auth/oauth",
        description="Mount point of the OAuth endpoints below api_prefix",
    )

    # Storage
    storage_backend: str = Field(
        default="filesystem",
        description="Storage backend: filesystem | memory",
    )
    storage_path: str = Field(
        default="~/.oauth-login/data",
        description="Root directory for the filesystem storage backend",
    )

    # Lease limits applied to issued tokens
    default_lease_ttl: int = Field(
        default=32 * 24 * 3600,
        description="Token TTL in seconds when a role sets no ttl",
    )
    max_lease_ttl: int = Field(
        default=32 * 24 * 3600,
        description="System ceiling for token max TTL in seconds",
    )

    # Token signing (ES256 with ECDSA P-256)
    token_signing_key: str = Field(
        default="",
        description="Private key (PEM) for signing issued tokens; ephemeral if empty",
    )
    token_algorithm: str = Field(default="ES256", description="JWT algorithm (ES256)")

    # Identity provider
    http_timeout: float = Field(
        default=10.0, description="Timeout in seconds for identity provider requests"
    )
    jwks_cache_ttl: int = Field(default=3600, description="JWKS cache TTL in seconds")


class LoginSettings(BaseSettings):
    """Interactive login client configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOGIN__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    server_url: str = Field(
        default="http://127.0.0.1:8200/v1",
        description="Base URL of the login server (including api prefix)",
    )
    token_path: str = Field(
        default="~/.oauth-login-token",
        description="Where a successful login stores the issued token",
    )
    timeout_seconds: float = Field(
        default=300.0,
        description="Absolute deadline for the browser round trip",
    )
    request_timeout: float = Field(
        default=30.0, description="Timeout in seconds for calls to the login server"
    )


class Settings(BaseSettings):
    """Application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="OAUTH_LOGIN_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = Field(default="INFO", description="Log level for the loguru sink")

    server: ServerSettings = Field(default_factory=ServerSettings)
    login: LoginSettings = Field(default_factory=LoginSettings)


settings = Settings()
