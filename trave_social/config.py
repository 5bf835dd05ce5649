"""
Application configuration using Pydantic Settings.
Loads configuration from environment variables with validation.
"""
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    environment: str = Field(default="development", description="Environment: development, staging, production")
    debug: bool = Field(default=False, description="Debug mode")

    # Database
    database_url: str = Field(..., description="Async database URL (postgresql+asyncpg://...)")

    # Redis
    redis_url: str = Field(default="", description="Redis connection URL (empty disables caching)")
    redis_password: str = Field(default="", description="Redis password")

    # Security
    jwt_secret: str = Field(..., min_length=32, description="JWT secret key (min 32 chars)")
    jwt_algorithm: str = Field(default="HS256", description="JWT algorithm")
    jwt_expiration_hours: int = Field(default=168, description="JWT expiration time in hours (7 days)")

    # CORS
    allowed_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    # Identity resolution
    cache_identity_ttl: int = Field(default=600, description="Identifier -> canonical id cache TTL in seconds")

    # Alibaba Cloud OSS (media hosting)
    oss_access_key_id: str = Field(default="", description="Alibaba Cloud OSS Access Key ID")
    oss_access_key_secret: str = Field(default="", description="Alibaba Cloud OSS Access Key Secret")
    oss_bucket_name: str = Field(default="trave-social-media", description="OSS bucket name")
    oss_endpoint: str = Field(default="oss-ap-southeast-1.aliyuncs.com", description="OSS endpoint")

    # File Upload
    max_upload_size: int = Field(default=10485760, description="Max file upload size in bytes (10MB)")
    allowed_file_types: str = Field(
        default="image/jpeg,image/png,image/gif,image/webp,video/mp4,video/quicktime",
        description="Comma-separated list of allowed MIME types"
    )

    # Push notifications (Expo gateway)
    expo_push_url: str = Field(
        default="https://exp.host/--/api/v2/push/send",
        description="Expo push send endpoint"
    )
    expo_access_token: str = Field(default="", description="Optional Expo access token")
    push_timeout: int = Field(default=10, description="Push gateway request timeout in seconds")

    # Side-effect bus
    side_effect_workers: int = Field(default=2, description="Number of side-effect worker tasks")
    side_effect_max_attempts: int = Field(default=3, description="Delivery attempts per side-effect job")
    side_effect_retry_delay: float = Field(default=0.5, description="Base retry delay in seconds (linear backoff)")
    side_effect_queue_size: int = Field(default=1000, description="Maximum pending side-effect jobs")

    # Rate limiting
    rate_limit_enabled: bool = Field(default=True, description="Enable slowapi rate limits")

    # WebSocket
    ws_heartbeat_interval: int = Field(default=30, description="WebSocket heartbeat interval in seconds")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")

    def get_allowed_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def get_allowed_file_types_list(self) -> List[str]:
        """Parse comma-separated file types into a list."""
        return [file_type.strip() for file_type in self.allowed_file_types.split(",") if file_type.strip()]


# Global settings instance
settings = Settings()
