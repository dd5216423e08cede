"""Application configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import List
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application configuration from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Cache
    cache_capacity: int = 32
    cache_timeout_seconds: int = 3600

    # Wikipedia (MediaWiki API)
    wiki_api_url: str = "https://en.wikipedia.org/w/api.php"
    wiki_request_timeout: float = 10.0
    wiki_user_agent: str = "wiki-mediator/1.0 (https://github.com/wiki-mediator)"

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    max_concurrent_requests: int = 8

    # Use comma-separated origins or "*" for development only
    cors_allowed_origins: str = "http://localhost:8000,http://127.0.0.1:8000"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins into a list."""
        if self.cors_allowed_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    @field_validator('cors_allowed_origins')
    @classmethod
    def validate_cors_origins(cls, v: str) -> str:
        if v == "*":
            logger.warning(
                "CORS_ALLOWED_ORIGINS is set to '*' (wildcard). "
                "This should only be used in development."
            )
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            logger.warning(f"Invalid LOG_LEVEL '{v}', defaulting to INFO")
            return 'INFO'
        return v.upper()

    @field_validator('cache_capacity', 'cache_timeout_seconds')
    @classmethod
    def warn_negative_cache_setting(cls, v: int, info) -> int:
        # Left as-is: constructing the cache rejects negative values.
        if v < 0:
            logger.error(f"{info.field_name.upper()} is negative ({v}); the cache cannot be created")
        return v

    @field_validator('wiki_request_timeout')
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        if v <= 0:
            logger.warning("WIKI_REQUEST_TIMEOUT must be positive, defaulting to 10s")
            return 10.0
        return v

    @field_validator('max_concurrent_requests')
    @classmethod
    def validate_max_concurrent(cls, v: int) -> int:
        if v < 0:
            logger.warning("MAX_CONCURRENT_REQUESTS cannot be negative, defaulting to 0 (unbounded)")
            return 0
        return v


def get_settings() -> Settings:
    """Get application settings with validation logging."""
    try:
        return Settings()
    except Exception as e:
        logger.critical(f"Failed to load settings: {e}")
        raise


settings = get_settings()
