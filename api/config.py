"""
API configuration settings.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """
    API configuration settings.
    Every field can be set through a ``CATALOG_``-prefixed environment
    variable or the ``.env`` file.
    """

    # API Settings
    api_title: str = "Tenant Book Catalog API"
    api_version: str = "1.0.0"
    api_description: str = "Multi-tenant book catalog with session-based authentication"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 3000
    debug: bool = False

    # Security Settings
    secret_key: str = Field(..., min_length=32, description="Token signing secret")
    algorithm: str = "HS256"
    token_lifetime_seconds: int = 60 * 5
    token_header: str = "auth-token"

    # CORS Settings
    cors_origins: List[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_prefix": "CATALOG_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra fields from .env
    }

    @field_validator("token_lifetime_seconds")
    @classmethod
    def validate_token_lifetime(cls, v):
        """Ensure token lifetime is reasonable."""
        if v < 1 or v > 86400:
            raise ValueError("token_lifetime_seconds must be between 1 and 86400")
        return v

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v):
        """Only shared-secret algorithms are supported."""
        valid_algorithms = ["HS256", "HS384", "HS512"]
        if v.upper() not in valid_algorithms:
            raise ValueError(f"algorithm must be one of: {valid_algorithms}")
        return v.upper()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()


@lru_cache
def get_config() -> APIConfig:
    """Load configuration from the environment once per process."""
    return APIConfig()
