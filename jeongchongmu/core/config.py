"""
Client configuration and environment settings.
"""
import logging
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Dict, Optional, Union


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Jeongchongmu"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Backend API
    API_BASE_URL: str = "http://localhost:8080"
    API_TIMEOUT: float = 10.0  # seconds
    API_DEFAULT_HEADERS: Union[Dict[str, str], str] = {"Content-Type": "application/json"}

    @field_validator("API_DEFAULT_HEADERS", mode="before")
    @classmethod
    def parse_default_headers(cls, v):
        """Parse API_DEFAULT_HEADERS from 'Name: value' pairs separated by commas."""
        if isinstance(v, str):
            headers = {}
            for pair in v.split(","):
                if ":" not in pair:
                    continue
                name, value = pair.split(":", 1)
                if name.strip():
                    headers[name.strip()] = value.strip()
            return headers
        return v

    @field_validator("API_BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoint paths are joined with a leading slash."""
        return v.rstrip("/")

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    """Apply LOG_LEVEL to the package logger."""
    package_logger = logging.getLogger("jeongchongmu")
    package_logger.setLevel((level or settings.LOG_LEVEL).upper())
    if settings.DEBUG:
        package_logger.setLevel(logging.DEBUG)
