"""
Application Configuration

Settings are read from environment variables (or a .env file) with
Pydantic Settings. Import `get_settings()` wherever a value is needed.
"""

import logging
import sys
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Cloudinary reads CLOUDINARY_URL straight from os.environ
load_dotenv()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Food Ordering API", description="Application display name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Verbose logging and error details")
    port: int = Field(default=8000, description="API server port")
    cors_origins: str = Field(default="*", description="Comma-separated list of allowed origins")

    # Database
    database_url: Optional[str] = Field(default=None, description="MongoDB connection URL")
    database_name: Optional[str] = Field(default=None, description="MongoDB database name")

    # Auth
    jwt_secret: str = Field(default="change-me", description="Secret used to sign access tokens")
    jwt_algorithm: str = Field(default="HS256", description="Access token signing algorithm")
    token_expire_days: int = Field(default=30, description="Access token validity in days")
    password_hash_rounds: int = Field(default=10, ge=4, le=31, description="bcrypt cost factor")

    # Image storage
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    return Settings()


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.

    Args:
        level: Logging level used when DEBUG is off

    Returns:
        The application logger
    """
    if get_settings().debug:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)-12s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)

    return logging.getLogger("app")
