"""
Configuration management for Bookserver Proxy.
Loads environment variables and selects the remote storage backend.
"""

from enum import Enum
from typing import List, Optional
from pydantic_settings import BaseSettings


class StorageBackend(str, Enum):
    """Enum for supported remote storage backends."""
    MEGA = "mega"
    S3 = "s3"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Bookserver Proxy"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    CORS_ORIGINS: List[str] = ["*"]

    # Remote storage selection
    STORAGE_PROVIDER: StorageBackend = StorageBackend.MEGA

    # MEGA account (both required for the mega backend)
    MEGA_EMAIL: Optional[str] = None
    MEGA_PASSWORD: Optional[str] = None
    MEGA_LINK_BASE: str = "https://mega.nz/file/"

    # S3-compatible backend
    S3_ENDPOINT: Optional[str] = None      # e.g. 192.168.1.100:9000, empty for AWS
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[str] = None
    S3_SECURE: bool = False
    S3_REGION: str = "us-east-1"
    S3_BUCKET: str = "books"
    S3_PREFIX: str = "uploads"
    S3_LINK_EXPIRATION: int = 3600  # presigned share link lifetime in seconds

    # Uploads
    UPLOAD_TEMP_DIR: str = "uploads"
    MAX_UPLOAD_BYTES: int = 0       # 0 = unlimited
    DEFAULT_FILENAME: str = "book.pdf"
    DEBUG_UPLOAD_LOGGING: bool = True

    # Downloads
    FILE_CACHE_TTL_SECONDS: int = 3600  # 0 disables the identifier cache
    DOWNLOAD_CHUNK_SIZE: int = 256 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
