"""
Shared dependencies for FastAPI endpoints.
"""

import logging
from typing import Annotated

from fastapi import Depends

from app.core.config import StorageBackend, settings
from app.core.file_cache import FileCache, file_cache
from app.storage.base import StorageProvider
from app.storage.mega import MegaStorageProvider
from app.storage.s3 import S3StorageProvider

logger = logging.getLogger(__name__)


# Storage provider singleton
_provider: StorageProvider | None = None


def get_storage_provider() -> StorageProvider:
    """
    Get or create the configured storage provider.
    Built once per process; the remote connection itself is opened lazily.
    """
    global _provider
    if _provider is None:
        if settings.STORAGE_PROVIDER == StorageBackend.S3:
            _provider = S3StorageProvider()
        else:
            _provider = MegaStorageProvider()
        logger.info(f"Using storage provider: {_provider.name}")
    return _provider


def get_file_cache() -> FileCache:
    """Return the process-wide identifier cache."""
    return file_cache


# Dependency annotations
Storage = Annotated[StorageProvider, Depends(get_storage_provider)]
Cache = Annotated[FileCache, Depends(get_file_cache)]
