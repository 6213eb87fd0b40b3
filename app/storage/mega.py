"""
MEGA storage provider (mega.py).
Single logged-in session shared by all requests, created on first use.
"""

import logging
import os
import shutil
import tempfile
import threading
from typing import Any, Iterator, Optional

from app.core.config import settings
from app.core.errors import (
    RemoteFileNotFound,
    StorageConfigError,
    StorageConnectionError,
    StorageError,
)
from app.storage.base import RemoteFile, StorageProvider
from app.utils.byte_range import ByteRange, iter_file
from app.utils.content_type import detect_content_type

logger = logging.getLogger(__name__)


class MegaStorageProvider(StorageProvider):
    """
    Storage on a MEGA account.

    MEGA has no ranged download API, so every download is spooled to a
    temporary file and streamed from there (supports_range is False).
    """

    name = "mega"
    supports_range = False

    def __init__(
        self,
        email: Optional[str] = None,
        password: Optional[str] = None,
        client: Any = None,
        temp_dir: Optional[str] = None,
        chunk_size: Optional[int] = None,
    ):
        """
        Args:
            email: Account email (defaults to MEGA_EMAIL)
            password: Account password (defaults to MEGA_PASSWORD)
            client: Already logged-in mega.Mega instance, skips login
            temp_dir: Download spool directory (defaults to UPLOAD_TEMP_DIR)
            chunk_size: Streaming chunk size (defaults to DOWNLOAD_CHUNK_SIZE)
        """
        self.email = email if email is not None else settings.MEGA_EMAIL
        self.password = password if password is not None else settings.MEGA_PASSWORD
        self.temp_dir = temp_dir or settings.UPLOAD_TEMP_DIR
        self.chunk_size = chunk_size or settings.DOWNLOAD_CHUNK_SIZE
        self.link_base = settings.MEGA_LINK_BASE
        self._client = client
        self._lock = threading.Lock()

    def check_configuration(self) -> bool:
        if not self.email or not self.password:
            logger.error("ERROR: Set MEGA_EMAIL and MEGA_PASSWORD in .env file!")
            return False
        return True

    def connect(self) -> None:
        self._get_client()

    def _get_client(self) -> Any:
        """Return the shared MEGA session, logging in on first use."""
        if self._client is not None:
            return self._client

        # Fail fast if credentials are missing
        if not self.email or not self.password:
            raise StorageConfigError(
                "MEGA credentials are not configured in server environment variables."
            )

        with self._lock:
            if self._client is None:
                try:
                    logger.info("Attempting to connect to MEGA...")
                    from mega import Mega

                    self._client = Mega().login(self.email, self.password)
                    logger.info("Connected to MEGA successfully")
                except Exception as e:
                    logger.error(f"FAILED to connect to MEGA: {e}")
                    self._client = None
                    raise StorageConnectionError(f"MEGA connection failed: {e}") from e

        return self._client

    def upload(self, path: str, name: str, size: int) -> Any:
        client = self._get_client()

        logger.info(f"[MEGA] Uploading {name} ({size} bytes)")
        try:
            uploaded = client.upload(path, dest_filename=name)
        except Exception as e:
            logger.error(f"[MEGA] Upload failed for {name}: {e}")
            raise StorageError(f"MEGA upload failed: {e}") from e

        logger.info(f"[MEGA] Upload successful: {name}")
        return uploaded

    def share_link(self, uploaded: Any) -> Optional[str]:
        return self._get_client().get_upload_link(uploaded)

    def locate(self, file_id: str) -> Optional[RemoteFile]:
        client = self._get_client()
        try:
            files = client.get_files()
        except Exception as e:
            logger.error(f"[MEGA] Failed to list files: {e}")
            raise StorageError(f"MEGA lookup failed: {e}") from e

        node = files.get(file_id)
        if not node:
            return None

        attributes = node.get("a") or {}
        name = attributes.get("n") if isinstance(attributes, dict) else None
        name = name or file_id
        return RemoteFile(
            file_id=file_id,
            name=name,
            size=int(node.get("s", 0)),
            content_type=detect_content_type(name),
            locator=(file_id, node),
        )

    def open(self, remote: RemoteFile, byte_range: Optional[ByteRange] = None) -> Iterator[bytes]:
        client = self._get_client()

        locator = remote.locator
        if locator is None:
            located = self.locate(remote.file_id)
            if located is None:
                raise RemoteFileNotFound(remote.file_id)
            locator = located.locator

        os.makedirs(self.temp_dir, exist_ok=True)
        spool_dir = tempfile.mkdtemp(prefix="mega-", dir=self.temp_dir)

        logger.info(f"[MEGA] Downloading {remote.file_id} to spool")
        try:
            path = client.download(locator, dest_path=spool_dir)
        except Exception as e:
            logger.error(f"[MEGA] Download failed for {remote.file_id}: {e}")
            shutil.rmtree(spool_dir, ignore_errors=True)
            raise StorageError(f"MEGA download failed: {e}") from e

        return _iter_spooled(str(path), spool_dir, self.chunk_size)

    def ping(self) -> None:
        client = self._get_client()
        try:
            client.get_user()
        except Exception as e:
            raise StorageConnectionError(f"MEGA ping failed: {e}") from e


def _iter_spooled(path: str, spool_dir: str, chunk_size: int) -> Iterator[bytes]:
    """Stream a downloaded file and remove its spool directory afterwards."""
    try:
        yield from iter_file(path, chunk_size)
    finally:
        shutil.rmtree(spool_dir, ignore_errors=True)
