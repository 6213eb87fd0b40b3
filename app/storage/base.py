"""
Storage provider protocol.
Upload spooled files, locate them by identifier, and stream them back.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from app.utils.byte_range import ByteRange


@dataclass
class RemoteFile:
    """Provider-neutral description of a file held by the remote storage."""

    file_id: str
    name: str
    size: int
    content_type: Optional[str] = None

    # Provider-specific handle needed to open the file (node, object key, ...)
    locator: Any = field(default=None, repr=False)


class StorageProvider(ABC):
    """Abstract remote storage used by the upload and download endpoints."""

    name: str = "abstract"

    # True when open() can serve a byte range without reading the whole file
    supports_range: bool = False

    # Prefix for share links built from a bare file identifier
    link_base: Optional[str] = None

    @abstractmethod
    def connect(self) -> None:
        """
        Connect to the remote storage if not connected yet.

        Raises:
            StorageConfigError: If credentials are missing
            StorageConnectionError: If the connection attempt fails
        """

    @abstractmethod
    def check_configuration(self) -> bool:
        """Return False (and log) when required settings are missing."""

    @abstractmethod
    def upload(self, path: str, name: str, size: int) -> Any:
        """
        Upload a local file.

        Args:
            path: Path of the spooled upload
            name: Remote file name
            size: File size in bytes

        Returns:
            The SDK's raw upload result
        """

    def share_link(self, uploaded: Any) -> Optional[str]:
        """Return a provider-native share link for an upload result, if any."""
        return None

    @abstractmethod
    def locate(self, file_id: str) -> Optional[RemoteFile]:
        """Look up a remote file by identifier, None if it does not exist."""

    @abstractmethod
    def open(self, remote: RemoteFile, byte_range: Optional[ByteRange] = None) -> Iterator[bytes]:
        """
        Open a remote file for streaming.

        The remote read is started before returning, so connection and
        lookup errors surface here rather than mid-response.

        Args:
            remote: File returned by locate() or built after upload
            byte_range: Inclusive byte range, honoured only when supports_range

        Returns:
            Iterator of byte chunks
        """

    def ping(self) -> None:
        """Check connectivity; raises StorageError on failure."""
        self.connect()
