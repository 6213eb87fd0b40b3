"""
Shared fixtures for bookserver proxy tests.

Fixtures are organized by category:
- Storage fixtures (in-memory fake provider)
- Cache fixtures (fresh identifier cache per test)
- API fixtures (FastAPI app, client)
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.dependencies import get_file_cache, get_storage_provider
from app.core.errors import RemoteFileNotFound, StorageConnectionError, StorageError
from app.core.file_cache import FileCache
from app.main import app
from app.storage.base import RemoteFile, StorageProvider
from app.utils.byte_range import ByteRange
from app.utils.content_type import detect_content_type


# =============================================================================
# STORAGE FIXTURES
# =============================================================================


class FakeStorage(StorageProvider):
    """In-memory storage provider recording every call."""

    name = "fake"
    link_base = "https://storage.test/file/"

    def __init__(
        self,
        supports_range: bool = False,
        upload_result: Optional[Callable[[str, str], Any]] = None,
        link: Optional[str] = None,
        fail_ranged: bool = False,
        fail_upload: bool = False,
        chunk_size: int = 4,
    ):
        self.supports_range = supports_range
        self.upload_result = upload_result
        self.link = link
        self.fail_ranged = fail_ranged
        self.fail_upload = fail_upload
        self.chunk_size = chunk_size
        self.healthy = True

        self.files: Dict[str, bytes] = {}
        self.names: Dict[str, str] = {}
        self.uploads: List[tuple] = []
        self.locate_calls: List[str] = []
        self.open_calls: List[Optional[ByteRange]] = []

    def add(self, file_id: str, name: str, data: bytes) -> None:
        self.files[file_id] = data
        self.names[file_id] = name

    def connect(self) -> None:
        pass

    def check_configuration(self) -> bool:
        return True

    def upload(self, path: str, name: str, size: int) -> Any:
        if self.fail_upload:
            raise StorageError("remote quota exceeded")

        with open(path, "rb") as f:
            data = f.read()
        file_id = f"node{len(self.files) + 1}"
        self.add(file_id, name, data)
        self.uploads.append((path, name, size))

        if self.upload_result is not None:
            return self.upload_result(file_id, name)
        return {"h": file_id, "name": name}

    def share_link(self, uploaded: Any) -> Optional[str]:
        return self.link

    def locate(self, file_id: str) -> Optional[RemoteFile]:
        self.locate_calls.append(file_id)
        if file_id not in self.files:
            return None
        name = self.names[file_id]
        return RemoteFile(
            file_id=file_id,
            name=name,
            size=len(self.files[file_id]),
            content_type=detect_content_type(name),
        )

    def open(self, remote: RemoteFile, byte_range: Optional[ByteRange] = None) -> Iterator[bytes]:
        self.open_calls.append(byte_range)
        if remote.file_id not in self.files:
            raise RemoteFileNotFound(remote.file_id)
        if byte_range is not None and self.fail_ranged:
            raise StorageError("ranged read failed")

        data = self.files[remote.file_id]
        if byte_range is not None:
            data = data[byte_range.start:byte_range.end + 1]
        return iter([data[i:i + self.chunk_size] for i in range(0, len(data), self.chunk_size)])

    def ping(self) -> None:
        if not self.healthy:
            raise StorageConnectionError("storage unreachable")


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


# =============================================================================
# CACHE FIXTURES
# =============================================================================


@pytest.fixture
def cache() -> FileCache:
    return FileCache(ttl_seconds=60)


# =============================================================================
# API FIXTURES
# =============================================================================


@pytest.fixture
def upload_dir(tmp_path, monkeypatch):
    directory = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_TEMP_DIR", str(directory))
    return directory


@pytest.fixture
def client(storage, cache, upload_dir):
    app.dependency_overrides[get_storage_provider] = lambda: storage
    app.dependency_overrides[get_file_cache] = lambda: cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
