from __future__ import annotations

import sys
import types
from pathlib import Path

import pytest

from app.core.errors import (
    RemoteFileNotFound,
    StorageConfigError,
    StorageConnectionError,
    StorageError,
)
from app.storage.base import RemoteFile
from app.storage.identifiers import extract_file_id
from app.storage.mega import MegaStorageProvider


class FakeMegaClient:
    """Mimics the parts of mega.Mega used by the provider."""

    def __init__(self):
        self.uploads = []
        self.downloads = []
        self.fail_download = False
        self.nodes = {
            "abc": {"h": "abc", "t": 0, "s": 11, "a": {"n": "book.pdf"}},
        }

    def upload(self, filename, dest=None, dest_filename=None):
        self.uploads.append((filename, dest_filename))
        return {"f": [{"h": "abc", "t": 0, "k": "user:key"}]}

    def get_upload_link(self, uploaded):
        return f"https://mega.nz/#!{uploaded['f'][0]['h']}!decrypted"

    def get_files(self):
        return self.nodes

    def download(self, file, dest_path=None, dest_filename=None):
        self.downloads.append(file)
        if self.fail_download:
            raise RuntimeError("EOVERQUOTA")
        path = Path(dest_path) / file[1]["a"]["n"]
        path.write_bytes(b"hello world")
        return path

    def get_user(self):
        return {"u": "user"}


@pytest.fixture
def mega_client():
    return FakeMegaClient()


@pytest.fixture
def provider(mega_client, tmp_path):
    return MegaStorageProvider(
        email="reader@example.com",
        password="secret",
        client=mega_client,
        temp_dir=str(tmp_path / "spool"),
        chunk_size=4,
    )


def test_missing_credentials_fail_fast(tmp_path):
    provider = MegaStorageProvider(email="", password="", temp_dir=str(tmp_path))

    assert provider.check_configuration() is False
    with pytest.raises(StorageConfigError):
        provider.connect()


def test_failed_login_resets_client(monkeypatch, tmp_path):
    attempts = []

    class Mega:
        def login(self, email, password):
            attempts.append(email)
            raise RuntimeError("ENOENT")

    monkeypatch.setitem(sys.modules, "mega", types.SimpleNamespace(Mega=Mega))
    provider = MegaStorageProvider(email="a@b.c", password="pw", temp_dir=str(tmp_path))

    with pytest.raises(StorageConnectionError, match="MEGA connection failed"):
        provider.connect()
    with pytest.raises(StorageConnectionError):
        provider.connect()

    assert attempts == ["a@b.c", "a@b.c"]


def test_login_happens_once(monkeypatch, tmp_path):
    sessions = []

    class Mega:
        def login(self, email, password):
            sessions.append(self)
            return self

    monkeypatch.setitem(sys.modules, "mega", types.SimpleNamespace(Mega=Mega))
    provider = MegaStorageProvider(email="a@b.c", password="pw", temp_dir=str(tmp_path))

    provider.connect()
    provider.connect()

    assert len(sessions) == 1


def test_upload_returns_raw_mega_response(provider, mega_client, tmp_path):
    source = tmp_path / "upload.bin"
    source.write_bytes(b"hello world")

    raw = provider.upload(str(source), "book.pdf", 11)

    assert mega_client.uploads == [(str(source), "book.pdf")]
    assert extract_file_id(raw) == "abc"
    assert provider.share_link(raw) == "https://mega.nz/#!abc!decrypted"


def test_upload_error_is_wrapped(provider, mega_client, tmp_path):
    def broken(*args, **kwargs):
        raise RuntimeError("EAGAIN")

    mega_client.upload = broken

    with pytest.raises(StorageError, match="MEGA upload failed"):
        provider.upload(str(tmp_path / "x"), "book.pdf", 1)


def test_locate(provider):
    remote = provider.locate("abc")

    assert remote.name == "book.pdf"
    assert remote.size == 11
    assert remote.content_type == "application/pdf"
    assert remote.locator[0] == "abc"
    assert provider.locate("missing") is None


def test_open_streams_and_cleans_spool(provider, mega_client, tmp_path):
    remote = provider.locate("abc")

    chunks = list(provider.open(remote))

    assert chunks == [b"hell", b"o wo", b"rld"]
    assert list((tmp_path / "spool").iterdir()) == []


def test_open_without_locator_looks_file_up(provider, mega_client):
    chunks = provider.open(RemoteFile(file_id="abc", name="book.pdf", size=11))

    assert b"".join(chunks) == b"hello world"
    assert mega_client.downloads[0][0] == "abc"


def test_open_unknown_file(provider):
    with pytest.raises(RemoteFileNotFound):
        provider.open(RemoteFile(file_id="nope", name="x", size=1))


def test_open_download_failure_cleans_spool(provider, mega_client, tmp_path):
    mega_client.fail_download = True

    with pytest.raises(StorageError, match="MEGA download failed"):
        provider.open(provider.locate("abc"))

    assert list((tmp_path / "spool").iterdir()) == []


def test_mega_has_no_native_ranges(provider):
    assert provider.supports_range is False
    assert provider.link_base == "https://mega.nz/file/"
