"""
Book upload and download endpoints.
Uploads are forwarded to the remote storage; downloads are streamed back
with HTTP Range support.
"""

import logging
import os
import re
import shutil
import tempfile
import time
from typing import BinaryIO, Iterator, Optional, Tuple
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Header, HTTPException, Request, UploadFile, status
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool

from bookserver_schemas.common import ErrorResponse
from bookserver_schemas.file_service import FileInfoResponse, UploadBookResponse
from app.core.config import settings
from app.core.dependencies import Cache, Storage
from app.core.errors import RemoteFileNotFound, StorageError
from app.core.file_cache import FileCache
from app.storage.base import RemoteFile, StorageProvider
from app.storage.identifiers import describe_upload, extract_file_id, resolve_share_link
from app.utils.byte_range import ByteRange, RangeNotSatisfiable, parse_range, slice_stream
from app.utils.content_type import detect_content_type

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])

UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
SPOOL_CHUNK_SIZE = 1024 * 1024


def sanitize_filename(name: str) -> str:
    """Replace every character outside [a-zA-Z0-9._-] with an underscore."""
    return UNSAFE_FILENAME_CHARS.sub("_", name)


def _spool_upload(source: BinaryIO) -> str:
    """Copy an incoming upload to the temp dir and return the spool path."""
    os.makedirs(settings.UPLOAD_TEMP_DIR, exist_ok=True)
    fd, path = tempfile.mkstemp(prefix="upload-", dir=settings.UPLOAD_TEMP_DIR)
    try:
        with os.fdopen(fd, "wb") as dest:
            shutil.copyfileobj(source, dest, SPOOL_CHUNK_SIZE)
    except BaseException:
        _remove_spool(path)
        raise
    return path


def _remove_spool(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        logger.error(f"Cleanup error: {e}")


def _content_disposition(name: str) -> str:
    # Remote names are not sanitized; control characters would break the header
    name = CONTROL_CHARS.sub("", name) or settings.DEFAULT_FILENAME
    if name.isascii() and '"' not in name:
        return f'inline; filename="{name}"'
    return f"inline; filename*=UTF-8''{quote(name)}"


@router.post(
    "/upload-book",
    response_model=UploadBookResponse,
    responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def upload_book(
    request: Request,
    storage: Storage,
    cache: Cache,
    file: Optional[UploadFile] = File(None),
    filename: Optional[str] = Form(None),
):
    """
    Upload a book and forward it to the remote storage.

    The multipart body carries the file in the "file" part and an optional
    "filename" field overriding the part's own name. The name is sanitized
    before it reaches the remote storage.

    Example:
        curl -X POST "http://server/upload-book" \\
          -F "file=@book.pdf" -F "filename=My Book.pdf"

    Returns:
        Share link (bookUrl), file identifier and proxy download URL
    """
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")

    start_time = time.time()
    original_name = filename or file.filename or settings.DEFAULT_FILENAME
    safe_name = sanitize_filename(original_name)

    spool_path = None
    try:
        try:
            spool_path = await run_in_threadpool(_spool_upload, file.file)
        except OSError as e:
            logger.error(f"[UPLOAD] Spool error: {safe_name} :: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Could not store upload"
            )

        size = os.path.getsize(spool_path)
        if settings.MAX_UPLOAD_BYTES and size > settings.MAX_UPLOAD_BYTES:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds the {settings.MAX_UPLOAD_BYTES} byte upload limit"
            )

        logger.info(f"[UPLOAD] Starting: {safe_name} ({size} bytes)")
        uploaded = await run_in_threadpool(storage.upload, spool_path, safe_name, size)

    except StorageError as e:
        logger.error(f"[UPLOAD] Upload error: {safe_name} :: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Upload failed"
        )
    finally:
        if spool_path is not None:
            await run_in_threadpool(_remove_spool, spool_path)
        await file.close()

    logger.info(f"Upload successful: {safe_name}")

    if settings.DEBUG_UPLOAD_LOGGING:
        for field_name, value in describe_upload(uploaded).items():
            logger.info(f"DEBUG uploaded.{field_name}: {value}")

    file_id = extract_file_id(uploaded)
    book_url = await run_in_threadpool(
        resolve_share_link, uploaded, storage.share_link, storage.link_base
    )

    if not book_url and not file_id:
        logger.error("ERROR: Could not generate bookUrl; upload result lacked link/handle")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="File uploaded but could not generate download link"
        )

    download_url = None
    if file_id:
        cache.put(RemoteFile(
            file_id=file_id,
            name=safe_name,
            size=size,
            content_type=detect_content_type(safe_name),
        ))
        download_url = str(request.url_for("download_file", file_id=file_id))

    duration = time.time() - start_time
    logger.info(f"[UPLOAD] Completed: {safe_name} as {file_id} ({size / 1024 / 1024:.2f}MB in {duration:.2f}s)")

    return UploadBookResponse(
        book_url=book_url,
        file_id=file_id,
        download_url=download_url,
        name=safe_name,
        size=size,
    )


async def _lookup(file_id: str, storage: StorageProvider, cache: FileCache) -> Tuple[RemoteFile, bool]:
    """Find a file in the cache, else ask the remote storage and cache it."""
    remote = cache.get(file_id)
    if remote is not None:
        return remote, True

    try:
        remote = await run_in_threadpool(storage.locate, file_id)
    except StorageError as e:
        logger.error(f"[DOWNLOAD] Lookup error for {file_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Lookup failed"
        )

    if remote is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File not found: {file_id}"
        )

    cache.put(remote)
    return remote, False


async def _open(
    storage: StorageProvider,
    cache: FileCache,
    remote: RemoteFile,
    byte_range: Optional[ByteRange] = None,
) -> Iterator[bytes]:
    """
    Open the remote stream for a file.

    Ranged requests use the provider's native ranged read when it has one.
    Otherwise, or when the ranged read fails, the full stream is opened and
    trimmed to the range.
    """
    try:
        if byte_range is not None and storage.supports_range:
            try:
                return await run_in_threadpool(storage.open, remote, byte_range)
            except RemoteFileNotFound:
                raise
            except StorageError as e:
                logger.warning(
                    f"[DOWNLOAD] Ranged read failed for {remote.file_id}, "
                    f"falling back to full download: {e}"
                )

        stream = await run_in_threadpool(storage.open, remote, None)

    except RemoteFileNotFound:
        cache.evict(remote.file_id)
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File not found: {remote.file_id}"
        )
    except StorageError as e:
        logger.error(f"[DOWNLOAD] Failed to open {remote.file_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e) or "Download failed"
        )

    if byte_range is not None:
        return slice_stream(stream, byte_range)
    return stream


@router.get(
    "/files/{file_id}",
    name="download_file",
    responses={404: {"model": ErrorResponse}, 416: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def download_file(
    file_id: str,
    storage: Storage,
    cache: Cache,
    range_header: Optional[str] = Header(None, alias="range"),
):
    """
    Stream a stored file back to the client.

    Without a Range header the whole file is sent (200). A single byte range
    ("bytes=start-end", "bytes=start-", "bytes=-suffix") is answered with 206
    and Content-Range; a malformed or unsatisfiable range with 416.

    Example:
        curl -H "Range: bytes=0-1023" "http://server/files/<fileId>"
    """
    remote, cached = await _lookup(file_id, storage, cache)

    try:
        byte_range = parse_range(range_header, remote.size)
    except RangeNotSatisfiable as e:
        logger.warning(f"[DOWNLOAD] {e} ({file_id})")
        raise HTTPException(
            status_code=status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE,
            detail="Requested range not satisfiable",
            headers={"Content-Range": f"bytes */{remote.size}"}
        )

    headers = {
        "Accept-Ranges": "bytes",
        "Content-Disposition": _content_disposition(remote.name),
    }
    media_type = remote.content_type or detect_content_type(remote.name)

    stream = await _open(storage, cache, remote, byte_range)

    if byte_range is None:
        logger.info(f"[DOWNLOAD] {file_id}: full ({remote.size} bytes, cached={cached})")
        headers["Content-Length"] = str(remote.size)
        return StreamingResponse(stream, media_type=media_type, headers=headers)

    logger.info(f"[DOWNLOAD] {file_id}: {byte_range.content_range(remote.size)} (cached={cached})")
    headers["Content-Range"] = byte_range.content_range(remote.size)
    headers["Content-Length"] = str(byte_range.length)
    return StreamingResponse(
        stream,
        status_code=status.HTTP_206_PARTIAL_CONTENT,
        media_type=media_type,
        headers=headers
    )


@router.get(
    "/files/{file_id}/info",
    response_model=FileInfoResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def file_info(file_id: str, request: Request, storage: Storage, cache: Cache):
    """Return name, size and content type of a stored file."""
    remote, cached = await _lookup(file_id, storage, cache)

    return FileInfoResponse(
        file_id=remote.file_id,
        name=remote.name,
        size=remote.size,
        content_type=remote.content_type or detect_content_type(remote.name),
        download_url=str(request.url_for("download_file", file_id=remote.file_id)),
        cached=cached,
    )
