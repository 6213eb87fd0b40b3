"""
HTTP Range header handling.
Parses single byte ranges and trims full streams down to a range.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

logger = logging.getLogger(__name__)


class RangeNotSatisfiable(Exception):
    """Malformed or unsatisfiable Range header (HTTP 416)."""

    def __init__(self, size: int, header: Optional[str] = None):
        super().__init__(f"Range not satisfiable: {header!r} for {size} bytes")
        self.size = size
        self.header = header


@dataclass(frozen=True)
class ByteRange:
    """Inclusive byte range within a file."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, size: int) -> str:
        return f"bytes {self.start}-{self.end}/{size}"

    def header_value(self) -> str:
        """Value for a ranged request to the remote storage."""
        return f"bytes={self.start}-{self.end}"


def _is_position(value: str) -> bool:
    return not value or (value.isascii() and value.isdigit())


def parse_range(header: Optional[str], size: int) -> Optional[ByteRange]:
    """
    Parse a Range header against a file of the given size.

    Supports "bytes=start-end", "bytes=start-" and "bytes=-suffix".
    The end is clamped to the last byte of the file.

    Args:
        header: Raw Range header value (may be None)
        size: Total file size in bytes

    Returns:
        ByteRange, or None when the whole file should be served
        (no header, a unit other than bytes, or several ranges)

    Raises:
        RangeNotSatisfiable: If the range is malformed or starts past the end

    Examples:
        >>> parse_range("bytes=0-99", 1000)
        ByteRange(start=0, end=99)

        >>> parse_range("bytes=-100", 1000)
        ByteRange(start=900, end=999)

        >>> parse_range("bytes=500-", 1000)
        ByteRange(start=500, end=999)
    """
    if not header or not header.strip():
        return None

    unit, sep, spec = header.partition("=")
    if not sep:
        raise RangeNotSatisfiable(size, header)

    if unit.strip().lower() != "bytes":
        logger.debug(f"Ignoring Range with unsupported unit: {header}")
        return None

    specs = [part.strip() for part in spec.split(",") if part.strip()]
    if not specs:
        raise RangeNotSatisfiable(size, header)

    if len(specs) > 1:
        # multipart/byteranges is not supported, serve the whole file
        logger.debug(f"Ignoring multi-range request: {header}")
        return None

    start_str, dash, end_str = specs[0].partition("-")
    start_str, end_str = start_str.strip(), end_str.strip()
    if not dash or not _is_position(start_str) or not _is_position(end_str):
        raise RangeNotSatisfiable(size, header)

    if start_str:
        start = int(start_str)
        end = int(end_str) if end_str else size - 1
        if end < start:
            raise RangeNotSatisfiable(size, header)
    elif end_str:
        suffix = int(end_str)
        if suffix == 0:
            raise RangeNotSatisfiable(size, header)
        start = max(size - suffix, 0)
        end = size - 1
    else:
        raise RangeNotSatisfiable(size, header)

    if start >= size:
        raise RangeNotSatisfiable(size, header)

    return ByteRange(start=start, end=min(end, size - 1))


def slice_stream(chunks: Iterable[bytes], byte_range: ByteRange) -> Iterator[bytes]:
    """
    Trim a full-file chunk stream down to a byte range.

    Used when the remote storage cannot read a range natively: bytes before
    the range are skipped and reading stops once the range is complete.
    """
    position = 0
    try:
        for chunk in chunks:
            chunk_start = position
            position += len(chunk)

            if position <= byte_range.start:
                continue

            lo = max(byte_range.start - chunk_start, 0)
            hi = min(byte_range.end + 1 - chunk_start, len(chunk))
            if lo < hi:
                yield chunk[lo:hi]

            if position > byte_range.end:
                break
    finally:
        close = getattr(chunks, "close", None)
        if close is not None:
            close()


def iter_file(path: str, chunk_size: int) -> Iterator[bytes]:
    """Stream a local file in chunks."""
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk
